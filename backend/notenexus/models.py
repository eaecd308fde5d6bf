"""SQLModel data models.

The SQL persistence backend stores one row per user. The saved
collections are kept as JSON columns so a row maps one-to-one onto a
`schemas.UserRecord` document and a whole user revision is written in a
single statement.
"""

from typing import List, Optional
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

_COLUMN_KEYS = {
    "id", "_id", "name", "email", "password", "isAdmin", "dateAdded",
    "savedCourses", "savedNotes", "savedSyllabus", "savedPapers",
}


class UserRow(SQLModel, table=True):
    """A registered user and their saved content.

    Fields:
    - `email`: unique login name
    - `password`: hashed password string (never store plaintext)
    - `saved_*`: lists of plain dicts in the persisted document format
    - `extra`: document keys without a column of their own
    """
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str = ""
    email: str = Field(index=True, nullable=False, unique=True)
    password: str
    is_admin: bool = False
    date_added: Optional[str] = None
    saved_courses: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    saved_notes: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    saved_syllabus: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    saved_papers: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    extra: dict = Field(default_factory=dict, sa_column=Column(JSON))

    @classmethod
    def from_document(cls, doc: dict) -> "UserRow":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            email=doc["email"],
            password=doc["password"],
            is_admin=bool(doc.get("isAdmin", False)),
            date_added=doc.get("dateAdded"),
            saved_courses=list(doc.get("savedCourses") or []),
            saved_notes=list(doc.get("savedNotes") or []),
            saved_syllabus=list(doc.get("savedSyllabus") or []),
            saved_papers=list(doc.get("savedPapers") or []),
            extra={k: v for k, v in doc.items() if k not in _COLUMN_KEYS},
        )

    def to_document(self) -> dict:
        doc = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password": self.password,
            "isAdmin": self.is_admin,
            "dateAdded": self.date_added,
            "savedCourses": list(self.saved_courses or []),
            "savedNotes": list(self.saved_notes or []),
            "savedSyllabus": list(self.saved_syllabus or []),
            "savedPapers": list(self.saved_papers or []),
        }
        for key, value in (self.extra or {}).items():
            doc.setdefault(key, value)
        if doc["dateAdded"] is None:
            del doc["dateAdded"]
        return doc
