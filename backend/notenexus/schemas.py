"""Pydantic schemas for persisted records and the HTTP API.

`UserRecord` is the persisted document shape: its JSON form (by alias)
is exactly one entry of the `users` array in the JSON database file.
Request models keep the API input shapes stable and validated.
"""

from datetime import datetime, timezone
from typing import List, Optional
import uuid

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


LEAF_KINDS = ("note", "syllabus", "paper")

# kind -> attribute on UserRecord
COLLECTIONS = {
    "note": "saved_notes",
    "syllabus": "saved_syllabus",
    "paper": "saved_papers",
}


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def course_key(name: str) -> str:
    """Canonical identity of a course name for duplicate detection."""
    return (name or "").strip().casefold()


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LeafItem(_Record):
    """A saved note, syllabus or question paper reference."""
    id: str = Field(default_factory=new_id, validation_alias=AliasChoices("id", "_id"))
    title: str
    course_name: str = Field(alias="courseName")
    url: str = "#"
    date_added: str = Field(default_factory=utcnow_iso, alias="dateAdded")


class CourseRef(_Record):
    """A saved course, either explicit or implied by a saved leaf."""
    id: str = Field(default_factory=new_id, validation_alias=AliasChoices("id", "_id"))
    course_id: Optional[str] = Field(default=None, alias="courseId")
    course_name: str = Field(alias="courseName")
    date_added: str = Field(default_factory=utcnow_iso, alias="dateAdded")


class UserRecord(_Record):
    """A registered user together with the four saved collections.

    Keys this model does not know (written by older clients or the
    admin tooling) are kept and written back unchanged.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default_factory=new_id, validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    email: str
    password: str
    is_admin: bool = Field(default=False, alias="isAdmin")
    date_added: str = Field(default_factory=utcnow_iso, alias="dateAdded")
    saved_courses: List[CourseRef] = Field(default_factory=list, alias="savedCourses")
    saved_notes: List[LeafItem] = Field(default_factory=list, alias="savedNotes")
    saved_syllabus: List[LeafItem] = Field(default_factory=list, alias="savedSyllabus")
    saved_papers: List[LeafItem] = Field(default_factory=list, alias="savedPapers")

    def to_document(self) -> dict:
        """Return the JSON-ready dict stored by the persistence backends."""
        return self.model_dump(by_alias=True, mode="json")

    def public(self) -> dict:
        """Return the document without the password hash."""
        doc = self.to_document()
        doc.pop("password", None)
        return doc


class RegisterIn(BaseModel):
    """Payload for user registration."""
    name: str = ""
    email: str
    password: str


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing a signed token."""
    token: str


class CourseIn(_Record):
    """Request body for saving a course directly."""
    course_name: str = Field(default="", alias="courseName")
    course_id: Optional[str] = Field(default=None, alias="courseId")


class LeafIn(_Record):
    """Request body for saving a note, syllabus or paper."""
    title: str = ""
    course_name: str = Field(default="", alias="courseName")
    url: Optional[str] = None


class AdminUserIn(_Record):
    """Request body for creating a user from the admin panel."""
    name: str = ""
    email: str
    password: str
    is_admin: bool = Field(default=False, alias="isAdmin")


class AdminUserUpdate(_Record):
    """Request body for editing a user; omitted fields are left unchanged."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    is_admin: Optional[bool] = Field(default=None, alias="isAdmin")
