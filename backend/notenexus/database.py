"""Persistence backends for the user table.

Two interchangeable backends store the same user documents:

- `JsonFileBackend` keeps the whole table in one JSON file
  (`{"users": [...]}`) and rewrites it atomically after every change.
- `SQLModelBackend` keeps one `models.UserRow` per user in a local
  SQLite database.

Both expose `load_users()`, `upsert_user(doc)`, `delete_user(user_id)`
and `close()`. A write that fails raises `PersistenceError` and leaves
the previously persisted revision intact.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine, select

from .config import Settings
from .errors import PersistenceError
from .models import UserRow

logger = logging.getLogger("notenexus.storage")


class JsonFileBackend:
    """Whole-document JSON file storage."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._docs: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def load_users(self) -> List[dict]:
        """Read the document, creating an empty one if the file is missing."""
        with self._lock:
            if not self.path.exists():
                logger.info("database file not found, creating %s", self.path)
                self._docs = {}
                self._write()
                return []
            try:
                data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            except (OSError, ValueError) as exc:
                raise PersistenceError(f"could not read {self.path}: {exc}") from exc
            users = data.get("users") or []
            self._docs = {u["id"] if "id" in u else u["_id"]: u for u in users}
            logger.info("loaded %d users from %s", len(self._docs), self.path)
            return list(self._docs.values())

    def upsert_user(self, doc: dict) -> None:
        with self._lock:
            previous = self._docs.get(doc["id"])
            self._docs[doc["id"]] = doc
            try:
                self._write()
            except PersistenceError:
                if previous is None:
                    del self._docs[doc["id"]]
                else:
                    self._docs[doc["id"]] = previous
                raise

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            previous = self._docs.pop(user_id, None)
            if previous is None:
                return
            try:
                self._write()
            except PersistenceError:
                self._docs[user_id] = previous
                raise

    def close(self) -> None:
        pass

    def _write(self) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        payload = json.dumps({"users": list(self._docs.values())}, indent=2, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            logger.error("failed to write %s: %s", self.path, exc)
            raise PersistenceError(f"could not write {self.path}: {exc}") from exc
        logger.debug("saved %d users to %s", len(self._docs), self.path)


class SQLModelBackend:
    """SQLite storage through SQLModel, one row per user."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.engine = create_engine(
            f"sqlite:///{self.path}", echo=False, connect_args={"check_same_thread": False}
        )

    def load_users(self) -> List[dict]:
        """Create tables if needed and return every stored user document."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            SQLModel.metadata.create_all(self.engine)
            with Session(self.engine) as session:
                rows = session.exec(select(UserRow)).all()
                docs = [r.to_document() for r in rows]
        except (OSError, SQLAlchemyError) as exc:
            raise PersistenceError(f"could not read {self.path}: {exc}") from exc
        logger.info("loaded %d users from %s", len(docs), self.path)
        return docs

    def upsert_user(self, doc: dict) -> None:
        try:
            with Session(self.engine) as session:
                session.merge(UserRow.from_document(doc))
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("failed to save user %s: %s", doc.get("id"), exc)
            raise PersistenceError(f"could not save user {doc.get('id')}: {exc}") from exc

    def delete_user(self, user_id: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.get(UserRow, user_id)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not delete user {user_id}: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()


def create_backend(settings: Settings):
    """Build the backend selected by `STORAGE_BACKEND`."""
    if settings.STORAGE_BACKEND == "sqlite":
        return SQLModelBackend(settings.DB_PATH)
    return JsonFileBackend(settings.DB_PATH)
