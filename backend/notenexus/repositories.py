"""Repository encapsulating the user table.

The repository holds every `UserRecord` in memory, loaded from the
injected backend when opened, and persists a user through the backend
on every change. Records handed out are copies: callers mutate their
copy and hand it back to `save`, which persists first and only then
replaces the in-memory revision.
"""

import logging
import threading
from typing import Dict, List, Optional

from .errors import DuplicateError, NotFoundError
from .schemas import UserRecord

logger = logging.getLogger("notenexus.storage")


class UserRepository:
    """CRUD operations for `UserRecord` objects."""
    def __init__(self, backend):
        self.backend = backend
        self._users: Dict[str, UserRecord] = {}
        self._lock = threading.RLock()
        self._open = False

    def open(self) -> "UserRepository":
        """Load the whole table from the backend."""
        with self._lock:
            docs = self.backend.load_users()
            self._users = {}
            for doc in docs:
                record = UserRecord.model_validate(doc)
                self._users[record.id] = record
            self._open = True
        return self

    def close(self) -> None:
        with self._lock:
            self.backend.close()
            self._open = False

    def __len__(self) -> int:
        return len(self._users)

    def get(self, user_id: str) -> Optional[UserRecord]:
        """Return a copy of the user or `None` if not found."""
        with self._lock:
            record = self._users.get(user_id)
            return record.model_copy(deep=True) if record else None

    def require(self, user_id: str) -> UserRecord:
        record = self.get(user_id)
        if record is None:
            raise NotFoundError("User not found")
        return record

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        """Return a copy of the user with `email` (case-insensitive)."""
        wanted = (email or "").strip().lower()
        with self._lock:
            for record in self._users.values():
                if record.email.lower() == wanted:
                    return record.model_copy(deep=True)
        return None

    def list_users(self) -> List[UserRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._users.values()]

    def create(self, record: UserRecord) -> UserRecord:
        """Persist a new user; email and id must be unused."""
        with self._lock:
            if record.id in self._users or self.get_by_email(record.email) is not None:
                raise DuplicateError("User already exists")
            return self._persist(record)

    def save(self, record: UserRecord) -> UserRecord:
        """Persist a new revision of an existing user, then make it the current one.

        A user deleted since the record was read is not written back.
        """
        with self._lock:
            if record.id not in self._users:
                raise NotFoundError("User not found")
            return self._persist(record)

    def _persist(self, record: UserRecord) -> UserRecord:
        self.backend.upsert_user(record.to_document())
        self._users[record.id] = record.model_copy(deep=True)
        return record

    def delete(self, user_id: str) -> None:
        with self._lock:
            if user_id not in self._users:
                raise NotFoundError("User not found")
            self.backend.delete_user(user_id)
            del self._users[user_id]
        logger.info("deleted user %s", user_id)

    def set_password(self, user_id: str, password_hash: str) -> None:
        """Replace only the password hash of the current revision."""
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise NotFoundError("User not found")
            record = current.model_copy(deep=True)
            record.password = password_hash
            self._persist(record)
