"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate the user
repository. Services perform validation, execute domain logic and
persist whole user revisions via `UserRepository.save`. Failures are
raised as `errors.SavedContentError` subclasses.
"""

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
import logging
import threading
from typing import Dict, List, Optional

from passlib.context import CryptContext
import jwt

from . import repositories
from .config import Settings
from .errors import DuplicateError, NotFoundError, ValidationError
from .schemas import (
    COLLECTIONS,
    LEAF_KINDS,
    CourseRef,
    LeafItem,
    UserRecord,
    course_key,
    new_id,
    utcnow_iso,
)

# pbkdf2 for new hashes; bcrypt hashes from older deployments still verify
PWD_CTX = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

logger = logging.getLogger("notenexus.store")


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, user_repo: repositories.UserRepository, settings: Settings):
        self.user_repo = user_repo
        self.settings = settings

    def register(self, name: str, email: str, password: str, is_admin: bool = False) -> UserRecord:
        """Create a new user with a hashed password and empty collections.

        Raises `DuplicateError` if the email is already registered.
        """
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password are required")
        user = UserRecord(
            id=new_id(),
            name=(name or "").strip(),
            email=email,
            password=PWD_CTX.hash(password),
            is_admin=is_admin,
        )
        created = self.user_repo.create(user)
        logger.info("user registered: %s", created.email)
        return created

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails, including when the stored
        hash is in a format we cannot verify. Hashes in a deprecated
        scheme are replaced with a pbkdf2 hash on successful login.
        """
        user = self.user_repo.get_by_email(email)
        if not user:
            return None
        try:
            ok, new_hash = PWD_CTX.verify_and_update(password, user.password)
        except ValueError:
            logger.warning("user %s has an unrecognized password hash", user.id)
            return None
        if not ok:
            return None
        if new_hash:
            self.user_repo.set_password(user.id, new_hash)
            logger.info("user %s: password rehashed", user.id)
        return self.issue_token(user)

    def issue_token(self, user: UserRecord) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=self.settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "is_admin": user.is_admin, "exp": int(expire.timestamp())}
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def ensure_admin(self, email: str, password: str) -> UserRecord:
        """Create the bootstrap admin account unless it already exists."""
        existing = self.user_repo.get_by_email(email)
        if existing:
            if not existing.is_admin:
                existing.is_admin = True
                self.user_repo.save(existing)
            return existing
        return self.register("Administrator", email, password, is_admin=True)


class SavedContentStore:
    """Per-user saved courses, notes, syllabi and papers.

    Keeps `savedCourses` reconciled with the three leaf collections:
    saving a leaf creates the course entry if missing, and removing the
    last leaf that references a course removes the course entry.
    Explicit course removal never touches leaves.

    Mutations for one user are serialized by a lock keyed by user id.
    Each mutation edits a copy of the record and persists it as a
    single revision.
    """
    def __init__(self, user_repo: repositories.UserRepository):
        self.user_repo = user_repo
        self._user_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def user_lock(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._user_locks[user_id]

    @contextmanager
    def editing(self, user_id: str):
        with self.user_lock(user_id):
            yield self.user_repo.require(user_id)

    def drop_user(self, user_id: str) -> None:
        """Delete a user once no mutation of theirs is in flight."""
        try:
            with self.user_lock(user_id):
                self.user_repo.delete(user_id)
        finally:
            with self._locks_guard:
                self._user_locks.pop(user_id, None)

    @staticmethod
    def _collection(user: UserRecord, kind: str) -> List[LeafItem]:
        if kind not in LEAF_KINDS:
            raise ValidationError(f"Unknown content kind: {kind}")
        return getattr(user, COLLECTIONS[kind])

    @staticmethod
    def _find_course(user: UserRecord, name: str) -> Optional[CourseRef]:
        key = course_key(name)
        return next((c for c in user.saved_courses if course_key(c.course_name) == key), None)

    @staticmethod
    def _is_referenced(user: UserRecord, name: str) -> bool:
        key = course_key(name)
        return any(
            course_key(item.course_name) == key
            for kind in LEAF_KINDS
            for item in getattr(user, COLLECTIONS[kind])
        )

    def save_leaf(self, user_id: str, kind: str, title: str, course_name: str, url: Optional[str] = None) -> List[LeafItem]:
        """Save a note, syllabus or paper and return the updated collection.

        The course entry is created alongside the leaf when the user has
        no saved course with that name; both land in one revision.
        """
        title = (title or "").strip()
        course_name = (course_name or "").strip()
        if not title or not course_name:
            raise ValidationError("Title and course name are required")
        if kind not in LEAF_KINDS:
            raise ValidationError(f"Unknown content kind: {kind}")
        with self.editing(user_id) as user:
            items = self._collection(user, kind)
            key = course_key(course_name)
            if any(i.title == title and course_key(i.course_name) == key for i in items):
                raise DuplicateError(f"{kind.capitalize()} already saved")
            now = utcnow_iso()
            items.append(LeafItem(id=new_id(), title=title, course_name=course_name, url=url or "#", date_added=now))
            if self._find_course(user, course_name) is None:
                user.saved_courses.append(CourseRef(id=new_id(), course_name=course_name, date_added=now))
                logger.info("user %s: course %r added with %s", user_id, course_name, kind)
            self.user_repo.save(user)
        logger.info("user %s saved %s: %s for course: %s", user_id, kind, title, course_name)
        return items

    def remove_leaf(self, user_id: str, kind: str, leaf_id: str) -> List[LeafItem]:
        """Remove a saved leaf and return the updated collection.

        If no leaf of any kind still references the removed leaf's
        course, the course entry is removed in the same revision.
        """
        with self.editing(user_id) as user:
            items = self._collection(user, kind)
            leaf = next((i for i in items if i.id == leaf_id), None)
            if leaf is None:
                raise NotFoundError(f"{kind.capitalize()} not found")
            items.remove(leaf)
            if not self._is_referenced(user, leaf.course_name):
                key = course_key(leaf.course_name)
                before = len(user.saved_courses)
                user.saved_courses = [c for c in user.saved_courses if course_key(c.course_name) != key]
                if len(user.saved_courses) != before:
                    logger.info("user %s: course %r removed, no saved items left", user_id, leaf.course_name)
            self.user_repo.save(user)
        logger.info("user %s removed %s with ID: %s", user_id, kind, leaf_id)
        return items

    def save_course(self, user_id: str, course_name: str, course_id: Optional[str] = None) -> List[CourseRef]:
        """Save a course directly and return the updated course list."""
        course_name = (course_name or "").strip()
        if not course_name:
            raise ValidationError("Course name is required")
        with self.editing(user_id) as user:
            if self._find_course(user, course_name) is not None:
                raise DuplicateError("Course already saved")
            if course_id and any(course_id in (c.id, c.course_id) for c in user.saved_courses):
                raise DuplicateError("Course already saved")
            user.saved_courses.append(CourseRef(id=new_id(), course_id=course_id, course_name=course_name))
            self.user_repo.save(user)
        logger.info("user %s saved course: %s", user_id, course_name)
        return user.saved_courses

    def remove_course(self, user_id: str, course_id: str) -> List[CourseRef]:
        """Remove a saved course matched by id, `courseId` or name.

        Leaves saved under the course are kept.
        """
        with self.editing(user_id) as user:
            courses = user.saved_courses
            match = next((c for c in courses if c.id == course_id), None)
            if match is None:
                match = next((c for c in courses if c.course_id and c.course_id == course_id), None)
            if match is None:
                match = self._find_course(user, course_id)
            if match is None:
                raise NotFoundError("Course not found")
            courses.remove(match)
            self.user_repo.save(user)
        logger.info("user %s removed course with ID: %s", user_id, course_id)
        return courses

    def list_all(self, user_id: str) -> dict:
        user = self.user_repo.require(user_id)
        return {
            "savedCourses": user.saved_courses,
            "savedNotes": user.saved_notes,
            "savedSyllabus": user.saved_syllabus,
            "savedPapers": user.saved_papers,
        }

    def list_courses(self, user_id: str) -> List[CourseRef]:
        return self.user_repo.require(user_id).saved_courses

    def list_kind(self, user_id: str, kind: str) -> List[LeafItem]:
        return self._collection(self.user_repo.require(user_id), kind)


class AdminService:
    """Administrative operations over the whole user table.

    Writes to an existing user go through the store's per-user lock so
    they never interleave with that user's saved-content mutations.
    """
    def __init__(self, user_repo: repositories.UserRepository, store: SavedContentStore):
        self.user_repo = user_repo
        self.store = store

    def list_users(self) -> List[dict]:
        return [u.public() for u in self.user_repo.list_users()]

    def get_user(self, user_id: str) -> dict:
        return self.user_repo.require(user_id).public()

    def create_user(self, name: str, email: str, password: str, is_admin: bool = False) -> dict:
        """Create a user with empty collections; `DuplicateError` on a taken email."""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password are required")
        user = UserRecord(
            id=new_id(),
            name=(name or "").strip(),
            email=email,
            password=PWD_CTX.hash(password),
            is_admin=is_admin,
        )
        created = self.user_repo.create(user)
        logger.info("admin created user: %s", created.email)
        return created.public()

    def update_user(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        is_admin: Optional[bool] = None,
    ) -> dict:
        """Change profile fields of a user; fields left as None are kept."""
        with self.store.editing(user_id) as user:
            if email is not None:
                email = email.strip()
                if not email:
                    raise ValidationError("Email is required")
                other = self.user_repo.get_by_email(email)
                if other is not None and other.id != user_id:
                    raise DuplicateError("Email already in use")
                user.email = email
            if name is not None:
                user.name = name.strip()
            if password:
                user.password = PWD_CTX.hash(password)
            if is_admin is not None:
                user.is_admin = is_admin
            self.user_repo.save(user)
        logger.info("admin updated user %s", user_id)
        return user.public()

    def delete_user(self, admin_id: str, user_id: str) -> None:
        """Delete a user; an admin cannot delete their own account."""
        if admin_id == user_id:
            raise ValidationError("Cannot delete your own account")
        self.store.drop_user(user_id)

    def clear_data(self) -> int:
        """Delete every non-admin user; return how many were removed."""
        removed = 0
        for u in self.user_repo.list_users():
            if u.is_admin:
                continue
            try:
                self.store.drop_user(u.id)
            except NotFoundError:
                continue
            removed += 1
        logger.warning("admin cleared data: %d users removed", removed)
        return removed

    def stats(self) -> dict:
        """Count users, distinct saved courses and all saved items."""
        users = self.user_repo.list_users()
        unique_courses = set()
        total_items = 0
        for u in users:
            for c in u.saved_courses:
                unique_courses.add(course_key(c.course_name))
            total_items += len(u.saved_courses) + len(u.saved_notes) + len(u.saved_syllabus) + len(u.saved_papers)
        return {
            "totalUsers": len(users),
            "totalCourses": len(unique_courses),
            "totalSavedItems": total_items,
        }

    def backup(self) -> dict:
        return {
            "users": self.list_users(),
            "timestamp": utcnow_iso(),
        }
