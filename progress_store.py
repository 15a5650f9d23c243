"""
Progress Store
=====================================================
Key-value persistence for users and courses.

The store is a flat map of three fixed keys, the same layout a browser
local-storage export has, so such an export can be used as a store file:

    apt_current_user  -> id of the logged-in user (or absent)
    apt_users         -> list of user records
    apt_courses       -> list of course records

Every write rewrites a whole collection. Repositories raise ProgressStoreError
subclasses with messages meant for the user.
"""

from __future__ import annotations

import hmac
import json
import logging
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import bcrypt

from academic_metrics import (
    Course,
    CourseStatus,
    User,
    group_courses_by_semester,
    utc_now_iso,
)
from progress_schemas import (
    CreateCourseInput,
    LoginInput,
    RegisterInput,
    UpdateCourseInput,
    UpdateProfileInput,
)

__all__ = [
    "ProgressStoreError",
    "DuplicateEmailError",
    "DuplicateCourseCodeError",
    "CourseNotFoundError",
    "UserNotFoundError",
    "AuthenticationError",
    "NotLoggedInError",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "UserRepository",
    "CourseRepository",
    "Session",
    "SessionManager",
    "hash_password",
    "verify_password",
    "CURRENT_USER_KEY",
    "USERS_KEY",
    "COURSES_KEY",
]

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "apt_current_user"
USERS_KEY = "apt_users"
COURSES_KEY = "apt_courses"

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72


# ──────────────────────────────────────────────────────────────────────────────
# ERRORS
# ──────────────────────────────────────────────────────────────────────────────

class ProgressStoreError(Exception):
    """Base for errors a form or command should show to the user."""


class DuplicateEmailError(ProgressStoreError):
    def __init__(self):
        super().__init__("User with this email already exists")


class DuplicateCourseCodeError(ProgressStoreError):
    def __init__(self):
        super().__init__("Course with this code already exists")


class CourseNotFoundError(ProgressStoreError):
    def __init__(self):
        super().__init__("Course not found")


class UserNotFoundError(ProgressStoreError):
    def __init__(self):
        super().__init__("User not found")


class AuthenticationError(ProgressStoreError):
    def __init__(self):
        super().__init__("Invalid email or password")


class NotLoggedInError(ProgressStoreError):
    def __init__(self):
        super().__init__("Not logged in. Run 'login' first.")


# ──────────────────────────────────────────────────────────────────────────────
# KEY-VALUE STORES
# ──────────────────────────────────────────────────────────────────────────────

class KeyValueStore(ABC):
    """Synchronous map of string keys to JSON-serializable values."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryStore(KeyValueStore):
    """In-process store. Values are JSON round-tripped so callers never share references."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {
            k: json.dumps(v) for k, v in (initial or {}).items()
        }

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else default

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> dict[str, Any]:
        return {k: json.loads(v) for k, v in self._data.items()}


class JsonFileStore(KeyValueStore):
    """
    Store backed by one JSON object on disk.
    Reads tolerate a missing file; a corrupt one is logged and moved to
    `<name>.corrupt.bak` before being treated as empty. Writes
    go through a temp file and an atomic replace.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".corrupt.bak")

    def _set_aside(self, reason: Any) -> None:
        # The next write starts a fresh file; the unreadable one is kept for recovery.
        logger.error("Error reading store %s: %s", self.path, reason)
        os.replace(self.path, self.backup_path)
        logger.error("Moved unreadable store to %s", self.backup_path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            self._set_aside(e)
            return {}
        if not isinstance(data, dict):
            self._set_aside("top level is not an object")
            return {}
        return data

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def clear(self) -> None:
        self._dump({})


# ──────────────────────────────────────────────────────────────────────────────
# PASSWORDS
# ──────────────────────────────────────────────────────────────────────────────

def hash_password(password: str, rounds: int | None = None) -> str:
    """Salted bcrypt hash. bcrypt only reads the first 72 bytes."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ──────────────────────────────────────────────────────────────────────────────
# REPOSITORIES
# ──────────────────────────────────────────────────────────────────────────────

class UserRepository:
    """CRUD over the user list, plus credential checks."""

    def __init__(self, store: KeyValueStore, bcrypt_rounds: int | None = None):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    def _save(self, users: list[User]) -> None:
        self.store.set(USERS_KEY, [u.to_record() for u in users])

    def list(self) -> list[User]:
        return [User.from_record(r) for r in self.store.get(USERS_KEY) or []]

    def get_by_id(self, user_id: str) -> User | None:
        return next((u for u in self.list() if u.id == user_id), None)

    def get_by_email(self, email: str) -> User | None:
        wanted = _normalize_email(email)
        return next((u for u in self.list() if _normalize_email(u.email) == wanted), None)

    def create(self, data: RegisterInput) -> User:
        users = self.list()
        email = _normalize_email(data.email)
        if any(_normalize_email(u.email) == email for u in users):
            raise DuplicateEmailError()

        now = utc_now_iso()
        user = User(
            id=str(uuid.uuid4()),
            name=data.name,
            email=email,
            password_hash=hash_password(data.password, self.bcrypt_rounds),
            created_at=now,
            updated_at=now,
        )
        users.append(user)
        self._save(users)
        logger.info("Created user %s", user.id)
        return user

    def authenticate(self, data: LoginInput) -> User:
        user = self.get_by_email(data.email)
        if user is None:
            raise AuthenticationError()

        if user.password_hash:
            if not verify_password(data.password, user.password_hash):
                raise AuthenticationError()
            return user

        # Plaintext record from the legacy browser store: compare, then upgrade
        legacy = user.legacy_password or ""
        if not legacy or not hmac.compare_digest(legacy.encode("utf-8"), data.password.encode("utf-8")):
            raise AuthenticationError()
        upgraded = replace(
            user,
            password_hash=hash_password(data.password, self.bcrypt_rounds),
            legacy_password=None,
        )
        self._replace(upgraded)
        logger.info("Upgraded legacy plaintext password for user %s", user.id)
        return upgraded

    def _replace(self, user: User) -> None:
        users = self.list()
        index = next((i for i, u in enumerate(users) if u.id == user.id), None)
        if index is None:
            raise UserNotFoundError()
        users[index] = user
        self._save(users)

    def update(self, user_id: str, data: UpdateProfileInput) -> User:
        users = self.list()
        index = next((i for i, u in enumerate(users) if u.id == user_id), None)
        if index is None:
            raise UserNotFoundError()

        changes = data.changes()
        current = users[index]
        updated = replace(current, updated_at=utc_now_iso())

        if "email" in changes:
            email = _normalize_email(changes["email"])
            if any(_normalize_email(u.email) == email and u.id != user_id for u in users):
                raise DuplicateEmailError()
            updated = replace(updated, email=email)
        if "name" in changes:
            updated = replace(updated, name=changes["name"])
        if "password" in changes:
            updated = replace(
                updated,
                password_hash=hash_password(changes["password"], self.bcrypt_rounds),
                legacy_password=None,
            )

        users[index] = updated
        self._save(users)
        logger.info("Updated user %s (%s)", user_id, ", ".join(sorted(changes)) or "no fields")
        return updated

    def delete(self, user_id: str) -> None:
        """Remove a user and every course they own."""
        users = self.list()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) == len(users):
            raise UserNotFoundError()

        courses = self.store.get(COURSES_KEY) or []
        kept_courses = [c for c in courses if c.get("userId") != user_id]
        if len(kept_courses) != len(courses):
            self.store.set(COURSES_KEY, kept_courses)
        self._save(remaining)

        if self.store.get(CURRENT_USER_KEY) == user_id:
            self.store.remove(CURRENT_USER_KEY)
        logger.info(
            "Deleted user %s and %d courses", user_id, len(courses) - len(kept_courses),
        )


class CourseRepository:
    """CRUD over the course list. Course codes are unique per user."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _save(self, courses: list[Course]) -> None:
        self.store.set(COURSES_KEY, [c.to_record() for c in courses])

    def list(self) -> list[Course]:
        return [Course.from_record(r) for r in self.store.get(COURSES_KEY) or []]

    def list_for_user(self, user_id: str) -> list[Course]:
        return [c for c in self.list() if c.user_id == user_id]

    def get_by_id(self, course_id: str) -> Course | None:
        return next((c for c in self.list() if c.id == course_id), None)

    def create(self, user_id: str, data: CreateCourseInput) -> Course:
        courses = self.list()
        if any(c.user_id == user_id and c.course_code == data.course_code for c in courses):
            raise DuplicateCourseCodeError()

        now = utc_now_iso()
        course = Course(
            id=str(uuid.uuid4()),
            user_id=user_id,
            course_code=data.course_code,
            title=data.title,
            units=data.units,
            semester=data.semester,
            year=data.year,
            status=data.status,
            grade=data.grade,
            created_at=now,
            updated_at=now,
        )
        courses.append(course)
        self._save(courses)
        logger.info("Created course %s (%s) for user %s", course.course_code, course.id, user_id)
        return course

    def update(self, course_id: str, data: UpdateCourseInput) -> Course:
        courses = self.list()
        index = next((i for i, c in enumerate(courses) if c.id == course_id), None)
        if index is None:
            raise CourseNotFoundError()

        current = courses[index]
        changes = data.changes()
        new_code = changes.get("course_code", current.course_code)
        if new_code != current.course_code and any(
            c.user_id == current.user_id and c.course_code == new_code and c.id != course_id
            for c in courses
        ):
            raise DuplicateCourseCodeError()

        updated = replace(current, **changes, updated_at=utc_now_iso())
        if updated.status != CourseStatus.COMPLETED:
            updated = replace(updated, grade=None)

        courses[index] = updated
        self._save(courses)
        logger.info("Updated course %s (%s)", course_id, ", ".join(sorted(changes)) or "no fields")
        return updated

    def delete(self, course_id: str) -> None:
        courses = self.list()
        remaining = [c for c in courses if c.id != course_id]
        if len(remaining) == len(courses):
            raise CourseNotFoundError()
        self._save(remaining)
        logger.info("Deleted course %s", course_id)

    def group_by_semester(self, user_id: str) -> dict[str, list[Course]]:
        return group_courses_by_semester(self.list_for_user(user_id))


# ──────────────────────────────────────────────────────────────────────────────
# SESSIONS
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Session:
    """The logged-in user, passed explicitly to everything acting on their behalf."""
    user_id: str
    email: str
    name: str
    started_at: str = ""

    @classmethod
    def for_user(cls, user: User) -> Session:
        return cls(user_id=user.id, email=user.email, name=user.name, started_at=utc_now_iso())


class SessionManager:
    """
    Persists only the current-user pointer so a later process can resume it.
    The pointer is resolved to a Session here and nowhere else.
    """

    def __init__(self, store: KeyValueStore, users: UserRepository | None = None):
        self.store = store
        self.users = users or UserRepository(store)

    def login(self, data: LoginInput) -> Session:
        user = self.users.authenticate(data)
        self.store.set(CURRENT_USER_KEY, user.id)
        logger.info("User %s logged in", user.id)
        return Session.for_user(user)

    def current(self) -> Session | None:
        user_id = self.store.get(CURRENT_USER_KEY)
        if not user_id:
            return None
        user = self.users.get_by_id(user_id)
        if user is None:
            logger.warning("Session points at unknown user %s; clearing it", user_id)
            self.store.remove(CURRENT_USER_KEY)
            return None
        return Session.for_user(user)

    def require(self) -> Session:
        session = self.current()
        if session is None:
            raise NotLoggedInError()
        return session

    def logout(self) -> None:
        self.store.remove(CURRENT_USER_KEY)
