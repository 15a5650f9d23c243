from __future__ import annotations

import itertools

import pytest

import progress_store
from academic_metrics import Course, CourseStatus, Grade, Semester, User
from progress_store import MemoryStore


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost so hashing does not dominate the suite."""
    monkeypatch.setattr(progress_store, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def make_course():
    counter = itertools.count(1)

    def _make(
        grade: str | None = "A",
        units: int = 3,
        semester: str = "First",
        year: int = 2023,
        status: str = "completed",
        user_id: str = "user-1",
        code: str | None = None,
        title: str = "Course",
    ) -> Course:
        n = next(counter)
        return Course(
            id=f"course-{n}",
            user_id=user_id,
            course_code=code or f"CRS{n:03d}",
            title=title,
            units=units,
            semester=Semester(semester),
            year=year,
            status=CourseStatus(status),
            grade=Grade(grade) if grade else None,
        )

    return _make


@pytest.fixture
def sample_user() -> User:
    return User(
        id="3f2a9c1e-8b4d-4e6f-9a0b-1c2d3e4f5a6b",
        name="Ada Lovelace",
        email="ada@example.com",
        password_hash="",
        created_at="2024-01-15T10:00:00+00:00",
        updated_at="2024-01-15T10:00:00+00:00",
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
