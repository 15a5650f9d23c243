"""
Academic Metrics Engine
=====================================================
Data models and pure aggregation rules for the progress tracker:

- Canonical 9-symbol grade scale on a 5-point table (A=5.0 ... F=0.0)
- Credit-weighted GPA / CGPA over completed, graded courses
- Per-semester performance grouping, sorted chronologically
- Degree progress against a fixed credit requirement
- Rule-based textual insights (CGPA band, semester trend, workload, milestones)

Every function here is total over its input: nothing raises, nothing does I/O.
Validation of field ranges happens earlier, in progress_schemas.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

__all__ = [
    "Grade",
    "Semester",
    "CourseStatus",
    "Course",
    "User",
    "SemesterPerformance",
    "AcademicSummary",
    "GRADE_POINTS",
    "TOTAL_REQUIRED_CREDITS",
    "grade_to_points",
    "calculate_gpa",
    "calculate_semester_gpa",
    "calculate_cgpa",
    "get_total_credits",
    "get_total_courses_completed",
    "get_courses_in_progress",
    "get_semester_performance",
    "calculate_degree_progress",
    "generate_insights",
    "group_courses_by_semester",
    "gpa_trend",
    "summarize",
    "utc_now_iso",
]

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# ENUMS
# ──────────────────────────────────────────────────────────────────────────────

class Grade(str, Enum):
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D_PLUS = "D+"
    D = "D"
    E = "E"
    F = "F"


class Semester(str, Enum):
    FIRST = "First"
    SECOND = "Second"
    SUMMER = "Summer"


class CourseStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# ──────────────────────────────────────────────────────────────────────────────
# CONSTANTS
# ──────────────────────────────────────────────────────────────────────────────

GRADE_POINTS: dict[str, float] = {
    "A": 5.0, "B+": 4.5, "B": 4.0, "C+": 3.5, "C": 3.0,
    "D+": 2.5, "D": 2.0, "E": 1.0, "F": 0.0,
}

TOTAL_REQUIRED_CREDITS = 120

# Insight thresholds
OUTSTANDING_CGPA = 4.5
STRONG_CGPA = 4.0
GOOD_CGPA = 3.0
TREND_THRESHOLD = 0.3
WORKLOAD_LIMIT = 6
MILESTONE_STEP = 10


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ──────────────────────────────────────────────────────────────────────────────
# DATA MODELS (storage-aligned dataclasses with serialization)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class Course:
    """A course on a user's record. Only completed courses carry a grade that counts."""
    id: str
    user_id: str
    course_code: str
    title: str
    units: int
    semester: Semester
    year: int
    status: CourseStatus
    grade: Grade | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == CourseStatus.COMPLETED

    @property
    def is_graded(self) -> bool:
        return self.is_completed and self.grade is not None

    @property
    def term_label(self) -> str:
        return f"{self.semester.value} {self.year}"

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "courseCode": self.course_code,
            "title": self.title,
            "units": self.units,
            "grade": self.grade.value if self.grade else None,
            "semester": self.semester.value,
            "year": self.year,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Course:
        grade = record.get("grade")
        return cls(
            id=record["id"],
            user_id=record["userId"],
            course_code=record["courseCode"],
            title=record.get("title", ""),
            units=int(record.get("units", 0)),
            semester=Semester(record["semester"]),
            year=int(record["year"]),
            status=CourseStatus(record["status"]),
            grade=Grade(grade) if grade else None,
            created_at=record.get("createdAt", ""),
            updated_at=record.get("updatedAt", ""),
        )

    def to_supabase_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_code": self.course_code,
            "title": self.title,
            "units": self.units,
            "grade": self.grade.value if self.grade else None,
            "grade_points": grade_to_points(self.grade) if self.is_graded else None,
            "semester": self.semester.value,
            "year": self.year,
            "status": self.status.value,
            "created_at": self.created_at or None,
            "updated_at": self.updated_at or None,
        }


@dataclass
class User:
    """Registered user. `password_hash` holds a bcrypt hash; legacy records carry `password`."""
    id: str
    name: str
    email: str
    password_hash: str = ""
    created_at: str = ""
    updated_at: str = ""
    legacy_password: str | None = field(default=None, repr=False)

    @property
    def student_id(self) -> str:
        return self.id[:8].upper()

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "passwordHash": self.password_hash,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.legacy_password is not None:
            record["password"] = self.legacy_password
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            email=record["email"],
            password_hash=record.get("passwordHash", ""),
            created_at=record.get("createdAt", ""),
            updated_at=record.get("updatedAt", record.get("createdAt", "")),
            legacy_password=record.get("password"),
        )

    def to_supabase_row(self) -> dict[str, Any]:
        # Credentials stay on the device.
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "student_id": self.student_id,
            "created_at": self.created_at or None,
            "updated_at": self.updated_at or None,
        }


@dataclass
class SemesterPerformance:
    """GPA of one (semester, year) group of completed, graded courses."""
    semester: Semester
    year: int
    gpa: float
    credits: int = 0
    course_count: int = 0

    @property
    def label(self) -> str:
        return f"{self.semester.value} {self.year}"


@dataclass
class AcademicSummary:
    """Aggregate statistics for one user's course list."""
    cgpa: float
    total_credits: int
    completed_courses: int
    in_progress_courses: int
    degree_progress: float
    total_required_credits: int = TOTAL_REQUIRED_CREDITS
    semester_performance: list[SemesterPerformance] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    @property
    def trend(self) -> float | None:
        return gpa_trend(self.semester_performance)


# ──────────────────────────────────────────────────────────────────────────────
# BUSINESS RULES
# ──────────────────────────────────────────────────────────────────────────────

def grade_to_points(grade: Grade | str | None) -> float:
    """Map a letter grade to the 5-point scale. Unknown grades map to 0.0."""
    if grade is None:
        return 0.0
    key = grade.value if isinstance(grade, Grade) else str(grade)
    return GRADE_POINTS.get(key, 0.0)


def _graded(courses: Iterable[Course]) -> list[Course]:
    return [c for c in courses if c.is_graded]


def calculate_gpa(courses: Iterable[Course]) -> float:
    """Credit-weighted average over completed, graded courses. 0.0 when none qualify."""
    graded = _graded(courses)
    if not graded:
        return 0.0

    total_points = 0.0
    total_units = 0
    for course in graded:
        total_points += grade_to_points(course.grade) * course.units
        total_units += course.units

    return total_points / total_units if total_units > 0 else 0.0


def calculate_semester_gpa(
    courses: Iterable[Course],
    semester: Semester | str,
    year: int,
) -> float:
    """GPA of the completed, graded courses taken in one semester of one year."""
    try:
        sem = Semester(semester)
    except ValueError:
        return 0.0
    return calculate_gpa(
        c for c in courses if c.semester == sem and c.year == year
    )


def calculate_cgpa(courses: Iterable[Course]) -> float:
    """Cumulative GPA across every completed, graded course."""
    return calculate_gpa(courses)


def get_total_credits(courses: Iterable[Course]) -> int:
    return sum(c.units for c in courses if c.is_completed)


def get_total_courses_completed(courses: Iterable[Course]) -> int:
    return sum(1 for c in courses if c.is_completed)


def get_courses_in_progress(courses: Iterable[Course]) -> int:
    return sum(1 for c in courses if c.status == CourseStatus.IN_PROGRESS)


def get_semester_performance(courses: Iterable[Course]) -> list[SemesterPerformance]:
    """
    One entry per distinct (semester, year) among completed, graded courses.
    Sorted ascending by year, then by semester name.
    """
    groups: dict[tuple[Semester, int], list[Course]] = defaultdict(list)
    for course in _graded(courses):
        groups[(course.semester, course.year)].append(course)

    performance = [
        SemesterPerformance(
            semester=semester,
            year=year,
            gpa=calculate_gpa(group),
            credits=sum(c.units for c in group),
            course_count=len(group),
        )
        for (semester, year), group in groups.items()
    ]
    performance.sort(key=lambda p: (p.year, p.semester.value))
    return performance


def calculate_degree_progress(
    completed_credits: float,
    total_required: float = TOTAL_REQUIRED_CREDITS,
) -> float:
    """Completed credits as a percentage of the requirement, clamped at 100."""
    if total_required <= 0:
        return 0.0
    return min(completed_credits / total_required * 100, 100.0)


def gpa_trend(performance: list[SemesterPerformance]) -> float | None:
    """GPA change between the two most recent semesters, or None with fewer than two."""
    if len(performance) < 2:
        return None
    previous, latest = performance[-2:]
    return latest.gpa - previous.gpa


def generate_insights(courses: list[Course]) -> list[str]:
    """Short advisory messages derived from CGPA, recent trend, workload and milestones."""
    insights: list[str] = []
    cgpa = calculate_cgpa(courses)

    if cgpa >= OUTSTANDING_CGPA:
        insights.append("Outstanding performance! You're maintaining an excellent CGPA.")
    elif cgpa >= STRONG_CGPA:
        insights.append("Great work! Your academic performance is strong.")
    elif cgpa >= GOOD_CGPA:
        insights.append("Good progress. Consider focusing on challenging courses.")
    elif cgpa > 0:
        insights.append("Your CGPA needs improvement. Consider seeking academic support.")

    trend = gpa_trend(get_semester_performance(courses))
    if trend is not None:
        if trend > TREND_THRESHOLD:
            insights.append("Your grades are trending upward - keep it up!")
        elif trend < -TREND_THRESHOLD:
            insights.append(
                "Your recent semester GPA dropped. Consider reviewing your study approach."
            )

    in_progress = get_courses_in_progress(courses)
    if in_progress > WORKLOAD_LIMIT:
        insights.append(
            f"You have {in_progress} courses in progress. Consider your workload balance."
        )

    completed = get_total_courses_completed(courses)
    if completed > 0 and completed % MILESTONE_STEP == 0:
        insights.append(f"Milestone achieved! You've completed {completed} courses.")

    return insights


def group_courses_by_semester(courses: Iterable[Course]) -> dict[str, list[Course]]:
    """All courses (any status) keyed by "<Semester> <year>", in chronological order."""
    groups: dict[tuple[int, str], list[Course]] = defaultdict(list)
    for course in courses:
        groups[(course.year, course.semester.value)].append(course)
    return {
        f"{semester} {year}": groups[(year, semester)]
        for year, semester in sorted(groups)
    }


def summarize(
    courses: list[Course],
    total_required: int = TOTAL_REQUIRED_CREDITS,
) -> AcademicSummary:
    """Compute every dashboard statistic for a course list in one pass."""
    total_credits = get_total_credits(courses)
    summary = AcademicSummary(
        cgpa=calculate_cgpa(courses),
        total_credits=total_credits,
        completed_courses=get_total_courses_completed(courses),
        in_progress_courses=get_courses_in_progress(courses),
        degree_progress=calculate_degree_progress(total_credits, total_required),
        total_required_credits=total_required,
        semester_performance=get_semester_performance(courses),
        insights=generate_insights(courses),
    )
    logger.debug(
        "Summarized %d courses: cgpa=%.2f credits=%d semesters=%d",
        len(courses), summary.cgpa, total_credits, len(summary.semester_performance),
    )
    return summary
