"""
Demo Course History
=====================================================
Deterministic, seeded course histories for trying the tracker out:

- Small catalog with prerequisite chains (a course is only taken after its
  prerequisites were completed in an earlier semester)
- Grades drawn from a distribution correlated with a target GPA
- Alternating First/Second semesters; the last semester is still in progress

Usage:
    courses = build_demo_courses(user_id, seed=7, semesters=6, target_gpa=4.2)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from random import Random

from academic_metrics import Course, CourseStatus, Grade, Semester
from progress_schemas import CreateCourseInput
from progress_store import CourseRepository, DuplicateCourseCodeError

__all__ = [
    "COURSE_CATALOG",
    "build_demo_courses",
    "generate_correlated_grade",
    "load_demo_history",
]

logger = logging.getLogger(__name__)

# (code, title, units, prerequisites)
CatalogEntry = tuple[str, str, int, list[str]]

COURSE_CATALOG: dict[str, list[CatalogEntry]] = {
    "Computer Science": [
        ("CS 101", "Intro to Computer Science", 3, []),
        ("CS 102", "Programming Lab", 1, ["CS 101"]),
        ("CS 201", "Data Structures", 3, ["CS 101"]),
        ("CS 202", "Algorithms", 3, ["CS 201"]),
        ("CS 301", "Database Systems", 3, ["CS 201"]),
        ("CS 310", "Software Engineering", 3, ["CS 202"]),
        ("CS 320", "Computer Networks", 3, ["CS 201"]),
        ("CS 350", "Machine Learning", 3, ["CS 202", "MATH 310"]),
        ("CS 360", "AI Fundamentals", 3, ["CS 202"]),
        ("CS 401", "Senior Capstone", 6, ["CS 310"]),
    ],
    "Data Science": [
        ("DS 101", "Intro to Data Science", 3, []),
        ("DS 201", "Statistical Learning", 3, ["DS 101", "MATH 201"]),
        ("DS 301", "Big Data Analytics", 3, ["DS 201"]),
        ("DS 310", "Data Visualization", 3, ["DS 201"]),
        ("DS 401", "Deep Learning", 4, ["DS 301"]),
    ],
    "Business Administration": [
        ("BUS 101", "Intro to Business", 3, []),
        ("BUS 201", "Financial Accounting", 3, ["BUS 101"]),
        ("BUS 202", "Managerial Accounting", 3, ["BUS 201"]),
        ("BUS 301", "Marketing", 3, ["BUS 101"]),
        ("BUS 310", "Business Analytics", 3, ["BUS 201", "MATH 101"]),
        ("BUS 401", "Strategic Management", 4, ["BUS 301"]),
    ],
    "Mathematics": [
        ("MATH 101", "College Algebra", 3, []),
        ("MATH 102", "Precalculus", 3, ["MATH 101"]),
        ("MATH 201", "Calculus I", 4, ["MATH 102"]),
        ("MATH 202", "Calculus II", 4, ["MATH 201"]),
        ("MATH 301", "Linear Algebra", 3, ["MATH 202"]),
        ("MATH 310", "Statistics", 3, ["MATH 201"]),
    ],
    "General Education": [
        ("ENG 101", "English Composition", 3, []),
        ("ENG 201", "Technical Writing", 3, ["ENG 101"]),
        ("PSY 101", "Intro to Psychology", 3, []),
        ("ECON 101", "Microeconomics", 3, []),
        ("ECON 102", "Macroeconomics", 3, ["ECON 101"]),
        ("PE 101", "Physical Education", 1, []),
    ],
}

SHARED_DEPARTMENTS = ("Mathematics", "General Education")
TERM_ORDER = (Semester.FIRST, Semester.SECOND)
TERM_START_MONTH = {Semester.FIRST: 1, Semester.SECOND: 8, Semester.SUMMER: 6}
MIN_COURSES_PER_SEMESTER = 3
MAX_COURSES_PER_SEMESTER = 5


# ──────────────────────────────────────────────────────────────────────────────
# BUSINESS RULES
# ──────────────────────────────────────────────────────────────────────────────

def generate_correlated_grade(rng: Random, target_gpa: float) -> Grade:
    """
    Grade distribution centred on the target GPA (5-point scale) plus noise.
    Note: mutates rng state for sampling.
    """
    if target_gpa >= 4.5:
        choices = [Grade.A, Grade.B_PLUS, Grade.B, Grade.C_PLUS]
        weights = [55, 25, 15, 5]
    elif target_gpa >= 4.0:
        choices = [Grade.A, Grade.B_PLUS, Grade.B, Grade.C_PLUS, Grade.C]
        weights = [30, 30, 25, 10, 5]
    elif target_gpa >= 3.0:
        choices = [Grade.B_PLUS, Grade.B, Grade.C_PLUS, Grade.C, Grade.D_PLUS, Grade.D]
        weights = [10, 25, 25, 20, 12, 8]
    elif target_gpa >= 2.0:
        choices = [Grade.C, Grade.D_PLUS, Grade.D, Grade.E, Grade.F]
        weights = [20, 25, 30, 15, 10]
    else:
        choices = [Grade.D, Grade.E, Grade.F]
        weights = [25, 35, 40]
    return rng.choices(choices, weights=weights, k=1)[0]


def _catalog_for(major: str) -> list[CatalogEntry]:
    if major not in COURSE_CATALOG:
        raise ValueError(f"unknown major {major!r}; choose from {sorted(COURSE_CATALOG)}")
    departments = [major] + [d for d in SHARED_DEPARTMENTS if d != major]
    return [entry for dept in departments for entry in COURSE_CATALOG[dept]]


def _term_timestamp(semester: Semester, year: int) -> str:
    return datetime(year, TERM_START_MONTH[semester], 15, tzinfo=timezone.utc).isoformat()


# ──────────────────────────────────────────────────────────────────────────────
# GENERATOR
# ──────────────────────────────────────────────────────────────────────────────

def build_demo_courses(
    user_id: str,
    seed: int = 42,
    semesters: int = 6,
    start_year: int = 2023,
    target_gpa: float = 4.0,
    major: str = "Computer Science",
) -> list[Course]:
    """
    Course history for `user_id`, identical for identical arguments.
    Stops early if every eligible catalog course has been taken; the last
    semester generated is the one left in progress.
    """
    if semesters < 1:
        raise ValueError(f"semesters must be >= 1, got {semesters}")
    last_year = start_year + (semesters - 1) // len(TERM_ORDER)
    if start_year < 2000 or last_year > 2100:
        raise ValueError(f"years must stay within 2000-2100, got {start_year}-{last_year}")
    if not 0.0 <= target_gpa <= 5.0:
        raise ValueError(f"target_gpa must be 0.0-5.0, got {target_gpa}")

    rng = Random(seed)
    catalog = _catalog_for(major)
    completed: set[str] = set()
    courses: list[Course] = []

    for index in range(semesters):
        semester = TERM_ORDER[index % len(TERM_ORDER)]
        year = start_year + index // len(TERM_ORDER)

        eligible = [
            entry for entry in catalog
            if entry[0] not in completed and all(p in completed for p in entry[3])
        ]
        if not eligible:
            logger.debug("Catalog exhausted after %d semesters", index)
            break
        load = rng.randint(MIN_COURSES_PER_SEMESTER, MAX_COURSES_PER_SEMESTER)
        picked = rng.sample(eligible, min(load, len(eligible)))

        timestamp = _term_timestamp(semester, year)
        for code, title, units, _ in sorted(picked):
            courses.append(Course(
                id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
                user_id=user_id,
                course_code=code,
                title=title,
                units=units,
                semester=semester,
                year=year,
                status=CourseStatus.COMPLETED,
                grade=generate_correlated_grade(rng, target_gpa),
                created_at=timestamp,
                updated_at=timestamp,
            ))
        # Prerequisites only count once the semester is over
        completed.update(code for code, *_ in picked)

    if courses:
        current = (courses[-1].semester, courses[-1].year)
        courses = [
            replace(c, status=CourseStatus.IN_PROGRESS, grade=None)
            if (c.semester, c.year) == current else c
            for c in courses
        ]

    logger.debug(
        "Built %d demo courses for %s (seed=%d, target_gpa=%.2f)",
        len(courses), user_id, seed, target_gpa,
    )
    return courses


def load_demo_history(
    repo: CourseRepository,
    user_id: str,
    **options,
) -> tuple[list[Course], list[str]]:
    """
    Add a demo history to a user's record through the normal validated path.
    Returns (created courses, codes skipped because the user already has them).
    """
    created: list[Course] = []
    skipped: list[str] = []
    for course in build_demo_courses(user_id, **options):
        data = CreateCourseInput(
            course_code=course.course_code,
            title=course.title,
            units=course.units,
            grade=course.grade,
            semester=course.semester,
            year=course.year,
            status=course.status,
        )
        try:
            created.append(repo.create(user_id, data))
        except DuplicateCourseCodeError:
            skipped.append(course.course_code)
    if skipped:
        logger.info("Skipped %d demo courses already on record: %s", len(skipped), ", ".join(skipped))
    return created, skipped
