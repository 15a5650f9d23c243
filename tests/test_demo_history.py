"""Tests for the seeded demo history generator."""

from __future__ import annotations

from random import Random

import pytest

from academic_metrics import CourseStatus, Grade, calculate_cgpa, group_courses_by_semester
from demo_history import (
    COURSE_CATALOG,
    build_demo_courses,
    generate_correlated_grade,
    load_demo_history,
)
from progress_schemas import CreateCourseInput
from progress_store import CourseRepository


class TestGenerateCorrelatedGrade:
    def test_returns_canonical_grade(self):
        rng = Random(42)
        for gpa in [0.5, 1.5, 2.5, 3.5, 4.2, 4.8]:
            assert isinstance(generate_correlated_grade(rng, gpa), Grade)

    def test_high_target_never_fails(self):
        rng = Random(42)
        grades = {generate_correlated_grade(rng, 4.8) for _ in range(300)}
        assert not grades & {Grade.F, Grade.E, Grade.D}

    def test_low_target_never_gets_a(self):
        rng = Random(42)
        grades = {generate_correlated_grade(rng, 1.0) for _ in range(300)}
        assert Grade.A not in grades

    def test_deterministic_with_seed(self):
        a = [generate_correlated_grade(Random(99), 3.5) for _ in range(5)]
        b = [generate_correlated_grade(Random(99), 3.5) for _ in range(5)]
        assert a == b


class TestBuildDemoCourses:
    def test_deterministic(self):
        a = build_demo_courses("user-1", seed=7)
        b = build_demo_courses("user-1", seed=7)
        assert a == b

    def test_seed_changes_history(self):
        a = build_demo_courses("user-1", seed=1)
        b = build_demo_courses("user-1", seed=2)
        assert [c.course_code for c in a] != [c.course_code for c in b]

    def test_codes_unique_and_owned(self):
        courses = build_demo_courses("user-1")
        codes = [c.course_code for c in courses]
        assert len(codes) == len(set(codes))
        assert all(c.user_id == "user-1" for c in courses)

    def test_last_semester_in_progress(self):
        courses = build_demo_courses("user-1", semesters=4)
        groups = list(group_courses_by_semester(courses).values())
        assert all(c.status == CourseStatus.IN_PROGRESS and c.grade is None for c in groups[-1])
        assert all(c.status == CourseStatus.COMPLETED and c.grade for g in groups[:-1] for c in g)

    def test_semesters_alternate(self):
        courses = build_demo_courses("user-1", semesters=4, start_year=2022)
        assert list(group_courses_by_semester(courses)) == [
            "First 2022", "Second 2022", "First 2023", "Second 2023",
        ]

    def test_prerequisites_taken_earlier(self):
        prereqs = {
            code: reqs for dept in COURSE_CATALOG.values() for code, _, _, reqs in dept
        }
        courses = build_demo_courses("user-1", seed=3, semesters=8)
        term_of = {c.course_code: (c.year, c.semester.value) for c in courses}
        for course in courses:
            for req in prereqs[course.course_code]:
                assert term_of[req] < term_of[course.course_code]

    def test_fields_pass_validation(self):
        for course in build_demo_courses("user-1", semesters=8, major="Business Administration"):
            CreateCourseInput(
                course_code=course.course_code, title=course.title, units=course.units,
                grade=course.grade, semester=course.semester, year=course.year,
                status=course.status,
            )

    def test_target_gpa_shapes_cgpa(self):
        high = calculate_cgpa(build_demo_courses("u", seed=5, target_gpa=4.8))
        low = calculate_cgpa(build_demo_courses("u", seed=5, target_gpa=1.0))
        assert high > 4.0
        assert low < 2.5

    @pytest.mark.parametrize("kwargs,match", [
        ({"semesters": 0}, "semesters"),
        ({"start_year": 1999}, "2000-2100"),
        ({"start_year": 2100, "semesters": 4}, "2000-2100"),
        ({"target_gpa": 5.5}, "target_gpa"),
        ({"major": "Astrology"}, "unknown major"),
    ])
    def test_invalid_parameters(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            build_demo_courses("user-1", **kwargs)


class TestLoadDemoHistory:
    def test_creates_through_repository(self, store):
        repo = CourseRepository(store)
        created, skipped = load_demo_history(repo, "user-1", seed=11, semesters=3)
        assert skipped == []
        assert len(repo.list_for_user("user-1")) == len(created) > 0

    def test_second_load_skips_existing(self, store):
        repo = CourseRepository(store)
        created, _ = load_demo_history(repo, "user-1", seed=11, semesters=3)
        again, skipped = load_demo_history(repo, "user-1", seed=11, semesters=3)
        assert again == []
        assert sorted(skipped) == sorted(c.course_code for c in created)
