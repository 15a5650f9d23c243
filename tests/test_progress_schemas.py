"""Tests for form validation: field rules, first-error reporting, partial updates."""

from __future__ import annotations

import pytest

from academic_metrics import CourseStatus, Grade, Semester
from progress_schemas import (
    CreateCourseInput,
    FormValidationError,
    LoginInput,
    RegisterInput,
    UpdateCourseInput,
    UpdateProfileInput,
    validate_form,
)


@pytest.fixture
def course_form() -> dict:
    return {
        "course_code": "CS101",
        "title": "Intro to Computer Science",
        "units": 3,
        "grade": "A",
        "semester": "First",
        "year": 2024,
        "status": "completed",
    }


@pytest.fixture
def register_form() -> dict:
    return {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "password": "secret1",
        "confirm_password": "secret1",
    }


# ---------------------------------------------------------------------------
# CreateCourseInput
# ---------------------------------------------------------------------------

class TestCreateCourse:
    def test_valid(self, course_form):
        data = validate_form(CreateCourseInput, course_form)
        assert data.course_code == "CS101"
        assert data.units == 3
        assert data.grade == Grade.A
        assert data.semester == Semester.FIRST
        assert data.status == CourseStatus.COMPLETED

    def test_whitespace_stripped(self, course_form):
        course_form.update(course_code="  CS101 ", title=" Intro  ", semester=" Second ")
        data = validate_form(CreateCourseInput, course_form)
        assert data.course_code == "CS101"
        assert data.title == "Intro"
        assert data.semester == Semester.SECOND

    def test_grade_dropped_for_in_progress(self, course_form):
        course_form["status"] = "in-progress"
        assert validate_form(CreateCourseInput, course_form).grade is None

    def test_blank_grade_is_none(self, course_form):
        course_form["grade"] = ""
        assert validate_form(CreateCourseInput, course_form).grade is None

    @pytest.mark.parametrize("field,value,message", [
        ("course_code", "", "Course code is required"),
        ("course_code", "   ", "Course code is required"),
        ("course_code", "X" * 21, "Course code must be less than 20 characters"),
        ("title", "", "Course title is required"),
        ("title", "T" * 101, "Course title must be less than 100 characters"),
        ("units", 0, "Units must be at least 1"),
        ("units", 11, "Units must be at most 10"),
        ("year", 1999, "Year must be at least 2000"),
        ("year", 2101, "Year must be at most 2100"),
        ("semester", "Winter", "Semester must be First, Second, or Summer"),
        ("status", "done", "Status must be in-progress or completed"),
    ])
    def test_field_errors(self, course_form, field, value, message):
        course_form[field] = value
        with pytest.raises(FormValidationError) as exc:
            validate_form(CreateCourseInput, course_form)
        assert exc.value.field == field
        assert exc.value.message == message
        assert str(exc.value) == message

    def test_boundaries_accepted(self, course_form):
        course_form.update(course_code="X" * 20, title="T" * 100, units=10, year=2100)
        validate_form(CreateCourseInput, course_form)
        course_form.update(units=1, year=2000)
        validate_form(CreateCourseInput, course_form)

    def test_unknown_grade(self, course_form):
        course_form["grade"] = "A+"
        with pytest.raises(FormValidationError) as exc:
            validate_form(CreateCourseInput, course_form)
        assert exc.value.field == "grade"
        assert exc.value.message.startswith("Grade must be one of A, B+, B")

    def test_missing_field(self, course_form):
        del course_form["title"]
        with pytest.raises(FormValidationError, match="Title is required"):
            validate_form(CreateCourseInput, course_form)

    def test_reports_first_error_only(self, course_form):
        course_form.update(course_code="", units=99)
        with pytest.raises(FormValidationError) as exc:
            validate_form(CreateCourseInput, course_form)
        assert exc.value.field == "course_code"

    def test_is_value_error(self, course_form):
        course_form["units"] = 0
        with pytest.raises(ValueError):
            validate_form(CreateCourseInput, course_form)


class TestUpdateCourse:
    def test_only_set_fields(self):
        data = validate_form(UpdateCourseInput, {"units": 4, "title": " New "})
        assert data.changes() == {"units": 4, "title": "New"}

    def test_empty_update(self):
        assert validate_form(UpdateCourseInput, {}).changes() == {}

    def test_clearing_grade(self):
        assert validate_form(UpdateCourseInput, {"grade": ""}).changes() == {"grade": None}

    def test_rules_still_apply(self):
        with pytest.raises(FormValidationError, match="Units must be at most 10"):
            validate_form(UpdateCourseInput, {"units": 12})

    @pytest.mark.parametrize("field,message", [
        ("course_code", "Course code cannot be empty"),
        ("title", "Title cannot be empty"),
        ("units", "Units cannot be empty"),
        ("semester", "Semester cannot be empty"),
        ("year", "Year cannot be empty"),
        ("status", "Status must be in-progress or completed"),
    ])
    def test_null_only_allowed_for_grade(self, field, message):
        with pytest.raises(FormValidationError) as exc:
            validate_form(UpdateCourseInput, {field: None})
        assert exc.value.field == field
        assert exc.value.message == message

    def test_explicit_null_grade_clears(self):
        assert validate_form(UpdateCourseInput, {"grade": None}).changes() == {"grade": None}


# ---------------------------------------------------------------------------
# Account forms
# ---------------------------------------------------------------------------

class TestRegister:
    def test_valid(self, register_form):
        data = validate_form(RegisterInput, register_form)
        assert data.name == "Ada Lovelace"
        assert data.email == "ada@example.com"

    def test_passwords_must_match(self, register_form):
        register_form["confirm_password"] = "different"
        with pytest.raises(FormValidationError) as exc:
            validate_form(RegisterInput, register_form)
        assert exc.value.message == "Passwords do not match"
        assert exc.value.field == "form"

    @pytest.mark.parametrize("field,value,message", [
        ("name", "A", "Name must be at least 2 characters"),
        ("email", "not-an-email", "Please enter a valid email"),
        ("password", "12345", "Password must be at least 6 characters"),
    ])
    def test_field_errors(self, register_form, field, value, message):
        register_form[field] = value
        with pytest.raises(FormValidationError) as exc:
            validate_form(RegisterInput, register_form)
        assert exc.value.field == field
        assert exc.value.message == message


class TestLogin:
    def test_valid(self):
        data = validate_form(LoginInput, {"email": "ada@example.com", "password": "secret1"})
        assert data.password == "secret1"

    def test_short_password(self):
        with pytest.raises(FormValidationError, match="at least 6"):
            validate_form(LoginInput, {"email": "ada@example.com", "password": "123"})


class TestUpdateProfile:
    def test_changes_exclude_missing(self):
        data = validate_form(UpdateProfileInput, {"name": "Ada King"})
        assert data.changes() == {"name": "Ada King"}

    def test_bad_email(self):
        with pytest.raises(FormValidationError, match="valid email"):
            validate_form(UpdateProfileInput, {"email": "nope"})
