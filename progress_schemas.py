"""
Form validation schemas
=====================================================
Declarative field constraints applied before anything reaches storage.
Messages match what the tracker shows next to a form field; `validate_form`
surfaces only the first failing field.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    EmailStr,
    ValidationError,
    field_validator,
    model_validator,
)

from academic_metrics import CourseStatus, Grade, Semester

__all__ = [
    "FormValidationError",
    "CreateCourseInput",
    "UpdateCourseInput",
    "RegisterInput",
    "LoginInput",
    "UpdateProfileInput",
    "validate_form",
]

ModelT = TypeVar("ModelT", bound=BaseModel)

MIN_YEAR = 2000
MAX_YEAR = 2100
MIN_UNITS = 1
MAX_UNITS = 10
MAX_CODE_LENGTH = 20
MAX_TITLE_LENGTH = 100
MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6

# Messages for errors raised by pydantic's own types rather than our validators
FIELD_MESSAGES = {
    "email": "Please enter a valid email",
    "grade": "Grade must be one of " + ", ".join(g.value for g in Grade),
    "status": "Status must be in-progress or completed",
}


class FormValidationError(ValueError):
    """First failing field of a submitted form."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


# ── Field rules ──────────────────────────────────────────────────────────

def _check_code(value: str) -> str:
    value = value.strip()
    if len(value) < 1:
        raise ValueError("Course code is required")
    if len(value) > MAX_CODE_LENGTH:
        raise ValueError("Course code must be less than 20 characters")
    return value


def _check_title(value: str) -> str:
    value = value.strip()
    if len(value) < 1:
        raise ValueError("Course title is required")
    if len(value) > MAX_TITLE_LENGTH:
        raise ValueError("Course title must be less than 100 characters")
    return value


def _check_units(value: int) -> int:
    if value < MIN_UNITS:
        raise ValueError("Units must be at least 1")
    if value > MAX_UNITS:
        raise ValueError("Units must be at most 10")
    return value


def _check_year(value: int) -> int:
    if value < MIN_YEAR:
        raise ValueError("Year must be at least 2000")
    if value > MAX_YEAR:
        raise ValueError("Year must be at most 2100")
    return value


def _coerce_semester(value: Any) -> Any:
    if isinstance(value, Semester):
        return value
    allowed = {s.value for s in Semester}
    if not isinstance(value, str) or value.strip() not in allowed:
        raise ValueError("Semester must be First, Second, or Summer")
    return value.strip()


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip() or None
    return value


def _check_name(value: str) -> str:
    value = value.strip()
    if len(value) < MIN_NAME_LENGTH:
        raise ValueError("Name must be at least 2 characters")
    return value


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError("Password must be at least 6 characters")
    return value


CourseCode = Annotated[str, AfterValidator(_check_code)]
CourseTitle = Annotated[str, AfterValidator(_check_title)]
Units = Annotated[int, AfterValidator(_check_units)]
Year = Annotated[int, AfterValidator(_check_year)]
SemesterField = Annotated[Semester, BeforeValidator(_coerce_semester)]
GradeField = Annotated[Optional[Grade], BeforeValidator(_blank_to_none)]
Name = Annotated[str, AfterValidator(_check_name)]
Password = Annotated[str, AfterValidator(_check_password)]


# ── Course forms ─────────────────────────────────────────────────────────

class CreateCourseInput(BaseModel):
    course_code: CourseCode
    title: CourseTitle
    units: Units
    grade: GradeField = None
    semester: SemesterField
    year: Year
    status: CourseStatus

    @model_validator(mode="after")
    def drop_grade_unless_completed(self):
        if self.status != CourseStatus.COMPLETED:
            self.grade = None
        return self


class UpdateCourseInput(BaseModel):
    """Partial course edit: only the fields that were set are applied."""

    course_code: Optional[CourseCode] = None
    title: Optional[CourseTitle] = None
    units: Optional[Units] = None
    grade: GradeField = None
    semester: Optional[SemesterField] = None
    year: Optional[Year] = None
    status: Optional[CourseStatus] = None

    @field_validator("course_code", "title", "units", "semester", "year", "status")
    @classmethod
    def reject_null(cls, value, info):
        # Only grade may be cleared; the rest must keep a value once the course exists.
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').capitalize()} cannot be empty")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ── Account forms ────────────────────────────────────────────────────────

class RegisterInput(BaseModel):
    name: Name
    email: EmailStr
    password: Password
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginInput(BaseModel):
    email: EmailStr
    password: Password


class UpdateProfileInput(BaseModel):
    name: Optional[Name] = None
    email: Optional[EmailStr] = None
    password: Optional[Password] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


# ── Entry point ──────────────────────────────────────────────────────────

def _error_message(error: dict[str, Any], field: str) -> str:
    if error["type"] == "missing":
        return f"{field.replace('_', ' ').capitalize()} is required"
    if field in FIELD_MESSAGES:
        return FIELD_MESSAGES[field]
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return error["msg"]


def validate_form(schema: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate `data` against `schema`; raise FormValidationError for the first failure."""
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "form"
        raise FormValidationError(field, _error_message(first, field)) from exc
