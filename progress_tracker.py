#!/usr/bin/env python3
"""
Academic Progress Tracker
=====================================================
Command-line front end over a local store file:

- Accounts: register, login/logout, profile edits, account deletion
- Courses: add, edit, remove, list grouped by semester
- Statistics: CGPA, credits, degree progress, semester GPA trend, insights
- AI insights from Gemini (GEMINI_API_KEY), with model fallback
- PDF transcript and PNG chart export
- Demo history for exploring the tool

Usage:
    progress-tracker register --name "Ada Lovelace" --email ada@example.com
    progress-tracker login --email ada@example.com
    progress-tracker add-course --code CS101 --title "Intro to CS" --units 3 \\
        --semester First --year 2024 --status completed --grade A
    progress-tracker stats
    progress-tracker insights --ai
    progress-tracker transcript --output ./out/transcript.pdf
    progress-tracker --store ./other.json courses
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from academic_metrics import (
    TOTAL_REQUIRED_CREDITS,
    Course,
    CourseStatus,
    Grade,
    Semester,
    summarize,
)
from ai_insights import GeminiClient, ModelFallbackPolicy, generate_ai_insights
from demo_history import COURSE_CATALOG, load_demo_history
from progress_schemas import (
    CreateCourseInput,
    FormValidationError,
    LoginInput,
    RegisterInput,
    UpdateCourseInput,
    UpdateProfileInput,
    validate_form,
)
from progress_store import (
    CourseNotFoundError,
    CourseRepository,
    JsonFileStore,
    ProgressStoreError,
    Session,
    SessionManager,
    UserNotFoundError,
    UserRepository,
)
from transcript_pdf import TranscriptOptions, transcript_filename, write_transcript
from visualize_progress import render_all_charts

__all__ = ["build_parser", "main"]

logger = logging.getLogger(__name__)

DEFAULT_STORE = "./data/progress_store.json"


@dataclass
class Context:
    store: JsonFileStore
    users: UserRepository
    courses: CourseRepository
    sessions: SessionManager
    total_credits: int


def _print_header(title: str):
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)


def _password(args, attr: str = "password", prompt: str = "Password: ") -> str:
    value = getattr(args, attr, None)
    return value if value is not None else getpass.getpass(prompt)


def _resolve_course(ctx: Context, session: Session, ref: str) -> Course:
    """Find one of the user's courses by id or course code."""
    for course in ctx.courses.list_for_user(session.user_id):
        if ref in (course.id, course.course_code):
            return course
    raise CourseNotFoundError()


def _course_line(course: Course) -> str:
    grade = course.grade.value if course.grade else "-"
    status = "Completed" if course.status == CourseStatus.COMPLETED else "In Progress"
    return (
        f"  {course.course_code:<12s} {course.title[:36]:<36s} "
        f"{course.units:>2d}u  {grade:<3s} {status:<12s} {course.id[:8]}"
    )


# ──────────────────────────────────────────────────────────────────────────────
# ACCOUNT COMMANDS
# ──────────────────────────────────────────────────────────────────────────────

def cmd_register(args, ctx: Context) -> int:
    password = _password(args)
    confirm = args.confirm_password
    if confirm is None:
        confirm = password if args.password is not None else getpass.getpass("Confirm password: ")
    data = validate_form(RegisterInput, {
        "name": args.name,
        "email": args.email,
        "password": password,
        "confirm_password": confirm,
    })
    user = ctx.users.create(data)
    session = ctx.sessions.login(LoginInput(email=data.email, password=data.password))
    print(f"Registered {user.name} <{user.email}> (student id {user.student_id})")
    print(f"Logged in as {session.email}")
    return 0


def cmd_login(args, ctx: Context) -> int:
    data = validate_form(LoginInput, {"email": args.email, "password": _password(args)})
    session = ctx.sessions.login(data)
    print(f"Logged in as {session.name} <{session.email}>")
    return 0


def cmd_logout(args, ctx: Context) -> int:
    ctx.sessions.logout()
    print("Logged out")
    return 0


def cmd_whoami(args, ctx: Context) -> int:
    session = ctx.sessions.current()
    if session is None:
        print("Not logged in")
        return 1
    print(f"{session.name} <{session.email}>")
    return 0


def cmd_profile(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    raw = {k: v for k, v in (("name", args.name), ("email", args.email), ("password", args.password)) if v is not None}
    if raw:
        ctx.users.update(session.user_id, validate_form(UpdateProfileInput, raw))
        print(f"Updated {', '.join(sorted(raw))}")

    user = ctx.users.get_by_id(session.user_id)
    if user is None:
        raise UserNotFoundError()
    _print_header("Profile")
    print(f"  Name:       {user.name}")
    print(f"  Email:      {user.email}")
    print(f"  Student ID: {user.student_id}")
    print(f"  Member since {user.created_at[:10]}")
    return 0


def cmd_delete_account(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    if not args.yes:
        print("ERROR: this removes the account and all its courses; re-run with --yes")
        return 1
    ctx.users.delete(session.user_id)
    ctx.sessions.logout()
    print(f"Deleted account {session.email}")
    return 0


# ──────────────────────────────────────────────────────────────────────────────
# COURSE COMMANDS
# ──────────────────────────────────────────────────────────────────────────────

COURSE_FIELDS = {
    "code": "course_code",
    "title": "title",
    "units": "units",
    "grade": "grade",
    "semester": "semester",
    "year": "year",
    "status": "status",
}


def _course_form(args) -> dict:
    return {
        field: getattr(args, attr)
        for attr, field in COURSE_FIELDS.items()
        if getattr(args, attr, None) is not None
    }


def cmd_add_course(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    data = validate_form(CreateCourseInput, _course_form(args))
    course = ctx.courses.create(session.user_id, data)
    print(f"Added {course.course_code} ({course.term_label}) id={course.id}")
    return 0


def cmd_edit_course(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    course = _resolve_course(ctx, session, args.course)
    data = validate_form(UpdateCourseInput, _course_form(args))
    updated = ctx.courses.update(course.id, data)
    print(f"Updated {updated.course_code} ({updated.term_label})")
    return 0


def cmd_remove_course(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    course = _resolve_course(ctx, session, args.course)
    ctx.courses.delete(course.id)
    print(f"Removed {course.course_code}")
    return 0


def cmd_courses(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    groups = ctx.courses.group_by_semester(session.user_id)
    if not groups:
        print("No courses yet. Add one with 'add-course'.")
        return 0
    for label, courses in groups.items():
        print(f"\n{label}")
        print("-" * 60)
        for course in courses:
            print(_course_line(course))
    return 0


# ──────────────────────────────────────────────────────────────────────────────
# REPORT COMMANDS
# ──────────────────────────────────────────────────────────────────────────────

def cmd_stats(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    summary = summarize(ctx.courses.list_for_user(session.user_id), ctx.total_credits)

    _print_header(f"Academic Summary: {session.name}")
    print(f"  CGPA:              {summary.cgpa:.2f} / 5.0")
    print(f"  Credits:           {summary.total_credits} / {summary.total_required_credits}")
    print(f"  Completed courses: {summary.completed_courses}")
    print(f"  In progress:       {summary.in_progress_courses}")
    print(f"  Degree progress:   {summary.degree_progress:.1f}%")

    if summary.semester_performance:
        print("\n  Semester GPA:")
        for perf in summary.semester_performance:
            bar = "█" * int(round(perf.gpa * 4))
            print(f"    {perf.label:<14s} {perf.gpa:4.2f}  {bar}")
        if summary.trend is not None:
            print(f"    Trend (last two): {summary.trend:+.2f}")

    if summary.insights:
        print("\n  Insights:")
        for line in summary.insights:
            print(f"    - {line}")
    return 0


def cmd_insights(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    courses = ctx.courses.list_for_user(session.user_id)
    summary = summarize(courses, ctx.total_credits)

    _print_header("Academic Insights")
    if summary.insights:
        for line in summary.insights:
            print(f"  - {line}")
    else:
        print("  Add completed courses with grades to see insights.")

    if not args.ai:
        return 0

    client = GeminiClient(
        os.environ.get("GEMINI_API_KEY"),
        ModelFallbackPolicy.from_string(args.models),
    )
    lines, result = generate_ai_insights(courses, client, ctx.total_credits)
    if not result.success:
        print(f"ERROR: {result.error or 'Failed to generate AI insights'}")
        return 1

    print(f"\n  AI insights ({result.model}):")
    for line in lines:
        print(f"  {line}")
    return 0


def cmd_transcript(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    user = ctx.users.get_by_id(session.user_id)
    if user is None:
        raise UserNotFoundError()

    output = Path(args.output) if args.output else Path(args.output_dir) / transcript_filename(user)
    options = TranscriptOptions(include_insights=not args.no_insights, total_required=ctx.total_credits)
    transcript = write_transcript(output, user, ctx.courses.list_for_user(user.id), options)
    print(f"Transcript saved: {output} ({transcript.page_count} pages)")
    return 0


def cmd_charts(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    courses = ctx.courses.list_for_user(session.user_id)
    out = Path(args.output_dir)

    generated = render_all_charts(summarize(courses, ctx.total_credits), courses, out)
    if not generated:
        print("No charts generated: add some courses first.")
        return 0
    print(f"Generated {len(generated)} charts:")
    for name, path in generated.items():
        print(f"  {name:25s} -> {path}")
    return 0


def cmd_demo(args, ctx: Context) -> int:
    session = ctx.sessions.require()
    created, skipped = load_demo_history(
        ctx.courses,
        session.user_id,
        seed=args.seed,
        semesters=args.semesters,
        start_year=args.start_year,
        target_gpa=args.target_gpa,
        major=args.major,
    )
    print(f"Added {len(created)} demo courses" + (f", skipped {len(skipped)} already on record" if skipped else ""))
    return 0


# ──────────────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────────────

def _add_course_arguments(parser: argparse.ArgumentParser, required: bool):
    parser.add_argument("--code", required=required, help="Course code, e.g. CS101")
    parser.add_argument("--title", required=required, help="Course title")
    parser.add_argument("--units", type=int, required=required, help="Credit units (1-10)")
    parser.add_argument("--semester", choices=[s.value for s in Semester], required=required)
    parser.add_argument("--year", type=int, required=required, help="Year (2000-2100)")
    parser.add_argument("--status", choices=[s.value for s in CourseStatus], required=required)
    parser.add_argument("--grade", choices=[g.value for g in Grade], help="Only kept for completed courses")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="progress-tracker",
        description="Academic Progress Tracker",
    )
    parser.add_argument(
        "--store",
        default=os.environ.get("APT_STORE", DEFAULT_STORE),
        help=f"Store file (default: $APT_STORE or {DEFAULT_STORE})",
    )
    parser.add_argument(
        "--total-credits",
        type=int,
        default=os.environ.get("APT_TOTAL_CREDITS", str(TOTAL_REQUIRED_CREDITS)),
        help="Credits required for the degree (default: $APT_TOTAL_CREDITS or 120)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account and log in")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--password", help="Prompted for when omitted")
    p.add_argument("--confirm-password")
    p.set_defaults(handler=cmd_register)

    p = sub.add_parser("login", help="Log in")
    p.add_argument("--email", required=True)
    p.add_argument("--password", help="Prompted for when omitted")
    p.set_defaults(handler=cmd_login)

    sub.add_parser("logout", help="Log out").set_defaults(handler=cmd_logout)
    sub.add_parser("whoami", help="Show the logged-in user").set_defaults(handler=cmd_whoami)

    p = sub.add_parser("profile", help="Show or edit your profile")
    p.add_argument("--name")
    p.add_argument("--email")
    p.add_argument("--password")
    p.set_defaults(handler=cmd_profile)

    p = sub.add_parser("delete-account", help="Delete your account and all courses")
    p.add_argument("--yes", action="store_true", help="Confirm deletion")
    p.set_defaults(handler=cmd_delete_account)

    p = sub.add_parser("add-course", help="Add a course")
    _add_course_arguments(p, required=True)
    p.set_defaults(handler=cmd_add_course)

    p = sub.add_parser("edit-course", help="Edit a course (by id or code)")
    p.add_argument("course", help="Course id or course code")
    _add_course_arguments(p, required=False)
    p.set_defaults(handler=cmd_edit_course)

    p = sub.add_parser("remove-course", help="Remove a course (by id or code)")
    p.add_argument("course", help="Course id or course code")
    p.set_defaults(handler=cmd_remove_course)

    sub.add_parser("courses", help="List courses by semester").set_defaults(handler=cmd_courses)
    sub.add_parser("stats", help="Show GPA statistics").set_defaults(handler=cmd_stats)

    p = sub.add_parser("insights", help="Show rule-based (and optionally AI) insights")
    p.add_argument("--ai", action="store_true", help="Also ask Gemini (needs GEMINI_API_KEY)")
    p.add_argument(
        "--models",
        default=os.environ.get("APT_GEMINI_MODELS"),
        help="Comma-separated model fallback order (default: $APT_GEMINI_MODELS or built-in list)",
    )
    p.set_defaults(handler=cmd_insights)

    p = sub.add_parser("transcript", help="Export a PDF transcript")
    p.add_argument("--no-insights", action="store_true", help="Leave out the insights section")
    p.add_argument("--output", help="PDF path (default: <output-dir>/transcript_<name>_<date>.pdf)")
    p.add_argument("--output-dir", default="./output", help="Directory for the default file name")
    p.set_defaults(handler=cmd_transcript)

    p = sub.add_parser("charts", help="Export PNG charts")
    p.add_argument("--output-dir", default="./output/charts", help="Directory to save charts")
    p.set_defaults(handler=cmd_charts)

    p = sub.add_parser("demo", help="Fill your record with a demo course history")
    p.add_argument("--seed", type=int, default=42, help="Random seed")
    p.add_argument("--semesters", type=int, default=6, help="Number of semesters")
    p.add_argument("--start-year", type=int, default=2023, help="First year")
    p.add_argument("--target-gpa", type=float, default=4.0, help="GPA the grades centre on (0-5)")
    p.add_argument("--major", choices=sorted(COURSE_CATALOG), default="Computer Science")
    p.set_defaults(handler=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    store = JsonFileStore(args.store)
    users = UserRepository(store)
    ctx = Context(
        store=store,
        users=users,
        courses=CourseRepository(store),
        sessions=SessionManager(store, users),
        total_credits=args.total_credits,
    )

    try:
        return args.handler(args, ctx)
    except (ProgressStoreError, FormValidationError) as e:
        print(f"ERROR: {e}")
        return 1
    except ValueError as e:
        # Out-of-range demo parameters
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
