"""End-to-end tests for the progress-tracker CLI against a temporary store file."""

from __future__ import annotations

import json
import re

import pytest

import progress_tracker
from ai_insights import GeminiClient
from progress_store import COURSES_KEY, USERS_KEY


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "store.json"


@pytest.fixture
def cli(store_path, capsys):
    """Run the CLI and return (exit code, stdout)."""

    def run(*argv: str) -> tuple[int, str]:
        code = progress_tracker.main(["--store", str(store_path), *argv])
        return code, capsys.readouterr().out

    return run


@pytest.fixture
def registered(cli):
    code, _ = cli("register", "--name", "Ada Lovelace", "--email", "ada@example.com", "--password", "secret1")
    assert code == 0
    return cli


def add_course(cli, code, grade="A", units="3", semester="First", year="2024", status="completed"):
    argv = [
        "add-course", "--code", code, "--title", f"{code} title", "--units", units,
        "--semester", semester, "--year", year, "--status", status,
    ]
    if grade:
        argv += ["--grade", grade]
    return cli(*argv)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class TestAccounts:
    def test_register_logs_in(self, registered, store_path):
        code, out = registered("whoami")
        assert code == 0
        assert "Ada Lovelace <ada@example.com>" in out
        raw = json.loads(store_path.read_text())
        assert "secret1" not in json.dumps(raw[USERS_KEY])

    def test_register_duplicate_email(self, registered):
        code, out = registered("register", "--name", "Other", "--email", "ADA@example.com", "--password", "secret1")
        assert code == 1
        assert "ERROR: User with this email already exists" in out

    def test_register_password_mismatch(self, cli):
        code, out = cli(
            "register", "--name", "Ada", "--email", "ada@example.com",
            "--password", "secret1", "--confirm-password", "secret2",
        )
        assert code == 1
        assert out.startswith("ERROR:")

    def test_logout_then_login(self, registered):
        assert registered("logout")[0] == 0
        code, out = registered("whoami")
        assert code == 1
        assert "Not logged in" in out

        code, out = registered("login", "--email", "ada@example.com", "--password", "secret1")
        assert code == 0
        assert "Logged in as Ada Lovelace" in out

    def test_wrong_password(self, registered):
        code, out = registered("login", "--email", "ada@example.com", "--password", "nope123")
        assert code == 1
        assert "ERROR: Invalid email or password" in out

    def test_password_prompted(self, registered, monkeypatch):
        registered("logout")
        monkeypatch.setattr(progress_tracker.getpass, "getpass", lambda prompt="": "secret1")
        assert registered("login", "--email", "ada@example.com")[0] == 0

    def test_profile_update(self, registered):
        code, out = registered("profile", "--name", "Ada King")
        assert code == 0
        assert "Name:       Ada King" in out
        assert "Student ID:" in out

    def test_commands_need_login(self, cli):
        code, out = cli("courses")
        assert code == 1
        assert "ERROR: Not logged in. Run 'login' first." in out

    def test_delete_account_needs_confirmation(self, registered):
        assert registered("delete-account")[0] == 1
        assert registered("whoami")[0] == 0

    def test_delete_account_removes_courses(self, registered, store_path):
        add_course(registered, "CS101")
        code, out = registered("delete-account", "--yes")
        assert code == 0
        raw = json.loads(store_path.read_text())
        assert raw[USERS_KEY] == []
        assert raw[COURSES_KEY] == []
        assert registered("whoami")[0] == 1


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------

class TestCourses:
    def test_add_and_list(self, registered):
        assert add_course(registered, "CS101")[0] == 0
        assert add_course(registered, "CS201", semester="Second")[0] == 0
        code, out = registered("courses")
        assert code == 0
        assert out.index("First 2024") < out.index("Second 2024")
        assert "CS101" in out and "CS201" in out

    def test_duplicate_code(self, registered):
        add_course(registered, "CS101")
        code, out = add_course(registered, "CS101", grade="B")
        assert code == 1
        assert "ERROR: Course with this code already exists" in out

    def test_invalid_units(self, registered):
        code, out = add_course(registered, "CS101", units="11")
        assert code == 1
        assert out.startswith("ERROR:")

    def test_edit_by_code(self, registered, store_path):
        add_course(registered, "CS101", grade="A")
        code, _ = registered("edit-course", "CS101", "--grade", "C")
        assert code == 0
        courses = json.loads(store_path.read_text())[COURSES_KEY]
        assert courses[0]["grade"] == "C"

    def test_edit_to_in_progress_drops_grade(self, registered, store_path):
        add_course(registered, "CS101", grade="A")
        registered("edit-course", "CS101", "--status", "in-progress")
        courses = json.loads(store_path.read_text())[COURSES_KEY]
        assert courses[0]["grade"] is None

    def test_remove(self, registered):
        add_course(registered, "CS101")
        assert registered("remove-course", "CS101")[0] == 0
        assert "No courses yet" in registered("courses")[1]

    def test_remove_unknown(self, registered):
        code, out = registered("remove-course", "NOPE")
        assert code == 1
        assert "ERROR: Course not found" in out

    def test_other_users_courses_hidden(self, registered):
        add_course(registered, "CS101")
        registered("register", "--name", "Bob", "--email", "bob@example.com", "--password", "secret2")
        assert "No courses yet" in registered("courses")[1]
        assert add_course(registered, "CS101")[0] == 0


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class TestReports:
    def test_stats(self, registered):
        add_course(registered, "CS101", grade="A", units="3")
        add_course(registered, "CS102", grade="B", units="4")
        add_course(registered, "CS103", grade=None, status="in-progress")
        code, out = registered("stats")
        assert code == 0
        assert "CGPA:              4.43 / 5.0" in out
        assert "Credits:           7 / 120" in out
        assert "In progress:       1" in out

    def test_total_credits_option(self, store_path, capsys, registered):
        add_course(registered, "CS101", units="3")
        progress_tracker.main(["--store", str(store_path), "--total-credits", "30", "stats"])
        assert "Degree progress:   10.0%" in capsys.readouterr().out

    def test_insights_rule_based(self, registered):
        add_course(registered, "CS101", grade="A")
        code, out = registered("insights")
        assert code == 0
        assert "Academic Insights" in out

    def test_insights_ai(self, registered, monkeypatch):
        add_course(registered, "CS101", grade="A")
        monkeypatch.setattr(
            progress_tracker, "GeminiClient",
            lambda key, policy: GeminiClient("key", policy, lambda model, prompt: "1. Keep it up"),
        )
        code, out = registered("insights", "--ai", "--models", "gemini-2.0-flash")
        assert code == 0
        assert "AI insights (gemini-2.0-flash)" in out
        assert "1. Keep it up" in out

    def test_insights_ai_without_key(self, registered, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        code, out = registered("insights", "--ai")
        assert code == 1
        assert "ERROR: Gemini API key is not configured" in out

    def test_transcript(self, registered, tmp_path):
        add_course(registered, "CS101")
        target = tmp_path / "t.pdf"
        code, out = registered("transcript", "--output", str(target))
        assert code == 0
        assert target.read_bytes().startswith(b"%PDF")
        assert re.search(r"\(\d+ pages\)", out)

    def test_transcript_default_name(self, registered, tmp_path):
        code, _ = registered("transcript", "--output-dir", str(tmp_path / "out"))
        assert code == 0
        [pdf] = (tmp_path / "out").glob("transcript_Ada_Lovelace_*.pdf")
        assert pdf.stat().st_size > 0

    def test_charts(self, registered, tmp_path):
        add_course(registered, "CS101", grade="A")
        code, out = registered("charts", "--output-dir", str(tmp_path / "charts"))
        assert code == 0
        assert (tmp_path / "charts" / "dashboard.png").exists()

    def test_charts_without_courses(self, registered, tmp_path):
        code, out = registered("charts", "--output-dir", str(tmp_path / "charts"))
        assert code == 0
        assert "No charts generated" in out


class TestDemo:
    def test_demo_fills_record(self, registered, store_path):
        code, out = registered("demo", "--semesters", "3")
        assert code == 0
        assert out.startswith("Added ")
        assert len(json.loads(store_path.read_text())[COURSES_KEY]) > 0

    def test_demo_twice_skips(self, registered):
        registered("demo", "--semesters", "2", "--seed", "9")
        code, out = registered("demo", "--semesters", "2", "--seed", "9")
        assert code == 0
        assert "Added 0 demo courses, skipped" in out

    def test_demo_bad_target(self, registered):
        code, out = registered("demo", "--target-gpa", "7")
        assert code == 1
        assert "ERROR: target_gpa" in out
