"""Tests for the PDF transcript renderer."""

from __future__ import annotations

import re
from datetime import date

import pytest

from transcript_pdf import (
    Transcript,
    TranscriptOptions,
    build_transcript,
    transcript_filename,
    write_transcript,
)


@pytest.fixture
def record(make_course):
    return [
        make_course("A", units=3, code="CS101", title="Intro to CS", semester="First", year=2023),
        make_course("B+", units=4, code="MTH101", title="Calculus I", semester="First", year=2023),
        make_course("B", units=3, code="CS201", title="Data Structures", semester="Second", year=2023),
        make_course(None, units=3, code="CS301", title="Databases", semester="First", year=2024,
                    status="in-progress"),
    ]


def pdf_page_count(data: bytes) -> int:
    return len(re.findall(rb"/Type /Page\b", data))


class TestBuildTranscript:
    def test_produces_pdf(self, sample_user, record):
        transcript = build_transcript(sample_user, record, generated_on=date(2024, 5, 1))
        assert isinstance(transcript, Transcript)
        assert transcript.data.startswith(b"%PDF")
        assert transcript.data.rstrip().endswith(b"%%EOF")
        assert transcript.page_count == pdf_page_count(transcript.data) >= 1

    def test_empty_record(self, sample_user):
        transcript = build_transcript(sample_user, [])
        assert transcript.data.startswith(b"%PDF")
        assert transcript.page_count == pdf_page_count(transcript.data) >= 1

    def test_long_record_paginates(self, sample_user, make_course):
        courses = [
            make_course("A", semester=semester, year=year)
            for year in range(2010, 2030)
            for semester in ("First", "Second")
            for _ in range(4)
        ]
        transcript = build_transcript(sample_user, courses)
        assert transcript.page_count > 1

    def test_insights_optional(self, sample_user, record):
        with_insights = build_transcript(sample_user, record, generated_on=date(2024, 5, 1))
        without = build_transcript(
            sample_user, record, TranscriptOptions(include_insights=False), date(2024, 5, 1),
        )
        assert len(without.data) < len(with_insights.data)

    def test_markup_in_names_is_escaped(self, sample_user, make_course):
        sample_user.name = "Ada <Lovelace> & Co"
        transcript = build_transcript(sample_user, [make_course("A", title="R&D <intro>")])
        assert transcript.data.startswith(b"%PDF")


class TestTranscriptFilename:
    def test_underscores_and_date(self, sample_user):
        assert transcript_filename(sample_user, date(2024, 5, 1)) == "transcript_Ada_Lovelace_2024-05-01.pdf"

    def test_collapses_whitespace(self, sample_user):
        sample_user.name = "Ada   Augusta  King"
        assert transcript_filename(sample_user, date(2024, 1, 2)) == "transcript_Ada_Augusta_King_2024-01-02.pdf"

    def test_defaults_to_today(self, sample_user):
        assert transcript_filename(sample_user).endswith(f"_{date.today().isoformat()}.pdf")

    @pytest.mark.parametrize("name,expected", [
        ("../../etc/passwd", "transcript_etc_passwd_2024-05-01.pdf"),
        ("Ada/Lovelace", "transcript_Ada_Lovelace_2024-05-01.pdf"),
        ("..", "transcript_student_2024-05-01.pdf"),
    ])
    def test_path_separators_removed(self, sample_user, name, expected):
        sample_user.name = name
        assert transcript_filename(sample_user, date(2024, 5, 1)) == expected

    def test_stays_inside_output_dir(self, tmp_path, sample_user, record):
        sample_user.name = "../outside"
        out = tmp_path / "out"
        path = out / transcript_filename(sample_user, date(2024, 5, 1))
        write_transcript(path, sample_user, record)
        assert [p.name for p in out.iterdir()] == ["transcript_outside_2024-05-01.pdf"]


class TestWriteTranscript:
    def test_writes_file(self, tmp_path, sample_user, record):
        path = tmp_path / "out" / transcript_filename(sample_user, date(2024, 5, 1))
        transcript = write_transcript(path, sample_user, record)
        assert path.read_bytes() == transcript.data
