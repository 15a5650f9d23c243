"""
Transcript PDF
=====================================================
Renders a user's academic transcript as a paginated A4 PDF (reportlab platypus).

Sections, in order: title and generation date, student information, academic
summary, semester performance, course details (one table per semester) and,
optionally, the rule-based insights. Every page gets a "Page i of N" footer.

Usage:
    transcript = build_transcript(user, courses)
    write_transcript(Path("out") / transcript_filename(user), user, courses)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from pathlib import Path
from typing import Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    CondPageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from academic_metrics import (
    TOTAL_REQUIRED_CREDITS,
    Course,
    CourseStatus,
    User,
    summarize,
)

__all__ = [
    "TranscriptOptions",
    "Transcript",
    "build_transcript",
    "transcript_filename",
    "write_transcript",
]

logger = logging.getLogger(__name__)

PAGE_SIZE = A4
MARGIN = 14 * mm
SECTION_BREAK_THRESHOLD = 60 * mm
SEMESTER_BREAK_THRESHOLD = 40 * mm
FOOTER_Y = 10 * mm
FOOTER_TEXT = "Academic Progress Tracker"

HEADER_COLOR = HexColor("#570DF8")
STRIPE_COLOR = HexColor("#F2F2F7")
TEXT_COLOR = HexColor("#333333")

COURSE_COLUMNS = ["Course Code", "Title", "Units", "Grade", "Status"]
COURSE_COL_WIDTHS = [28 * mm, 84 * mm, 18 * mm, 18 * mm, 34 * mm]


@dataclass(frozen=True)
class TranscriptOptions:
    include_insights: bool = True
    total_required: int = TOTAL_REQUIRED_CREDITS


@dataclass(frozen=True)
class Transcript:
    data: bytes
    page_count: int


class _NumberedCanvas(canvas.Canvas):
    """Defers page output until the end so each footer can show the page total."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        width, _ = self._pagesize
        self.saveState()
        self.setFont("Helvetica-Oblique", 8)
        self.setFillColor(TEXT_COLOR)
        self.drawCentredString(width / 2, FOOTER_Y, f"Page {self._pageNumber} of {total}")
        self.drawString(MARGIN, FOOTER_Y, FOOTER_TEXT)
        self.restoreState()


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "TranscriptTitle", parent=base["Title"], fontName="Helvetica-Bold",
            fontSize=20, alignment=TA_CENTER, spaceAfter=4,
        ),
        "subtitle": ParagraphStyle(
            "TranscriptSubtitle", parent=base["Normal"], fontName="Helvetica",
            fontSize=10, alignment=TA_CENTER, spaceAfter=10,
        ),
        "heading": ParagraphStyle(
            "TranscriptHeading", parent=base["Normal"], fontName="Helvetica-Bold",
            fontSize=14, spaceBefore=10, spaceAfter=6, keepWithNext=True,
        ),
        "subheading": ParagraphStyle(
            "TranscriptSubheading", parent=base["Normal"], fontName="Helvetica-Bold",
            fontSize=12, spaceBefore=6, spaceAfter=4, keepWithNext=True,
        ),
        "body": ParagraphStyle(
            "TranscriptBody", parent=base["Normal"], fontName="Helvetica",
            fontSize=10, leading=14, textColor=TEXT_COLOR,
        ),
        "cell": ParagraphStyle(
            "TranscriptCell", parent=base["Normal"], fontName="Helvetica",
            fontSize=9, leading=11,
        ),
    }


def _table_style(striped: bool, rows: int) -> TableStyle:
    commands = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    if striped:
        commands += [
            ("BACKGROUND", (0, r), (-1, r), STRIPE_COLOR)
            for r in range(2, rows, 2)
        ]
    else:
        commands.append(("GRID", (0, 0), (-1, -1), 0.5, colors.grey))
    return TableStyle(commands)


def _group_by_term(courses: Sequence[Course]) -> list[tuple[str, int, list[Course]]]:
    groups: dict[tuple[int, str], list[Course]] = {}
    for course in courses:
        groups.setdefault((course.year, course.semester.value), []).append(course)
    return [(semester, year, groups[(year, semester)]) for year, semester in sorted(groups)]


def _story(
    user: User,
    courses: Sequence[Course],
    options: TranscriptOptions,
    generated_on: date,
) -> list:
    styles = _styles()
    body = styles["body"]
    summary = summarize(list(courses), options.total_required)

    story: list = [
        Paragraph("Academic Transcript", styles["title"]),
        Paragraph(f"Generated on {generated_on.isoformat()}", styles["subtitle"]),
        Paragraph("Student Information", styles["heading"]),
        Paragraph(f"Name: {escape(user.name)}", body),
        Paragraph(f"Email: {escape(user.email)}", body),
        Paragraph(f"Student ID: {user.student_id}", body),
        Paragraph("Academic Summary", styles["heading"]),
        Paragraph(f"Cumulative GPA (CGPA): {summary.cgpa:.2f} / 5.0", body),
        Paragraph(
            f"Total Credits Completed: {summary.total_credits} / {options.total_required}",
            body,
        ),
        Paragraph(f"Courses Completed: {summary.completed_courses}", body),
        Paragraph(f"Degree Progress: {summary.degree_progress:.1f}%", body),
    ]

    if summary.semester_performance:
        rows = [["Semester", "Year", "GPA"]] + [
            [p.semester.value, str(p.year), f"{p.gpa:.2f}"]
            for p in summary.semester_performance
        ]
        table = Table(rows, colWidths=[70 * mm, 50 * mm, 62 * mm], repeatRows=1)
        table.setStyle(_table_style(striped=True, rows=len(rows)))
        story += [Paragraph("Semester Performance", styles["heading"]), table]

    if courses:
        story += [
            CondPageBreak(SECTION_BREAK_THRESHOLD),
            Paragraph("Course Details", styles["heading"]),
        ]
        for semester, year, group in _group_by_term(courses):
            rows = [COURSE_COLUMNS] + [
                [
                    c.course_code,
                    Paragraph(escape(c.title), styles["cell"]),
                    str(c.units),
                    c.grade.value if c.grade else "-",
                    "Completed" if c.status == CourseStatus.COMPLETED else "In Progress",
                ]
                for c in group
            ]
            table = Table(rows, colWidths=COURSE_COL_WIDTHS, repeatRows=1)
            table.setStyle(_table_style(striped=False, rows=len(rows)))
            story += [
                CondPageBreak(SEMESTER_BREAK_THRESHOLD),
                Paragraph(f"{semester} Semester {year}", styles["subheading"]),
                table,
                Spacer(1, 4 * mm),
            ]

    if options.include_insights and courses and summary.insights:
        story += [
            CondPageBreak(SECTION_BREAK_THRESHOLD),
            Paragraph("Academic Insights", styles["heading"]),
        ]
        story += [Paragraph(f"• {escape(line)}", body) for line in summary.insights]

    return story


def build_transcript(
    user: User,
    courses: Sequence[Course],
    options: TranscriptOptions | None = None,
    generated_on: date | None = None,
) -> Transcript:
    """Render the transcript in memory."""
    options = options or TranscriptOptions()
    generated_on = generated_on or date.today()

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=PAGE_SIZE,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title="Academic Transcript",
        author=user.name,
    )
    doc.build(_story(user, courses, options, generated_on), canvasmaker=_NumberedCanvas)

    transcript = Transcript(data=buffer.getvalue(), page_count=doc.page)
    logger.debug(
        "Rendered transcript for %s: %d courses, %d pages, %d bytes",
        user.id, len(courses), transcript.page_count, len(transcript.data),
    )
    return transcript


def transcript_filename(user: User, on_date: date | None = None) -> str:
    """File name only: anything that is not a word character or '-' becomes '_'."""
    on_date = on_date or date.today()
    name = re.sub(r"[^\w-]+", "_", user.name).strip("_") or "student"
    return f"transcript_{name}_{on_date.isoformat()}.pdf"


def write_transcript(
    path: str | Path,
    user: User,
    courses: Sequence[Course],
    options: TranscriptOptions | None = None,
    generated_on: date | None = None,
) -> Transcript:
    transcript = build_transcript(user, courses, options, generated_on)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(transcript.data)
    logger.info("Transcript saved: %s (%d pages)", path, transcript.page_count)
    return transcript
