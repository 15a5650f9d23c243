#!/usr/bin/env python3
"""
Academic Progress Charts
=========================================================
Renders PNG charts of one student's record: semester GPA trend, grade
distribution, credits per semester and a combined dashboard.

Usage:
    python visualize_progress.py --email ada@example.com
    python visualize_progress.py --email ada@example.com --output-dir ./charts
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import matplotlib
matplotlib.use("Agg")  # headless rendering
import matplotlib.pyplot as plt
import pandas as pd
from matplotlib.gridspec import GridSpec

from academic_metrics import (
    GRADE_POINTS,
    AcademicSummary,
    Course,
    Grade,
    summarize,
)
from progress_store import CourseRepository, JsonFileStore, UserRepository

__all__ = [
    "THEME_COLORS",
    "apply_theme",
    "courses_to_frame",
    "chart_semester_gpa",
    "chart_grade_distribution",
    "chart_credits_by_semester",
    "chart_progress_dashboard",
    "render_all_charts",
]

logger = logging.getLogger(__name__)

MAX_GPA = 5.0


# ── Theme ─────────────────────────────────────────────────────────────────

THEME_COLORS = {
    "primary": "#1B3A5C",      # dark navy
    "secondary": "#2E86AB",    # bright blue
    "accent": "#F18F01",       # orange
    "success": "#2CA58D",      # teal/green
    "danger": "#C1292E",       # red
    "warning": "#F4D35E",      # yellow
    "light": "#E8EEF2",        # light gray-blue
    "text": "#2C3E50",         # dark text
}

GRADE_COLORS = {
    "A": THEME_COLORS["success"],
    "B+": "#58B89F",
    "B": THEME_COLORS["secondary"],
    "C+": "#6BA5C7",
    "C": THEME_COLORS["warning"],
    "D+": "#F6B94A",
    "D": THEME_COLORS["accent"],
    "E": "#D9603B",
    "F": THEME_COLORS["danger"],
}


def apply_theme():
    """Apply theme styling to matplotlib."""
    plt.rcParams.update({
        "font.family": "sans-serif",
        "font.sans-serif": ["Helvetica Neue", "Arial", "DejaVu Sans"],
        "font.size": 11,
        "axes.titlesize": 14,
        "axes.titleweight": "bold",
        "axes.labelsize": 12,
        "axes.facecolor": "#FAFBFC",
        "axes.edgecolor": "#DEE2E6",
        "axes.grid": True,
        "grid.alpha": 0.3,
        "grid.color": "#CED4DA",
        "figure.facecolor": "white",
        "figure.dpi": 150,
        "savefig.dpi": 200,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.3,
    })


# ── Data ──────────────────────────────────────────────────────────────────

FRAME_COLUMNS = [
    "course_code", "title", "units", "grade", "grade_points",
    "semester", "year", "term", "status",
]


def courses_to_frame(courses: Sequence[Course]) -> pd.DataFrame:
    """One row per course. `grade_points` is NaN for courses that do not count."""
    rows = [
        {
            "course_code": c.course_code,
            "title": c.title,
            "units": c.units,
            "grade": c.grade.value if c.grade else None,
            "grade_points": GRADE_POINTS[c.grade.value] if c.is_graded else None,
            "semester": c.semester.value,
            "year": c.year,
            "term": c.term_label,
            "status": c.status.value,
        }
        for c in courses
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    return df.sort_values(["year", "semester"], kind="stable").reset_index(drop=True)


def _term_order(df: pd.DataFrame) -> list[str]:
    terms = df[["year", "semester", "term"]].drop_duplicates()
    return terms.sort_values(["year", "semester"])["term"].tolist()


# ── Chart Builders ────────────────────────────────────────────────────────

def chart_semester_gpa(summary: AcademicSummary, output_dir: Path):
    """Semester GPA bars with the running CGPA as a reference line."""
    performance = summary.semester_performance
    if not performance:
        return None

    labels = [p.label for p in performance]
    gpas = [p.gpa for p in performance]

    fig, ax = plt.subplots(figsize=(10, 5))
    bars = ax.bar(
        range(len(labels)), gpas,
        color=THEME_COLORS["secondary"], alpha=0.85,
        edgecolor="white", linewidth=0.5,
    )
    for bar, val in zip(bars, gpas):
        ax.text(
            bar.get_x() + bar.get_width() / 2, bar.get_height() + 0.05,
            f"{val:.2f}", ha="center", va="bottom",
            fontsize=9, fontweight="bold", color=THEME_COLORS["text"],
        )

    ax.plot(
        range(len(labels)), gpas,
        color=THEME_COLORS["primary"], marker="s", linewidth=2, markersize=6, zorder=5,
    )
    ax.axhline(
        y=summary.cgpa, color=THEME_COLORS["accent"], linestyle="--", alpha=0.8,
        label=f"CGPA ({summary.cgpa:.2f})",
    )

    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=30, ha="right")
    ax.set_ylabel("GPA")
    ax.set_ylim(0, MAX_GPA)
    ax.legend(loc="lower left", framealpha=0.9)

    fig.suptitle(
        "Semester GPA Trend",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "semester_gpa.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def chart_grade_distribution(courses: Sequence[Course], output_dir: Path):
    """Completed-course count per grade, best grade first."""
    df = courses_to_frame(courses)
    graded = df[df["grade_points"].notna()]
    if graded.empty:
        return None

    order = [g.value for g in Grade]
    counts = graded["grade"].value_counts().reindex(order, fill_value=0)

    fig, ax = plt.subplots(figsize=(9, 5))
    bars = ax.bar(
        counts.index, counts.values,
        color=[GRADE_COLORS[g] for g in counts.index],
        edgecolor="white", linewidth=0.5,
    )
    for bar, val in zip(bars, counts.values):
        if val:
            ax.text(
                bar.get_x() + bar.get_width() / 2, bar.get_height() + 0.05,
                str(int(val)), ha="center", va="bottom", fontsize=9, fontweight="bold",
            )

    ax.set_xlabel("Grade")
    ax.set_ylabel("Courses")
    ax.yaxis.get_major_locator().set_params(integer=True)

    fig.suptitle(
        "Grade Distribution",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "grade_distribution.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def chart_credits_by_semester(courses: Sequence[Course], output_dir: Path):
    """Stacked completed / in-progress units per semester."""
    df = courses_to_frame(courses)
    if df.empty:
        return None

    pivot = (
        df.groupby(["term", "status"])["units"].sum()
        .unstack(fill_value=0)
        .reindex(_term_order(df))
    )
    for status in ("completed", "in-progress"):
        if status not in pivot.columns:
            pivot[status] = 0
    pivot = pivot[["completed", "in-progress"]]
    pivot.columns = ["Completed", "In Progress"]

    fig, ax = plt.subplots(figsize=(11, 5))
    pivot.plot(
        kind="bar", stacked=True, ax=ax,
        color=[THEME_COLORS["success"], THEME_COLORS["warning"]],
        edgecolor="white", linewidth=0.5,
    )
    ax.set_xlabel("Semester")
    ax.set_ylabel("Credit Units")
    ax.set_xticklabels(pivot.index, rotation=30, ha="right")
    ax.legend(title="Status", loc="upper left", framealpha=0.9)

    fig.suptitle(
        "Credits by Semester",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "credits_by_semester.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def chart_progress_dashboard(
    summary: AcademicSummary,
    courses: Sequence[Course],
    output_dir: Path,
):
    """Multi-panel overview: GPA trend, grades, degree progress, key metrics."""
    if not courses:
        return None
    df = courses_to_frame(courses)

    fig = plt.figure(figsize=(14, 9))
    gs = GridSpec(2, 2, figure=fig, hspace=0.45, wspace=0.3)

    # ── Panel 1: Semester GPA ─────────────────────────────────────
    ax1 = fig.add_subplot(gs[0, 0])
    labels = [p.label for p in summary.semester_performance]
    gpas = [p.gpa for p in summary.semester_performance]
    if gpas:
        ax1.plot(range(len(labels)), gpas, color=THEME_COLORS["primary"], marker="s", linewidth=2)
        ax1.fill_between(range(len(labels)), gpas, alpha=0.15, color=THEME_COLORS["secondary"])
        ax1.set_xticks(range(len(labels)))
        ax1.set_xticklabels([s.replace(" ", "\n") for s in labels], fontsize=7)
    ax1.set_ylim(0, MAX_GPA)
    ax1.set_title("Semester GPA")

    # ── Panel 2: Grade Distribution ───────────────────────────────
    ax2 = fig.add_subplot(gs[0, 1])
    graded = df[df["grade_points"].notna()]
    order = [g.value for g in Grade]
    counts = graded["grade"].value_counts().reindex(order, fill_value=0)
    ax2.bar(counts.index, counts.values, color=[GRADE_COLORS[g] for g in counts.index])
    ax2.set_title("Grades")

    # ── Panel 3: Degree Progress ──────────────────────────────────
    ax3 = fig.add_subplot(gs[1, 0])
    remaining = max(summary.total_required_credits - summary.total_credits, 0)
    ax3.barh([0], [summary.total_credits], color=THEME_COLORS["success"], label="Completed")
    ax3.barh([0], [remaining], left=[summary.total_credits], color=THEME_COLORS["light"], label="Remaining")
    ax3.set_yticks([])
    ax3.set_xlim(0, max(summary.total_required_credits, summary.total_credits, 1))
    ax3.text(
        0.5, 0.5, f"{summary.degree_progress:.1f}%", transform=ax3.transAxes,
        ha="center", va="center", fontsize=16, fontweight="bold", color=THEME_COLORS["primary"],
    )
    ax3.legend(loc="upper right", fontsize=8)
    ax3.set_title("Degree Progress")

    # ── Panel 4: Key Metrics ──────────────────────────────────────
    ax4 = fig.add_subplot(gs[1, 1])
    ax4.axis("off")
    metrics = [
        ("CGPA", f"{summary.cgpa:.2f} / {MAX_GPA:.1f}"),
        ("Credits", f"{summary.total_credits} / {summary.total_required_credits}"),
        ("Completed", f"{summary.completed_courses}"),
        ("In Progress", f"{summary.in_progress_courses}"),
        ("Semesters", f"{len(summary.semester_performance)}"),
    ]
    if summary.trend is not None:
        metrics.append(("Last Trend", f"{summary.trend:+.2f}"))
    for i, (label, value) in enumerate(metrics):
        y = 0.9 - i * 0.14
        ax4.text(0.05, y, label, fontsize=11, fontweight="bold",
                 color=THEME_COLORS["text"], transform=ax4.transAxes)
        ax4.text(0.85, y, value, fontsize=12, fontweight="bold",
                 color=THEME_COLORS["primary"], ha="right", transform=ax4.transAxes)
    ax4.set_title("Key Metrics", pad=10)

    fig.suptitle(
        "Academic Progress Dashboard",
        fontsize=18, fontweight="bold", color=THEME_COLORS["primary"], y=1.01,
    )

    path = output_dir / "dashboard.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def render_all_charts(
    summary: AcademicSummary,
    courses: Sequence[Course],
    output_dir: Path,
) -> dict[str, Path]:
    """Render every chart that has data; returns {chart name: path}."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    apply_theme()

    charts = {
        "Semester GPA": chart_semester_gpa(summary, output_dir),
        "Grade Distribution": chart_grade_distribution(courses, output_dir),
        "Credits by Semester": chart_credits_by_semester(courses, output_dir),
        "Dashboard": chart_progress_dashboard(summary, courses, output_dir),
    }
    generated = {name: path for name, path in charts.items() if path}
    skipped = sorted(set(charts) - set(generated))
    if skipped:
        logger.info("Skipped charts with no data: %s", ", ".join(skipped))
    return generated


# ── CLI ───────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Academic Progress Charts")
    parser.add_argument(
        "--store",
        default=os.environ.get("APT_STORE", "./data/progress_store.json"),
        help="Store file (default: $APT_STORE or ./data/progress_store.json)",
    )
    parser.add_argument("--email", required=True, help="Student whose record to chart")
    parser.add_argument(
        "--output-dir",
        default="./output/charts",
        help="Directory to save charts",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    store = JsonFileStore(args.store)
    user = UserRepository(store).get_by_email(args.email)
    if user is None:
        print(f"ERROR: no user with email {args.email} in {args.store}")
        sys.exit(1)

    courses = CourseRepository(store).list_for_user(user.id)
    out = Path(args.output_dir)

    print("Generating charts...")
    generated = render_all_charts(summarize(courses), courses, out)

    print(f"\nGenerated {len(generated)} charts:")
    for name, path in generated.items():
        print(f"  {name:25s} -> {path}")

    print(f"\nAll charts saved to: {out}/")


if __name__ == "__main__":
    main()
