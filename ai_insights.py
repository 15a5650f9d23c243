"""
AI Insights
=====================================================
Advisor-style insights from Google Gemini, with an ordered model fallback.

The client never raises: every outcome, including "no key configured" and
"every model failed", comes back as a GenerationResult.

Usage:
    client = GeminiClient(os.environ.get("GEMINI_API_KEY"))
    lines, result = generate_ai_insights(courses, client)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from academic_metrics import (
    TOTAL_REQUIRED_CREDITS,
    Course,
    calculate_cgpa,
    get_total_courses_completed,
    get_total_credits,
)

__all__ = [
    "DEFAULT_MODELS",
    "GenerationResult",
    "ModelFallbackPolicy",
    "GeminiClient",
    "build_advisor_prompt",
    "parse_insight_lines",
    "generate_ai_insights",
]

logger = logging.getLogger(__name__)

DEFAULT_MODELS: tuple[str, ...] = (
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
)

MAX_INSIGHT_LINES = 5

PROMPT_REQUIRED = "Prompt is required"
KEY_NOT_CONFIGURED = "Gemini API key is not configured"
MODELS_EXHAUSTED = "Available models exhausted. Try again later"

# (model_id, prompt) -> generated text
Backend = Callable[[str, str], str]


@dataclass
class GenerationResult:
    success: bool
    text: str | None = None
    model: str | None = None
    error: str | None = None
    attempts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ModelFallbackPolicy:
    """Models to try, in order. Each is tried once; the first success wins."""
    models: tuple[str, ...] = DEFAULT_MODELS

    @classmethod
    def from_string(cls, value: str | None) -> ModelFallbackPolicy:
        """Parse a comma-separated override; blank input keeps the defaults."""
        models = tuple(m.strip() for m in (value or "").split(",") if m.strip())
        return cls(models) if models else cls()

    def candidates(self) -> list[str]:
        seen: set[str] = set()
        ordered = []
        for model in self.models:
            if model not in seen:
                seen.add(model)
                ordered.append(model)
        return ordered


def _genai_backend(api_key: str) -> Backend:
    import google.generativeai as genai

    genai.configure(api_key=api_key)

    def generate(model: str, prompt: str) -> str:
        response = genai.GenerativeModel(model).generate_content(prompt)
        return response.text

    return generate


class GeminiClient:
    """Blocking text generation over a fallback list of Gemini models."""

    def __init__(
        self,
        api_key: str | None,
        policy: ModelFallbackPolicy | None = None,
        backend: Backend | None = None,
    ):
        self.api_key = (api_key or "").strip()
        self.policy = policy or ModelFallbackPolicy()
        self._backend = backend

    def _get_backend(self) -> Backend:
        if self._backend is None:
            self._backend = _genai_backend(self.api_key)
        return self._backend

    def generate(self, prompt: str) -> GenerationResult:
        if not prompt or not prompt.strip():
            return GenerationResult(success=False, error=PROMPT_REQUIRED)
        if not self.api_key:
            return GenerationResult(success=False, error=KEY_NOT_CONFIGURED)

        try:
            backend = self._get_backend()
        except Exception as e:
            logger.error("Could not initialise Gemini client: %s", e)
            return GenerationResult(success=False, error=str(e))

        attempts: list[str] = []
        last_error = ""
        for model in self.policy.candidates():
            attempts.append(model)
            try:
                text = backend(model, prompt)
            except Exception as e:
                last_error = str(e)
                logger.warning("Gemini model %s failed: %s. Trying other models...", model, e)
                continue
            logger.info("Generated insights with %s after %d attempt(s)", model, len(attempts))
            return GenerationResult(success=True, text=text, model=model, attempts=attempts)

        if last_error:
            logger.error("All Gemini models failed; last error: %s", last_error)
        return GenerationResult(success=False, error=MODELS_EXHAUSTED, attempts=attempts)


# ──────────────────────────────────────────────────────────────────────────────
# PROMPT / RESPONSE
# ──────────────────────────────────────────────────────────────────────────────

def build_advisor_prompt(
    courses: Sequence[Course],
    total_required: int = TOTAL_REQUIRED_CREDITS,
) -> str:
    course_lines = "\n".join(
        f"- {c.course_code}: {c.title}, "
        f"Grade: {c.grade.value if c.grade else 'In Progress'}, "
        f"Units: {c.units}, {c.semester.value} {c.year}"
        for c in courses
    )
    return (
        "As an academic advisor, analyze this student's academic performance "
        "and provide 3-5 specific, actionable insights:\n"
        "\n"
        f"Current CGPA: {calculate_cgpa(courses):.2f} out of 5.0\n"
        f"Total Credits: {get_total_credits(courses)} out of {total_required}\n"
        f"Completed Courses: {get_total_courses_completed(courses)}\n"
        "\n"
        "Course Details:\n"
        f"{course_lines}\n"
        "\n"
        "Provide insights in a numbered list format. Focus on:\n"
        "1. Strengths and achievements\n"
        "2. Areas for improvement\n"
        "3. Specific recommendations for course selection\n"
        "4. Study strategies based on performance patterns\n"
        "5. Progress towards degree completion"
    )


def parse_insight_lines(text: str | None, limit: int = MAX_INSIGHT_LINES) -> list[str]:
    """Non-blank lines of a response, at most `limit` of them."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()][:limit]


def generate_ai_insights(
    courses: Sequence[Course],
    client: GeminiClient,
    total_required: int = TOTAL_REQUIRED_CREDITS,
) -> tuple[list[str], GenerationResult]:
    result = client.generate(build_advisor_prompt(courses, total_required))
    lines = parse_insight_lines(result.text) if result.success else []
    return lines, result
