"""Validation of collaborator-generated quiz questions.

Generated questions are untrusted input. Each item must carry a question,
at least two non-empty options and a correct index inside the options.
Invalid items are dropped; if nothing valid remains the deterministic
fallback set is used instead, and the result says so.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from studyhall.quiz.session import QuizQuestion

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


@dataclass(frozen=True)
class QuizGenerationResult:
    """Tagged result: validated questions, or the fallback set with the reason."""

    questions: tuple[QuizQuestion, ...]
    is_fallback: bool
    reason: str | None = None
    dropped: int = 0


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def parse_question(item: Any) -> QuizQuestion | None:
    """Return a QuizQuestion if ``item`` has the expected shape, else None."""
    if not isinstance(item, dict):
        return None

    text = _first(item, "question", "question_text", "questionText")
    options = item.get("options")
    correct = _first(item, "correctIndex", "correct_option_index", "correctOptionIndex")
    explanation = item.get("explanation") or ""

    if not isinstance(text, str) or not text.strip():
        return None
    if not isinstance(options, list) or len(options) < MIN_OPTIONS:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    if isinstance(correct, bool) or not isinstance(correct, int):
        return None
    if not 0 <= correct < len(options):
        return None
    if not isinstance(explanation, str):
        explanation = ""

    return QuizQuestion(
        question_text=text.strip(),
        options=tuple(o.strip() for o in options),
        correct_option_index=correct,
        explanation=explanation.strip(),
    )


def fallback_questions(topic_title: str) -> tuple[QuizQuestion, ...]:
    """Placeholder set used when generation fails; the UI offers a retry."""
    return (
        QuizQuestion(
            question_text=f"What is the main concept of {topic_title}?",
            options=("Option A", "Option B", "Option C", "Option D"),
            correct_option_index=0,
            explanation="This is a placeholder question. Please regenerate the quiz.",
        ),
    )


def validate_generated(raw: Any, topic_title: str, max_questions: int | None = None) -> QuizGenerationResult:
    """Validate raw collaborator output into a tagged result."""
    if not isinstance(raw, list) or not raw:
        logger.warning("Quiz generation for %r returned no question list", topic_title)
        return QuizGenerationResult(
            questions=fallback_questions(topic_title),
            is_fallback=True,
            reason="no questions returned",
        )

    parsed = [parse_question(item) for item in raw]
    valid = [q for q in parsed if q is not None]
    dropped = len(parsed) - len(valid)
    if dropped:
        logger.warning("Dropped %d malformed generated questions for %r", dropped, topic_title)

    if not valid:
        return QuizGenerationResult(
            questions=fallback_questions(topic_title),
            is_fallback=True,
            reason="all generated questions were malformed",
            dropped=dropped,
        )

    if max_questions is not None:
        valid = valid[:max_questions]
    return QuizGenerationResult(questions=tuple(valid), is_fallback=False, dropped=dropped)


def fallback_result(topic_title: str, reason: str) -> QuizGenerationResult:
    return QuizGenerationResult(
        questions=fallback_questions(topic_title),
        is_fallback=True,
        reason=reason,
    )
