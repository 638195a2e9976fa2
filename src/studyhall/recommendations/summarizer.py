"""Recommendation summarizer.

Reduces per-subject completion to the list of subjects that need attention
and renders the prompt sent to the tutor.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

WEAK_SUBJECT_THRESHOLD = 50

# (minimum percent, label), highest first
MASTERY_LEVELS: list[tuple[int, str]] = [
    (90, "Mastered"),
    (70, "Proficient"),
    (50, "Developing"),
    (25, "Beginning"),
    (0, "Not Started"),
]


@dataclass(frozen=True)
class WeakSubject:
    name: str
    percent: int


@dataclass(frozen=True)
class RecommendationSummary:
    weak_subjects: tuple[WeakSubject, ...]
    all_healthy: bool


def summarize_subjects(pairs: Iterable[tuple[str, int]]) -> RecommendationSummary:
    """Subjects below 50% completion, weakest first.

    ``sorted`` is stable, so subjects with equal completion keep their input
    order.
    """
    weak = sorted(
        (WeakSubject(name, percent) for name, percent in pairs if percent < WEAK_SUBJECT_THRESHOLD),
        key=lambda s: s.percent,
    )
    return RecommendationSummary(weak_subjects=tuple(weak), all_healthy=not weak)


def mastery_label(percent: int) -> str:
    for minimum, label in MASTERY_LEVELS:
        if percent >= minimum:
            return label
    return MASTERY_LEVELS[-1][1]


def build_recommendation_prompt(summary: RecommendationSummary) -> str:
    if summary.all_healthy:
        return (
            "The student is doing well across all subjects! Give a brief, encouraging "
            "message (2-3 sentences) to keep them motivated."
        )
    struggling = ", ".join(f"{s.name} ({s.percent}%)" for s in summary.weak_subjects)
    return (
        f"Based on the student's progress, they are struggling with: {struggling}. "
        "Give a brief, encouraging recommendation (2-3 sentences) on which subject "
        "to focus on next and why."
    )


def fallback_recommendation(summary: RecommendationSummary) -> str:
    """Canned text used when the tutor is unavailable."""
    if summary.all_healthy:
        return "Great work! You're making steady progress in every subject. Keep up the routine."
    weakest = summary.weak_subjects[0]
    return (
        f"Try spending your next session on {weakest.name} ({weakest.percent}% complete). "
        "Small, regular steps add up quickly."
    )
