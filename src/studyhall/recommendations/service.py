"""Recommendation service: summarize progress and ask the tutor for advice."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.advisor.client import AdvisorClient
from studyhall.errors import AdvisoryCollaboratorError
from studyhall.learning.progress_service import ProgressService
from studyhall.recommendations.summarizer import (
    build_recommendation_prompt,
    fallback_recommendation,
    mastery_label,
    summarize_subjects,
)

logger = logging.getLogger(__name__)


async def get_recommendation(
    db: AsyncSession,
    advisor: AdvisorClient | None,
    learner_id: str,
    grade_level: str | None = None,
) -> dict:
    """Build the learner's recommendation; the tutor text falls back to a canned message."""
    completions = await ProgressService(db).subject_completions(learner_id)
    summary = summarize_subjects(completions)

    message: str | None = None
    is_fallback = False
    if advisor is not None:
        try:
            message = await advisor.ask_tutor(
                [{"role": "user", "content": build_recommendation_prompt(summary)}],
                grade_level=grade_level,
            )
        except AdvisoryCollaboratorError as exc:
            logger.warning("Recommendation request failed for %s: %s", learner_id, exc)
    if message is None:
        message = fallback_recommendation(summary)
        is_fallback = True

    return {
        "message": message,
        "is_fallback": is_fallback,
        "all_healthy": summary.all_healthy,
        "weak_subjects": [{"name": s.name, "percent": s.percent} for s in summary.weak_subjects],
        "subjects": [
            {"name": name, "percent": percent, "mastery": mastery_label(percent)}
            for name, percent in completions
        ],
    }
