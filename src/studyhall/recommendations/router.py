"""Recommendation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.advisor.client import AdvisorClient
from studyhall.auth.dependencies import get_current_learner
from studyhall.auth.jwt import CurrentLearner
from studyhall.database import get_session
from studyhall.dependencies import get_advisor
from studyhall.recommendations.service import get_recommendation

router = APIRouter(prefix="/api/v1", tags=["Recommendations"])


@router.get("/me/recommendation")
async def get_my_recommendation(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    advisor: AdvisorClient = Depends(get_advisor),
) -> dict:
    """Weakest subjects first, plus a short tutor message."""
    return await get_recommendation(db, advisor, learner.learner_id, learner.grade_level)
