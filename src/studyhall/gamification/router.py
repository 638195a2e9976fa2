"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.auth.dependencies import get_current_learner
from studyhall.auth.jwt import CurrentLearner
from studyhall.database import get_session
from studyhall.gamification.badge_service import get_badge_by_slug, get_earned_badges, list_badges
from studyhall.gamification.levels import level_table
from studyhall.gamification.schemas import (
    AllBadgesResponse,
    AllLevelsResponse,
    BadgeResponse,
    EarnedBadgeResponse,
    GamificationSummaryResponse,
    LearnerBadgesResponse,
    LevelEntry,
    XPHistoryEntry,
    XPHistoryResponse,
)
from studyhall.gamification.xp_service import get_summary, get_xp_history

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/badges", response_model=AllBadgesResponse)
async def get_badges(db: AsyncSession = Depends(get_session)):
    """Full badge catalog."""
    badges = await list_badges(db)
    return AllBadgesResponse(badges=[BadgeResponse.model_validate(b) for b in badges])


@router.get("/badges/{slug}", response_model=BadgeResponse)
async def get_badge(slug: str, db: AsyncSession = Depends(get_session)):
    badge = await get_badge_by_slug(db, slug)
    if badge is None:
        raise HTTPException(status_code=404, detail="Badge not found")
    return BadgeResponse.model_validate(badge)


@router.get("/levels", response_model=AllLevelsResponse)
async def get_levels(max_level: int = Query(20, ge=1, le=200)):
    """Cumulative XP needed for each level."""
    return AllLevelsResponse(levels=[LevelEntry(**row) for row in level_table(max_level)])


# ── Learner endpoints ──


@router.get("/me/gamification", response_model=GamificationSummaryResponse)
async def get_gamification_summary(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    """XP, level, streak and badge counts, from the denormalized row."""
    summary = await get_summary(db, learner.learner_id)
    return GamificationSummaryResponse(**summary)


@router.get("/me/badges", response_model=LearnerBadgesResponse)
async def get_my_badges(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    earned = await get_earned_badges(db, learner.learner_id)
    catalog = await list_badges(db)
    return LearnerBadgesResponse(
        earned=[
            EarnedBadgeResponse(badge=BadgeResponse.model_validate(e.badge), earned_at=e.earned_at)
            for e in earned
        ],
        total_available=len(catalog),
        total_earned=len(earned),
    )


@router.get("/me/xp/history", response_model=XPHistoryResponse)
async def get_my_xp_history(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Paginated XP ledger, newest first."""
    entries = await get_xp_history(db, learner.learner_id, limit=limit, offset=offset)
    return XPHistoryResponse(
        entries=[XPHistoryEntry.model_validate(e) for e in entries],
        limit=limit,
        offset=offset,
    )
