"""Daily streak tracking.

A streak counts consecutive calendar days with at least one qualifying
activity. Evaluation happens at most once per learner per day: repeated
calls on the same date are no-ops.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.db.models import StudentGamification
from studyhall.gamification.xp_service import get_or_create_gamification

logger = logging.getLogger(__name__)


class StreakState(NamedTuple):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None


def advance_streak(state: StreakState, today: date) -> StreakState:
    """Apply one day's activity to a streak.

    - same day as last activity: unchanged
    - day after last activity: streak + 1
    - any gap (or no prior activity): streak restarts at 1

    ``longest_streak`` never drops below ``current_streak``.
    """
    if state.last_activity_date == today:
        return state

    if state.last_activity_date is not None and state.last_activity_date == today - timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_activity_date=today,
    )


def utc_today(now: datetime | None = None) -> date:
    """Calendar date used for streaks (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.date()


async def touch_activity(
    db: AsyncSession,
    learner_id: str,
    today: date | None = None,
) -> StudentGamification:
    """Record that the learner was active on ``today`` and update the streak.

    The row is locked for the read-modify-write so two concurrent actions on
    the first activity of a day cannot both advance the streak.
    """
    if today is None:
        today = utc_today()

    await get_or_create_gamification(db, learner_id)
    result = await db.execute(
        select(StudentGamification)
        .where(StudentGamification.learner_id == learner_id)
        .with_for_update()
    )
    gam = result.scalar_one()

    before = StreakState(gam.current_streak, gam.longest_streak, gam.last_activity_date)
    after = advance_streak(before, today)
    if after == before:
        return gam

    gam.current_streak = after.current_streak
    gam.longest_streak = after.longest_streak
    gam.last_activity_date = after.last_activity_date
    gam.updated_at = datetime.now(timezone.utc)
    await db.flush()

    if after.current_streak == 1 and before.current_streak > 1:
        logger.info("Streak reset for %s (was %d days)", learner_id, before.current_streak)
    return gam
