"""Badge evaluation with duplicate prevention and notification.

Badges are awarded once per learner: the UNIQUE(learner_id, badge_id)
constraint absorbs concurrent awards, so evaluation is safe to repeat.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.db.models import Badge, StudentBadge, StudentGamification
from studyhall.db.transient import transient_store_errors
from studyhall.db.upsert import dialect_insert
from studyhall.events import BADGE_EARNED, publish_event

logger = logging.getLogger(__name__)


async def list_badges(db: AsyncSession) -> list[Badge]:
    """Full badge catalog ordered by XP threshold."""
    result = await db.execute(select(Badge).order_by(Badge.xp_required, Badge.id))
    return list(result.scalars().all())


async def get_badge_by_slug(db: AsyncSession, slug: str) -> Badge | None:
    """Fetch a badge by slug."""
    result = await db.execute(select(Badge).where(Badge.slug == slug))
    return result.scalar_one_or_none()


async def get_earned_badges(db: AsyncSession, learner_id: str) -> list[StudentBadge]:
    """Badges earned by a learner, oldest first."""
    result = await db.execute(
        select(StudentBadge)
        .where(StudentBadge.learner_id == learner_id)
        .order_by(StudentBadge.earned_at, StudentBadge.id)
    )
    return list(result.scalars().unique().all())


async def has_badge(db: AsyncSession, learner_id: str, badge_id: int) -> bool:
    """Check if a learner already has a specific badge."""
    result = await db.execute(
        select(StudentBadge.id).where(
            StudentBadge.learner_id == learner_id,
            StudentBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def evaluate_badges(
    db: AsyncSession,
    redis: object | None,
    learner_id: str,
) -> list[Badge]:
    """Award every catalog badge whose XP threshold the learner has reached.

    Returns only the badges earned by this call; a second call with no XP
    change returns an empty list. Badges with a zero threshold are granted by
    other flows, never by XP.
    """
    with transient_store_errors("evaluate_badges"):
        total_xp = (
            await db.execute(
                select(StudentGamification.total_xp).where(
                    StudentGamification.learner_id == learner_id
                )
            )
        ).scalar_one_or_none() or 0

        candidates = (
            await db.execute(
                select(Badge)
                .where(Badge.xp_required > 0, Badge.xp_required <= total_xp)
                .order_by(Badge.xp_required, Badge.id)
            )
        ).scalars().all()

        earned_ids = set(
            (
                await db.execute(
                    select(StudentBadge.badge_id).where(StudentBadge.learner_id == learner_id)
                )
            ).scalars().all()
        )

        now = datetime.now(timezone.utc)
        newly_earned: list[Badge] = []
        for badge in candidates:
            if badge.id in earned_ids:
                continue
            stmt = (
                dialect_insert(db, StudentBadge)
                .values(learner_id=learner_id, badge_id=badge.id, earned_at=now)
                .on_conflict_do_nothing(index_elements=["learner_id", "badge_id"])
                .returning(StudentBadge.id)
            )
            if (await db.execute(stmt)).scalar_one_or_none() is not None:
                newly_earned.append(badge)

        await db.commit()

    for badge in newly_earned:
        logger.info("Badge earned: %s by %s", badge.slug, learner_id)
        await publish_event(redis, BADGE_EARNED, {
            "learner_id": learner_id,
            "badge_slug": badge.slug,
            "badge_name": badge.name,
            "xp_required": badge.xp_required,
        })

    return newly_earned
