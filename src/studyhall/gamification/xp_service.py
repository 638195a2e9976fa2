"""XP award service with atomic increments, idempotency and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.db.models import Badge, StudentBadge, StudentGamification, XPLedger
from studyhall.db.transient import transient_store_errors
from studyhall.db.upsert import dialect_insert
from studyhall.errors import StudyHallError, ValidationError
from studyhall.events import LEVEL_UP, publish_event
from studyhall.gamification.badge_service import evaluate_badges
from studyhall.gamification.levels import derive_level

logger = logging.getLogger(__name__)


async def get_or_create_gamification(db: AsyncSession, learner_id: str) -> StudentGamification:
    """Get or create the denormalized gamification row for a learner."""
    result = await db.execute(
        select(StudentGamification).where(StudentGamification.learner_id == learner_id)
    )
    gam = result.scalar_one_or_none()
    if gam is None:
        stmt = dialect_insert(db, StudentGamification).values(
            learner_id=learner_id,
            total_xp=0,
            current_streak=0,
            longest_streak=0,
            updated_at=datetime.now(timezone.utc),
        )
        # Two first reads racing must not fail each other.
        await db.execute(stmt.on_conflict_do_nothing(index_elements=["learner_id"]))
        result = await db.execute(
            select(StudentGamification).where(StudentGamification.learner_id == learner_id)
        )
        gam = result.scalar_one()
    return gam


async def award_xp(
    db: AsyncSession,
    redis: object | None,
    learner_id: str,
    amount: int,
    source: str,
    source_id: str | None = None,
    description: str | None = None,
    idempotency_key: str | None = None,
) -> dict:
    """Award XP to a learner and evaluate badge thresholds.

    Order of work:
    1. Insert into xp_ledger (a repeated idempotency_key is a no-op)
    2. Atomically increment student_gamification.total_xp
    3. Commit; the XP award is the primary transaction
    4. Evaluate badges in a second transaction; failures there are logged
       and reported in ``badge_error`` but never undo the XP

    Pending writes in the session (progress, streak) are committed with step 3.
    """
    if amount <= 0:
        raise ValidationError(f"XP amount must be > 0, got {amount}")

    now = datetime.now(timezone.utc)

    with transient_store_errors("award_xp"):
        gam = await get_or_create_gamification(db, learner_id)

        ledger = dialect_insert(db, XPLedger).values(
            learner_id=learner_id,
            amount=amount,
            source=source,
            source_id=source_id,
            description=description,
            idempotency_key=idempotency_key,
            created_at=now,
        )
        if idempotency_key is not None:
            ledger = ledger.on_conflict_do_nothing(index_elements=["idempotency_key"])
        inserted = (await db.execute(ledger.returning(XPLedger.id))).scalar_one_or_none()
        if inserted is None:
            await db.commit()
            return {
                "awarded": False,
                "amount": 0,
                "total_xp": gam.total_xp,
                "level": derive_level(gam.total_xp)["level"],
                "level_up": False,
                "new_badges": [],
                "badge_error": None,
            }

        result = await db.execute(
            update(StudentGamification)
            .where(StudentGamification.learner_id == learner_id)
            .values(total_xp=StudentGamification.total_xp + amount, updated_at=now)
            .returning(StudentGamification.total_xp)
            .execution_options(synchronize_session="fetch")
        )
        total_xp = result.scalar_one()
        await db.commit()

    old_level = derive_level(total_xp - amount)["level"]
    new_level = derive_level(total_xp)["level"]
    if new_level > old_level:
        logger.info("Level up for %s: %d -> %d", learner_id, old_level, new_level)
        await publish_event(redis, LEVEL_UP, {
            "learner_id": learner_id,
            "old_level": old_level,
            "new_level": new_level,
        })

    new_badges: list[str] = []
    badge_error: str | None = None
    try:
        earned = await evaluate_badges(db, redis, learner_id)
        new_badges = [b.slug for b in earned]
    except (SQLAlchemyError, StudyHallError) as exc:
        await db.rollback()
        badge_error = str(exc)
        logger.warning("Badge evaluation failed for %s", learner_id, exc_info=True)

    return {
        "awarded": True,
        "amount": amount,
        "total_xp": total_xp,
        "level": new_level,
        "level_up": new_level > old_level,
        "new_badges": new_badges,
        "badge_error": badge_error,
    }


async def get_xp_history(
    db: AsyncSession,
    learner_id: str,
    limit: int = 20,
    offset: int = 0,
) -> list[XPLedger]:
    """Most recent XP ledger entries for a learner."""
    result = await db.execute(
        select(XPLedger)
        .where(XPLedger.learner_id == learner_id)
        .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_summary(db: AsyncSession, learner_id: str) -> dict:
    """XP, level, streak and badge counts for one learner."""
    with transient_store_errors("get_summary"):
        gam = await get_or_create_gamification(db, learner_id)
        earned = await db.execute(
            select(func.count()).select_from(StudentBadge).where(StudentBadge.learner_id == learner_id)
        )
        total = await db.execute(select(func.count()).select_from(Badge))
        earned_count = earned.scalar_one()
        total_count = total.scalar_one()
        await db.commit()

    return {
        "learner_id": learner_id,
        "total_xp": gam.total_xp,
        **derive_level(gam.total_xp),
        "current_streak": gam.current_streak,
        "longest_streak": gam.longest_streak,
        "last_activity_date": gam.last_activity_date,
        "badges_earned": earned_count,
        "badges_total": total_count,
    }
