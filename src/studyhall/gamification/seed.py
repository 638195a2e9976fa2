"""Badge catalog seed data."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.db.models import Badge
from studyhall.db.upsert import dialect_insert

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    {
        "slug": "first_steps",
        "name": "First Steps",
        "description": "Earn your first 10 XP",
        "icon": "footprints",
        "xp_required": 10,
        "category": "milestone",
    },
    {
        "slug": "quick_learner",
        "name": "Quick Learner",
        "description": "Reach 50 XP",
        "icon": "zap",
        "xp_required": 50,
        "category": "milestone",
    },
    {
        "slug": "century",
        "name": "Century",
        "description": "Reach 100 XP and level 2",
        "icon": "star",
        "xp_required": 100,
        "category": "milestone",
    },
    {
        "slug": "dedicated_student",
        "name": "Dedicated Student",
        "description": "Reach 250 XP",
        "icon": "book-open",
        "xp_required": 250,
        "category": "learning",
    },
    {
        "slug": "knowledge_seeker",
        "name": "Knowledge Seeker",
        "description": "Reach 500 XP",
        "icon": "brain",
        "xp_required": 500,
        "category": "learning",
    },
    {
        "slug": "scholar",
        "name": "Scholar",
        "description": "Reach 1,000 XP",
        "icon": "graduation-cap",
        "xp_required": 1000,
        "category": "learning",
    },
    {
        "slug": "master_mind",
        "name": "Master Mind",
        "description": "Reach 2,500 XP",
        "icon": "trophy",
        "xp_required": 2500,
        "category": "mastery",
    },
    {
        "slug": "legend",
        "name": "Legend",
        "description": "Reach 5,000 XP",
        "icon": "crown",
        "xp_required": 5000,
        "category": "mastery",
    },
]


async def seed_badges(db: AsyncSession) -> int:
    """Upsert the badge catalog. Returns number of badges seeded.

    Earned badges are never touched, so a changed threshold does not revoke
    or re-award anything already earned.
    """
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        stmt = dialect_insert(db, Badge).values(**badge_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
                "xp_required": stmt.excluded.xp_required,
                "category": stmt.excluded.category,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badges", seeded)
    return seeded
