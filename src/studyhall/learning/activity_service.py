"""Learning activity pipeline: lesson and practice completion.

Every learner action that changes progress runs the same ordered steps:
record progress -> touch activity (streak) -> award XP -> evaluate badges.
Badge checks therefore always see the XP total that includes this action.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.config import Settings, get_settings
from studyhall.errors import ValidationError
from studyhall.gamification.streaks import touch_activity, utc_today
from studyhall.gamification.xp_service import award_xp
from studyhall.learning.progress_service import ProgressService
from studyhall.learning.unlock import resolve_topic_states
from studyhall.rounding import percent_of

logger = logging.getLogger(__name__)


class LearningActivityService:
    """Applies learner actions to the progress ledger and the gamification engine."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.settings = settings or get_settings()
        self.progress = ProgressService(db, redis)

    async def apply_activity(
        self,
        learner_id: str,
        topic_id: str,
        percent: int,
        *,
        minutes_spent: int = 0,
        xp: int = 0,
        source: str,
        description: str,
        idempotency_key: str | None = None,
        today: date | None = None,
    ) -> dict:
        """Run the ordered pipeline for one action and return what changed."""
        record = await self.progress.record_progress(learner_id, topic_id, percent, minutes_spent)
        gam = await touch_activity(self.db, learner_id, today or utc_today())

        xp_result = None
        if xp > 0:
            xp_result = await award_xp(
                db=self.db,
                redis=self.redis,
                learner_id=learner_id,
                amount=xp,
                source=source,
                source_id=topic_id,
                description=description,
                idempotency_key=idempotency_key,
            )
        else:
            await self.db.commit()

        return {
            "topic_id": topic_id,
            "progress_percent": record.progress_percent,
            "completed": record.completed_at is not None,
            "time_spent_minutes": record.time_spent_minutes,
            "current_streak": gam.current_streak,
            "longest_streak": gam.longest_streak,
            "xp_awarded": xp_result["amount"] if xp_result else 0,
            "total_xp": xp_result["total_xp"] if xp_result else gam.total_xp,
            "level_up": bool(xp_result and xp_result["level_up"]),
            "new_badges": xp_result["new_badges"] if xp_result else [],
        }

    async def complete_lesson(
        self,
        learner_id: str,
        topic_id: str,
        minutes_spent: int = 0,
        today: date | None = None,
    ) -> dict:
        """Finishing a lesson sets the topic to 50% and awards lesson XP."""
        return await self.apply_activity(
            learner_id,
            topic_id,
            self.settings.lesson_progress_percent,
            minutes_spent=minutes_spent,
            xp=self.settings.lesson_xp,
            source="lesson",
            description="Completed lesson",
            today=today,
        )

    async def complete_practice(
        self,
        learner_id: str,
        topic_id: str,
        correct: int,
        total: int,
        minutes_spent: int = 0,
        today: date | None = None,
    ) -> dict:
        """Practice sets 75% on good accuracy (>= threshold) or 60%, plus XP per correct answer."""
        if total <= 0 or correct < 0 or correct > total:
            raise ValidationError(f"invalid practice result {correct}/{total}")

        accuracy = percent_of(correct, total)
        percent = (
            self.settings.practice_good_progress_percent
            if accuracy >= self.settings.practice_accuracy_threshold
            else self.settings.practice_weak_progress_percent
        )
        result = await self.apply_activity(
            learner_id,
            topic_id,
            percent,
            minutes_spent=minutes_spent,
            xp=correct * self.settings.practice_xp_per_correct,
            source="practice",
            description=f"Practice: {correct}/{total} correct",
            today=today,
        )
        result["accuracy"] = accuracy
        return result

    async def topic_states(self, learner_id: str, subject_id: str) -> list[dict]:
        """Topics of a subject with their unlock state and the learner's progress."""
        topics = await self.progress.list_topics(subject_id)
        records = await self.progress.list_progress(learner_id, [t.id for t in topics])
        by_topic = {r.topic_id: r for r in records}
        states = resolve_topic_states(topics, by_topic)

        return [
            {
                "id": topic.id,
                "title": topic.title,
                "description": topic.description,
                "order_index": topic.order_index,
                "estimated_duration_minutes": topic.estimated_duration_minutes,
                "state": states[topic.id].value,
                "progress_percent": by_topic[topic.id].progress_percent if topic.id in by_topic else 0,
                "completed_at": by_topic[topic.id].completed_at if topic.id in by_topic else None,
            }
            for topic in topics
        ]
