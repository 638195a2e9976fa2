"""Progress ledger: per-(learner, topic) completion tracking."""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.db.models import StudentProgress, Subject, Topic
from studyhall.db.transient import transient_store_errors
from studyhall.db.upsert import dialect_insert
from studyhall.errors import NotFoundError, ValidationError
from studyhall.events import PROGRESS_CHANGED, publish_event
from studyhall.rounding import round_ratio

logger = logging.getLogger(__name__)

COMPLETE = 100


def validate_percent(percent: int) -> int:
    """Reject anything outside 0..100. Bools are not percentages."""
    if isinstance(percent, bool) or not isinstance(percent, int | float):
        raise ValidationError(f"percent must be a number, got {percent!r}")
    if not 0 <= percent <= COMPLETE:
        raise ValidationError(f"percent must be within 0..100, got {percent}")
    return math.floor(percent + 0.5)


class ProgressService:
    """Progress ledger: records, reads and aggregates learner progress.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, redis: object | None = None) -> None:
        self.db = db
        self.redis = redis

    async def record_progress(
        self,
        learner_id: str,
        topic_id: str,
        percent: int,
        additional_minutes: int = 0,
        now: datetime | None = None,
    ) -> StudentProgress:
        """Overwrite the topic's progress (latest assessment wins) and add time spent.

        ``completed_at`` is stamped on the first transition to 100 and kept on
        later 100s. A write below 100 clears it.
        """
        percent = validate_percent(percent)
        if isinstance(additional_minutes, bool) or additional_minutes < 0:
            raise ValidationError(f"additional_minutes must be >= 0, got {additional_minutes}")
        if now is None:
            now = datetime.now(timezone.utc)

        with transient_store_errors("record_progress"):
            if await self.db.get(Topic, topic_id) is None:
                raise NotFoundError(f"Topic {topic_id} not found")

            record = await self._lock_record(learner_id, topic_id, now)

            was_complete = record.completed_at is not None
            record.progress_percent = percent
            record.time_spent_minutes = (record.time_spent_minutes or 0) + int(additional_minutes)
            record.last_accessed_at = now
            if percent == COMPLETE:
                if not was_complete:
                    record.completed_at = now
            else:
                record.completed_at = None

            await self.db.flush()

        await publish_event(self.redis, PROGRESS_CHANGED, {
            "learner_id": learner_id,
            "topic_id": topic_id,
            "progress_percent": percent,
            "completed": record.completed_at is not None,
        })
        return record

    async def _lock_record(self, learner_id: str, topic_id: str, now: datetime) -> StudentProgress:
        """Load the (learner, topic) row for update, creating it on first interaction."""
        stmt = (
            select(StudentProgress)
            .where(
                StudentProgress.learner_id == learner_id,
                StudentProgress.topic_id == topic_id,
            )
            .with_for_update()
        )
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is not None:
            return record

        insert = dialect_insert(self.db, StudentProgress).values(
            id=str(uuid.uuid4()),
            learner_id=learner_id,
            topic_id=topic_id,
            progress_percent=0,
            time_spent_minutes=0,
            last_accessed_at=now,
        )
        await self.db.execute(
            insert.on_conflict_do_nothing(index_elements=["learner_id", "topic_id"])
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def get_progress(self, learner_id: str, topic_id: str) -> StudentProgress | None:
        """Progress for one topic, or None if the learner never touched it."""
        with transient_store_errors("get_progress"):
            result = await self.db.execute(
                select(StudentProgress).where(
                    StudentProgress.learner_id == learner_id,
                    StudentProgress.topic_id == topic_id,
                )
            )
            return result.scalar_one_or_none()

    async def list_progress(
        self,
        learner_id: str,
        topic_ids: Sequence[str] | None = None,
    ) -> list[StudentProgress]:
        """All progress records of a learner, optionally restricted to some topics."""
        stmt = select(StudentProgress).where(StudentProgress.learner_id == learner_id)
        if topic_ids is not None:
            if not topic_ids:
                return []
            stmt = stmt.where(StudentProgress.topic_id.in_(list(topic_ids)))
        with transient_store_errors("list_progress"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def list_topics(self, subject_id: str) -> list[Topic]:
        """Topics of a subject in order. Raises NotFoundError for an unknown subject."""
        with transient_store_errors("list_topics"):
            if await self.db.get(Subject, subject_id) is None:
                raise NotFoundError(f"Subject {subject_id} not found")
            result = await self.db.execute(
                select(Topic).where(Topic.subject_id == subject_id).order_by(Topic.order_index)
            )
            return list(result.scalars().all())

    async def subject_completion_percent(self, learner_id: str, subject_id: str) -> int:
        """Mean progress across every topic of the subject; untouched topics count as 0."""
        topics = await self.list_topics(subject_id)
        if not topics:
            return 0
        records = await self.list_progress(learner_id, [t.id for t in topics])
        total = sum(r.progress_percent or 0 for r in records)
        return round_ratio(total, len(topics))

    async def subject_completions(self, learner_id: str) -> list[tuple[str, int]]:
        """(subject name, completion percent) for every subject, by name."""
        with transient_store_errors("subject_completions"):
            subjects = (
                await self.db.execute(select(Subject).order_by(Subject.name))
            ).scalars().all()
        return [
            (subject.name, await self.subject_completion_percent(learner_id, subject.id))
            for subject in subjects
        ]

    async def list_subjects(self) -> list[Subject]:
        with transient_store_errors("list_subjects"):
            result = await self.db.execute(select(Subject).order_by(Subject.name))
            return list(result.scalars().all())
