"""Quiz service: drives the session state machine and persists the outcome.

Sessions live in Redis between requests. When a session enters ``results``
it is finalized exactly once:
1. QuizAttempt insert (UNIQUE(session_id) absorbs a duplicate submission)
2. topic progress set to 100, whatever the score
3. streak touch, XP = round(score / 5), badge evaluation
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.advisor.client import AdvisorClient
from studyhall.advisor.prompts import explanation_prompt
from studyhall.config import Settings, get_settings
from studyhall.db.models import Quiz, QuizAttempt, Topic
from studyhall.db.transient import transient_store_errors
from studyhall.db.upsert import dialect_insert
from studyhall.errors import AdvisoryCollaboratorError, NotFoundError
from studyhall.events import QUIZ_COMPLETED, publish_event
from studyhall.learning.activity_service import LearningActivityService
from studyhall.quiz.generation import QuizGenerationResult, fallback_result, validate_generated
from studyhall.quiz.session import (
    ConfirmAndAdvance,
    IntegritySignal,
    QuizEvent,
    QuizPhase,
    QuizSession,
    SelectAnswer,
    Start,
    TimerExpired,
    apply,
    new_session,
    xp_for_score,
)
from studyhall.quiz.store import QuizSessionStore
from studyhall.rounding import round_ratio

logger = logging.getLogger(__name__)

QUIZ_COMPLETE_PERCENT = 100


def _now() -> datetime:
    return datetime.now(timezone.utc)


class QuizService:
    """Timed quiz lifecycle for one learner."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object,
        advisor: AdvisorClient | None = None,
        settings: Settings | None = None,
        store: QuizSessionStore | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.advisor = advisor
        self.settings = settings or get_settings()
        self.store = store or QuizSessionStore(redis, self.settings.quiz_session_ttl_seconds)

    # --- Question generation ---

    async def generate_questions(self, topic: Topic, grade_level: str | None) -> QuizGenerationResult:
        """Ask the advisor for questions; any failure yields the fallback set."""
        if self.advisor is None:
            return fallback_result(topic.title, "advisor not configured")
        try:
            raw = await self.advisor.generate_quiz(
                topic_content=topic.content or topic.description or topic.title,
                topic_title=topic.title,
                grade_level=grade_level,
                question_count=self.settings.quiz_question_count,
                difficulty=self.settings.quiz_difficulty,
            )
        except AdvisoryCollaboratorError as exc:
            logger.warning("Quiz generation failed for topic %s: %s", topic.id, exc)
            return fallback_result(topic.title, str(exc))
        return validate_generated(raw, topic.title, self.settings.quiz_question_count)

    # --- Lifecycle ---

    async def start_quiz(
        self,
        learner_id: str,
        topic_id: str,
        grade_level: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Generate questions and move a fresh session from intro to active."""
        with transient_store_errors("start_quiz"):
            topic = await self.db.get(Topic, topic_id)
        if topic is None:
            raise NotFoundError(f"Topic {topic_id} not found")

        generation = await self.generate_questions(topic, grade_level)
        session = new_session(
            session_id=str(uuid.uuid4()),
            learner_id=learner_id,
            topic_id=topic_id,
            questions=generation.questions,
            time_budget_seconds=self.settings.quiz_time_budget_seconds,
            warning_ttl_seconds=self.settings.quiz_warning_ttl_seconds,
        )
        session = apply(session, Start(), now or _now())
        await self.store.save(session)
        logger.info(
            "Quiz %s started for %s on topic %s (%d questions, fallback=%s)",
            session.session_id, learner_id, topic_id, session.total_questions, generation.is_fallback,
        )
        return {"session": session, "generation": generation, "outcome": None}

    async def get_session(self, learner_id: str, session_id: str, now: datetime | None = None) -> dict:
        """Current session; an active session past its deadline is expired on read."""
        now = now or _now()
        session = await self._load(learner_id, session_id)
        if session.is_expired(now):
            return await self._transition(session, TimerExpired(), now)
        return {"session": session, "generation": None, "outcome": None}

    async def select_answer(
        self, learner_id: str, session_id: str, option_index: int, now: datetime | None = None
    ) -> dict:
        session = await self._load(learner_id, session_id)
        return await self._transition(session, SelectAnswer(option_index), now or _now())

    async def confirm_answer(self, learner_id: str, session_id: str, now: datetime | None = None) -> dict:
        session = await self._load(learner_id, session_id)
        return await self._transition(session, ConfirmAndAdvance(), now or _now())

    async def expire(self, learner_id: str, session_id: str, now: datetime | None = None) -> dict:
        session = await self._load(learner_id, session_id)
        return await self._transition(session, TimerExpired(), now or _now())

    async def report_integrity_signal(
        self, learner_id: str, session_id: str, kind: str, now: datetime | None = None
    ) -> dict:
        session = await self._load(learner_id, session_id)
        result = await self._transition(session, IntegritySignal(kind), now or _now())
        logger.info("Integrity signal %s in quiz %s for %s", kind, session_id, learner_id)
        return result

    async def _load(self, learner_id: str, session_id: str) -> QuizSession:
        session = await self.store.load(learner_id, session_id)
        if session is None:
            raise NotFoundError(f"Quiz session {session_id} not found")
        return session

    async def _transition(self, session: QuizSession, event: QuizEvent, now: datetime) -> dict:
        was_finished = session.phase is QuizPhase.RESULTS
        session = apply(session, event, now)

        # The stored session reaches results only after finalize succeeded.
        outcome = None
        if not was_finished and session.phase is QuizPhase.RESULTS:
            outcome = await self.finalize(session, today=now.date())

        if (outcome is not None and outcome["duplicate"]) or not await self.store.save(session):
            # Another request finished this session first; its state stands.
            logger.info("Quiz session %s: stale %s ignored", session.session_id, type(event).__name__)
            session = await self._load(session.learner_id, session.session_id)
        return {"session": session, "generation": None, "outcome": outcome}

    # --- Completion ---

    async def _get_or_create_quiz(self, topic_id: str) -> Quiz:
        stmt = select(Quiz).where(Quiz.topic_id == topic_id)
        quiz = (await self.db.execute(stmt)).scalar_one_or_none()
        if quiz is not None:
            return quiz
        topic = await self.db.get(Topic, topic_id)
        title = f"{topic.title} Quiz" if topic else "Quiz"
        await self.db.execute(
            dialect_insert(self.db, Quiz)
            .values(id=str(uuid.uuid4()), topic_id=topic_id, title=title)
            .on_conflict_do_nothing(index_elements=["topic_id"])
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def finalize(self, session: QuizSession, today: date | None = None) -> dict:
        """Persist the attempt and apply progress/XP. A second call for the same session does nothing."""
        xp = xp_for_score(session.score or 0)
        with transient_store_errors("finalize_quiz"):
            quiz = await self._get_or_create_quiz(session.topic_id)
            attempt_id = str(uuid.uuid4())
            inserted = (
                await self.db.execute(
                    dialect_insert(self.db, QuizAttempt)
                    .values(
                        id=attempt_id,
                        learner_id=session.learner_id,
                        quiz_id=quiz.id,
                        session_id=session.session_id,
                        answers=list(session.answers),
                        score=session.score or 0,
                        completed_at=session.finished_at or _now(),
                    )
                    .on_conflict_do_nothing(index_elements=["session_id"])
                    .returning(QuizAttempt.id)
                )
            ).scalar_one_or_none()

        if inserted is None:
            logger.info("Quiz session %s already finalized", session.session_id)
            await self.db.rollback()
            return {
                "attempt_id": None,
                "duplicate": True,
                "score": session.score,
                "xp_awarded": 0,
                "new_badges": [],
            }

        activity = LearningActivityService(self.db, self.redis, self.settings)
        applied = await activity.apply_activity(
            session.learner_id,
            session.topic_id,
            QUIZ_COMPLETE_PERCENT,
            xp=xp,
            source="quiz",
            description=f"Quiz score {session.score}%",
            idempotency_key=f"quiz:{session.session_id}",
            today=today,
        )

        await publish_event(self.redis, QUIZ_COMPLETED, {
            "learner_id": session.learner_id,
            "topic_id": session.topic_id,
            "score": session.score,
            "timed_out": session.timed_out,
        })
        return {
            "attempt_id": inserted,
            "duplicate": False,
            "score": session.score,
            "xp_awarded": applied["xp_awarded"],
            "total_xp": applied["total_xp"],
            "new_badges": applied["new_badges"],
            "level_up": applied["level_up"],
        }

    async def explain_mistakes(self, session: QuizSession, grade_level: str | None = None) -> list[dict]:
        """Tutor explanations for each missed question; failed requests are skipped."""
        if self.advisor is None or session.phase is not QuizPhase.RESULTS:
            return []

        missed = [
            (i, q)
            for i, q in enumerate(session.questions)
            if session.answers[i] != q.correct_option_index
        ]
        if not missed:
            return []

        with transient_store_errors("explain_mistakes"):
            topic = await self.db.get(Topic, session.topic_id)
        topic_title = topic.title if topic else None
        replies = await asyncio.gather(
            *(
                self.advisor.ask_tutor(
                    [{"role": "user", "content": explanation_prompt(q.question_text, q.options[q.correct_option_index])}],
                    grade_level=grade_level,
                    topic_context=topic_title,
                )
                for _, q in missed
            ),
            return_exceptions=True,
        )

        explanations = []
        for (index, _), reply in zip(missed, replies):
            if isinstance(reply, AdvisoryCollaboratorError):
                logger.warning("No explanation for question %d of %s: %s", index, session.session_id, reply)
                continue
            if isinstance(reply, BaseException):
                raise reply
            explanations.append({"question_index": index, "explanation": reply})
        return explanations

    # --- History ---

    async def list_attempts(self, learner_id: str, limit: int | None = None) -> list[dict]:
        """Finished attempts of a learner, newest first."""
        stmt = (
            select(QuizAttempt, Quiz.topic_id, Topic.title)
            .join(Quiz, QuizAttempt.quiz_id == Quiz.id)
            .join(Topic, Quiz.topic_id == Topic.id)
            .where(QuizAttempt.learner_id == learner_id)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with transient_store_errors("list_attempts"):
            rows = (await self.db.execute(stmt)).all()
        return [
            {
                "attempt_id": attempt.id,
                "session_id": attempt.session_id,
                "topic_id": topic_id,
                "topic_title": title,
                "score": attempt.score,
                "completed_at": attempt.completed_at,
            }
            for attempt, topic_id, title in rows
        ]

    async def attempt_summary(self, learner_id: str) -> dict:
        """Attempt count, best score and latest attempt per topic, plus the rounded average score."""
        attempts = await self.list_attempts(learner_id)

        by_topic: dict[str, dict] = {}
        for attempt in attempts:
            entry = by_topic.get(attempt["topic_id"])
            if entry is None:
                by_topic[attempt["topic_id"]] = {
                    "topic_id": attempt["topic_id"],
                    "topic_title": attempt["topic_title"],
                    "attempts": 1,
                    "best_score": attempt["score"],
                    "last_completed_at": attempt["completed_at"],
                }
                continue
            entry["attempts"] += 1
            entry["best_score"] = max(entry["best_score"], attempt["score"])

        total = len(attempts)
        return {
            "total_attempts": total,
            "average_score": round_ratio(sum(a["score"] for a in attempts), total) if total else 0,
            "topics": list(by_topic.values()),
        }
