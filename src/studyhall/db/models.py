"""ORM models for the learning, gamification and quiz tables.

Subjects, topics and the badge catalog are authored outside this service and
are read-only here. Everything keyed by ``learner_id`` stores the opaque user
id issued by the auth provider.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyhall.db.base import Base, JSONType


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Content (read-only)
# ---------------------------------------------------------------------------


class Subject(Base):
    """A subject groups an ordered set of topics."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    topics: Mapped[list[Topic]] = relationship(
        "Topic", back_populates="subject", order_by="Topic.order_index", lazy="selectin"
    )


class Topic(Base):
    """An ordered, unlockable unit of content: UNIQUE(subject_id, order_index)."""

    __tablename__ = "topics"
    __table_args__ = (
        UniqueConstraint("subject_id", "order_index", name="uq_topic_subject_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    subject: Mapped[Subject] = relationship("Subject", back_populates="topics")


# ---------------------------------------------------------------------------
# Progress ledger
# ---------------------------------------------------------------------------


class StudentProgress(Base):
    """Per-(learner, topic) progress: UNIQUE(learner_id, topic_id)."""

    __tablename__ = "student_progress"
    __table_args__ = (
        UniqueConstraint("learner_id", "topic_id", name="uq_progress_learner_topic"),
        CheckConstraint("progress_percent BETWEEN 0 AND 100", name="ck_progress_percent_range"),
        CheckConstraint("time_spent_minutes >= 0", name="ck_progress_time_spent"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    topic_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False
    )
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_accessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class StudentGamification(Base):
    """Denormalized gamification summary: single row per learner."""

    __tablename__ = "student_gamification"
    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_gamification_total_xp"),
        CheckConstraint("current_streak <= longest_streak", name="ck_gamification_streak"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class XPLedger(Base):
    """Append-only XP transaction log with optional idempotency key."""

    __tablename__ = "xp_ledger"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_xp_ledger_amount"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Badge(Base):
    """Static badge catalog, unlocked by crossing an XP threshold."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(32), nullable=False, default="award")
    xp_required: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)


class StudentBadge(Base):
    """Badges earned by learners: UNIQUE(learner_id, badge_id) prevents duplicates."""

    __tablename__ = "student_badges"
    __table_args__ = (
        UniqueConstraint("learner_id", "badge_id", name="uq_student_badge"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


class Quiz(Base):
    """One quiz per topic; questions are generated per session."""

    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    topic_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)


class QuizAttempt(Base):
    """Immutable record of a finished quiz session: UNIQUE(session_id) guards resubmission."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (CheckConstraint("score BETWEEN 0 AND 100", name="ck_quiz_attempt_score"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("quizzes.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    answers: Mapped[list[Any]] = mapped_column(JSONType, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
