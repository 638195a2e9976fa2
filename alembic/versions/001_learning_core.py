"""Learning core tables.

Creates subjects, topics, student_progress, student_gamification, xp_ledger,
badges, student_badges, quizzes and quiz_attempts.

Revision ID: 001_learning_core
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_learning_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Content (read-only to the service) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS subjects (
            id VARCHAR(36) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS topics (
            id VARCHAR(36) PRIMARY KEY,
            subject_id VARCHAR(36) NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
            title VARCHAR(256) NOT NULL,
            description TEXT,
            content TEXT,
            order_index INTEGER NOT NULL,
            estimated_duration_minutes INTEGER,
            CONSTRAINT uq_topic_subject_order UNIQUE(subject_id, order_index)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_topics_subject
        ON topics(subject_id)
    """)

    # --- Progress ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS student_progress (
            id VARCHAR(36) PRIMARY KEY,
            learner_id VARCHAR(64) NOT NULL,
            topic_id VARCHAR(36) NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            progress_percent INTEGER NOT NULL DEFAULT 0
                CHECK (progress_percent BETWEEN 0 AND 100),
            time_spent_minutes INTEGER NOT NULL DEFAULT 0
                CHECK (time_spent_minutes >= 0),
            last_accessed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_progress_learner_topic UNIQUE(learner_id, topic_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_student_progress_learner
        ON student_progress(learner_id)
    """)

    # --- Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS student_gamification (
            learner_id VARCHAR(64) PRIMARY KEY,
            total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (current_streak <= longest_streak)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id SERIAL PRIMARY KEY,
            learner_id VARCHAR(64) NOT NULL,
            amount INTEGER NOT NULL CHECK (amount > 0),
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_ledger_learner
        ON xp_ledger(learner_id, created_at DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(32) NOT NULL DEFAULT 'award',
            xp_required INTEGER NOT NULL,
            category VARCHAR(32) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS student_badges (
            id SERIAL PRIMARY KEY,
            learner_id VARCHAR(64) NOT NULL,
            badge_id INTEGER NOT NULL REFERENCES badges(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_student_badge UNIQUE(learner_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_student_badges_learner
        ON student_badges(learner_id)
    """)

    # --- Quizzes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quizzes (
            id VARCHAR(36) PRIMARY KEY,
            topic_id VARCHAR(36) UNIQUE NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            title VARCHAR(256) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id VARCHAR(36) PRIMARY KEY,
            learner_id VARCHAR(64) NOT NULL,
            quiz_id VARCHAR(36) NOT NULL REFERENCES quizzes(id),
            session_id VARCHAR(36) UNIQUE NOT NULL,
            answers JSONB NOT NULL,
            score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
            completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_learner
        ON quiz_attempts(learner_id, completed_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS quiz_attempts CASCADE")
    op.execute("DROP TABLE IF EXISTS quizzes CASCADE")
    op.execute("DROP TABLE IF EXISTS student_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS student_gamification CASCADE")
    op.execute("DROP TABLE IF EXISTS student_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS topics CASCADE")
    op.execute("DROP TABLE IF EXISTS subjects CASCADE")
