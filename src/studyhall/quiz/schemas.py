"""Request and response models for quiz endpoints.

Correct answers and explanations are only exposed once the session has
reached ``results``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from studyhall.quiz.generation import QuizGenerationResult
from studyhall.quiz.session import QuizPhase, QuizSession


class StartQuizRequest(BaseModel):
    topic_id: str


class SelectAnswerRequest(BaseModel):
    option_index: int = Field(ge=0)


class IntegritySignalRequest(BaseModel):
    kind: str


class QuestionView(BaseModel):
    question_text: str
    options: list[str]


class ReviewItem(BaseModel):
    question_text: str
    options: list[str]
    selected_index: int | None
    correct_option_index: int
    is_correct: bool
    explanation: str


class WarningView(BaseModel):
    kind: str
    message: str
    expires_at: datetime


class QuizOutcome(BaseModel):
    attempt_id: str | None = None
    duplicate: bool = False
    score: int | None = None
    xp_awarded: int = 0
    total_xp: int | None = None
    level_up: bool = False
    new_badges: list[str] = []


class QuizSessionResponse(BaseModel):
    session_id: str
    topic_id: str
    phase: QuizPhase
    total_questions: int
    current_index: int
    current_question: QuestionView | None = None
    current_selection: int | None = None
    remaining_seconds: int
    deadline: datetime | None = None
    warnings: list[WarningView] = []
    is_fallback: bool | None = None
    score: int | None = None
    correct_count: int | None = None
    timed_out: bool = False
    review: list[ReviewItem] | None = None
    outcome: QuizOutcome | None = None


class ExplanationItem(BaseModel):
    question_index: int
    explanation: str


class ExplanationsResponse(BaseModel):
    explanations: list[ExplanationItem]


class AttemptItem(BaseModel):
    attempt_id: str
    session_id: str
    topic_id: str
    topic_title: str
    score: int
    completed_at: datetime


class TopicAttemptSummary(BaseModel):
    topic_id: str
    topic_title: str
    attempts: int
    best_score: int
    last_completed_at: datetime


class AttemptHistoryResponse(BaseModel):
    total_attempts: int
    average_score: int
    topics: list[TopicAttemptSummary]
    attempts: list[AttemptItem]


def session_response(
    session: QuizSession,
    now: datetime,
    generation: QuizGenerationResult | None = None,
    outcome: dict | None = None,
) -> QuizSessionResponse:
    question = session.current_question
    review = None
    if session.phase is QuizPhase.RESULTS:
        review = [
            ReviewItem(
                question_text=q.question_text,
                options=list(q.options),
                selected_index=session.answers[i],
                correct_option_index=q.correct_option_index,
                is_correct=session.answers[i] == q.correct_option_index,
                explanation=q.explanation,
            )
            for i, q in enumerate(session.questions)
        ]

    return QuizSessionResponse(
        session_id=session.session_id,
        topic_id=session.topic_id,
        phase=session.phase,
        total_questions=session.total_questions,
        current_index=session.current_index,
        current_question=(
            QuestionView(question_text=question.question_text, options=list(question.options))
            if question
            else None
        ),
        current_selection=session.current_selection,
        remaining_seconds=session.remaining_seconds(now),
        deadline=session.deadline,
        warnings=[
            WarningView(kind=w.kind, message=w.message, expires_at=w.expires_at)
            for w in session.active_warnings(now)
        ],
        is_fallback=generation.is_fallback if generation else None,
        score=session.score,
        correct_count=session.correct_count,
        timed_out=session.timed_out,
        review=review,
        outcome=QuizOutcome(**outcome) if outcome else None,
    )
