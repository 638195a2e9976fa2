"""Quiz session API endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.advisor.client import AdvisorClient
from studyhall.auth.dependencies import get_current_learner
from studyhall.auth.jwt import CurrentLearner
from studyhall.database import get_session
from studyhall.dependencies import get_advisor, get_redis_dep
from studyhall.quiz.quiz_service import QuizService
from studyhall.quiz.schemas import (
    AttemptHistoryResponse,
    AttemptItem,
    ExplanationItem,
    ExplanationsResponse,
    IntegritySignalRequest,
    QuizSessionResponse,
    SelectAnswerRequest,
    StartQuizRequest,
    TopicAttemptSummary,
    session_response,
)

router = APIRouter(prefix="/api/v1/quiz", tags=["Quiz"])


def _service(db: AsyncSession, redis: object, advisor: AdvisorClient) -> QuizService:
    return QuizService(db, redis, advisor)


def _respond(result: dict, now: datetime) -> QuizSessionResponse:
    return session_response(result["session"], now, result["generation"], result["outcome"])


@router.post("/sessions", response_model=QuizSessionResponse, status_code=201)
async def start_quiz(
    body: StartQuizRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Generate questions and start the timer."""
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).start_quiz(
        learner.learner_id, body.topic_id, learner.grade_level, now=now
    )
    return _respond(result, now)


@router.get("/sessions/{session_id}", response_model=QuizSessionResponse)
async def get_quiz_session(
    session_id: str,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).get_session(learner.learner_id, session_id, now=now)
    return _respond(result, now)


@router.post("/sessions/{session_id}/select", response_model=QuizSessionResponse)
async def select_answer(
    session_id: str,
    body: SelectAnswerRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).select_answer(
        learner.learner_id, session_id, body.option_index, now=now
    )
    return _respond(result, now)


@router.post("/sessions/{session_id}/confirm", response_model=QuizSessionResponse)
async def confirm_answer(
    session_id: str,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Lock in the selected answer; the last confirm scores the quiz."""
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).confirm_answer(learner.learner_id, session_id, now=now)
    return _respond(result, now)


@router.post("/sessions/{session_id}/expire", response_model=QuizSessionResponse)
async def expire_quiz(
    session_id: str,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Client timer reached zero. Ignored if the server deadline has not passed."""
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).expire(learner.learner_id, session_id, now=now)
    return _respond(result, now)


@router.post("/sessions/{session_id}/integrity", response_model=QuizSessionResponse)
async def report_integrity_signal(
    session_id: str,
    body: IntegritySignalRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    now = datetime.now(timezone.utc)
    result = await _service(db, redis, advisor).report_integrity_signal(
        learner.learner_id, session_id, body.kind, now=now
    )
    return _respond(result, now)


@router.get("/sessions/{session_id}/explanations", response_model=ExplanationsResponse)
async def get_explanations(
    session_id: str,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Tutor explanations for missed questions of a finished session."""
    svc = _service(db, redis, advisor)
    result = await svc.get_session(learner.learner_id, session_id)
    explanations = await svc.explain_mistakes(result["session"], learner.grade_level)
    return ExplanationsResponse(explanations=[ExplanationItem(**e) for e in explanations])


@router.get("/attempts", response_model=AttemptHistoryResponse)
async def list_attempts(
    limit: int | None = Query(default=None, ge=1, le=200),
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Finished attempts, newest first, with per-topic and overall score summaries."""
    svc = _service(db, redis, advisor)
    summary = await svc.attempt_summary(learner.learner_id)
    attempts = await svc.list_attempts(learner.learner_id, limit=limit)
    return AttemptHistoryResponse(
        total_attempts=summary["total_attempts"],
        average_score=summary["average_score"],
        topics=[TopicAttemptSummary(**t) for t in summary["topics"]],
        attempts=[AttemptItem(**a) for a in attempts],
    )
