"""Tutor chat and practice hint endpoints."""

from __future__ import annotations

from typing import Literal

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.advisor.client import AdvisorClient
from studyhall.advisor.prompts import hint_prompt
from studyhall.auth.dependencies import get_current_learner
from studyhall.auth.jwt import CurrentLearner
from studyhall.database import get_session
from studyhall.db.models import Subject, Topic
from studyhall.dependencies import get_advisor
from studyhall.errors import AdvisoryCollaboratorError, NotFoundError

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/tutor", tags=["Tutor"])

TUTOR_UNAVAILABLE_MESSAGE = (
    "I'm having trouble connecting right now. Please try again in a moment."
)
HINT_UNAVAILABLE_MESSAGE = "Think about the key idea of this topic and try eliminating options that clearly don't fit."


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class TutorAskRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    topic_context: str | None = None


class TutorAskResponse(BaseModel):
    message: str
    is_fallback: bool = False


@router.post("/ask", response_model=TutorAskResponse)
async def ask_tutor(
    body: TutorAskRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Forward the conversation to the tutor, adapted to the learner's grade level."""
    try:
        reply = await advisor.ask_tutor(
            [m.model_dump() for m in body.messages],
            grade_level=learner.grade_level,
            topic_context=body.topic_context,
        )
    except AdvisoryCollaboratorError as exc:
        logger.warning("tutor_unavailable", learner_id=learner.learner_id, error=str(exc))
        return TutorAskResponse(message=TUTOR_UNAVAILABLE_MESSAGE, is_fallback=True)
    return TutorAskResponse(message=reply)


class HintRequest(BaseModel):
    topic_id: str
    question_text: str = Field(min_length=1)


@router.post("/hint", response_model=TutorAskResponse)
async def ask_hint(
    body: HintRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    advisor: AdvisorClient = Depends(get_advisor),
):
    """Practice-mode hint that does not give the answer away."""
    topic = await db.get(Topic, body.topic_id)
    if topic is None:
        raise NotFoundError(f"Topic {body.topic_id} not found")
    subject = await db.get(Subject, topic.subject_id)

    prompt = hint_prompt(body.question_text, topic.title, subject.name if subject else "")
    try:
        reply = await advisor.ask_tutor(
            [{"role": "user", "content": prompt}],
            grade_level=learner.grade_level,
            topic_context=topic.title,
        )
    except AdvisoryCollaboratorError as exc:
        logger.warning("hint_unavailable", learner_id=learner.learner_id, error=str(exc))
        return TutorAskResponse(message=HINT_UNAVAILABLE_MESSAGE, is_fallback=True)
    return TutorAskResponse(message=reply)
