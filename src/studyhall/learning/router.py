"""Learning API endpoints: subjects, topic map, progress and activity completion."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studyhall.auth.dependencies import get_current_learner
from studyhall.auth.jwt import CurrentLearner
from studyhall.database import get_session
from studyhall.dependencies import get_redis_dep
from studyhall.learning.activity_service import LearningActivityService
from studyhall.learning.progress_service import ProgressService
from studyhall.learning.schemas import (
    ActivityResponse,
    LessonCompleteRequest,
    PracticeCompleteRequest,
    ProgressResponse,
    ProgressUpdateRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Learning"])


# ---- Subjects and topic map ----


@router.get("/subjects")
async def list_subjects(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """All subjects with the learner's completion percent."""
    svc = ProgressService(db)
    subjects = await svc.list_subjects()
    return {
        "subjects": [
            {
                "id": s.id,
                "name": s.name,
                "description": s.description,
                "completion_percent": await svc.subject_completion_percent(learner.learner_id, s.id),
            }
            for s in subjects
        ]
    }


@router.get("/subjects/{subject_id}/topics")
async def list_topic_states(
    subject_id: str,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Topics of a subject with locked/available/in_progress/completed state."""
    svc = LearningActivityService(db)
    topics = await svc.topic_states(learner.learner_id, subject_id)
    completion = await svc.progress.subject_completion_percent(learner.learner_id, subject_id)
    return {"subject_id": subject_id, "completion_percent": completion, "topics": topics}


# ---- Progress ----


@router.get("/me/progress", response_model=list[ProgressResponse])
async def list_my_progress(
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    records = await ProgressService(db).list_progress(learner.learner_id)
    return [ProgressResponse.model_validate(r) for r in records]


@router.put("/topics/{topic_id}/progress", response_model=ProgressResponse)
async def update_progress(
    topic_id: str,
    body: ProgressUpdateRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Record an assessment for a topic. The latest write wins."""
    svc = ProgressService(db, redis)
    record = await svc.record_progress(
        learner.learner_id, topic_id, body.percent, body.additional_minutes
    )
    await db.commit()
    return ProgressResponse.model_validate(record)


# ---- Activity completion ----


@router.post("/topics/{topic_id}/lesson/complete", response_model=ActivityResponse)
async def complete_lesson(
    topic_id: str,
    body: LessonCompleteRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    svc = LearningActivityService(db, redis)
    result = await svc.complete_lesson(learner.learner_id, topic_id, body.minutes_spent)
    return ActivityResponse(**result)


@router.post("/topics/{topic_id}/practice/complete", response_model=ActivityResponse)
async def complete_practice(
    topic_id: str,
    body: PracticeCompleteRequest,
    learner: CurrentLearner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Practice round result: progress by accuracy, XP per correct answer."""
    svc = LearningActivityService(db, redis)
    result = await svc.complete_practice(
        learner.learner_id, topic_id, body.correct, body.total, body.minutes_spent
    )
    return ActivityResponse(**result)
