"""Request and response models for learning endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProgressUpdateRequest(BaseModel):
    percent: float
    additional_minutes: int = Field(0, ge=0)


class LessonCompleteRequest(BaseModel):
    minutes_spent: int = Field(0, ge=0)


class PracticeCompleteRequest(BaseModel):
    correct: int = Field(ge=0)
    total: int = Field(gt=0)
    minutes_spent: int = Field(0, ge=0)


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    topic_id: str
    progress_percent: int
    time_spent_minutes: int
    last_accessed_at: datetime
    completed_at: datetime | None = None


class ActivityResponse(BaseModel):
    topic_id: str
    progress_percent: int
    completed: bool
    time_spent_minutes: int
    current_streak: int
    longest_streak: int
    xp_awarded: int
    total_xp: int
    level_up: bool
    new_badges: list[str]
    accuracy: int | None = None
