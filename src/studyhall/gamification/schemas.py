"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


# --- Badge ---


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slug: str
    name: str
    description: str
    icon: str | None = None
    xp_required: int
    category: str


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime


class LearnerBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    total_available: int
    total_earned: int


# --- XP / levels ---


class XPHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    limit: int
    offset: int


class LevelEntry(BaseModel):
    level: int
    xp_required: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


# --- Summary ---


class GamificationSummaryResponse(BaseModel):
    total_xp: int
    level: int
    xp_into_level: int
    xp_to_next_level: int
    xp_for_level: int
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    badges_earned: int
    badges_total: int
