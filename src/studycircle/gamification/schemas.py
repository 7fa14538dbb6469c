"""Pydantic schemas for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from studycircle.catalog.schemas import BadgeResponse


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime


class BadgeProgressResponse(BaseModel):
    badge: BadgeResponse
    current: int
    progress: float
    earned: bool


class UserStatsResponse(BaseModel):
    points: int
    questions_asked: int
    answers_given: int
    answers_accepted: int
    resources_shared: int
