"""Pydantic schemas for the dashboard."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from studycircle.db.models import DifficultyLevel


class DashboardStats(BaseModel):
    total_questions: int
    total_answers: int
    total_groups: int
    points: int


class RecentQuestion(BaseModel):
    id: uuid.UUID
    title: str
    difficulty: DifficultyLevel
    view_count: int
    is_resolved: bool
    author_name: str
    created_at: datetime


class RecentGroup(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None = None
    max_members: int
    created_at: datetime


class DashboardResponse(BaseModel):
    stats: DashboardStats
    recent_questions: list[RecentQuestion]
    recent_groups: list[RecentGroup]
