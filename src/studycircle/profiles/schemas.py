"""Pydantic schemas for profile endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    full_name: str
    avatar_url: str | None = None
    school_name: str | None = None
    grade_level: str | None = None
    bio: str | None = None
    points: int
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=100)
    avatar_url: str | None = Field(None, max_length=2048)
    school_name: str | None = Field(None, max_length=200)
    grade_level: str | None = Field(None, max_length=16)
    bio: str | None = Field(None, max_length=1000)
