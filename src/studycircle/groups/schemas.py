"""Pydantic schemas for study group endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from studycircle.db.models import GroupRole, PrivacyLevel


class GroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=2000)
    subject_id: uuid.UUID | None = None
    max_members: int = 50
    privacy: PrivacyLevel = PrivacyLevel.PUBLIC


class GroupUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=2000)
    subject_id: uuid.UUID | None = None
    max_members: int | None = None
    privacy: PrivacyLevel | None = None


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None = None
    creator_id: uuid.UUID
    subject_id: uuid.UUID | None = None
    max_members: int
    privacy: PrivacyLevel
    member_count: int = 0
    created_at: datetime


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    full_name: str
    role: GroupRole
    joined_at: datetime


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: uuid.UUID
    user_id: uuid.UUID
    role: GroupRole
    joined_at: datetime


class InviteRequest(BaseModel):
    user_id: uuid.UUID


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    group_id: uuid.UUID
    user_id: uuid.UUID
    invited_by: uuid.UUID
    created_at: datetime
