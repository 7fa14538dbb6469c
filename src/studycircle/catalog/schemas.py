"""Pydantic schemas for the subject and badge catalog."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict

from studycircle.db.models import BadgeRequirementType


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str
    description: str | None = None
    grade_levels: list[str]


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str
    icon: str
    color: str
    requirement_type: BadgeRequirementType
    requirement_value: int
