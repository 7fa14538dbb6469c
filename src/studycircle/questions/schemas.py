"""Pydantic schemas for question and answer endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from studycircle.db.models import DifficultyLevel
from studycircle.questions.service import VoteDirection


class QuestionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1, max_length=20000)
    subject_id: uuid.UUID | None = None
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    grade_level: str | None = Field(None, max_length=16)


class QuestionUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = Field(None, min_length=1, max_length=20000)
    subject_id: uuid.UUID | None = None
    difficulty: DifficultyLevel | None = None
    grade_level: str | None = Field(None, max_length=16)


class QuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    subject_id: uuid.UUID | None = None
    title: str
    content: str
    difficulty: DifficultyLevel
    grade_level: str | None = None
    view_count: int
    upvotes: int
    is_resolved: bool
    answer_count: int = 0
    created_at: datetime
    updated_at: datetime


class AnswerCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class AnswerUpdateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class AnswerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    question_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    upvotes: int
    downvotes: int
    is_accepted: bool
    created_at: datetime


class VoteRequest(BaseModel):
    direction: VoteDirection


class CounterResponse(BaseModel):
    id: uuid.UUID
    value: int


class VoteResponse(BaseModel):
    id: uuid.UUID
    upvotes: int
    downvotes: int
