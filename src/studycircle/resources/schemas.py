"""Pydantic schemas for resource endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ResourceCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str | None = Field(None, max_length=5000)
    subject_id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    file_url: str | None = Field(None, max_length=2048)
    file_type: str | None = Field(None, max_length=128)
    file_size: int | None = Field(None, ge=0)


class ResourceUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, max_length=5000)
    subject_id: uuid.UUID | None = None
    file_url: str | None = Field(None, max_length=2048)
    file_type: str | None = Field(None, max_length=128)
    file_size: int | None = Field(None, ge=0)


class ResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    subject_id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    title: str
    description: str | None = None
    file_url: str | None = None
    file_type: str | None = None
    file_size: int | None = None
    download_count: int
    rating: float
    created_at: datetime


class DownloadResponse(BaseModel):
    id: uuid.UUID
    download_count: int
