"""Pydantic schemas for chat endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from studycircle.db.models import MessageType


class MessageCreateRequest(BaseModel):
    content: str = Field("", max_length=5000)
    message_type: MessageType = MessageType.TEXT
    file_url: str | None = Field(None, max_length=2048)
    file_name: str | None = Field(None, max_length=255)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    group_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    message_type: MessageType
    file_url: str | None = None
    file_name: str | None = None
    created_at: datetime
