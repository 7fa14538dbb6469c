"""Pydantic schemas for the suggestion proxy."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SuggestionRequest(BaseModel):
    type: str
    content: str = Field(..., min_length=1, max_length=10000)
    subject: str | None = Field(None, max_length=100)


class SuggestionResponse(BaseModel):
    success: bool = True
    suggestion: Any
