"""Catalog endpoints: subjects and badge definitions (public)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.catalog.schemas import BadgeResponse, SubjectResponse
from studycircle.database import get_session
from studycircle.db.models import Badge, Subject

router = APIRouter(prefix="/api/v1", tags=["Catalog"])


@router.get("/subjects", response_model=list[SubjectResponse])
async def list_subjects(db: AsyncSession = Depends(get_session)):
    """Active subjects, alphabetical."""
    result = await db.execute(select(Subject).where(Subject.is_active.is_(True)).order_by(Subject.name))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


@router.get("/badges", response_model=list[BadgeResponse])
async def list_badges(db: AsyncSession = Depends(get_session)):
    result = await db.execute(select(Badge).order_by(Badge.requirement_value, Badge.name))
    return [BadgeResponse.model_validate(b) for b in result.scalars().all()]
