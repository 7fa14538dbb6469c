"""Gamification API endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, filter_readable
from studycircle.auth.dependencies import get_current_actor, get_optional_actor
from studycircle.catalog.schemas import BadgeResponse
from studycircle.database import get_session
from studycircle.db.models import UserBadge
from studycircle.gamification.engine import badge_progress, compute_metrics
from studycircle.gamification.schemas import (
    BadgeProgressResponse,
    EarnedBadgeResponse,
    UserStatsResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.get("/users/{user_id}/badges", response_model=list[EarnedBadgeResponse])
async def user_badges(
    user_id: uuid.UUID,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_session),
):
    """Badges a user has earned, most recent first."""
    result = await db.execute(
        select(UserBadge).where(UserBadge.user_id == user_id).order_by(UserBadge.earned_at.desc())
    )
    rows = filter_readable(actor, Entity.USER_BADGE, result.scalars().unique().all())
    return [
        EarnedBadgeResponse(badge=BadgeResponse.model_validate(ub.badge), earned_at=ub.earned_at)
        for ub in rows
    ]


@router.get("/me/badges/progress", response_model=list[BadgeProgressResponse])
async def my_badge_progress(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    items = await badge_progress(db, actor.user_id)
    return [
        BadgeProgressResponse(
            badge=BadgeResponse.model_validate(item["badge"]),
            current=item["current"],
            progress=item["progress"],
            earned=item["earned"],
        )
        for item in items
    ]


@router.get("/me/stats", response_model=UserStatsResponse)
async def my_stats(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Counts of the caller's activity plus points."""
    metrics = await compute_metrics(db, actor.user_id)
    return UserStatsResponse(**metrics.to_dict())
