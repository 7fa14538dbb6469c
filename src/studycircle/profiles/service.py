"""Profile lookups and owner-only updates."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce
from studycircle.db.models import Profile
from studycircle.errors import NotFound

logger = structlog.get_logger()

# points is owned by the points ledger and never client-writable.
UPDATABLE_FIELDS = ("full_name", "avatar_url", "school_name", "grade_level", "bio")


async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        msg = "Profile not found"
        raise NotFound(msg)
    return profile


async def update_profile(db: AsyncSession, actor: Actor, user_id: uuid.UUID, changes: dict[str, Any]) -> Profile:
    """Apply ``changes`` to a profile. Only its owner may do this."""
    profile = await get_profile(db, user_id)
    enforce(actor, Entity.PROFILE, Operation.UPDATE, profile)

    for field, value in changes.items():
        if field in UPDATABLE_FIELDS:
            setattr(profile, field, value)
    await db.flush()
    logger.info("profile_updated", user_id=str(user_id), fields=sorted(changes))
    return profile
