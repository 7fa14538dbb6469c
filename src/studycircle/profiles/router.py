"""Profile router: /api/v1/profiles/*."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.database import get_session
from studycircle.profiles.schemas import ProfileResponse, ProfileUpdateRequest
from studycircle.profiles.service import get_profile, update_profile

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Update the caller's own profile."""
    profile = await update_profile(db, actor, actor.user_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.get("/{user_id}", response_model=ProfileResponse)
async def read_profile(user_id: uuid.UUID, db: AsyncSession = Depends(get_session)) -> ProfileResponse:
    """Public profile of any user."""
    return ProfileResponse.model_validate(await get_profile(db, user_id))
