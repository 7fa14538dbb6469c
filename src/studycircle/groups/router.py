"""Study group endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor, get_optional_actor
from studycircle.chat.service import revoke_live_subscription
from studycircle.database import get_session
from studycircle.db.models import StudyGroup
from studycircle.groups.schemas import (
    GroupCreateRequest,
    GroupResponse,
    GroupUpdateRequest,
    InvitationResponse,
    InviteRequest,
    MemberResponse,
    MembershipResponse,
)
from studycircle.groups.service import (
    create_group,
    get_group,
    invite_user,
    join_group,
    leave_group,
    list_groups,
    list_members,
    member_count,
    update_group,
)
from studycircle.redis_client import get_redis_dep

router = APIRouter(prefix="/api/v1/groups", tags=["Study Groups"])


async def _group_response(db: AsyncSession, group: StudyGroup) -> GroupResponse:
    response = GroupResponse.model_validate(group)
    response.member_count = await member_count(db, group.id)
    return response


@router.get("", response_model=list[GroupResponse])
async def groups_index(
    subject_id: uuid.UUID | None = Query(None),
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_session),
):
    """Groups visible to the caller."""
    groups = await list_groups(db, actor, subject_id)
    return [await _group_response(db, g) for g in groups]


@router.post("", response_model=GroupResponse, status_code=201)
async def new_group(
    body: GroupCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    group = await create_group(
        db,
        actor,
        name=body.name,
        description=body.description,
        subject_id=body.subject_id,
        max_members=body.max_members,
        privacy=body.privacy,
    )
    await db.commit()
    return await _group_response(db, group)


@router.get("/{group_id}", response_model=GroupResponse)
async def group_detail(
    group_id: uuid.UUID,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_session),
):
    return await _group_response(db, await get_group(db, actor, group_id))


@router.patch("/{group_id}", response_model=GroupResponse)
async def edit_group(
    group_id: uuid.UUID,
    body: GroupUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    group = await update_group(db, actor, group_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return await _group_response(db, group)


@router.post("/{group_id}/join", response_model=MembershipResponse, status_code=201)
async def join(
    group_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    membership = await join_group(db, actor, group_id)
    await db.commit()
    return MembershipResponse.model_validate(membership)


@router.post("/{group_id}/leave", status_code=200)
async def leave(
    group_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    await leave_group(db, actor, group_id)
    await db.commit()
    await revoke_live_subscription(redis, actor.user_id, group_id)
    return {"detail": "Left the group"}


@router.get("/{group_id}/members", response_model=list[MemberResponse])
async def members(
    group_id: uuid.UUID,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_session),
):
    """Members of a group. Visible to members only."""
    rows = await list_members(db, actor, group_id)
    return [
        MemberResponse(user_id=m.user_id, full_name=name, role=m.role, joined_at=m.joined_at)
        for m, name in rows
    ]


@router.post("/{group_id}/invitations", response_model=InvitationResponse, status_code=201)
async def invite(
    group_id: uuid.UUID,
    body: InviteRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    invitation = await invite_user(db, actor, group_id, body.user_id, redis=redis)
    await db.commit()
    return InvitationResponse.model_validate(invitation)
