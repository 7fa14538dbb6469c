"""Study groups: creation, visibility, membership, invitations."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce, evaluate, filter_readable
from studycircle.db.models import (
    GroupInvitation,
    GroupMembership,
    GroupRole,
    NotificationType,
    PrivacyLevel,
    Profile,
    StudyGroup,
    Subject,
    User,
)
from studycircle.errors import Conflict, Forbidden, NotFound, ValidationFailed
from studycircle.notifications.service import dispatch

logger = logging.getLogger(__name__)

MIN_MEMBERS = 2
GROUP_UPDATABLE_FIELDS = ("name", "description", "subject_id", "max_members", "privacy")
INVITING_ROLES = (GroupRole.ADMIN, GroupRole.MODERATOR)


def _validate_capacity(max_members: int) -> None:
    if max_members < MIN_MEMBERS:
        raise ValidationFailed("max_members", f"max_members must be at least {MIN_MEMBERS}")


async def _load_group(db: AsyncSession, group_id: uuid.UUID) -> StudyGroup:
    group = await db.get(StudyGroup, group_id)
    if group is None:
        msg = "Study group not found"
        raise NotFound(msg)
    return group


async def get_membership(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID | None) -> GroupMembership | None:
    if user_id is None:
        return None
    result = await db.execute(
        select(GroupMembership).where(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def is_member(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID | None) -> bool:
    return await get_membership(db, group_id, user_id) is not None


async def member_group_ids(db: AsyncSession, user_id: uuid.UUID | None) -> set[uuid.UUID]:
    """Ids of every group the user belongs to."""
    if user_id is None:
        return set()
    result = await db.execute(select(GroupMembership.group_id).where(GroupMembership.user_id == user_id))
    return set(result.scalars().all())


async def member_count(db: AsyncSession, group_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(GroupMembership).where(GroupMembership.group_id == group_id)
    )
    return result.scalar_one()


async def create_group(
    db: AsyncSession,
    actor: Actor,
    name: str,
    description: str | None = None,
    subject_id: uuid.UUID | None = None,
    max_members: int = 50,
    privacy: PrivacyLevel = PrivacyLevel.PUBLIC,
) -> StudyGroup:
    """Create a group and enroll the creator as its admin."""
    if not name or not name.strip():
        raise ValidationFailed("name", "name must not be empty")
    _validate_capacity(max_members)
    enforce(actor, Entity.STUDY_GROUP, Operation.INSERT, {"creator_id": actor.user_id})
    if subject_id is not None and await db.get(Subject, subject_id) is None:
        raise ValidationFailed("subject_id", "Unknown subject")

    group = StudyGroup(
        name=name.strip(),
        description=description,
        creator_id=actor.user_id,
        subject_id=subject_id,
        max_members=max_members,
        privacy=privacy,
    )
    db.add(group)
    await db.flush()

    db.add(GroupMembership(group_id=group.id, user_id=actor.user_id, role=GroupRole.ADMIN))
    await db.flush()
    logger.info("User %s created study group %s", actor.user_id, group.id)
    return group


async def list_groups(
    db: AsyncSession,
    actor: Actor,
    subject_id: uuid.UUID | None = None,
    limit: int = 50,
) -> list[StudyGroup]:
    """Groups the actor may see, newest first."""
    visible = StudyGroup.privacy == PrivacyLevel.PUBLIC
    if actor.is_authenticated:
        visible = or_(visible, StudyGroup.creator_id == actor.user_id)
    stmt = select(StudyGroup).where(visible).order_by(StudyGroup.created_at.desc()).limit(limit)
    if subject_id is not None:
        stmt = stmt.where(StudyGroup.subject_id == subject_id)
    result = await db.execute(stmt)
    return filter_readable(actor, Entity.STUDY_GROUP, result.scalars().all())


async def get_group(db: AsyncSession, actor: Actor, group_id: uuid.UUID) -> StudyGroup:
    """A group the actor may see. Hidden groups look missing."""
    group = await _load_group(db, group_id)
    if not evaluate(actor, Entity.STUDY_GROUP, Operation.READ, group).allowed:
        msg = "Study group not found"
        raise NotFound(msg)
    return group


async def update_group(db: AsyncSession, actor: Actor, group_id: uuid.UUID, changes: dict[str, Any]) -> StudyGroup:
    """Edit a group. Creator only."""
    group = await _load_group(db, group_id)
    enforce(actor, Entity.STUDY_GROUP, Operation.UPDATE, group)

    if "name" in changes and (not changes["name"] or not changes["name"].strip()):
        raise ValidationFailed("name", "name must not be empty")
    if "max_members" in changes:
        _validate_capacity(changes["max_members"])
        if changes["max_members"] < await member_count(db, group_id):
            raise ValidationFailed("max_members", "max_members is below the current member count")

    for field, value in changes.items():
        if field in GROUP_UPDATABLE_FIELDS:
            setattr(group, field, value)
    await db.flush()
    return group


async def join_group(db: AsyncSession, actor: Actor, group_id: uuid.UUID) -> GroupMembership:
    """Join a group.

    The group row is locked for the capacity check so two concurrent joins
    cannot both take the last seat. Private and invite-only groups need a
    pending invitation, which the join consumes.
    """
    enforce(actor, Entity.GROUP_MEMBERSHIP, Operation.INSERT, {"user_id": actor.user_id})

    result = await db.execute(select(StudyGroup).where(StudyGroup.id == group_id).with_for_update())
    group = result.scalar_one_or_none()
    if group is None:
        msg = "Study group not found"
        raise NotFound(msg)

    if await is_member(db, group_id, actor.user_id):
        msg = "Already a member of this group"
        raise Conflict(msg)

    invitation = None
    if group.privacy != PrivacyLevel.PUBLIC:
        inv_result = await db.execute(
            select(GroupInvitation).where(
                GroupInvitation.group_id == group_id,
                GroupInvitation.user_id == actor.user_id,
            )
        )
        invitation = inv_result.scalar_one_or_none()
        if invitation is None:
            msg = "An invitation is required to join this group"
            raise Forbidden(msg)

    if await member_count(db, group_id) >= group.max_members:
        msg = f"This group is full ({group.max_members} members maximum)"
        raise Conflict(msg)

    if invitation is not None:
        await db.delete(invitation)

    membership = GroupMembership(group_id=group_id, user_id=actor.user_id, role=GroupRole.MEMBER)
    db.add(membership)
    await db.flush()
    logger.info("User %s joined study group %s", actor.user_id, group_id)
    return membership


async def leave_group(db: AsyncSession, actor: Actor, group_id: uuid.UUID) -> None:
    group = await _load_group(db, group_id)
    if actor.owns(group.creator_id):
        msg = "The creator cannot leave their own group"
        raise Conflict(msg)

    result = await db.execute(
        delete(GroupMembership).where(
            GroupMembership.group_id == group_id,
            GroupMembership.user_id == actor.user_id,
        )
    )
    if result.rowcount == 0:
        msg = "Not a member of this group"
        raise NotFound(msg)
    logger.info("User %s left study group %s", actor.user_id, group_id)


async def list_members(db: AsyncSession, actor: Actor, group_id: uuid.UUID) -> list[tuple[GroupMembership, str]]:
    """Members with display names. Empty for callers outside the group."""
    await _load_group(db, group_id)
    allowed = evaluate(
        actor,
        Entity.GROUP_MEMBERSHIP,
        Operation.READ,
        {"group_id": group_id},
        is_group_member=await is_member(db, group_id, actor.user_id),
    )
    if not allowed.allowed:
        return []

    result = await db.execute(
        select(GroupMembership, Profile.full_name)
        .outerjoin(Profile, Profile.user_id == GroupMembership.user_id)
        .where(GroupMembership.group_id == group_id)
        .order_by(GroupMembership.joined_at)
    )
    return [(row[0], row[1] or "Student") for row in result.all()]


async def invite_user(
    db: AsyncSession,
    actor: Actor,
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    redis: Any | None = None,  # noqa: ANN401
) -> GroupInvitation:
    """Invite a user into a group. Admins and moderators only."""
    group = await _load_group(db, group_id)
    inviter = await get_membership(db, group_id, actor.user_id)
    if inviter is None or inviter.role not in INVITING_ROLES:
        msg = "Only group admins and moderators can invite"
        raise Forbidden(msg)

    if await db.get(User, user_id) is None:
        msg = "User not found"
        raise NotFound(msg)
    if await is_member(db, group_id, user_id):
        msg = "User is already a member of this group"
        raise Conflict(msg)

    existing = await db.execute(
        select(GroupInvitation).where(GroupInvitation.group_id == group_id, GroupInvitation.user_id == user_id)
    )
    if existing.scalar_one_or_none() is not None:
        msg = "User has already been invited"
        raise Conflict(msg)

    invitation = GroupInvitation(group_id=group_id, user_id=user_id, invited_by=actor.user_id)
    db.add(invitation)
    await db.flush()

    await dispatch(
        db,
        NotificationType.GROUP_INVITATION,
        user_id,
        title="Study group invitation",
        message=f'You have been invited to join "{group.name}"',
        related_id=group.id,
        redis=redis,
    )
    return invitation
