"""Shared study resources."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce
from studycircle.db.models import NotificationType, Resource, StudyGroup, Subject
from studycircle.errors import Forbidden, NotFound, ValidationFailed
from studycircle.gamification.points import PointReason, grant_points
from studycircle.groups.service import is_member
from studycircle.notifications.service import dispatch_to_group

logger = structlog.get_logger()

RESOURCE_UPDATABLE_FIELDS = ("title", "description", "subject_id", "file_url", "file_type", "file_size")


async def create_resource(
    db: AsyncSession,
    actor: Actor,
    title: str,
    description: str | None = None,
    subject_id: uuid.UUID | None = None,
    group_id: uuid.UUID | None = None,
    file_url: str | None = None,
    file_type: str | None = None,
    file_size: int | None = None,
    redis: Any | None = None,  # noqa: ANN401
) -> Resource:
    """Share a resource, optionally into a group the actor belongs to.

    Other group members get a ``resource_shared`` notification.
    """
    if not title or not title.strip():
        raise ValidationFailed("title", "title must not be empty")
    if file_size is not None and file_size < 0:
        raise ValidationFailed("file_size", "file_size must not be negative")
    enforce(actor, Entity.RESOURCE, Operation.INSERT, {"user_id": actor.user_id})

    if subject_id is not None and await db.get(Subject, subject_id) is None:
        raise ValidationFailed("subject_id", "Unknown subject")

    group = None
    if group_id is not None:
        group = await db.get(StudyGroup, group_id)
        if group is None:
            msg = "Study group not found"
            raise NotFound(msg)
        if not await is_member(db, group_id, actor.user_id):
            msg = "Only group members can share resources into a group"
            raise Forbidden(msg)

    resource = Resource(
        user_id=actor.user_id,
        subject_id=subject_id,
        group_id=group_id,
        title=title.strip(),
        description=description,
        file_url=file_url,
        file_type=file_type,
        file_size=file_size,
    )
    db.add(resource)
    await db.flush()
    logger.info("resource_shared", resource_id=str(resource.id), group_id=str(group_id) if group_id else None)

    if group is not None:
        await dispatch_to_group(
            db,
            group.id,
            NotificationType.RESOURCE_SHARED,
            title="New resource shared",
            message=f'"{resource.title}" was shared in {group.name}',
            related_id=resource.id,
            exclude_user_id=actor.user_id,
            redis=redis,
        )

    await grant_points(db, actor.user_id, PointReason.RESOURCE_SHARED, resource.id, redis=redis)
    return resource


async def get_resource(db: AsyncSession, resource_id: uuid.UUID) -> Resource:
    resource = await db.get(Resource, resource_id)
    if resource is None:
        msg = "Resource not found"
        raise NotFound(msg)
    return resource


async def list_resources(
    db: AsyncSession,
    subject_id: uuid.UUID | None = None,
    group_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Resource]:
    stmt = select(Resource).order_by(Resource.created_at.desc()).offset(offset).limit(limit)
    if subject_id is not None:
        stmt = stmt.where(Resource.subject_id == subject_id)
    if group_id is not None:
        stmt = stmt.where(Resource.group_id == group_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_resource(
    db: AsyncSession,
    actor: Actor,
    resource_id: uuid.UUID,
    changes: dict[str, Any],
) -> Resource:
    resource = await get_resource(db, resource_id)
    enforce(actor, Entity.RESOURCE, Operation.UPDATE, resource)
    if "title" in changes and (not changes["title"] or not changes["title"].strip()):
        raise ValidationFailed("title", "title must not be empty")

    for field, value in changes.items():
        if field in RESOURCE_UPDATABLE_FIELDS:
            setattr(resource, field, value)
    await db.flush()
    return resource


async def record_download(db: AsyncSession, resource_id: uuid.UUID) -> int:
    """Atomically increment download_count. Returns the new value."""
    await get_resource(db, resource_id)
    await db.execute(
        update(Resource)
        .where(Resource.id == resource_id)
        .values(download_count=Resource.download_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Resource.download_count).where(Resource.id == resource_id))
    return result.scalar_one()
