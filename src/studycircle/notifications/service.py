"""Notification dispatcher and inbox operations.

Domain events map 1:1 onto notification types. Dispatch is best-effort: a
failure is logged and swallowed so the action that triggered it still
succeeds.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce
from studycircle.db.models import GroupMembership, Notification, NotificationType
from studycircle.errors import NotFound
from studycircle.notifications.push import push_notification_to_user

logger = logging.getLogger(__name__)


def build_notification(
    event: NotificationType | str,
    user_id: uuid.UUID,
    title: str,
    message: str,
    related_id: uuid.UUID | None = None,
) -> Notification:
    """Map a domain event to an unread notification row (not yet persisted)."""
    event_type = NotificationType(event)
    if not title or not message:
        msg = "Notification title and message are required"
        raise ValueError(msg)
    return Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        type=event_type,
        title=title,
        message=message,
        related_id=related_id,
        is_read=False,
        created_at=datetime.now(timezone.utc),
    )


async def dispatch(
    db: AsyncSession,
    event: NotificationType | str,
    user_id: uuid.UUID,
    title: str,
    message: str,
    related_id: uuid.UUID | None = None,
    redis: Any | None = None,  # noqa: ANN401
) -> Notification | None:
    """Create a notification in the caller's transaction and push it live.

    Returns None when the notification could not be built; the caller's
    action is never failed by a notification.
    """
    try:
        notification = build_notification(event, user_id, title, message, related_id)
    except ValueError:
        logger.warning("Dropping notification event=%s user=%s", event, user_id, exc_info=True)
        return None

    db.add(notification)
    await push_notification_to_user(redis, notification)
    return notification


async def dispatch_to_group(
    db: AsyncSession,
    group_id: uuid.UUID,
    event: NotificationType | str,
    title: str,
    message: str,
    related_id: uuid.UUID | None = None,
    exclude_user_id: uuid.UUID | None = None,
    redis: Any | None = None,  # noqa: ANN401
) -> int:
    """Send a notification to every member of a study group. Returns how many were created."""
    result = await db.execute(select(GroupMembership.user_id).where(GroupMembership.group_id == group_id))
    sent = 0
    for uid in result.scalars().all():
        if uid == exclude_user_id:
            continue
        if await dispatch(db, event, uid, title, message, related_id, redis=redis) is not None:
            sent += 1
    return sent


async def get_notifications(
    db: AsyncSession,
    actor: Actor,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """Get the actor's notifications (paginated, most recent first)."""
    if not actor.is_authenticated:
        return [], 0
    offset = (page - 1) * per_page

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == actor.user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == actor.user_id)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, actor: Actor, notification_id: uuid.UUID) -> Notification:
    """Mark one notification read. Only its owner may do this."""
    notification = await db.get(Notification, notification_id)
    if notification is None:
        msg = "Notification not found"
        raise NotFound(msg)
    enforce(actor, Entity.NOTIFICATION, Operation.UPDATE, notification)
    notification.is_read = True
    await db.flush()
    return notification


async def mark_all_as_read(db: AsyncSession, actor: Actor) -> int:
    """Mark all of the actor's unread notifications read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == actor.user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, actor: Actor) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == actor.user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()
