"""Notification API endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.database import get_session
from studycircle.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from studycircle.notifications.service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's notifications (paginated)."""
    notifications, total = await get_notifications(db, actor, page, per_page)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_notification_count(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    count = await get_unread_count(db, actor)
    return UnreadCountResponse(unread_count=count)


@router.post("/notifications/read-all", status_code=200)
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Mark all notifications as read."""
    count = await mark_all_as_read(db, actor)
    await db.commit()
    return {"detail": f"Marked {count} notifications as read"}


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Mark a notification as read."""
    notification = await mark_as_read(db, actor, notification_id)
    await db.commit()
    return NotificationResponse.model_validate(notification)
