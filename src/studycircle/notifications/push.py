"""Push notifications over Redis pub/sub for per-user WebSocket delivery."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from studycircle.chat.bridge import user_topic

if TYPE_CHECKING:
    from studycircle.db.models import Notification

logger = logging.getLogger(__name__)


def notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": str(notification.id),
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "related_id": str(notification.related_id) if notification.related_id else None,
        "timestamp": notification.created_at.isoformat() if notification.created_at else None,
        "read": notification.is_read,
    }


async def push_notification_to_user(redis: Any | None, notification: Notification) -> None:  # noqa: ANN401
    """Publish a formatted notification to ``ws:user:{user_id}``.

    The bridge pattern-subscribes to ``ws:user:*`` and routes the message to
    every live connection of that user. Delivery is best-effort.
    """
    if redis is None:
        return

    ws_payload = {"event": "notification", "data": notification_payload(notification)}
    try:
        await redis.publish(user_topic(notification.user_id), json.dumps(ws_payload))
    except Exception:
        logger.warning("Failed to push notification via ws:user:%s", notification.user_id, exc_info=True)
