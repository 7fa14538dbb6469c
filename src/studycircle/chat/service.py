"""Group chat: member-only append and recent history, plus live publish."""

from __future__ import annotations

import json
import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce, evaluate
from studycircle.chat.bridge import UNSUBSCRIBE_EVENT, chat_topic, user_topic
from studycircle.chat.manager import group_channel, manager
from studycircle.config import get_settings
from studycircle.db.models import Message, MessageType, StudyGroup
from studycircle.errors import NotFound, ValidationFailed
from studycircle.groups.service import is_member

logger = structlog.get_logger()


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "group_id": str(message.group_id),
        "user_id": str(message.user_id),
        "content": message.content,
        "message_type": message.message_type.value,
        "file_url": message.file_url,
        "file_name": message.file_name,
        "created_at": message.created_at.isoformat(),
    }


async def publish_message(redis: Any | None, message: Message) -> int:  # noqa: ANN401
    """Deliver a stored message to live subscribers of its group.

    With Redis the message goes through pub/sub so every API process sees
    it; without Redis it is broadcast to this process's connections only.
    Returns the local recipient count (0 when routed through Redis).
    """
    payload = message_payload(message)
    if redis is not None:
        try:
            await redis.publish(chat_topic(message.group_id), json.dumps(payload))
        except Exception:
            logger.warning("chat_publish_failed", group_id=str(message.group_id), exc_info=True)
        return 0
    return await manager.broadcast_to_channel(group_channel(message.group_id), {"type": "message", **payload})


async def revoke_live_subscription(redis: Any | None, user_id: uuid.UUID, group_id: uuid.UUID) -> int:  # noqa: ANN401
    """Stop live delivery of a group's messages to a user who left it.

    With Redis every API process drops the user's connections through the
    bridge; without Redis only this process's connections exist.
    Returns the local connection count dropped (0 when routed through Redis).
    """
    channel = group_channel(group_id)
    if redis is not None:
        event = {"event": UNSUBSCRIBE_EVENT, "data": {"channel": channel}}
        try:
            await redis.publish(user_topic(user_id), json.dumps(event))
            return 0
        except Exception:
            logger.warning("chat_revoke_publish_failed", user_id=str(user_id), group_id=str(group_id), exc_info=True)
    return await manager.drop_user_from_channel(user_id, channel)


async def _load_group(db: AsyncSession, group_id: uuid.UUID) -> StudyGroup:
    group = await db.get(StudyGroup, group_id)
    if group is None:
        msg = "Study group not found"
        raise NotFound(msg)
    return group


async def send_message(
    db: AsyncSession,
    actor: Actor,
    group_id: uuid.UUID,
    content: str,
    message_type: MessageType = MessageType.TEXT,
    file_url: str | None = None,
    file_name: str | None = None,
) -> Message:
    """Append a message to a group's chat. Members only.

    Publishing is left to the caller once the message is committed.
    """
    await _load_group(db, group_id)
    if message_type == MessageType.FILE:
        if not file_url:
            raise ValidationFailed("file_url", "file messages need a file_url")
    elif not content or not content.strip():
        raise ValidationFailed("content", "content must not be empty")

    enforce(
        actor,
        Entity.MESSAGE,
        Operation.INSERT,
        {"user_id": actor.user_id, "group_id": group_id},
        is_group_member=await is_member(db, group_id, actor.user_id),
    )

    message = Message(
        group_id=group_id,
        user_id=actor.user_id,
        content=(content or "").strip() or (file_name or ""),
        message_type=message_type,
        file_url=file_url,
        file_name=file_name,
    )
    db.add(message)
    await db.flush()
    logger.info("chat_message_sent", group_id=str(group_id), message_id=str(message.id))
    return message


async def recent_messages(
    db: AsyncSession,
    actor: Actor,
    group_id: uuid.UUID,
    limit: int | None = None,
) -> list[Message]:
    """The newest ``limit`` messages of a group, oldest first.

    Non-members get an empty list.
    """
    await _load_group(db, group_id)
    decision = evaluate(
        actor,
        Entity.MESSAGE,
        Operation.READ,
        {"group_id": group_id},
        is_group_member=await is_member(db, group_id, actor.user_id),
    )
    if not decision.allowed:
        return []

    limit = limit or get_settings().chat_history_limit
    result = await db.execute(
        select(Message)
        .where(Message.group_id == group_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))
