"""Bridges Redis pub/sub to WebSocket clients.

Chat messages are published to ``pubsub:chat:<group_id>`` by whichever API
process accepted them; every process fans them out to its own subscribers.
Per-user notifications arrive on ``ws:user:<user_id>``, as do ``unsubscribe``
control events that drop a user from a group channel in every process.
"""

import asyncio
import json
import uuid

import redis.asyncio as aioredis
import structlog

from studycircle.chat.manager import group_channel, manager, parse_group_channel

logger = structlog.get_logger()

CHAT_PATTERN = "pubsub:chat:*"
USER_PATTERN = "ws:user:*"
UNSUBSCRIBE_EVENT = "unsubscribe"


def chat_topic(group_id: uuid.UUID | str) -> str:
    return f"pubsub:chat:{group_id}"


def user_topic(user_id: uuid.UUID | str) -> str:
    return f"ws:user:{user_id}"


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self.redis = redis_client
        self._running = False

    async def handle(self, redis_channel: str, payload: dict) -> int:
        """Route one decoded pub/sub message. Returns the number of recipients."""
        if redis_channel.startswith("ws:user:"):
            try:
                user_id = uuid.UUID(redis_channel.split(":")[-1])
            except ValueError:
                logger.warning("pubsub_invalid_user_id", channel=redis_channel)
                return 0
            if payload.get("event") == UNSUBSCRIBE_EVENT:
                channel = (payload.get("data") or {}).get("channel", "")
                if parse_group_channel(channel) is None:
                    logger.warning("pubsub_invalid_unsubscribe", channel=redis_channel)
                    return 0
                return await manager.drop_user_from_channel(user_id, channel)
            return await manager.send_to_user_direct(
                user_id,
                {"type": payload.get("event", "notification"), "payload": payload.get("data", payload)},
            )

        if redis_channel.startswith("pubsub:chat:"):
            group_id = redis_channel.split(":")[-1]
            return await manager.broadcast_to_channel(group_channel(group_id), {"type": "message", **payload})

        return 0

    async def start(self) -> None:
        """Start listening to Redis pub/sub channels."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(CHAT_PATTERN, USER_PATTERN)
        logger.info("pubsub_bridge_started", patterns=[CHAT_PATTERN, USER_PATTERN])

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue

                redis_channel = message.get("channel", "")
                if isinstance(redis_channel, bytes):
                    redis_channel = redis_channel.decode()

                try:
                    data = message.get("data", b"")
                    if isinstance(data, bytes):
                        data = data.decode()
                    payload = json.loads(data)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.warning("pubsub_invalid_message", channel=redis_channel)
                    continue

                sent = await self.handle(redis_channel, payload)
                if sent > 0:
                    logger.debug("pubsub_fanout", channel=redis_channel, recipients=sent)

        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.close()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
