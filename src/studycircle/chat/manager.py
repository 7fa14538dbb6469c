"""WebSocket connection manager.

Tracks all active WebSocket connections and their group channel
subscriptions. Handles fan-out of messages to subscribed clients.
"""

import json
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()

CHANNEL_PREFIX = "group:"


def group_channel(group_id: uuid.UUID | str) -> str:
    return f"{CHANNEL_PREFIX}{group_id}"


def parse_group_channel(channel: str) -> uuid.UUID | None:
    """Group id of a ``group:<uuid>`` channel, or None for anything else."""
    if not channel.startswith(CHANNEL_PREFIX):
        return None
    try:
        return uuid.UUID(channel[len(CHANNEL_PREFIX):])
    except ValueError:
        return None


@dataclass
class ClientConnection:
    """Represents a single WebSocket client."""

    websocket: WebSocket
    user_id: uuid.UUID
    subscriptions: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Manages all active WebSocket connections.

    Safe for asyncio via the single-threaded event loop. A connection whose
    send fails is dropped; nothing is queued for it.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._channels: dict[str, set[str]] = defaultdict(set)  # channel -> {conn_ids}
        self._user_connections: dict[uuid.UUID, set[str]] = defaultdict(set)  # user_id -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_connection_count(self, user_id: uuid.UUID) -> int:
        return len(self._user_connections.get(user_id, ()))

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: uuid.UUID) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        self._connections[conn_id] = ClientConnection(websocket=websocket, user_id=user_id)
        self._user_connections[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=str(user_id))

    async def disconnect(self, conn_id: str) -> None:
        """Remove a WebSocket connection and its subscriptions."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        for channel in client.subscriptions:
            self._channels[channel].discard(conn_id)
            if not self._channels[channel]:
                del self._channels[channel]

        self._user_connections[client.user_id].discard(conn_id)
        if not self._user_connections[client.user_id]:
            del self._user_connections[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=str(client.user_id))

    async def subscribe(self, conn_id: str, channel: str) -> bool:
        """Subscribe a connection to a group channel. Returns False if invalid.

        Membership is checked by the caller before subscribing.
        """
        client = self._connections.get(conn_id)
        if client is None or parse_group_channel(channel) is None:
            return False

        client.subscriptions.add(channel)
        self._channels[channel].add(conn_id)
        logger.debug("ws_subscribed", conn_id=conn_id, channel=channel)
        return True

    async def unsubscribe(self, conn_id: str, channel: str) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False

        client.subscriptions.discard(channel)
        if channel in self._channels:
            self._channels[channel].discard(conn_id)
            if not self._channels[channel]:
                del self._channels[channel]
        return True

    def subscribers(self, channel: str) -> set[str]:
        return set(self._channels.get(channel, ()))

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send a message to all clients subscribed to a channel.

        Returns the number of clients that received the message.
        """
        conn_ids = list(self._channels.get(channel, set()))
        if not conn_ids:
            return 0

        payload = json.dumps({"channel": channel, "data": message}, default=str)
        sent = 0
        failed: list[str] = []

        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                failed.append(conn_id)
                continue
            try:
                await client.websocket.send_text(payload)
                client.messages_sent += 1
                sent += 1
            except Exception:
                failed.append(conn_id)

        for conn_id in failed:
            await self.disconnect(conn_id)

        return sent

    async def send_to_user_direct(self, user_id: uuid.UUID, message: dict) -> int:
        """Send a message to every connection of a user, regardless of subscriptions."""
        conn_ids = list(self._user_connections.get(user_id, set()))
        payload = json.dumps(message, default=str)
        sent = 0

        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                continue
            try:
                await client.websocket.send_text(payload)
                client.messages_sent += 1
                sent += 1
            except Exception:
                await self.disconnect(conn_id)

        return sent

    async def drop_user_from_channel(self, user_id: uuid.UUID, channel: str) -> int:
        """Unsubscribe every local connection of a user from a channel. Returns how many were dropped."""
        dropped = 0
        for conn_id in list(self._user_connections.get(user_id, ())):
            if channel in self._connections[conn_id].subscriptions:
                await self.unsubscribe(conn_id, channel)
                dropped += 1
        return dropped

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._user_connections),
            "channels": {ch: len(conns) for ch, conns in self._channels.items() if conns},
        }


# Global singleton
manager = ConnectionManager()
