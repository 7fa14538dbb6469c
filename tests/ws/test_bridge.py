"""Tests for the Redis pub/sub to WebSocket bridge."""

from __future__ import annotations

import asyncio
import json
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from studycircle.chat.bridge import CHAT_PATTERN, UNSUBSCRIBE_EVENT, USER_PATTERN, PubSubBridge, chat_topic, user_topic
from studycircle.chat.manager import ConnectionManager, group_channel


def _mock_redis(messages: list[dict | None]) -> MagicMock:
    mock_pubsub = AsyncMock()
    queue = list(messages)

    async def fake_get_message(**kwargs):
        await asyncio.sleep(0)
        if queue:
            return queue.pop(0)
        return None

    mock_pubsub.get_message = fake_get_message
    mock_redis = AsyncMock()
    mock_redis.pubsub = MagicMock(return_value=mock_pubsub)
    return mock_redis


async def _run_briefly(bridge: PubSubBridge) -> None:
    async def stop_after_delay():
        await asyncio.sleep(0.05)
        await bridge.stop()

    await asyncio.gather(bridge.start(), stop_after_delay())


class TestRouting:
    def test_chat_topic(self):
        group_id = uuid.uuid4()
        assert chat_topic(group_id) == f"pubsub:chat:{group_id}"

    @pytest.mark.asyncio
    async def test_chat_message_goes_to_group_channel(self) -> None:
        group_id = uuid.uuid4()
        bridge = PubSubBridge(AsyncMock())
        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=2)
            sent = await bridge.handle(chat_topic(group_id), {"content": "hi"})

        assert sent == 2
        channel, data = mock_manager.broadcast_to_channel.await_args.args
        assert channel == group_channel(group_id)
        assert data == {"type": "message", "content": "hi"}

    @pytest.mark.asyncio
    async def test_user_message_goes_to_user(self) -> None:
        user_id = uuid.uuid4()
        bridge = PubSubBridge(AsyncMock())
        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.send_to_user_direct = AsyncMock(return_value=1)
            await bridge.handle(f"ws:user:{user_id}", {"event": "notification", "data": {"title": "t"}})

        mock_manager.send_to_user_direct.assert_awaited_once_with(
            user_id, {"type": "notification", "payload": {"title": "t"}}
        )

    @pytest.mark.asyncio
    async def test_unsubscribe_event_drops_user_from_group(self) -> None:
        user_id, group_id = uuid.uuid4(), uuid.uuid4()
        bridge = PubSubBridge(AsyncMock())
        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.drop_user_from_channel = AsyncMock(return_value=1)
            mock_manager.send_to_user_direct = AsyncMock()
            dropped = await bridge.handle(
                user_topic(user_id), {"event": UNSUBSCRIBE_EVENT, "data": {"channel": group_channel(group_id)}}
            )

        assert dropped == 1
        mock_manager.drop_user_from_channel.assert_awaited_once_with(user_id, group_channel(group_id))
        mock_manager.send_to_user_direct.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsubscribe_with_bad_channel_skipped(self) -> None:
        bridge = PubSubBridge(AsyncMock())
        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.drop_user_from_channel = AsyncMock()
            result = await bridge.handle(
                user_topic(uuid.uuid4()), {"event": UNSUBSCRIBE_EVENT, "data": {"channel": "lobby"}}
            )

        assert result == 0
        mock_manager.drop_user_from_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_user_id_skipped(self) -> None:
        bridge = PubSubBridge(AsyncMock())
        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.send_to_user_direct = AsyncMock()
            assert await bridge.handle("ws:user:42", {}) == 0
        mock_manager.send_to_user_direct.assert_not_awaited()


class TestBridgeLifecycle:
    @pytest.mark.asyncio
    async def test_bridge_forwards_chat_message(self) -> None:
        group_id = uuid.uuid4()
        redis = _mock_redis(
            [
                {"type": "pmessage", "channel": chat_topic(group_id), "data": json.dumps({"content": "hello"})},
                None,
            ]
        )
        bridge = PubSubBridge(redis)

        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            await _run_briefly(bridge)

        redis.pubsub.return_value.psubscribe.assert_awaited_once_with(CHAT_PATTERN, USER_PATTERN)
        mock_manager.broadcast_to_channel.assert_awaited_once()
        assert mock_manager.broadcast_to_channel.await_args.args[0] == group_channel(group_id)
        redis.pubsub.return_value.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_message_skipped(self) -> None:
        redis = _mock_redis([{"type": "pmessage", "channel": chat_topic(uuid.uuid4()), "data": "not json {{{"}])
        bridge = PubSubBridge(redis)

        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=0)
            await _run_briefly(bridge)

        mock_manager.broadcast_to_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bytes_payload_decoded(self) -> None:
        group_id = uuid.uuid4()
        redis = _mock_redis(
            [{"type": "pmessage", "channel": chat_topic(group_id).encode(), "data": b'{"content": "x"}'}]
        )
        bridge = PubSubBridge(redis)

        with patch("studycircle.chat.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            await _run_briefly(bridge)

        mock_manager.broadcast_to_channel.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_former_member_stops_receiving_after_remote_leave(self) -> None:
        """A leave handled by another process still cuts this process's live feed."""
        user_id, other_id, group_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        mgr = ConnectionManager()
        leaver_ws, member_ws = AsyncMock(), AsyncMock()
        await mgr.connect(leaver_ws, "conn-1", user_id)
        await mgr.connect(member_ws, "conn-2", other_id)
        await mgr.subscribe("conn-1", group_channel(group_id))
        await mgr.subscribe("conn-2", group_channel(group_id))

        unsubscribe = {"event": UNSUBSCRIBE_EVENT, "data": {"channel": group_channel(group_id)}}
        redis = _mock_redis(
            [
                {"type": "pmessage", "channel": user_topic(user_id), "data": json.dumps(unsubscribe)},
                {"type": "pmessage", "channel": chat_topic(group_id), "data": json.dumps({"content": "after"})},
            ]
        )

        with patch("studycircle.chat.bridge.manager", mgr):
            await _run_briefly(PubSubBridge(redis))

        assert mgr.subscribers(group_channel(group_id)) == {"conn-2"}
        leaver_ws.send_text.assert_not_awaited()
        member_ws.send_text.assert_awaited_once()
