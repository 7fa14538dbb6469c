"""WebSocket endpoint tests: auth, protocol, and membership-checked subscriptions."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from studycircle.auth.jwt import create_access_token
from studycircle.chat.manager import group_channel, manager
from studycircle.database import get_session
from studycircle.main import create_app


def _session_with_membership(member: bool) -> AsyncMock:
    """A stand-in session whose membership lookup returns ``member``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = MagicMock() if member else None
    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)
    return session


def _client(member: bool = False) -> TestClient:
    app = create_app()
    session = _session_with_membership(member)

    async def _override():
        yield session

    app.dependency_overrides[get_session] = _override
    return TestClient(app)


@pytest.fixture
def ws_token() -> str:
    return create_access_token(uuid.uuid4())


class TestWebSocketAuth:
    def test_connect_with_valid_token(self, ws_token: str) -> None:
        with _client().websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_connect_with_invalid_token(self) -> None:
        """Invalid JWT closes with code 4001."""
        with pytest.raises(Exception):
            with _client().websocket_connect("/ws?token=invalid.jwt.token") as ws:
                ws.receive_json()


class TestWebSocketProtocol:
    def test_invalid_json(self, ws_token: str) -> None:
        with _client().websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_text("not valid json {{{")
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Invalid JSON" in data["message"]

    def test_unknown_action(self, ws_token: str) -> None:
        with _client().websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "explode"})
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Unknown action" in data["message"]

    def test_invalid_group_id(self, ws_token: str) -> None:
        with _client().websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "subscribe", "group_id": "not-a-uuid"})
            assert ws.receive_json() == {"type": "error", "message": "Invalid group_id"}


class TestGroupSubscriptions:
    def test_member_can_subscribe(self, ws_token: str) -> None:
        group_id = uuid.uuid4()
        with _client(member=True).websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "subscribe", "group_id": str(group_id)})
            assert ws.receive_json() == {"type": "subscribed", "channel": group_channel(group_id)}
            assert len(manager.subscribers(group_channel(group_id))) == 1

            ws.send_json({"action": "unsubscribe", "group_id": str(group_id)})
            assert ws.receive_json() == {"type": "unsubscribed", "channel": group_channel(group_id)}
            assert manager.subscribers(group_channel(group_id)) == set()

    def test_non_member_cannot_subscribe(self, ws_token: str) -> None:
        group_id = uuid.uuid4()
        with _client(member=False).websocket_connect(f"/ws?token={ws_token}") as ws:
            ws.send_json({"action": "subscribe", "group_id": str(group_id)})
            data = ws.receive_json()
            assert data["type"] == "error"
            assert "Not a member" in data["message"]
        assert manager.subscribers(group_channel(group_id)) == set()
