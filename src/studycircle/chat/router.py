"""Group chat REST endpoints and the WebSocket stream."""

from __future__ import annotations

import json
import uuid

import jwt
import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor, get_optional_actor
from studycircle.auth.jwt import user_id_from_token
from studycircle.chat.manager import group_channel, manager
from studycircle.chat.schemas import MessageCreateRequest, MessageResponse
from studycircle.chat.service import publish_message, recent_messages, send_message
from studycircle.config import get_settings
from studycircle.database import get_session
from studycircle.groups.service import is_member
from studycircle.redis_client import get_redis_dep

logger = structlog.get_logger()

router = APIRouter(tags=["Chat"])


@router.get("/api/v1/groups/{group_id}/messages", response_model=list[MessageResponse])
async def group_messages(
    group_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_session),
):
    """Recent chat history, oldest first. Empty for non-members."""
    messages = await recent_messages(db, actor, group_id, limit)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/api/v1/groups/{group_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    group_id: uuid.UUID,
    body: MessageCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    message = await send_message(
        db,
        actor,
        group_id,
        body.content,
        message_type=body.message_type,
        file_url=body.file_url,
        file_name=body.file_name,
    )
    await db.commit()
    await publish_message(redis, message)
    return MessageResponse.model_validate(message)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Single WebSocket endpoint with JWT authentication and group subscriptions.

    Protocol:
        Client -> Server:
            {"action": "subscribe", "group_id": "<uuid>"}
            {"action": "unsubscribe", "group_id": "<uuid>"}
            {"action": "ping"}

        Server -> Client:
            {"channel": "group:<uuid>", "data": {"type": "message", ...}}
            {"type": "notification", "payload": {...}}
            {"type": "pong"}
            {"type": "error", "message": "..."}
            {"type": "subscribed", "channel": "group:<uuid>"}
            {"type": "unsubscribed", "channel": "group:<uuid>"}
    """
    try:
        user_id = user_id_from_token(token)
    except jwt.InvalidTokenError as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    if manager.user_connection_count(user_id) >= get_settings().ws_max_connections_per_user:
        await websocket.close(code=4008, reason="Too many connections")
        return

    conn_id = str(uuid.uuid4())
    await manager.connect(websocket, conn_id, user_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action")

            if action in ("subscribe", "unsubscribe"):
                try:
                    group_id = uuid.UUID(str(msg.get("group_id", "")))
                except ValueError:
                    await websocket.send_json({"type": "error", "message": "Invalid group_id"})
                    continue
                channel = group_channel(group_id)

                if action == "unsubscribe":
                    await manager.unsubscribe(conn_id, channel)
                    await websocket.send_json({"type": "unsubscribed", "channel": channel})
                    continue

                member = await is_member(db, group_id, user_id)
                # Release the transaction between client messages.
                await db.rollback()
                if not member:
                    await websocket.send_json({"type": "error", "message": "Not a member of this group"})
                    continue
                await manager.subscribe(conn_id, channel)
                await websocket.send_json({"type": "subscribed", "channel": channel})

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)
