"""Notification dispatch and the notification inbox endpoints."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from studycircle.db.models import Notification, NotificationType
from studycircle.groups.service import create_group, join_group
from studycircle.notifications.service import dispatch, dispatch_to_group
from tests.conftest import actor_for, auth_headers, make_user


async def _seed(db, user, count=3) -> list[Notification]:
    created = []
    for i in range(count):
        created.append(
            await dispatch(
                db,
                NotificationType.QUESTION_ANSWERED,
                user.id,
                title=f"Answer {i}",
                message="Someone answered your question",
                related_id=uuid.uuid4(),
            )
        )
    await db.commit()
    return created


class TestDispatch:
    @pytest.mark.asyncio
    async def test_creates_unread_row_and_pushes(self, db_session):
        user = await make_user(db_session, "Rosalind")
        redis = AsyncMock()

        notification = await dispatch(
            db_session, "answer_accepted", user.id, title="Accepted", message="Nice work", redis=redis
        )
        await db_session.commit()

        stored = await db_session.scalar(select(Notification).where(Notification.id == notification.id))
        assert stored.type == NotificationType.ANSWER_ACCEPTED
        assert stored.is_read is False

        channel, raw = redis.publish.await_args.args
        assert channel == f"ws:user:{user.id}"
        assert json.loads(raw)["event"] == "notification"

    @pytest.mark.asyncio
    async def test_unknown_event_is_dropped(self, db_session):
        user = await make_user(db_session, "Rosalind")

        assert await dispatch(db_session, "birthday", user.id, title="Hi", message="Cake") is None
        await db_session.commit()

        assert (await db_session.execute(select(Notification))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_push_failure_keeps_the_row(self, db_session):
        user = await make_user(db_session, "Rosalind")
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("down")

        notification = await dispatch(
            db_session, NotificationType.POINTS_EARNED, user.id, title="Badge", message="Earned", redis=redis
        )
        await db_session.commit()

        assert await db_session.get(Notification, notification.id) is not None

    @pytest.mark.asyncio
    async def test_group_fan_out_skips_excluded_user(self, db_session):
        owner = await make_user(db_session, "Owner")
        members = [await make_user(db_session, name) for name in ("A", "B")]
        group = await create_group(db_session, actor_for(owner), "Fan Out")
        for member in members:
            await join_group(db_session, actor_for(member), group.id)

        sent = await dispatch_to_group(
            db_session,
            group.id,
            NotificationType.RESOURCE_SHARED,
            title="New resource",
            message="Check it out",
            exclude_user_id=owner.id,
        )
        await db_session.commit()

        assert sent == 2
        recipients = set((await db_session.execute(select(Notification.user_id))).scalars().all())
        assert recipients == {m.id for m in members}


class TestInboxApi:
    @pytest.mark.asyncio
    async def test_list_and_unread_count(self, client, db_session):
        user = await make_user(db_session, "Dorothy")
        await _seed(db_session, user, count=3)
        headers = auth_headers(user)

        listing = await client.get("/api/v1/notifications", params={"per_page": 2}, headers=headers)
        assert listing.status_code == 200
        body = listing.json()
        assert body["total"] == 3
        assert len(body["notifications"]) == 2

        count = await client.get("/api/v1/notifications/unread-count", headers=headers)
        assert count.json() == {"unread_count": 3}

    @pytest.mark.asyncio
    async def test_mark_one_and_all(self, client, db_session):
        user = await make_user(db_session, "Dorothy")
        first, *_ = await _seed(db_session, user, count=3)
        headers = auth_headers(user)

        read = await client.post(f"/api/v1/notifications/{first.id}/read", headers=headers)
        assert read.status_code == 200
        assert read.json()["is_read"] is True
        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json()["unread_count"] == 2

        all_read = await client.post("/api/v1/notifications/read-all", headers=headers)
        assert all_read.json() == {"detail": "Marked 2 notifications as read"}
        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_cannot_touch_someone_elses(self, client, db_session):
        owner = await make_user(db_session, "Owner")
        intruder = await make_user(db_session, "Intruder")
        (notification,) = await _seed(db_session, owner, count=1)

        response = await client.post(f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(intruder))
        assert response.status_code == 403

        listing = await client.get("/api/v1/notifications", headers=auth_headers(intruder))
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_missing_notification(self, client, db_session):
        user = await make_user(db_session, "Dorothy")
        response = await client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=auth_headers(user))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        response = await client.get("/api/v1/notifications")
        assert response.status_code in (401, 403)
