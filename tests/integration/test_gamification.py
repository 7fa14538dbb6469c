"""Points ledger and badge awarding against a real database."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select, update

from studycircle.db.models import Badge, Notification, NotificationType, PointsLedger, Profile, UserBadge
from studycircle.gamification.engine import award_badge, badge_progress, compute_metrics, recompute_and_award
from studycircle.gamification.points import PointReason, grant_points
from studycircle.questions.service import create_question
from tests.conftest import actor_for, api_user, make_user


async def _badges_of(db, user_id) -> list[str]:
    result = await db.execute(
        select(Badge.name).join(UserBadge, UserBadge.badge_id == Badge.id).where(UserBadge.user_id == user_id)
    )
    return sorted(result.scalars().all())


async def _points_of(db, user_id) -> int:
    return await db.scalar(select(Profile.points).where(Profile.user_id == user_id))


class TestGrantPoints:
    @pytest.mark.asyncio
    async def test_grant_once_per_source(self, db_session):
        user = await make_user(db_session, "Ada")
        source = uuid.uuid4()

        assert await grant_points(db_session, user.id, PointReason.QUESTION_ASKED, source) is True
        assert await grant_points(db_session, user.id, PointReason.QUESTION_ASKED, source) is False
        await db_session.commit()

        assert await _points_of(db_session, user.id) == 5
        ledger = await db_session.scalar(
            select(func.count()).select_from(PointsLedger).where(PointsLedger.user_id == user.id)
        )
        assert ledger == 1

    @pytest.mark.asyncio
    async def test_same_source_different_reason(self, db_session):
        user = await make_user(db_session, "Ada")
        source = uuid.uuid4()

        await grant_points(db_session, user.id, PointReason.ANSWER_GIVEN, source)
        await grant_points(db_session, user.id, PointReason.ANSWER_ACCEPTED, source)
        await db_session.commit()

        assert await _points_of(db_session, user.id) == 35


class TestBadges:
    @pytest.mark.asyncio
    async def test_first_question_badge(self, db_session):
        user = await make_user(db_session, "Grace")
        await create_question(db_session, actor_for(user), "What is a vector?", "Magnitude and direction?")
        await db_session.commit()

        assert await _badges_of(db_session, user.id) == ["First Question"]
        result = await db_session.execute(
            select(Notification).where(
                Notification.user_id == user.id,
                Notification.type == NotificationType.POINTS_EARNED,
            )
        )
        titles = [n.title for n in result.scalars().all()]
        assert titles == ['Badge Earned: "First Question"']

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session):
        user = await make_user(db_session, "Grace")
        await create_question(db_session, actor_for(user), "Q1", "Body")
        await db_session.commit()

        assert await recompute_and_award(db_session, user.id) == []
        assert await recompute_and_award(db_session, user.id) == []
        await db_session.commit()

        count = await db_session.scalar(
            select(func.count()).select_from(UserBadge).where(UserBadge.user_id == user.id)
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_point_thresholds(self, db_session):
        user = await make_user(db_session, "Linus")
        await db_session.execute(update(Profile).where(Profile.user_id == user.id).values(points=500))

        awarded = await recompute_and_award(db_session, user.id)
        await db_session.commit()

        assert sorted(b.name for b in awarded) == ["Rising Star", "Study Master"]
        assert await recompute_and_award(db_session, user.id) == []
        assert await _badges_of(db_session, user.id) == ["Rising Star", "Study Master"]

    @pytest.mark.asyncio
    async def test_points_crossing_a_threshold_award_immediately(self, db_session):
        user = await make_user(db_session, "Linus")
        await db_session.execute(update(Profile).where(Profile.user_id == user.id).values(points=95))
        await db_session.commit()

        await grant_points(db_session, user.id, PointReason.QUESTION_ASKED, uuid.uuid4())
        await db_session.commit()

        assert "Rising Star" in await _badges_of(db_session, user.id)

    @pytest.mark.asyncio
    async def test_award_badge_twice(self, db_session):
        user = await make_user(db_session, "Barbara")
        badge = await db_session.scalar(select(Badge).where(Badge.name == "Expert"))

        assert await award_badge(db_session, user.id, badge) is True
        assert await award_badge(db_session, user.id, badge) is False
        await db_session.commit()

        assert await _badges_of(db_session, user.id) == ["Expert"]


class TestMetricsAndProgress:
    @pytest.mark.asyncio
    async def test_metrics(self, db_session):
        user = await make_user(db_session, "Alan")
        await create_question(db_session, actor_for(user), "Q1", "Body")
        await create_question(db_session, actor_for(user), "Q2", "Body")
        await db_session.commit()

        metrics = await compute_metrics(db_session, user.id)
        assert metrics.questions_asked == 2
        assert metrics.answers_given == 0
        assert metrics.points == 10

    @pytest.mark.asyncio
    async def test_progress_covers_every_badge(self, db_session):
        user = await make_user(db_session, "Alan")
        await create_question(db_session, actor_for(user), "Q1", "Body")
        await db_session.commit()

        items = {item["badge"].name: item for item in await badge_progress(db_session, user.id)}
        assert len(items) == 10
        assert items["First Question"]["earned"] is True
        assert items["First Question"]["progress"] == 1.0
        assert items["Question Guru"]["current"] == 1
        assert items["Question Guru"]["progress"] == pytest.approx(0.1)
        assert items["Study Master"]["earned"] is False


class TestGamificationApi:
    @pytest.mark.asyncio
    async def test_stats_and_progress(self, client):
        _, headers = await api_user(client, "Edsger")
        await client.post("/api/v1/questions", json={"title": "Q", "content": "Body"}, headers=headers)

        stats = await client.get("/api/v1/me/stats", headers=headers)
        assert stats.status_code == 200
        assert stats.json()["questions_asked"] == 1
        assert stats.json()["points"] == 5

        progress = await client.get("/api/v1/me/badges/progress", headers=headers)
        assert progress.status_code == 200
        earned = [p["badge"]["name"] for p in progress.json() if p["earned"]]
        assert earned == ["First Question"]

    @pytest.mark.asyncio
    async def test_badges_are_public(self, client):
        user_id, headers = await api_user(client, "Edsger")
        await client.post("/api/v1/questions", json={"title": "Q", "content": "Body"}, headers=headers)

        response = await client.get(f"/api/v1/users/{user_id}/badges")
        assert response.status_code == 200
        assert [b["badge"]["name"] for b in response.json()] == ["First Question"]

    @pytest.mark.asyncio
    async def test_catalog(self, client):
        badges = await client.get("/api/v1/badges")
        subjects = await client.get("/api/v1/subjects")

        assert len(badges.json()) == 10
        assert {s["code"] for s in subjects.json()} == {"MATH", "SCI", "ENG", "SS", "CS"}
