"""Study group membership, visibility and capacity."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from studycircle.access.policies import ANONYMOUS
from studycircle.db.models import GroupInvitation, GroupRole, Notification, NotificationType, PrivacyLevel
from studycircle.errors import Conflict, Forbidden, NotFound, ValidationFailed
from studycircle.groups.service import (
    create_group,
    get_group,
    invite_user,
    is_member,
    join_group,
    leave_group,
    list_groups,
    list_members,
    member_count,
    update_group,
)
from tests.conftest import actor_for, api_user, make_user


class TestCreateGroup:
    @pytest.mark.asyncio
    async def test_creator_becomes_admin(self, db_session):
        owner = await make_user(db_session, "Owner")
        group = await create_group(db_session, actor_for(owner), "Algebra Club")
        await db_session.commit()

        members = await list_members(db_session, actor_for(owner), group.id)
        assert [(m.user_id, m.role) for m, _ in members] == [(owner.id, GroupRole.ADMIN)]
        assert members[0][1] == "Owner"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_members", [0, 1])
    async def test_capacity_must_fit_two(self, db_session, max_members):
        owner = await make_user(db_session, "Owner")
        with pytest.raises(ValidationFailed) as exc:
            await create_group(db_session, actor_for(owner), "Tiny", max_members=max_members)
        assert exc.value.field == "max_members"

    @pytest.mark.asyncio
    async def test_blank_name(self, db_session):
        owner = await make_user(db_session, "Owner")
        with pytest.raises(ValidationFailed):
            await create_group(db_session, actor_for(owner), "   ")


class TestJoinGroup:
    @pytest.mark.asyncio
    async def test_full_group_rejects_join(self, db_session):
        owner = await make_user(db_session, "Owner")
        second = await make_user(db_session, "Second")
        third = await make_user(db_session, "Third")
        group = await create_group(db_session, actor_for(owner), "Pair Study", max_members=2)
        await db_session.commit()

        await join_group(db_session, actor_for(second), group.id)
        await db_session.commit()
        group_id, third_id = group.id, third.id

        with pytest.raises(Conflict):
            await join_group(db_session, actor_for(third), group_id)
        await db_session.rollback()

        assert await member_count(db_session, group_id) == 2
        assert not await is_member(db_session, group_id, third_id)

    @pytest.mark.asyncio
    async def test_double_join(self, db_session):
        owner = await make_user(db_session, "Owner")
        member = await make_user(db_session, "Member")
        group = await create_group(db_session, actor_for(owner), "Chemistry")
        await join_group(db_session, actor_for(member), group.id)
        await db_session.commit()

        with pytest.raises(Conflict):
            await join_group(db_session, actor_for(member), group.id)

    @pytest.mark.asyncio
    async def test_anonymous_cannot_join(self, db_session):
        owner = await make_user(db_session, "Owner")
        group = await create_group(db_session, actor_for(owner), "Chemistry")
        await db_session.commit()

        with pytest.raises(Forbidden):
            await join_group(db_session, ANONYMOUS, group.id)

    @pytest.mark.asyncio
    async def test_private_group_needs_invitation(self, db_session):
        owner = await make_user(db_session, "Owner")
        guest = await make_user(db_session, "Guest")
        group = await create_group(db_session, actor_for(owner), "Secret Society", privacy=PrivacyLevel.PRIVATE)
        await db_session.commit()
        owner_actor, guest_actor, group_id = actor_for(owner), actor_for(guest), group.id

        with pytest.raises(Forbidden):
            await join_group(db_session, guest_actor, group_id)
        await db_session.rollback()

        await invite_user(db_session, owner_actor, group_id, guest_actor.user_id)
        await db_session.commit()

        membership = await join_group(db_session, guest_actor, group_id)
        await db_session.commit()

        assert membership.role == GroupRole.MEMBER
        remaining = await db_session.scalar(select(func.count()).select_from(GroupInvitation))
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_invitation_notifies_invitee(self, db_session):
        owner = await make_user(db_session, "Owner")
        guest = await make_user(db_session, "Guest")
        group = await create_group(db_session, actor_for(owner), "Invite Only", privacy=PrivacyLevel.INVITE_ONLY)
        await invite_user(db_session, actor_for(owner), group.id, guest.id)
        await db_session.commit()

        types = (
            await db_session.execute(select(Notification.type).where(Notification.user_id == guest.id))
        ).scalars().all()
        assert types == [NotificationType.GROUP_INVITATION]

    @pytest.mark.asyncio
    async def test_plain_members_cannot_invite(self, db_session):
        owner = await make_user(db_session, "Owner")
        member = await make_user(db_session, "Member")
        outsider = await make_user(db_session, "Outsider")
        group = await create_group(db_session, actor_for(owner), "Open")
        await join_group(db_session, actor_for(member), group.id)
        await db_session.commit()

        with pytest.raises(Forbidden):
            await invite_user(db_session, actor_for(member), group.id, outsider.id)


class TestVisibility:
    @pytest.mark.asyncio
    async def test_anonymous_sees_only_public_groups(self, db_session):
        owner = await make_user(db_session, "Owner")
        public = await create_group(db_session, actor_for(owner), "Public Physics")
        private = await create_group(db_session, actor_for(owner), "Private Physics", privacy=PrivacyLevel.PRIVATE)
        await db_session.commit()

        visible = {g.id for g in await list_groups(db_session, ANONYMOUS)}
        assert public.id in visible
        assert private.id not in visible

        assert (await get_group(db_session, ANONYMOUS, public.id)).id == public.id
        with pytest.raises(NotFound):
            await get_group(db_session, ANONYMOUS, private.id)

    @pytest.mark.asyncio
    async def test_hidden_groups_do_not_crowd_out_public_ones(self, db_session):
        owner = await make_user(db_session, "Owner")
        other = await make_user(db_session, "Other")
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        club = await create_group(db_session, actor_for(owner), "Public Club")
        club.created_at = start
        for i in range(3):
            hidden = await create_group(
                db_session, actor_for(other), f"Hidden {i}", privacy=PrivacyLevel.INVITE_ONLY
            )
            hidden.created_at = start + timedelta(hours=i + 1)
        await db_session.commit()

        assert [g.name for g in await list_groups(db_session, ANONYMOUS, limit=2)] == ["Public Club"]
        assert [g.name for g in await list_groups(db_session, actor_for(owner), limit=2)] == ["Public Club"]
        assert [g.name for g in await list_groups(db_session, actor_for(other), limit=2)] == ["Hidden 2", "Hidden 1"]

    @pytest.mark.asyncio
    async def test_creator_sees_own_private_group(self, db_session):
        owner = await make_user(db_session, "Owner")
        private = await create_group(db_session, actor_for(owner), "Mine", privacy=PrivacyLevel.PRIVATE)
        await db_session.commit()

        assert private.id in {g.id for g in await list_groups(db_session, actor_for(owner))}

    @pytest.mark.asyncio
    async def test_members_hidden_from_outsiders(self, db_session):
        owner = await make_user(db_session, "Owner")
        outsider = await make_user(db_session, "Outsider")
        group = await create_group(db_session, actor_for(owner), "Open")
        await db_session.commit()

        assert await list_members(db_session, actor_for(outsider), group.id) == []
        assert await list_members(db_session, ANONYMOUS, group.id) == []


class TestLeaveAndUpdate:
    @pytest.mark.asyncio
    async def test_member_leaves(self, db_session):
        owner = await make_user(db_session, "Owner")
        member = await make_user(db_session, "Member")
        group = await create_group(db_session, actor_for(owner), "Open")
        await join_group(db_session, actor_for(member), group.id)
        await db_session.commit()

        await leave_group(db_session, actor_for(member), group.id)
        await db_session.commit()
        assert not await is_member(db_session, group.id, member.id)

        with pytest.raises(NotFound):
            await leave_group(db_session, actor_for(member), group.id)

    @pytest.mark.asyncio
    async def test_creator_cannot_leave(self, db_session):
        owner = await make_user(db_session, "Owner")
        group = await create_group(db_session, actor_for(owner), "Open")
        await db_session.commit()

        with pytest.raises(Conflict):
            await leave_group(db_session, actor_for(owner), group.id)

    @pytest.mark.asyncio
    async def test_only_creator_updates(self, db_session):
        owner = await make_user(db_session, "Owner")
        member = await make_user(db_session, "Member")
        group = await create_group(db_session, actor_for(owner), "Open")
        await join_group(db_session, actor_for(member), group.id)
        await db_session.commit()

        with pytest.raises(Forbidden):
            await update_group(db_session, actor_for(member), group.id, {"name": "Hijacked"})

        updated = await update_group(db_session, actor_for(owner), group.id, {"description": "Weekly sessions"})
        assert updated.description == "Weekly sessions"

    @pytest.mark.asyncio
    async def test_capacity_not_below_member_count(self, db_session):
        owner = await make_user(db_session, "Owner")
        group = await create_group(db_session, actor_for(owner), "Open", max_members=5)
        for name in ("A", "B"):
            await join_group(db_session, actor_for(await make_user(db_session, name)), group.id)
        await db_session.commit()

        with pytest.raises(ValidationFailed):
            await update_group(db_session, actor_for(owner), group.id, {"max_members": 2})


class TestGroupsApi:
    @pytest.mark.asyncio
    async def test_create_join_and_list(self, client):
        _, owner = await api_user(client, "Owner")
        member_id, member = await api_user(client, "Member")

        created = await client.post("/api/v1/groups", json={"name": "Biology", "max_members": 3}, headers=owner)
        assert created.status_code == 201
        group = created.json()
        assert group["member_count"] == 1

        joined = await client.post(f"/api/v1/groups/{group['id']}/join", headers=member)
        assert joined.status_code == 201
        assert joined.json()["user_id"] == str(member_id)

        again = await client.post(f"/api/v1/groups/{group['id']}/join", headers=member)
        assert again.status_code == 409
        assert again.json()["code"] == "conflict"

        members = await client.get(f"/api/v1/groups/{group['id']}/members", headers=member)
        assert {m["role"] for m in members.json()} == {"admin", "member"}

        listing = await client.get("/api/v1/groups")
        assert [g["name"] for g in listing.json()] == ["Biology"]

    @pytest.mark.asyncio
    async def test_private_group_is_hidden(self, client):
        _, owner = await api_user(client, "Owner")
        created = await client.post("/api/v1/groups", json={"name": "Hidden", "privacy": "private"}, headers=owner)
        group_id = created.json()["id"]

        assert (await client.get(f"/api/v1/groups/{group_id}")).status_code == 404
        assert (await client.get(f"/api/v1/groups/{group_id}", headers=owner)).status_code == 200
        assert (await client.get("/api/v1/groups")).json() == []

    @pytest.mark.asyncio
    async def test_create_requires_auth(self, client):
        response = await client.post("/api/v1/groups", json={"name": "Anon"})
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_capacity(self, client):
        _, owner = await api_user(client, "Owner")
        response = await client.post("/api/v1/groups", json={"name": "Solo", "max_members": 1}, headers=owner)
        assert response.status_code == 422
        assert response.json()["field"] == "max_members"
