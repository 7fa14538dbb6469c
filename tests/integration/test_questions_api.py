"""Question and answer endpoints."""

from __future__ import annotations

import uuid

import pytest

from tests.conftest import api_user


async def _ask(client, headers, title="Why is the sky blue?", **extra) -> dict:
    response = await client.post(
        "/api/v1/questions",
        json={"title": title, "content": "Rayleigh scattering?", **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestQuestions:
    @pytest.mark.asyncio
    async def test_round_trip(self, client):
        user_id, headers = await api_user(client, "Marie")
        created = await _ask(client, headers, difficulty="hard", grade_level="10")

        fetched = await client.get(f"/api/v1/questions/{created['id']}")
        assert fetched.status_code == 200
        body = fetched.json()
        assert body["title"] == "Why is the sky blue?"
        assert body["user_id"] == str(user_id)
        assert body["difficulty"] == "hard"
        assert body["is_resolved"] is False
        assert body["answer_count"] == 0

    @pytest.mark.asyncio
    async def test_anonymous_cannot_ask(self, client):
        response = await client.post("/api/v1/questions", json={"title": "Hi", "content": "There"})
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_blank_title_names_the_field(self, client):
        _, headers = await api_user(client, "Marie")
        response = await client.post("/api/v1/questions", json={"title": "   ", "content": "Body"}, headers=headers)
        assert response.status_code == 422
        assert response.json()["field"] == "title"

    @pytest.mark.asyncio
    async def test_unknown_subject(self, client):
        _, headers = await api_user(client, "Marie")
        response = await client.post(
            "/api/v1/questions",
            json={"title": "T", "content": "C", "subject_id": str(uuid.uuid4())},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["field"] == "subject_id"

    @pytest.mark.asyncio
    async def test_owner_edits_and_others_cannot(self, client):
        _, owner = await api_user(client, "Owner")
        _, other = await api_user(client, "Other")
        question = await _ask(client, owner)

        denied = await client.patch(f"/api/v1/questions/{question['id']}", json={"title": "Mine now"}, headers=other)
        assert denied.status_code == 403

        edited = await client.patch(
            f"/api/v1/questions/{question['id']}", json={"title": "Why is the sky blue at noon?"}, headers=owner
        )
        assert edited.status_code == 200
        assert edited.json()["title"] == "Why is the sky blue at noon?"

    @pytest.mark.asyncio
    async def test_missing_question(self, client):
        response = await client.get(f"/api/v1/questions/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_counters(self, client):
        _, headers = await api_user(client, "Marie")
        question = await _ask(client, headers)

        for expected in (1, 2):
            view = await client.post(f"/api/v1/questions/{question['id']}/view")
            assert view.json()["value"] == expected

        upvote = await client.post(f"/api/v1/questions/{question['id']}/upvote", headers=headers)
        assert upvote.json() == {"id": question["id"], "value": 1}

    @pytest.mark.asyncio
    async def test_filters(self, client):
        _, asker = await api_user(client, "Asker")
        _, helper = await api_user(client, "Helper")
        answered = await _ask(client, asker, title="Answered")
        unanswered = await _ask(client, asker, title="Unanswered")
        await client.post(f"/api/v1/questions/{answered['id']}/answers", json={"content": "Yes"}, headers=helper)

        all_titles = [q["title"] for q in (await client.get("/api/v1/questions")).json()]
        assert set(all_titles) == {"Answered", "Unanswered"}

        open_ones = (await client.get("/api/v1/questions", params={"filter": "unanswered"})).json()
        assert [q["id"] for q in open_ones] == [unanswered["id"]]

        resolved = (await client.get("/api/v1/questions", params={"filter": "resolved"})).json()
        assert resolved == []

        counts = {q["title"]: q["answer_count"] for q in (await client.get("/api/v1/questions")).json()}
        assert counts == {"Answered": 1, "Unanswered": 0}


class TestAnswers:
    @pytest.mark.asyncio
    async def test_answer_ordering_and_votes(self, client):
        _, asker = await api_user(client, "Asker")
        _, first = await api_user(client, "First")
        _, second = await api_user(client, "Second")
        question = await _ask(client, asker)

        a1 = (await client.post(f"/api/v1/questions/{question['id']}/answers", json={"content": "One"}, headers=first)).json()
        a2 = (await client.post(f"/api/v1/questions/{question['id']}/answers", json={"content": "Two"}, headers=second)).json()

        voted = await client.post(f"/api/v1/answers/{a2['id']}/vote", json={"direction": "up"}, headers=asker)
        assert voted.json() == {"id": a2["id"], "upvotes": 1, "downvotes": 0}
        await client.post(f"/api/v1/answers/{a1['id']}/vote", json={"direction": "down"}, headers=asker)

        ordered = (await client.get(f"/api/v1/questions/{question['id']}/answers")).json()
        assert [a["id"] for a in ordered] == [a2["id"], a1["id"]]

        await client.post(f"/api/v1/answers/{a1['id']}/accept", headers=asker)
        ordered = (await client.get(f"/api/v1/questions/{question['id']}/answers")).json()
        assert [a["id"] for a in ordered] == [a1["id"], a2["id"]]
        assert ordered[0]["is_accepted"] is True

    @pytest.mark.asyncio
    async def test_only_author_edits_answer(self, client):
        _, asker = await api_user(client, "Asker")
        _, helper = await api_user(client, "Helper")
        question = await _ask(client, asker)
        answer = (
            await client.post(f"/api/v1/questions/{question['id']}/answers", json={"content": "Draft"}, headers=helper)
        ).json()

        denied = await client.patch(f"/api/v1/answers/{answer['id']}", json={"content": "Edited"}, headers=asker)
        assert denied.status_code == 403

        edited = await client.patch(f"/api/v1/answers/{answer['id']}", json={"content": "Final"}, headers=helper)
        assert edited.json()["content"] == "Final"

    @pytest.mark.asyncio
    async def test_answer_to_missing_question(self, client):
        _, headers = await api_user(client, "Helper")
        response = await client.post(f"/api/v1/questions/{uuid.uuid4()}/answers", json={"content": "?"}, headers=headers)
        assert response.status_code == 404
