"""Gamification and admin endpoints over HTTP."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from pathwise.config import Settings, get_settings
from tests.conftest import ADMIN_HEADERS

API = "/api/v1/gamification"
ADMIN = "/api/v1/admin"


class TestIdentity:

    @pytest.mark.asyncio
    async def test_missing_learner_header(self, client):
        response = await client.get(f"{API}/profile")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_numeric_learner_header(self, client):
        response = await client.get(f"{API}/profile", headers={"X-Learner-Id": "ada"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_learner(self, client):
        response = await client.get(f"{API}/profile", headers={"X-Learner-Id": "4242"})
        assert response.status_code == 404
        assert response.json()["retryable"] is False


class TestCatalog:

    @pytest.mark.asyncio
    async def test_ranks(self, client):
        response = await client.get(f"{API}/ranks")
        assert response.status_code == 200
        ranks = response.json()["ranks"]
        assert len(ranks) == 8
        assert ranks[0] == {"rank": "Novice", "min_level": 1}

    @pytest.mark.asyncio
    async def test_hidden_achievements_not_listed(self, client, seeded):
        response = await client.get(f"{API}/achievements")
        assert response.status_code == 200
        slugs = [a["slug"] for a in response.json()["achievements"]]
        assert len(slugs) == seeded - 1
        assert "budding_mentor" not in slugs
        assert slugs[0] == "first_step"

    @pytest.mark.asyncio
    async def test_achievement_detail(self, learner_client, seeded):
        listing = (await learner_client.get(f"{API}/achievements")).json()["achievements"]
        first_login = next(a for a in listing if a["slug"] == "first_login")

        before = await learner_client.get(f"{API}/achievements/{first_login['id']}")
        assert before.status_code == 200
        assert before.json()["progress"] == 0.0
        assert before.json()["is_completed"] is False

        await learner_client.post(f"{API}/reward", json={"action": "daily_login"})

        after = (await learner_client.get(f"{API}/achievements/{first_login['id']}")).json()
        assert after["progress"] == 100.0
        assert after["is_completed"] is True
        assert after["unlocked_at"] is not None

    @pytest.mark.asyncio
    async def test_unknown_achievement(self, learner_client):
        response = await learner_client.get(f"{API}/achievements/999")
        assert response.status_code == 404


class TestReward:

    @pytest.mark.asyncio
    async def test_reward_and_profile(self, learner_client):
        response = await learner_client.post(
            f"{API}/reward", json={"action": "complete_quiz", "params": {"score": 100}}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["xp_gained"] == 50
        assert data["leveled_up"] is False
        assert data["streak_event"] == "started"

        profile = (await learner_client.get(f"{API}/profile")).json()
        assert profile["total_xp"] == 50
        assert profile["current_xp"] == 50
        assert profile["required_xp"] == 100
        assert profile["rank"] == "Novice"
        assert profile["streak_days"] == 1

    @pytest.mark.asyncio
    async def test_idempotency_key_header(self, learner_client):
        headers = {"Idempotency-Key": "evt-123"}
        first = await learner_client.post(f"{API}/reward", json={"action": "complete_module"}, headers=headers)
        second = await learner_client.post(f"{API}/reward", json={"action": "complete_module"}, headers=headers)

        assert first.json()["duplicate"] is False
        assert second.json()["duplicate"] is True
        assert second.json()["total_xp"] == 50

    @pytest.mark.asyncio
    async def test_bad_params_rejected(self, learner_client):
        response = await learner_client.post(
            f"{API}/reward", json={"action": "complete_quiz", "params": {"score": 150}}
        )
        assert response.status_code == 422
        assert response.json()["retryable"] is False

    @pytest.mark.asyncio
    async def test_infinite_streak_days_rejected(self, learner_client):
        response = await learner_client.post(
            f"{API}/reward",
            content='{"action": "streak_milestone", "params": {"days": Infinity}}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["retryable"] is False

    @pytest.mark.asyncio
    async def test_store_outage_is_retryable(self, learner_client):
        async def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        with patch("pathwise.gamification.engine.build_activity_snapshot", broken):
            response = await learner_client.post(f"{API}/reward", json={"action": "daily_login"})

        assert response.status_code == 503
        assert response.json()["retryable"] is True
        assert response.headers["retry-after"] == "1"

    @pytest.mark.asyncio
    async def test_view_achievement(self, learner_client, seeded):
        result = (await learner_client.post(f"{API}/reward", json={"action": "daily_login"})).json()
        achievement_id = result["achievements_unlocked"][0]["id"]

        profile = (await learner_client.get(f"{API}/profile")).json()
        assert [p["achievement"]["slug"] for p in profile["new_achievements"]] == ["first_login"]

        response = await learner_client.put(f"{API}/achievements/{achievement_id}/view")
        assert response.status_code == 200
        assert response.json() == {"achievement_id": achievement_id, "is_viewed": True}

        profile = (await learner_client.get(f"{API}/profile")).json()
        assert profile["new_achievements"] == []

    @pytest.mark.asyncio
    async def test_view_without_progress(self, learner_client):
        response = await learner_client.put(f"{API}/achievements/1/view")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_leaderboard(self, learner_client, other_learner, engine):
        await engine.reward_action(other_learner.id, "complete_pathway")
        await learner_client.post(f"{API}/reward", json={"action": "daily_login"})

        response = await learner_client.get(f"{API}/leaderboard", params={"limit": 5})
        entries = response.json()["entries"]
        assert [e["display_name"] for e in entries] == ["Grace", "Ada"]
        assert entries[0]["level"] == 2
        assert entries[0]["total_xp"] == 200


class TestAdmin:

    PAYLOAD = {
        "slug": "night_owl",
        "title": "Night Owl",
        "description": "Complete 3 resources",
        "category": "learning",
        "rarity": "rare",
        "points": 40,
        "criteria_type": "resources_completed",
        "threshold": 3,
    }

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.post(f"{ADMIN}/achievements", json=self.PAYLOAD)
        assert response.status_code == 403

        response = await client.post(f"{ADMIN}/achievements", json=self.PAYLOAD, headers={"X-Admin-Token": "nope"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_disabled_without_configured_token(self):
        from pathwise.main import create_app

        app = create_app()
        app.dependency_overrides[get_settings] = lambda: Settings(admin_token="")
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post(f"{ADMIN}/achievements", json=self.PAYLOAD, headers=ADMIN_HEADERS)
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin API disabled"

    @pytest.mark.asyncio
    async def test_create_update_delete(self, client):
        created = await client.post(f"{ADMIN}/achievements", json=self.PAYLOAD, headers=ADMIN_HEADERS)
        assert created.status_code == 201
        achievement = created.json()
        assert achievement["slug"] == "night_owl"
        assert achievement["criteria_type"] == "resources_completed"

        updated = await client.put(
            f"{ADMIN}/achievements/{achievement['id']}", json={"points": 60, "icon": "owl"}, headers=ADMIN_HEADERS
        )
        assert updated.status_code == 200
        assert updated.json()["points"] == 60
        assert updated.json()["icon"] == "owl"
        assert updated.json()["title"] == "Night Owl"

        deleted = await client.delete(f"{ADMIN}/achievements/{achievement['id']}", headers=ADMIN_HEADERS)
        assert deleted.status_code == 204

        missing = await client.put(f"{ADMIN}/achievements/{achievement['id']}", json={"points": 1},
                                   headers=ADMIN_HEADERS)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, client):
        await client.post(f"{ADMIN}/achievements", json=self.PAYLOAD, headers=ADMIN_HEADERS)
        response = await client.post(f"{ADMIN}/achievements", json=self.PAYLOAD, headers=ADMIN_HEADERS)
        assert response.status_code == 422
        assert "already exists" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_criteria_rejected(self, client):
        payload = {**self.PAYLOAD, "criteria_type": "lines_of_code"}
        response = await client.post(f"{ADMIN}/achievements", json=payload, headers=ADMIN_HEADERS)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_new_definition_is_evaluated(self, client, learner, engine):
        payload = {**self.PAYLOAD, "criteria_type": "total_xp", "threshold": 10}
        await client.post(f"{ADMIN}/achievements", json=payload, headers=ADMIN_HEADERS)

        result = await engine.reward_action(learner.id, "complete_resource")
        assert [a.slug for a in result.achievements_unlocked] == ["night_owl"]
        assert result.bonus_xp == 40

    @pytest.mark.asyncio
    async def test_register_learner(self, client):
        response = await client.post(f"{ADMIN}/learners", json={"id": 501, "display_name": "Linus"},
                                     headers=ADMIN_HEADERS)
        assert response.status_code == 201
        assert response.json() == {"id": 501, "display_name": "Linus"}

        again = await client.post(f"{ADMIN}/learners", json={"id": 501}, headers=ADMIN_HEADERS)
        assert again.status_code == 409

        profile = await client.get(f"{API}/profile", headers={"X-Learner-Id": "501"})
        assert profile.status_code == 200
        assert profile.json()["level"] == 1
