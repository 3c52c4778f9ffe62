"""Tests for feedback submission."""

import aiosqlite
import pytest


async def feedback_count(store) -> int:
    async with aiosqlite.connect(store.db_path) as db:
        async with db.execute("SELECT COUNT(*) FROM user_feedback") as cursor:
            (count,) = await cursor.fetchone()
    return count


class TestFeatureRequest:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, app_client, store):
        response = await app_client.post(
            "/api/feature-request", json={"categories": ["ui"], "details": "Dark mode please"}
        )
        assert response.status_code == 401
        assert await feedback_count(store) == 0

    @pytest.mark.asyncio
    async def test_submits_feedback(self, app_client, store, alice_headers):
        response = await app_client.post(
            "/api/feature-request",
            json={"categories": ["ui", "chat"], "details": "Dark mode please", "pageUrl": "/settings"},
            headers={**alice_headers, "User-Agent": "pytest-agent"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Feedback submitted successfully!"
        assert data["data"]["user_id"] == "user-alice"
        assert data["data"]["categories"] == ["ui", "chat"]
        assert data["data"]["page_url"] == "/settings"
        assert data["data"]["user_agent"] == "pytest-agent"
        assert await feedback_count(store) == 1

    @pytest.mark.asyncio
    async def test_page_url_falls_back_to_referer(self, app_client, alice_headers):
        response = await app_client.post(
            "/api/feature-request",
            json={"categories": ["ui"], "details": "Bigger font"},
            headers={**alice_headers, "Referer": "https://example.com/chat"},
        )

        assert response.json()["data"]["page_url"] == "https://example.com/chat"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"categories": [], "details": "x"},
        {"categories": ["ui"], "details": ""},
        {"categories": ["ui"], "details": "x" * 1001},
        {"details": "x"},
    ])
    async def test_validation(self, app_client, alice_headers, body):
        response = await app_client.post("/api/feature-request", json=body, headers=alice_headers)

        assert response.status_code == 400
        assert "details" in response.json()

    @pytest.mark.asyncio
    async def test_database_failure(self, app_client, store, alice_headers, monkeypatch):
        async def broken(**kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "create_feedback", broken)

        response = await app_client.post(
            "/api/feature-request",
            json={"categories": ["ui"], "details": "Dark mode"},
            headers=alice_headers,
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to submit feedback.", "details": "disk I/O error"}
