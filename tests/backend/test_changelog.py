"""Tests for the changelog and health endpoints."""

import pytest


class TestChangelog:

    @pytest.fixture(autouse=True)
    async def entries(self, store):
        await store.add_changelog_entry(
            "2024-03-01", "Dark mode", "Try the new theme.", "الوضع الداكن", "جرب الثيم الجديد.",
            image_url="https://img.example.com/dark.png",
        )
        await store.add_changelog_entry(
            "2024-01-01", "Launch", "Hello world.", "الإطلاق", "هلا بالعالم.",
        )

    @pytest.mark.asyncio
    async def test_english_entries_newest_first(self, app_client):
        response = await app_client.get("/api/changelog", params={"locale": "en"})

        entries = response.json()
        assert [e["heading"] for e in entries] == ["Dark mode", "Launch"]
        assert entries[0]["paragraph"] == "Try the new theme."
        assert entries[0]["image_url"] == "https://img.example.com/dark.png"
        assert entries[0]["locale"] == "en"

    @pytest.mark.asyncio
    async def test_defaults_to_arabic(self, app_client):
        response = await app_client.get("/api/changelog")

        assert response.json()[0]["heading"] == "الوضع الداكن"

    @pytest.mark.asyncio
    async def test_accept_language(self, app_client):
        response = await app_client.get("/api/changelog", headers={"Accept-Language": "en-US,en;q=0.9"})

        assert response.json()[1]["heading"] == "Launch"

    @pytest.mark.asyncio
    async def test_no_authentication_needed(self, app_client):
        response = await app_client.get("/api/changelog", params={"limit": 1})

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestHealth:

    @pytest.mark.asyncio
    async def test_reports_outbox_stats(self, app_client):
        response = await app_client.get("/health")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["outbox"]["failed"] == 0
        assert data["active_streams"] == 0
