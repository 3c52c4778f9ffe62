"""Tests for authentication taking precedence over body validation."""

import pytest

from api.auth import route_requires_user

MALFORMED = b"{not json"
JSON_HEADERS = {"Content-Type": "application/json"}

PROTECTED_POSTS = [
    "/api/chat",
    "/api/conversations",
    "/api/conversations/c-1/messages",
    "/api/feature-request",
]


class TestMalformedBodies:
    """Test suite for requests whose JSON body cannot be decoded."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROTECTED_POSTS)
    async def test_anonymous_gets_401(self, app_client, store, path):
        response = await app_client.post(path, content=MALFORMED, headers=JSON_HEADERS)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert await store.list_conversations("user-alice") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROTECTED_POSTS)
    async def test_unknown_token_gets_401(self, app_client, path):
        response = await app_client.post(
            path, content=MALFORMED, headers={**JSON_HEADERS, "Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_signed_in_caller_gets_400(self, app_client, alice_headers):
        response = await app_client.post(
            "/api/chat", content=MALFORMED, headers={**JSON_HEADERS, **alice_headers}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request format"

    @pytest.mark.asyncio
    async def test_public_route_still_400(self, app_client):
        response = await app_client.post("/api/gemini", content=MALFORMED, headers=JSON_HEADERS)

        assert response.status_code == 400


class TestRouteRequiresUser:

    def _route(self, path, method):
        from app import app

        for route in app.routes:
            if getattr(route, "path", None) == path and method in getattr(route, "methods", ()):
                return route
        raise AssertionError(f"no route {method} {path}")

    def test_direct_dependency(self):
        assert route_requires_user(self._route("/api/chat", "POST")) is True

    def test_nested_dependency(self):
        route = self._route("/api/conversations/{conversation_id}/messages", "POST")
        assert route_requires_user(route) is True

    def test_public_routes(self):
        assert route_requires_user(self._route("/api/gemini", "POST")) is False
        assert route_requires_user(self._route("/api/changelog", "GET")) is False
