"""Tests for the HTTP client wrapper."""

import httpx
import pytest

from client.api_client import ApiClient, ApiError, ApiTimeoutError


def make_client(handler, token="token-alice") -> ApiClient:
    return ApiClient("http://test", token=token, transport=httpx.MockTransport(handler))


class TestApiClient:
    """Test suite for ApiClient."""

    @pytest.mark.asyncio
    async def test_sends_json_and_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = request.content
            return httpx.Response(200, json={"id": "c-1"})

        async with make_client(handler) as api:
            data = await api.post("/api/conversations", {"title": "Test"})

        assert data == {"id": "c-1"}
        assert seen["auth"] == "Bearer token-alice"
        assert b'"title"' in seen["body"]

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=[])

        async with make_client(handler, token=None) as api:
            await api.get("/api/changelog", params={"locale": "en"})

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_error_response_raises_api_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Failed to save messages", "details": "locked"})

        async with make_client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.post("/api/conversations/c-1/messages", {"messages": []})

        assert exc_info.value.status == 500
        assert exc_info.value.message == "Failed to save messages"
        assert exc_info.value.data["details"] == "locked"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with make_client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get("/api/profile")

        assert exc_info.value.message == "Request failed with status 502"
        assert exc_info.value.data == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_unauthorized_notifies_listeners(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Unauthorized"})

        calls = []
        async with make_client(handler) as api:
            api.on_unauthorized.append(lambda: calls.append("401"))
            with pytest.raises(ApiError):
                await api.get("/api/profile")

        assert calls == ["401"]

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as api:
            with pytest.raises(ApiTimeoutError) as exc_info:
                await api.get("/api/profile")

        assert exc_info.value.message == "Request timeout"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as api:
            with pytest.raises(ApiError):
                await api.get("/api/profile")

    @pytest.mark.asyncio
    async def test_stream_yields_body(self):
        def handler(request):
            return httpx.Response(200, content=b"Hello, world")

        async with make_client(handler) as api:
            async with api.stream("POST", "/api/chat", json={"messages": []}) as response:
                text = "".join([chunk async for chunk in response.aiter_text()])

        assert text == "Hello, world"

    @pytest.mark.asyncio
    async def test_stream_error_status(self):
        def handler(request):
            return httpx.Response(400, json={"error": "Invalid request format", "details": []})

        async with make_client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                async with api.stream("POST", "/api/chat", json={}):
                    pass

        assert exc_info.value.status == 400
        assert exc_info.value.message == "Invalid request format"
