"""Thin async HTTP client for the chat backend."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from config import REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request failed: non-2xx status, network error or timeout."""

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data


class ApiTimeoutError(ApiError):
    """The request did not finish within the client timeout."""


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """JSON requests with bearer auth and a default timeout.

    Every 401 response is reported to the on_unauthorized listeners before
    the ApiError is raised, so session state can be invalidated in one place.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.token = token
        self.on_unauthorized: List[Callable[[], None]] = []
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _raise_for_status(self, response: httpx.Response, data: Any) -> None:
        if response.is_success:
            return
        if response.status_code == 401:
            for listener in list(self.on_unauthorized):
                listener()
        message = None
        if isinstance(data, dict):
            message = data.get("error") or data.get("message")
        raise ApiError(
            message or f"Request failed with status {response.status_code}",
            status=response.status_code,
            data=data,
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise ApiTimeoutError("Request timeout") from e
        except httpx.HTTPError as e:
            raise ApiError(str(e) or "Network error") from e

        data = _parse_body(response)
        self._raise_for_status(response, data)
        return data

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    @asynccontextmanager
    async def stream(self, method: str, path: str, json: Any = None) -> AsyncIterator[httpx.Response]:
        """Open a streaming request; the body is read by the caller.

        No overall timeout applies while the body is being read; a stream
        runs until the server closes it or the caller stops reading.
        """
        timeout = httpx.Timeout(self._client.timeout.connect, read=None)
        try:
            async with self._client.stream(
                method, path, json=json, headers=self._headers(), timeout=timeout
            ) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response, _parse_body(response))
                yield response
        except httpx.TimeoutException as e:
            raise ApiTimeoutError("Request timeout") from e
        except httpx.HTTPError as e:
            raise ApiError(str(e) or "Network error") from e

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
