"""Explicit auth/profile state with a hydrate -> refresh -> invalidate lifecycle.

The store is created once at the application boundary and passed to
whatever needs the current user. Its cached state lives in a JSON file so a
restart can show the last known profile before the network answers.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from client.api_client import ApiClient, ApiError

logger = logging.getLogger(__name__)

# Lifecycle states
SIGNED_OUT = "signed_out"
HYDRATED = "hydrated"
READY = "ready"


class AuthStore:
    """Holds the access token and profile of the signed-in user."""

    def __init__(self, api: ApiClient, cache_path: Union[str, Path]):
        self.api = api
        self.cache_path = Path(cache_path)
        self.status = SIGNED_OUT
        self.access_token: Optional[str] = None
        self.profile: Optional[Dict[str, Any]] = None
        self._listeners: List[Callable[["AuthStore"], None]] = []
        self._refresh_task: Optional[asyncio.Task] = None
        api.on_unauthorized.append(self.invalidate)

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def subscribe(self, listener: Callable[["AuthStore"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _write_cache(self):
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_path, "w", encoding="utf-8") as f:
            json.dump({"access_token": self.access_token, "profile": self.profile}, f)

    def hydrate(self) -> bool:
        """Load the cached session, if any. Returns True when one was found."""
        if not self.cache_path.exists():
            return False
        try:
            with open(self.cache_path, encoding="utf-8") as f:
                cached = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("[AUTH] Ignoring unreadable auth cache %s: %s", self.cache_path, e)
            return False

        token = cached.get("access_token") if isinstance(cached, dict) else None
        if not token:
            return False
        self.access_token = token
        self.profile = cached.get("profile")
        self.api.token = token
        self.status = HYDRATED
        self._notify()
        return True

    def sign_in(self, access_token: str, profile: Optional[Dict[str, Any]] = None):
        self.access_token = access_token
        self.profile = profile
        self.api.token = access_token
        self.status = READY if profile is not None else HYDRATED
        self._write_cache()
        self._notify()

    async def refresh(self) -> Optional[Dict[str, Any]]:
        """Fetch the current profile. A 401 invalidates the session."""
        if not self.access_token:
            return None
        try:
            profile = await self.api.get("/api/profile")
        except ApiError as e:
            # 401 already invalidated through on_unauthorized
            if e.status != 401:
                logger.warning("[AUTH] Profile refresh failed, keeping cached state: %s", e)
            return self.profile

        self.profile = profile
        self.status = READY
        self._write_cache()
        self._notify()
        return profile

    def start_refresh(self) -> asyncio.Task:
        """Refresh in the background. Must be called from a running event loop."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self.refresh())
        return self._refresh_task

    def invalidate(self):
        """Forget the session everywhere: memory, API client and cache file."""
        was_signed_in = self.access_token is not None
        self.access_token = None
        self.profile = None
        self.api.token = None
        self.status = SIGNED_OUT
        self.cache_path.unlink(missing_ok=True)
        if was_signed_in:
            logger.info("[AUTH] Session invalidated")
            self._notify()

    async def sign_out(self):
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self.invalidate()
