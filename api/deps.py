"""Dependency injection providers for the API layer.

This module provides a single source of truth for shared services like the
chat store, the auth provider and the upstream chat client. Routes receive
them through FastAPI's Depends; tests install fakes with override().
"""

import logging
import os
from typing import Optional

from config import DEFAULT_PROVIDER
from services.anthropic_client import AnthropicClient
from services.auth_service import SupabaseAuth
from services.chat_relay import ChatClient
from services.chat_store import ChatStore
from services.gemini_client import GeminiClient
from services.mock_streams import MockChatClient, is_mock_mode
from services.outbox import PersistenceOutbox
from services.streaming_service import StreamingService, get_streaming_service

logger = logging.getLogger(__name__)

# Singleton instances
_store: Optional[ChatStore] = None
_auth: Optional[SupabaseAuth] = None
_chat_client: Optional[ChatClient] = None
_legacy_chat_client: Optional[ChatClient] = None
_outbox: Optional[PersistenceOutbox] = None
_streaming: Optional[StreamingService] = None
_initialized: bool = False


def create_chat_client(provider: Optional[str] = None) -> ChatClient:
    """Build the upstream chat client named by provider (or LLM_PROVIDER)."""
    if is_mock_mode():
        return MockChatClient()
    provider = (provider or os.getenv("LLM_PROVIDER") or DEFAULT_PROVIDER).strip().lower()
    if provider == "gemini":
        return GeminiClient()
    if provider == "anthropic":
        return AnthropicClient()
    raise ValueError(f"Unsupported LLM provider: {provider}")


async def initialize_all():
    """Initialize all stores and services. Called once at app startup."""
    global _store, _auth, _chat_client, _legacy_chat_client, _outbox, _streaming, _initialized

    if _initialized:
        return

    _store = ChatStore()
    await _store.initialize()

    _auth = SupabaseAuth()
    _chat_client = create_chat_client()
    _legacy_chat_client = create_chat_client("gemini")
    _outbox = PersistenceOutbox()
    _streaming = get_streaming_service()

    _initialized = True
    logger.info("[DEPS] All services initialized")


async def shutdown_all():
    """Drain pending persistence jobs before the process exits."""
    if _outbox is not None:
        await _outbox.close()


def override(
    store: Optional[ChatStore] = None,
    auth=None,
    chat_client: Optional[ChatClient] = None,
    legacy_chat_client: Optional[ChatClient] = None,
    outbox: Optional[PersistenceOutbox] = None,
    streaming: Optional[StreamingService] = None
):
    """Install pre-built services and mark dependencies initialized."""
    global _store, _auth, _chat_client, _legacy_chat_client, _outbox, _streaming, _initialized
    _store = store
    _auth = auth
    _chat_client = chat_client
    _legacy_chat_client = legacy_chat_client or chat_client
    _outbox = outbox or PersistenceOutbox()
    _streaming = streaming or StreamingService()
    _initialized = True


def reset():
    """Forget every singleton (tests)."""
    global _store, _auth, _chat_client, _legacy_chat_client, _outbox, _streaming, _initialized
    _store = _auth = _chat_client = _legacy_chat_client = _outbox = _streaming = None
    _initialized = False


def _require(value, name: str):
    if not _initialized or value is None:
        raise RuntimeError(f"Dependency '{name}' not initialized. Call initialize_all() first.")
    return value


def get_store() -> ChatStore:
    """Get the singleton ChatStore instance."""
    return _require(_store, "store")


def get_auth() -> SupabaseAuth:
    """Get the singleton auth provider."""
    return _require(_auth, "auth")


def get_chat_client() -> ChatClient:
    """Get the upstream chat client used by /api/chat."""
    return _require(_chat_client, "chat_client")


def get_legacy_chat_client() -> ChatClient:
    """Get the upstream chat client used by the legacy /api/gemini route."""
    return _require(_legacy_chat_client, "legacy_chat_client")


def get_outbox() -> PersistenceOutbox:
    return _require(_outbox, "outbox")


def get_streaming() -> StreamingService:
    return _require(_streaming, "streaming")


def is_initialized() -> bool:
    """Check if dependencies have been initialized."""
    return _initialized
