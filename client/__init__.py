"""Async client library for the Hiwar chat backend."""

from .api_client import ApiClient, ApiError, ApiTimeoutError
from .auth_state import AuthStore
from .chat_session import ChatMessage, ChatSession
from .debounce import Debouncer

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiTimeoutError",
    "AuthStore",
    "ChatMessage",
    "ChatSession",
    "Debouncer",
]
