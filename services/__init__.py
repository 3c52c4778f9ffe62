"""Services module for the Hiwar chat backend."""

from .anthropic_client import AnthropicClient
from .chat_store import ChatStore
from .gemini_client import GeminiClient
from .outbox import PersistenceOutbox

__all__ = ["AnthropicClient", "ChatStore", "GeminiClient", "PersistenceOutbox"]
