"""Configuration constants and provider definitions for the Hiwar chat backend."""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ProviderConfig:
    """Configuration for an upstream language-model provider."""
    id: str
    model: str
    api_key_env: str
    placeholder_key: str
    assistant_role: str
    base_url: Optional[str] = None


# Upstream providers, selected with LLM_PROVIDER
PROVIDERS = {
    "gemini": ProviderConfig(
        id="gemini",
        model="gemini-2.0-flash",
        api_key_env="GEMINI_API_KEY",
        placeholder_key="your_gemini_api_key_here",
        assistant_role="assistant",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    ),
    "anthropic": ProviderConfig(
        id="anthropic",
        model="claude-sonnet-4-5-20250929",
        api_key_env="ANTHROPIC_API_KEY",
        placeholder_key="your_anthropic_api_key_here",
        assistant_role="assistant",
    ),
}

DEFAULT_PROVIDER = "gemini"

# Generation parameters (static, never user-controllable)
GENERATION_CONFIG = {
    "temperature": 1.0,
    "top_p": 0.95,
    "top_k": 40,
    "max_output_tokens": 8192,
}

ASSISTANT_PERSONA = (
    "You are an Iraqi AI assistant and chatbot. Answer everything in an Iraqi accent and "
    "dialect, and never switch to a different Arabic accent or language. If the user asks "
    "who you are, how you function, who made you or who created you, answer: I have been "
    "developed and made by an Iraqi company called MoonWhale."
)

# Fallback text streamed in place of a model response
FALLBACK_NOT_CONFIGURED = "Sorry, our AI service is not configured correctly. Please contact support."
FALLBACK_PROVIDER_ERROR = "An error occurred while generating a response. Please try again later."
LEGACY_FALLBACK_NOT_CONFIGURED = (
    "Sorry, the Gemini API key is not configured correctly. "
    "Please add a valid API key to the .env.local file."
)
LEGACY_FALLBACK_PROVIDER_ERROR = (
    "An error occurred while communicating with the Gemini API. "
    "Please check the API key and try again."
)

# Locales
SUPPORTED_LOCALES = ("ar", "en")
DEFAULT_LOCALE = "ar"

# Validation limits
MAX_MESSAGE_CHARS = 10000
MAX_FEEDBACK_DETAILS_CHARS = 1000
PREVIEW_CHARS = 100
TITLE_CHARS = 50
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Persistence retry policy (attempt n waits INSERT_BASE_DELAY * 2**n seconds)
INSERT_MAX_ATTEMPTS = 3
INSERT_BASE_DELAY = 0.5
OUTBOX_FAILURE_HISTORY = 50

# Client library
SAVE_DEBOUNCE_SECONDS = 2.0
REQUEST_TIMEOUT_SECONDS = 30.0

# Auth
SESSION_COOKIE_NAME = "sb-access-token"
LOGIN_PATH = "/auth/login"

# Storage paths
DATABASE_PATH = os.getenv("CHAT_DATABASE_PATH", "data/chat.db")
