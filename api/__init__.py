"""API routes module for the Hiwar chat backend."""

from .chat import router as chat_router
from .gemini import router as gemini_router
from .conversations import router as conversations_router
from .feature_request import router as feature_request_router
from .profile import router as profile_router
from .auth_callback import router as auth_callback_router
from .changelog import router as changelog_router

__all__ = [
    "chat_router",
    "gemini_router",
    "conversations_router",
    "feature_request_router",
    "profile_router",
    "auth_callback_router",
    "changelog_router",
]
