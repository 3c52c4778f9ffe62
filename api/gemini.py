"""Legacy unauthenticated streaming endpoint.

Kept for older clients that post to /api/gemini. It relays exactly like
/api/chat but performs no authentication and persists nothing.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from api.chat import STREAM_HEADERS
from api.deps import get_legacy_chat_client
from config import LEGACY_FALLBACK_NOT_CONFIGURED, LEGACY_FALLBACK_PROVIDER_ERROR
from services.chat_relay import ChatClient, relay_chat

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gemini", tags=["chat"])


class LegacyMessage(BaseModel):
    role: str
    content: str


class LegacyChatRequest(BaseModel):
    messages: List[LegacyMessage] = Field(min_length=1)


@router.post("")
async def legacy_stream_chat(
    request: LegacyChatRequest,
    client: ChatClient = Depends(get_legacy_chat_client)
):
    """Relay the model's reply as a plain-text byte stream."""
    messages = [m.model_dump() for m in request.messages]
    return StreamingResponse(
        relay_chat(
            client,
            messages,
            fallback_not_configured=LEGACY_FALLBACK_NOT_CONFIGURED,
            fallback_error=LEGACY_FALLBACK_PROVIDER_ERROR,
            log_context=" (legacy route)",
        ),
        media_type="text/plain; charset=utf-8",
        headers=STREAM_HEADERS,
    )
