"""Authenticated streaming chat endpoint."""

import logging
import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from api.auth import authorize_conversation, get_current_user, get_owned_conversation
from api.deps import get_chat_client, get_outbox, get_store, get_streaming
from config import FALLBACK_NOT_CONFIGURED, FALLBACK_PROVIDER_ERROR, MAX_MESSAGE_CHARS
from services.auth_service import AuthUser
from services.chat_relay import ChatClient, relay_chat
from services.chat_store import ChatStore
from services.outbox import PersistenceOutbox
from services.streaming_service import StreamingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


class Message(BaseModel):
    """A message in the conversation."""
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_CHARS)


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""
    messages: List[Message] = Field(min_length=1)
    conversation_id: Optional[uuid.UUID] = None
    # Id the client gave its assistant placeholder; the backup row reuses it
    assistant_message_id: Optional[str] = Field(None, min_length=1, max_length=128)


@router.post("")
async def stream_chat(
    request: ChatRequest,
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
    client: ChatClient = Depends(get_chat_client),
    outbox: PersistenceOutbox = Depends(get_outbox),
    streaming: StreamingService = Depends(get_streaming)
):
    """Relay the model's reply as a plain-text byte stream.

    When conversation_id is given, the finished reply is persisted as one
    assistant message through the outbox after the stream has been sent.
    """
    conversation_id = str(request.conversation_id) if request.conversation_id else None
    if conversation_id:
        await authorize_conversation(store, conversation_id, user)

    logger.info("[STREAM] Request received from user %s (conversation %s)", user.id, conversation_id)
    messages = [m.model_dump() for m in request.messages]
    stream_key = conversation_id or f"user:{user.id}"
    assistant_message_id = request.assistant_message_id or str(uuid.uuid4())

    async def persist_reply(full_response: str):
        if not conversation_id:
            return
        if not full_response:
            logger.warning("[STREAM] Empty reply, nothing to persist for %s", conversation_id)
            return

        async def write():
            await store.add_message(
                conversation_id=conversation_id,
                role="assistant",
                content=full_response,
                message_id=assistant_message_id,
            )
            await store.update_conversation_summary(conversation_id, full_response)

        outbox.submit(f"assistant-reply:{conversation_id}", write)

    async def body():
        state = streaming.start_stream(stream_key, user_id=user.id)
        try:
            async for chunk in relay_chat(
                client,
                messages,
                fallback_not_configured=FALLBACK_NOT_CONFIGURED,
                fallback_error=FALLBACK_PROVIDER_ERROR,
                stop_event=state.stop_event,
                on_complete=persist_reply,
                log_context=f" (user {user.id})",
            ):
                yield chunk
        finally:
            streaming.end_stream(stream_key, state.stream_id)

    headers = dict(STREAM_HEADERS)
    if conversation_id:
        headers["X-Conversation-ID"] = conversation_id

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8", headers=headers)


@router.get("/streaming/{conversation_id}")
async def get_streaming_status(
    conversation: dict = Depends(get_owned_conversation),
    streaming: StreamingService = Depends(get_streaming)
):
    """Check whether a reply is currently streaming into a conversation."""
    return streaming.get_status(conversation["id"])


@router.post("/streaming/{conversation_id}/stop")
async def stop_streaming(
    conversation: dict = Depends(get_owned_conversation),
    streaming: StreamingService = Depends(get_streaming)
):
    """Cancel the reply streaming into a conversation."""
    if not streaming.stop_stream(conversation["id"]):
        raise HTTPException(status_code=404, detail="No active stream")
    return {"success": True}
