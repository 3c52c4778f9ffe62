"""Conversation management endpoints."""

import logging
import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from api.auth import get_current_user, get_owned_conversation
from api.deps import get_outbox, get_store
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from services.auth_service import AuthUser
from services.chat_store import ChatStore, utc_now
from services.i18n import get_translator, resolve_locale
from services.outbox import PersistenceOutbox
from services.retry import RetryError, with_retry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class CreateConversationRequest(BaseModel):
    """Request to create a new conversation."""
    title: str = Field(min_length=1)
    model: Optional[str] = None


class UpdateConversationRequest(BaseModel):
    """Request to rename, pin or archive a conversation."""
    title: Optional[str] = Field(None, min_length=1)
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None
    model: Optional[str] = None


class SaveMessage(BaseModel):
    """A message in a bulk save request."""
    id: Optional[str] = Field(None, min_length=1, max_length=128)
    role: Literal["user", "assistant", "system"]
    content: str
    topic: Optional[str] = None
    extension: Optional[str] = None
    timestamp: Optional[datetime] = None


class SaveMessagesRequest(BaseModel):
    """Bulk backup save of a conversation's messages."""
    messages: List[SaveMessage]
    total_count: Optional[int] = Field(None, ge=0)


def _database_error(message: str, error: Exception) -> HTTPException:
    logger.error("[CONVERSATIONS] %s: %s", message, error)
    return HTTPException(status_code=500, detail={"error": message, "details": str(error)})


@router.get("")
async def list_conversations(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    archived: bool = Query(False),
    pinned: Optional[bool] = Query(None),
    q: Optional[str] = Query(None, description="Case-insensitive title search"),
    on_date: Optional[date] = Query(None, alias="date", description="Only conversations created that day"),
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """List the caller's conversations, pinned first, then most recent."""
    logger.debug("[CONVERSATIONS] Fetching conversations for user %s", user.id)
    try:
        return await store.list_conversations(
            user_id=user.id,
            archived=archived,
            pinned=pinned,
            search=q,
            on_date=on_date,
            limit=limit,
            offset=offset
        )
    except aiosqlite.Error as e:
        raise _database_error("Failed to fetch conversations", e)


@router.post("")
async def create_conversation(
    request: CreateConversationRequest,
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Create a new conversation."""
    try:
        return await store.create_conversation(user.id, request.title, request.model)
    except aiosqlite.Error as e:
        raise _database_error("Failed to create conversation", e)


@router.get("/{conversation_id}")
async def get_conversation(conversation: dict = Depends(get_owned_conversation)):
    """Get a single conversation row."""
    return conversation


@router.patch("/{conversation_id}")
async def update_conversation(
    request: UpdateConversationRequest,
    conversation: dict = Depends(get_owned_conversation),
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Rename, pin/unpin or archive/unarchive a conversation."""
    try:
        return await store.update_conversation(
            conversation["id"],
            user.id,
            **request.model_dump(exclude_none=True)
        )
    except aiosqlite.Error as e:
        raise _database_error("Failed to update conversation", e)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation: dict = Depends(get_owned_conversation),
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Soft-delete a conversation."""
    try:
        await store.soft_delete_conversation(conversation["id"], user.id)
    except aiosqlite.Error as e:
        raise _database_error("Failed to delete conversation", e)
    return {"success": True}


@router.get("/{conversation_id}/messages")
async def get_messages(
    http_request: Request,
    locale: Optional[str] = Query(None),
    conversation: dict = Depends(get_owned_conversation),
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
    outbox: PersistenceOutbox = Depends(get_outbox)
):
    """Get all messages of a conversation in creation order.

    An empty conversation gets a localized welcome message, which is
    returned immediately and persisted in the background. Repeated calls
    racing that write may each persist their own welcome row.
    """
    conversation_id = conversation["id"]
    try:
        messages = await store.list_messages(conversation_id)
        if messages:
            return messages
        profile = await store.get_profile(user.id)
    except aiosqlite.Error as e:
        raise _database_error("Failed to fetch messages", e)

    translator = get_translator(resolve_locale(
        locale,
        profile["preferred_language"] if profile else None,
        http_request.headers.get("accept-language"),
    ))
    now = utc_now()
    welcome = {
        "id": str(uuid.uuid4()),
        "conversation_id": conversation_id,
        "role": "assistant",
        "content": translator.t("Chat.welcome"),
        "topic": "default",
        "extension": ".txt",
        "payload": None,
        "tokens": None,
        "metadata": None,
        "event": None,
        "private": None,
        "created_at": now,
        "updated_at": now,
        "inserted_at": now,
    }

    async def persist_welcome():
        await store.insert_messages(conversation_id, [welcome])

    outbox.submit(f"welcome-message:{conversation_id}", persist_welcome)
    return [welcome]


@router.post("/{conversation_id}/messages")
async def save_messages(
    request: SaveMessagesRequest,
    conversation: dict = Depends(get_owned_conversation),
    store: ChatStore = Depends(get_store)
):
    """Bulk-save messages, retrying transient database failures.

    Messages without an id or timestamp get generated ones. The parent
    conversation's preview and count are refreshed from the last message.
    """
    conversation_id = conversation["id"]
    rows = [m.model_dump() for m in request.messages]

    try:
        saved = await with_retry(
            lambda: store.insert_messages(conversation_id, rows),
            label=f"save-messages:{conversation_id}",
        )
    except RetryError as e:
        raise _database_error("Failed to save messages", e.last_error)

    if saved:
        message_count = request.total_count if request.total_count is not None else len(saved)
        try:
            await store.update_conversation_summary(
                conversation_id,
                saved[-1]["content"],
                message_count=message_count
            )
        except aiosqlite.Error as e:
            logger.warning("[CONVERSATIONS] Summary update failed for %s: %s", conversation_id, e)

    return saved
