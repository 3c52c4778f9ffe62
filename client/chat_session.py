"""Client-side chat state: send, stream, load and back up a conversation."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from client.api_client import ApiClient, ApiError
from client.debounce import Debouncer
from config import DEFAULT_LOCALE, SAVE_DEBOUNCE_SECONDS, TITLE_CHARS
from services.i18n import get_translator

logger = logging.getLogger(__name__)


_last_stamp: Optional[datetime] = None


def _now() -> str:
    """UTC timestamp, strictly increasing within the process."""
    global _last_stamp
    stamp = datetime.now(timezone.utc)
    if _last_stamp is not None and stamp <= _last_stamp:
        stamp = _last_stamp + timedelta(microseconds=1)
    _last_stamp = stamp
    return stamp.isoformat()


@dataclass
class ChatMessage:
    """One message in the in-memory timeline."""
    role: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_now)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatMessage":
        return cls(
            role=row["role"],
            content=row["content"],
            id=row["id"],
            timestamp=row.get("created_at") or row.get("timestamp") or _now(),
        )

    def to_turn(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role, "content": self.content, "timestamp": self.timestamp}


class ChatSession:
    """One chat view's state.

    Every change to `messages` notifies listeners and, for an authenticated
    session with a conversation, schedules a debounced backup save. Starting
    a new send supersedes the stream of the previous one: the old stream
    stops at its next chunk and leaves its partial text in place.
    """

    def __init__(
        self,
        api: ApiClient,
        conversation_id: Optional[str] = None,
        locale: str = DEFAULT_LOCALE,
        save_delay: float = SAVE_DEBOUNCE_SECONDS,
        sleep=None
    ):
        self.api = api
        self.conversation_id = conversation_id
        self.messages: List[ChatMessage] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self._translator = get_translator(locale)
        self._stream_token: Optional[asyncio.Event] = None
        self._saver = Debouncer(save_delay, self._save, sleep=sleep)
        self._listeners: List[Callable[["ChatSession"], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api.token)

    def subscribe(self, listener: Callable[["ChatSession"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _messages_changed(self):
        self._notify()
        if self.messages and self.is_authenticated and self.conversation_id:
            self._saver.schedule()

    def _cancel_stream(self):
        if self._stream_token is not None:
            self._stream_token.set()
            self._stream_token = None

    async def send_message(self, content: str) -> ChatMessage:
        """Send a user message and stream the reply into a placeholder.

        Returns the assistant message, whose content holds whatever text
        arrived before the stream ended, failed or was superseded.
        """
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")

        self._cancel_stream()
        token = asyncio.Event()
        self._stream_token = token

        user_message = ChatMessage(role="user", content=content)
        history = [
            m.to_turn() for m in self.messages
            if m.content and m.role in ("user", "assistant")
        ]
        history.append(user_message.to_turn())
        placeholder = ChatMessage(role="assistant", content="")

        self.messages.extend([user_message, placeholder])
        self.is_loading = True
        self.error = None
        self._messages_changed()

        try:
            if self.is_authenticated and self.conversation_id is None:
                conversation = await self.api.post(
                    "/api/conversations", {"title": content[:TITLE_CHARS]}
                )
                self.conversation_id = conversation["id"]

            if self.is_authenticated:
                path = "/api/chat"
                body: Dict[str, Any] = {"messages": history, "assistant_message_id": placeholder.id}
                if self.conversation_id:
                    body["conversation_id"] = self.conversation_id
            else:
                path = "/api/gemini"
                body = {"messages": history}

            response_text = ""
            async with self.api.stream("POST", path, json=body) as response:
                async for chunk in response.aiter_text():
                    if token.is_set():
                        logger.info("[CHAT] Stream superseded for message %s", placeholder.id)
                        break
                    response_text += chunk
                    placeholder.content = response_text
                    self._messages_changed()
        except ApiError as e:
            if not token.is_set():
                logger.error("[CHAT] Send failed: %s (status %s)", e, e.status)
                self.error = self._translator.t("Errors.generic")
        finally:
            if self._stream_token is token:
                self._stream_token = None
                self.is_loading = False
                self._notify()

        return placeholder

    async def load_conversation(self, conversation_id: str) -> List[ChatMessage]:
        """Replace the timeline with a stored conversation's messages."""
        self._cancel_stream()
        await self._saver.flush()

        self.is_loading = True
        self.error = None
        self._notify()
        try:
            rows = await self.api.get(f"/api/conversations/{conversation_id}/messages")
        except ApiError as e:
            logger.error("[CHAT] Loading conversation %s failed: %s", conversation_id, e)
            self.error = self._translator.t("Errors.generic")
            return self.messages
        finally:
            self.is_loading = False

        self.conversation_id = conversation_id
        self.messages = [ChatMessage.from_row(row) for row in rows]
        self._notify()
        return self.messages

    def clear_messages(self):
        """Start over with an empty, not-yet-created conversation."""
        self._cancel_stream()
        self._saver.cancel()
        self.messages = []
        self.conversation_id = None
        self.is_loading = False
        self.error = None
        self._notify()

    async def _save(self):
        conversation_id = self.conversation_id
        messages = [m for m in self.messages if m.content]
        if not conversation_id or not messages or not self.is_authenticated:
            return
        try:
            await self.api.post(
                f"/api/conversations/{conversation_id}/messages",
                {"messages": [m.to_dict() for m in messages], "total_count": len(messages)},
            )
            logger.debug("[SAVE] Saved %d messages to %s", len(messages), conversation_id)
        except ApiError as e:
            logger.warning("[SAVE] Backup save of %s failed: %s", conversation_id, e)

    async def flush(self):
        """Run any pending backup save now."""
        await self._saver.flush()

    async def close(self):
        self._cancel_stream()
        await self.flush()
