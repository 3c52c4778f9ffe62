"""Pass-through relay from an upstream model stream to an HTTP byte stream."""

import asyncio
import logging
from typing import (
    AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple,
)

from config import ASSISTANT_PERSONA

logger = logging.getLogger(__name__)


class ChatClient(Protocol):
    """What the relay needs from an upstream provider client."""
    assistant_role: str
    model: str

    def is_configured(self) -> bool: ...

    def stream_text(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        system_prompt: Optional[str] = None
    ) -> AsyncGenerator[str, None]: ...


def to_provider_turns(
    messages: Sequence[Dict[str, str]],
    assistant_role: str
) -> Tuple[List[Dict[str, str]], str]:
    """Split generic {role, content} pairs into (history, prompt).

    "user" keeps its role, every other role becomes the provider's assistant
    role. The last message is the new prompt; everything before it is history.
    """
    if not messages:
        raise ValueError("At least one message is required")

    turns = [
        {"role": "user" if m["role"] == "user" else assistant_role, "content": m["content"]}
        for m in messages
    ]
    return turns[:-1], turns[-1]["content"]


async def relay_chat(
    client: ChatClient,
    messages: Sequence[Dict[str, str]],
    fallback_not_configured: str,
    fallback_error: str,
    stop_event: Optional[asyncio.Event] = None,
    on_complete: Optional[Callable[[str], Awaitable[None]]] = None,
    system_prompt: str = ASSISTANT_PERSONA,
    log_context: str = ""
) -> AsyncGenerator[bytes, None]:
    """Relay provider chunks verbatim as UTF-8 bytes.

    - Unconfigured provider: a single fallback_not_configured chunk.
    - Provider failure: the error is logged and fallback_error is emitted.
    - stop_event set between chunks: the relay stops without completing.
    on_complete receives the accumulated text only when the provider stream
    ended normally. Its failures are logged and never reach the caller.
    """
    if not client.is_configured():
        logger.error("[STREAM] Provider is not configured%s", log_context)
        yield fallback_not_configured.encode("utf-8")
        return

    history, prompt = to_provider_turns(messages, client.assistant_role)
    full_response = ""
    stream = client.stream_text(history, prompt, system_prompt)
    try:
        async for text in stream:
            if stop_event is not None and stop_event.is_set():
                logger.info("[STREAM] Stream superseded after %d chars%s", len(full_response), log_context)
                return
            full_response += text
            yield text.encode("utf-8")
    except Exception as e:
        logger.exception("[STREAM] Provider error%s: %s", log_context, e)
        yield fallback_error.encode("utf-8")
        return
    finally:
        await stream.aclose()

    if stop_event is not None and stop_event.is_set():
        logger.info("[STREAM] Stream superseded at completion%s", log_context)
        return

    if on_complete is not None:
        try:
            await on_complete(full_response)
        except Exception as e:
            logger.error("[STREAM] Completion handler failed%s: %s", log_context, e)
