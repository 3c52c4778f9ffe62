"""Mock chat client for deterministic testing.

When the MOCK_LLM environment variable is set, the backend streams canned
text chunks instead of calling a real provider. This enables testing
without external API dependencies.
"""

import asyncio
import os
from typing import AsyncGenerator, Dict, List, Optional, Sequence


def is_mock_mode() -> bool:
    """Check if mock mode is enabled via environment variable."""
    return os.getenv("MOCK_LLM", "").lower() in ("1", "true", "yes")


MOCK_TEXT_CHUNKS = [
    "هلا! ",
    "I'm a ",
    "**mock response** ",
    "designed for ",
    "testing purposes.\n\n",
    "- Item one\n",
    "- Item two\n",
]


class MockChatClient:
    """Chat client that replays fixed chunks with a small delay."""

    assistant_role = "assistant"
    model = "mock"

    def __init__(
        self,
        chunks: Optional[Sequence[str]] = None,
        delay_ms: int = 20,
        fail_after: Optional[int] = None
    ):
        self.chunks = list(chunks) if chunks is not None else list(MOCK_TEXT_CHUNKS)
        self.delay_ms = delay_ms
        self.fail_after = fail_after
        self.calls: List[Dict] = []

    def is_configured(self) -> bool:
        return True

    async def stream_text(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        system_prompt: Optional[str] = None
    ) -> AsyncGenerator[str, None]:
        """Yield the configured chunks; raise after fail_after chunks if set."""
        self.calls.append({"history": history, "prompt": prompt, "system_prompt": system_prompt})
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("mock provider failure")
            if self.delay_ms:
                await asyncio.sleep(self.delay_ms / 1000)
            yield chunk
