"""Anthropic API client wrapper with streaming support."""

import os
from typing import AsyncGenerator, Dict, List, Optional

import anthropic

from config import PROVIDERS, GENERATION_CONFIG


class AnthropicClient:
    """Streams plain text deltas from the Anthropic Messages API."""

    def __init__(self, api_key: Optional[str] = None):
        self.config = PROVIDERS["anthropic"]
        self.api_key = api_key if api_key is not None else os.getenv(self.config.api_key_env)
        self.assistant_role = self.config.assistant_role
        self.model = self.config.model
        self._client: Optional[anthropic.AsyncAnthropic] = None

    def is_configured(self) -> bool:
        """True when a real (non-placeholder) API key is available."""
        return bool(self.api_key) and self.api_key != self.config.placeholder_key

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def stream_text(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        system_prompt: Optional[str] = None
    ) -> AsyncGenerator[str, None]:
        """Stream the reply to prompt given prior turns.

        history items are {"role": "user" | "assistant", "content": str}.
        Errors propagate to the caller.
        """
        params = {
            "model": self.model,
            "max_tokens": GENERATION_CONFIG["max_output_tokens"],
            "messages": history + [{"role": "user", "content": prompt}],
            "temperature": GENERATION_CONFIG["temperature"],
            "top_k": GENERATION_CONFIG["top_k"],
        }
        if system_prompt:
            params["system"] = system_prompt

        async with self.client.messages.stream(**params) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text
