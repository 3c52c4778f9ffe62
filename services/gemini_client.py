"""Gemini client using the OpenAI-compatible endpoint."""

import os
from typing import AsyncGenerator, Dict, List, Optional

from openai import AsyncOpenAI

from config import PROVIDERS, GENERATION_CONFIG


class GeminiClient:
    """Streams plain text deltas from Gemini chat completions."""

    def __init__(self, api_key: Optional[str] = None):
        self.config = PROVIDERS["gemini"]
        self.api_key = api_key if api_key is not None else os.getenv(self.config.api_key_env)
        self.assistant_role = self.config.assistant_role
        self.model = self.config.model
        self._client: Optional[AsyncOpenAI] = None

    def is_configured(self) -> bool:
        """True when a real (non-placeholder) API key is available."""
        return bool(self.api_key) and self.api_key != self.config.placeholder_key

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.config.base_url)
        return self._client

    async def stream_text(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        system_prompt: Optional[str] = None
    ) -> AsyncGenerator[str, None]:
        """Stream the reply to prompt given prior turns. Errors propagate."""
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(history)
        messages.append({"role": "user", "content": prompt})

        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=GENERATION_CONFIG["temperature"],
            top_p=GENERATION_CONFIG["top_p"],
            max_tokens=GENERATION_CONFIG["max_output_tokens"],
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text
