"""Chat completion client for the answer-generation step."""

from __future__ import annotations

import logging
from typing import Any

import openai

from ragqa.errors import EmptyResponseError, ProviderError

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-chat"
DEFAULT_BASE_URL = "https://api.deepseek.com/v1"


class ChatClient:
    """Single-turn chat completions with deterministic decoding.

    Every call sends one user message with ``temperature=0`` so identical
    prompts get identical answers from a deterministic provider.
    """

    temperature = 0.0

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self._client = client or openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )

    @property
    def model_name(self) -> str:
        return self.model

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except openai.OpenAIError as error:
            LOGGER.warning("Chat completion via %s failed: %s", self.model, error)
            raise ProviderError(f"chat completion request failed: {error}", cause=error) from error

        choices = list(response.choices or [])
        if not choices:
            raise EmptyResponseError("no response from chat completion provider")
        return choices[0].message.content or ""

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()


__all__ = ["ChatClient", "DEFAULT_BASE_URL", "DEFAULT_MODEL"]
