"""Embedding client backed by an OpenAI-compatible embeddings endpoint."""
from __future__ import annotations

import base64
import logging
import time
from typing import Any, Sequence

import numpy as np
import openai

from ragqa.errors import (
    EmptyResponseError,
    InvalidInputError,
    MismatchedCardinalityError,
    ProviderError,
)
from ragqa.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"


def widen_embedding(raw: Any) -> list[float]:
    """Return *raw* as a list of 64-bit Python floats.

    Providers answer either with a JSON list of numbers or, when asked for
    ``encoding_format="base64"``, with little-endian float32 bytes.
    """

    if isinstance(raw, str):
        packed = np.frombuffer(base64.b64decode(raw), dtype="<f4")
        return packed.astype(np.float64).tolist()
    return np.asarray(raw, dtype=np.float64).tolist()


class EmbeddingClient:
    """Request embeddings for one or many texts.

    The model is fixed at construction. There is no retry; transport and
    HTTP failures surface as :class:`ProviderError`.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: float = 60.0,
        encoding_format: str = "float",
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.encoding_format = encoding_format
        if client is None:
            kwargs: dict[str, Any] = {"api_key": api_key, "timeout": timeout}
            if base_url:
                kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**kwargs)
        self._client = client

    async def embed_one(self, text: str) -> list[float]:
        data = await self._create([text])
        if not data:
            raise EmptyResponseError("no embedding returned")
        return widen_embedding(data[0].embedding)

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        if len(texts) == 0:
            raise InvalidInputError("cannot embed an empty list of texts")

        data = await self._create(list(texts))
        if len(data) != len(texts):
            raise MismatchedCardinalityError(expected=len(texts), received=len(data))
        return [widen_embedding(item.embedding) for item in data]

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    async def _create(self, texts: list[str]) -> list[Any]:
        started = time.perf_counter()
        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=texts,
                encoding_format=self.encoding_format,
            )
        except openai.OpenAIError as error:
            emit_embeddings_event(
                model=self.model,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            raise ProviderError(f"embedding request failed: {error}", cause=error) from error

        emit_embeddings_event(
            model=self.model,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        data = list(response.data or [])
        ordered = sorted(enumerate(data), key=lambda pair: _provider_index(pair[1], pair[0]))
        return [item for _, item in ordered]


def _provider_index(item: Any, position: int) -> int:
    index = getattr(item, "index", None)
    return index if isinstance(index, int) else position


__all__ = ["DEFAULT_MODEL", "EmbeddingClient", "widen_embedding"]
