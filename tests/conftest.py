"""Shared fixtures: in-process fakes for the embedding and chat providers."""
from __future__ import annotations

import asyncio
import string
from typing import Callable, Sequence

import pytest

from ragqa.batching import BatchCoordinator
from ragqa.chunker import TextSplitter
from ragqa.services.rag import RAGPipeline
from ragqa.vectorstore import InMemoryVectorStore


def letter_histogram(text: str) -> list[float]:
    """Deterministic 26-dimensional embedding: ASCII letter counts."""

    lowered = text.lower()
    return [float(lowered.count(letter)) for letter in string.ascii_lowercase]


class FakeEmbedder:
    """Stand-in for :class:`ragqa.embeddings.EmbeddingClient`."""

    model = "fake-embedding"

    def __init__(
        self,
        embed: Callable[[str], list[float]] = letter_histogram,
        *,
        delay: Callable[[Sequence[str]], float] | None = None,
        fail_when: Callable[[Sequence[str]], bool] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._embed = embed
        self._delay = delay
        self._fail_when = fail_when
        self._error = error
        self.calls: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        batch = list(texts)
        self.calls.append(batch)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay is not None:
                await asyncio.sleep(self._delay(batch))
            if self._error is not None and (self._fail_when is None or self._fail_when(batch)):
                raise self._error
            return [self._embed(text) for text in batch]
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


class EchoChat:
    """Chat fake that answers with the prompt it was given."""

    model_name = "echo-chat"
    temperature = 0.0

    def __init__(self, error: Exception | None = None) -> None:
        self.prompts: list[str] = []
        self._error = error
        self.closed = False

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return prompt

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def chat() -> EchoChat:
    return EchoChat()


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def pipeline(embedder: FakeEmbedder, chat: EchoChat, store: InMemoryVectorStore) -> RAGPipeline:
    return RAGPipeline(
        splitter=TextSplitter(chunk_size=1000, chunk_overlap=200),
        embedder=embedder,
        chat=chat,
        store=store,
        coordinator=BatchCoordinator(embedder, max_batch_size=40, max_concurrency=5),
    )
