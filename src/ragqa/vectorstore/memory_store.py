"""In-memory vector store backed by a plain list and exact scan."""
from __future__ import annotations

import heapq
import logging
from typing import Sequence

from ragqa.models import DocumentChunk, ScoredChunk
from ragqa.similarity import cosine_similarity

from .base import VectorStore
from .errors import StoreError
from .locking import ReadWriteLock

LOGGER = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStore):
    """Keep every chunk for the lifetime of the process."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._chunks: list[DocumentChunk] = []
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._chunks)

    def store(self, chunks: Sequence[DocumentChunk]) -> None:
        batch = list(chunks)
        for chunk in batch:
            if not isinstance(chunk, DocumentChunk):
                raise StoreError(f"cannot store object of type {type(chunk).__name__}")
        if not batch:
            return

        with self._lock.write_locked():
            self._chunks.extend(batch)
            total = len(self._chunks)
        LOGGER.debug("Stored %d chunks (total=%d)", len(batch), total)

    def search(self, query_vector: Sequence[float], limit: int) -> list[ScoredChunk]:
        if limit <= 0:
            return []

        with self._lock.read_locked():
            snapshot = list(self._chunks)

        scored = (
            ScoredChunk(chunk=chunk, score=cosine_similarity(query_vector, chunk.embedding))
            for chunk in snapshot
            if chunk.embedding
        )
        # nlargest is stable for equal keys, so ties keep insertion order.
        return heapq.nlargest(limit, scored, key=lambda item: item.score)


__all__ = ["InMemoryVectorStore"]
