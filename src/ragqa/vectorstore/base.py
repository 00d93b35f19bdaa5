"""Abstract contract every vector store backend satisfies."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ragqa.models import DocumentChunk, ScoredChunk


class VectorStore(ABC):
    """Append-only chunk store with exact top-k cosine search."""

    backend_name = "abstract"

    @abstractmethod
    def store(self, chunks: Sequence[DocumentChunk]) -> None:
        """Append *chunks* atomically with respect to concurrent searches.

        Raises:
            StoreError: if the backend cannot accept the chunks.
        """

    @abstractmethod
    def search(self, query_vector: Sequence[float], limit: int) -> list[ScoredChunk]:
        """Return up to *limit* chunks ordered by descending cosine similarity.

        Chunks without an embedding are skipped, an empty store yields an
        empty list, and ``limit <= 0`` yields an empty list. Equal scores keep
        insertion order.
        """

    @abstractmethod
    def __len__(self) -> int:
        """Return the number of stored chunks."""
