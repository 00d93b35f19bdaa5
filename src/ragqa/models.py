"""Data models shared by the ingestion and query paths."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

DEFAULT_CONFIDENCE = 0.8


def make_chunk_id(source: str, index: int) -> str:
    """Return the stable identifier of chunk *index* within *source*."""

    return f"{source}-chunk-{index}"


@dataclass(frozen=True, slots=True)
class DocumentChunk:
    """A passage of a source document together with its embedding.

    Chunks are never modified once stored; an empty ``embedding`` keeps the
    chunk out of similarity search.
    """

    chunk_id: str
    content: str
    embedding: list[float] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def source(self) -> str | None:
        return self.metadata.get("source")

    def to_dict(self, *, include_embedding: bool = False) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.chunk_id,
            "content": self.content,
            "metadata": dict(self.metadata),
        }
        if include_embedding and self.embedding:
            payload["embedding"] = list(self.embedding)
        return payload


@dataclass(frozen=True, slots=True)
class ScoredChunk:
    """A stored chunk and its cosine similarity to a query vector."""

    chunk: DocumentChunk
    score: float


@dataclass(slots=True)
class Document:
    """An uploaded document; lives only for the duration of the upload request."""

    name: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    chunks: list[DocumentChunk] = field(default_factory=list)
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunks_count(self) -> int:
        return len(self.chunks)


@dataclass(frozen=True, slots=True)
class RAGResponse:
    """Answer produced by :meth:`RAGPipeline.query`."""

    answer: str
    sources: list[DocumentChunk]
    # Placeholder until a score-derived confidence exists.
    confidence: float = DEFAULT_CONFIDENCE


__all__ = [
    "DEFAULT_CONFIDENCE",
    "Document",
    "DocumentChunk",
    "RAGResponse",
    "ScoredChunk",
    "make_chunk_id",
]
