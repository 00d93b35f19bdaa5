"""Vector store contract and the backends that implement it."""

from __future__ import annotations

from .base import VectorStore
from .errors import StoreError
from .locking import ReadWriteLock
from .memory_store import InMemoryVectorStore

_BACKENDS: dict[str, type[VectorStore]] = {
    InMemoryVectorStore.backend_name: InMemoryVectorStore,
}


def create_vector_store(backend: str = "memory") -> VectorStore:
    """Return a fresh vector store for the configured *backend* name."""

    key = backend.strip().lower()
    try:
        factory = _BACKENDS[key]
    except KeyError:
        raise ValueError(
            f"Unsupported VECTOR_STORE backend: {backend!r}. Available: {sorted(_BACKENDS)}"
        ) from None
    return factory()


__all__ = [
    "InMemoryVectorStore",
    "ReadWriteLock",
    "StoreError",
    "VectorStore",
    "create_vector_store",
]
