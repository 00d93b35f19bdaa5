"""Common exceptions for vector store integrations."""
from __future__ import annotations

from ragqa.errors import RAGError


class StoreError(RAGError):
    """Raised when the vector store cannot accept or search chunks."""
