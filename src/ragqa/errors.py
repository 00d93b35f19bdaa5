"""Exceptions raised by the ingestion and retrieval pipeline."""
from __future__ import annotations


class RAGError(RuntimeError):
    """Base class for every failure raised by the service core."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ConfigurationError(RAGError):
    """Raised when required configuration is missing or inconsistent."""


class DocumentDecodeError(RAGError):
    """Raised when an uploaded document cannot be turned into text."""


class UnsupportedMediaTypeError(DocumentDecodeError):
    """Raised for MIME types the decoder does not understand."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"unsupported file type: {mime_type or '(none)'}")
        self.mime_type = mime_type


class NoExtractableTextError(DocumentDecodeError):
    """Raised when a PDF yields no text at all."""


class ProviderError(RAGError):
    """Raised when a remote embedding or chat provider call fails."""


class EmptyResponseError(ProviderError):
    """Raised when a provider answers successfully but with no items."""


class MismatchedCardinalityError(ProviderError):
    """Raised when a batch embedding response has the wrong number of vectors."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"expected {expected} embeddings, provider returned {received}")
        self.expected = expected
        self.received = received


class InvalidInputError(RAGError, ValueError):
    """Raised when a caller passes input the operation cannot accept."""


class EmbeddingCancelledError(RAGError):
    """Raised when an embedding run is cancelled before it completes."""

    def __init__(self, message: str = "embedding cancelled") -> None:
        super().__init__(message)


class BatchEmbeddingError(RAGError):
    """Raised when one batch of a parallel embedding run fails."""

    def __init__(self, batch_index: int, first_chunk: int, cause: BaseException) -> None:
        super().__init__(
            f"failed to generate embedding for chunk {first_chunk} (batch {batch_index}): {cause}",
            cause=cause,
        )
        self.batch_index = batch_index
        self.first_chunk = first_chunk


class PipelineError(RAGError):
    """Raised by the pipeline with a prefix naming the failing stage."""

    def __init__(self, stage: str, message: str, *, cause: BaseException | None = None) -> None:
        detail = f"{message}: {cause}" if cause is not None else message
        super().__init__(detail, cause=cause)
        self.stage = stage


__all__ = [
    "BatchEmbeddingError",
    "ConfigurationError",
    "DocumentDecodeError",
    "EmbeddingCancelledError",
    "EmptyResponseError",
    "InvalidInputError",
    "MismatchedCardinalityError",
    "NoExtractableTextError",
    "PipelineError",
    "ProviderError",
    "RAGError",
    "UnsupportedMediaTypeError",
]
