"""Service layer wiring the retrieval pipeline together."""

from .rag import RAGPipeline

__all__ = ["RAGPipeline"]
