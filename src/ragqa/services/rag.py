from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Mapping

from ragqa.batching import BatchCoordinator, run_cancellable
from ragqa.chunker import TextSplitter
from ragqa.config import Settings
from ragqa.embeddings import EmbeddingClient
from ragqa.errors import BatchEmbeddingError, EmbeddingCancelledError, PipelineError, RAGError
from ragqa.llm_provider import ChatClient
from ragqa.logging_config import AUDIT_LOGGER_NAME
from ragqa.models import DEFAULT_CONFIDENCE, DocumentChunk, RAGResponse, make_chunk_id
from ragqa.prompt_builder import build_prompt
from ragqa.telemetry import (
    emit_exception,
    emit_inference_request,
    emit_inference_result,
    emit_retriever_event,
    emit_vectorstore_event,
)
from ragqa.vectorstore import StoreError, VectorStore, create_vector_store

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

DEFAULT_MAX_CONTEXT_CHUNKS = 4


class RAGPipeline:
    """Orchestrates chunking, embedding, storage, retrieval and generation.

    The pipeline owns the only shared mutable state of the service (the
    vector store); everything else is immutable after construction, so one
    instance serves every request concurrently.
    """

    def __init__(
        self,
        *,
        splitter: TextSplitter,
        embedder: EmbeddingClient,
        chat: ChatClient,
        store: VectorStore,
        coordinator: BatchCoordinator | None = None,
        max_context_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS,
    ) -> None:
        self.splitter = splitter
        self.embedder = embedder
        self.chat = chat
        self.store = store
        self.coordinator = coordinator if coordinator is not None else BatchCoordinator(embedder)
        self.max_context_chunks = max_context_chunks

    @classmethod
    def from_settings(cls, settings: Settings) -> "RAGPipeline":
        embedder = EmbeddingClient(
            settings.openai_api_key,
            model=settings.embedding_model,
            base_url=settings.embedding_base_url,
            timeout=settings.provider_timeout_seconds,
        )
        chat = ChatClient(
            settings.deepseek_api_key,
            model=settings.chat_model,
            base_url=settings.chat_base_url,
            timeout=settings.provider_timeout_seconds,
        )
        return cls(
            splitter=TextSplitter(settings.chunk_size, settings.chunk_overlap),
            embedder=embedder,
            chat=chat,
            store=create_vector_store(settings.vector_store),
            coordinator=BatchCoordinator(
                embedder,
                max_batch_size=settings.embedding_batch_size,
                max_concurrency=settings.embedding_max_concurrency,
            ),
            max_context_chunks=settings.max_context_chunks,
        )

    async def process_document(
        self,
        content: str,
        metadata: Mapping[str, str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DocumentChunk]:
        """Split *content* and embed every piece; nothing is stored yet."""

        texts = self.splitter.split(content)
        source = metadata.get("source", "")
        try:
            vectors = await self.coordinator.embed(texts, cancel_event=cancel_event)
        except EmbeddingCancelledError:
            raise
        except BatchEmbeddingError as error:
            emit_exception(module=f"{__name__}.embed", error=error, stage="embed")
            raise PipelineError(
                "embed",
                f"failed to generate embedding for chunk {error.first_chunk}",
                cause=error.__cause__,
            ) from error
        except RAGError as error:
            emit_exception(module=f"{__name__}.embed", error=error, stage="embed")
            raise PipelineError(
                "embed", f"failed to generate embeddings for {source or 'document'}", cause=error
            ) from error

        chunks = [
            DocumentChunk(
                chunk_id=make_chunk_id(source, index),
                content=text,
                embedding=vector,
                metadata=dict(metadata),
            )
            for index, (text, vector) in enumerate(zip(texts, vectors))
        ]
        LOGGER.debug("Processed %s into %d chunks", source or "document", len(chunks))
        return chunks

    def add_to_vector_store(self, chunks: list[DocumentChunk]) -> None:
        started = time.perf_counter()
        try:
            self.store.store(chunks)
        except StoreError as error:
            emit_vectorstore_event(
                "vectorstore.add",
                backend=self.store.backend_name,
                count=len(chunks),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            raise PipelineError("store", "failed to store document chunks", cause=error) from error

        emit_vectorstore_event(
            "vectorstore.add",
            backend=self.store.backend_name,
            count=len(chunks),
            total=len(self.store),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )

    async def ingest_document(
        self,
        content: str,
        metadata: Mapping[str, str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DocumentChunk]:
        chunks = await self.process_document(content, metadata, cancel_event=cancel_event)
        self.add_to_vector_store(chunks)
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "source": metadata.get("source"),
                "chunk_count": len(chunks),
            }
        )
        return chunks

    async def query(
        self,
        question: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RAGResponse:
        """Answer *question* from the most similar stored chunks.

        Each stage failure is raised as :class:`PipelineError` whose message
        starts with the stage prefix; nothing is retried.
        """

        req_id = uuid.uuid4().hex

        try:
            query_vector = await run_cancellable(self.embedder.embed_one(question), cancel_event)
        except EmbeddingCancelledError:
            raise
        except RAGError as error:
            emit_exception(module=f"{__name__}.embed", error=error, req_id=req_id, stage="embed")
            raise PipelineError(
                "embed", "failed to generate embedding for query", cause=error
            ) from error

        search_started = time.perf_counter()
        try:
            scored = self.store.search(query_vector, self.max_context_chunks)
        except StoreError as error:
            emit_exception(module=f"{__name__}.search", error=error, req_id=req_id, stage="search")
            raise PipelineError("search", "failed to search vector store", cause=error) from error
        emit_retriever_event(
            req_id=req_id,
            query=question,
            top_k=self.max_context_chunks,
            results=[{"id": item.chunk.chunk_id, "score": item.score} for item in scored],
            duration_ms=(time.perf_counter() - search_started) * 1000.0,
        )

        sources = [item.chunk for item in scored]
        prompt = build_prompt(question, sources)
        emit_inference_request(
            req_id=req_id,
            model=self.chat.model_name,
            prompt_preview=prompt,
            prompt_len=len(prompt),
            temperature=self.chat.temperature,
            sources=[chunk.chunk_id for chunk in sources],
        )

        inference_started = time.perf_counter()
        try:
            answer = await run_cancellable(self.chat.complete(prompt), cancel_event)
        except EmbeddingCancelledError:
            raise
        except RAGError as error:
            LOGGER.exception("Chat completion failed for request %s", req_id)
            emit_exception(module=f"{__name__}.llm", error=error, req_id=req_id, stage="generate")
            raise PipelineError("generate", "failed to generate response", cause=error) from error

        emit_inference_result(
            req_id=req_id,
            model=self.chat.model_name,
            duration_ms=(time.perf_counter() - inference_started) * 1000.0,
            answer_preview=answer,
        )
        AUDIT_LOGGER.info(
            {
                "event": "query",
                "req_id": req_id,
                "question": question,
                "sources": [chunk.chunk_id for chunk in sources],
            }
        )
        return RAGResponse(answer=answer, sources=sources, confidence=DEFAULT_CONFIDENCE)

    async def aclose(self) -> None:
        await self.embedder.aclose()
        await self.chat.aclose()


__all__ = ["DEFAULT_MAX_CONTEXT_CHUNKS", "RAGPipeline"]
