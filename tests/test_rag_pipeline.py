from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import EchoChat, FakeEmbedder
from ragqa.batching import BatchCoordinator
from ragqa.chunker import TextSplitter
from ragqa.config import Settings
from ragqa.embeddings import EmbeddingClient
from ragqa.errors import (
    EmbeddingCancelledError,
    EmptyResponseError,
    PipelineError,
    ProviderError,
)
from ragqa.llm_provider import ChatClient
from ragqa.models import DEFAULT_CONFIDENCE
from ragqa.services.rag import RAGPipeline
from ragqa.vectorstore import InMemoryVectorStore, StoreError


@pytest.mark.anyio
async def test_query_end_to_end_returns_ingested_chunk(pipeline: RAGPipeline, chat: EchoChat) -> None:
    await pipeline.ingest_document("The capital of France is Paris.", {"source": "geo.txt"})

    response = await pipeline.query("What is the capital of France?")

    assert response.sources[0].chunk_id == "geo.txt-chunk-0"
    assert response.confidence == DEFAULT_CONFIDENCE == 0.8
    assert "The capital of France is Paris." in response.answer
    assert "Question: What is the capital of France?" in chat.prompts[0]


@pytest.mark.anyio
async def test_process_document_builds_ordered_chunks_without_storing(
    embedder: FakeEmbedder, chat: EchoChat
) -> None:
    store = InMemoryVectorStore()
    pipeline = RAGPipeline(
        splitter=TextSplitter(chunk_size=10, chunk_overlap=2),
        embedder=embedder,
        chat=chat,
        store=store,
        coordinator=BatchCoordinator(embedder, max_batch_size=2, max_concurrency=2),
    )
    content = "alpha beta gamma delta epsilon zeta eta theta"

    chunks = await pipeline.process_document(content, {"source": "greek.txt"})

    assert [chunk.chunk_id for chunk in chunks] == [f"greek.txt-chunk-{i}" for i in range(len(chunks))]
    assert [chunk.content for chunk in chunks] == TextSplitter(10, 2).split(content)
    assert all(chunk.metadata == {"source": "greek.txt"} for chunk in chunks)
    assert all(len(chunk.embedding) == 26 for chunk in chunks)
    assert len(store) == 0

    pipeline.add_to_vector_store(chunks)
    assert len(store) == len(chunks)


@pytest.mark.anyio
async def test_query_sources_are_ordered_and_limited(embedder: FakeEmbedder, chat: EchoChat) -> None:
    pipeline = RAGPipeline(
        splitter=TextSplitter(),
        embedder=embedder,
        chat=chat,
        store=InMemoryVectorStore(),
        max_context_chunks=2,
    )
    for name, text in [("a.txt", "zzzz"), ("b.txt", "apples and pears"), ("c.txt", "apples")]:
        await pipeline.ingest_document(text, {"source": name})

    response = await pipeline.query("apples")

    assert [chunk.chunk_id for chunk in response.sources] == ["c.txt-chunk-0", "b.txt-chunk-0"]
    assert "apples\n\napples and pears" in response.answer


@pytest.mark.anyio
async def test_embedding_failure_during_query_is_prefixed(chat: EchoChat) -> None:
    embedder = FakeEmbedder(error=ProviderError("connection reset"))
    pipeline = RAGPipeline(
        splitter=TextSplitter(), embedder=embedder, chat=chat, store=InMemoryVectorStore()
    )

    with pytest.raises(PipelineError, match="^failed to generate embedding for query: connection reset"):
        await pipeline.query("anything")
    assert chat.prompts == []


@pytest.mark.anyio
async def test_search_failure_is_prefixed(pipeline: RAGPipeline) -> None:
    pipeline.store = Mock(spec=InMemoryVectorStore)
    pipeline.store.search.side_effect = StoreError("index offline")

    with pytest.raises(PipelineError, match="^failed to search vector store") as excinfo:
        await pipeline.query("anything")
    assert excinfo.value.stage == "search"


@pytest.mark.anyio
async def test_chat_failure_is_prefixed(embedder: FakeEmbedder) -> None:
    pipeline = RAGPipeline(
        splitter=TextSplitter(),
        embedder=embedder,
        chat=EchoChat(error=EmptyResponseError("no response from chat completion provider")),
        store=InMemoryVectorStore(),
    )

    with pytest.raises(PipelineError, match="^failed to generate response") as excinfo:
        await pipeline.query("anything")
    assert isinstance(excinfo.value.__cause__, EmptyResponseError)


@pytest.mark.anyio
async def test_storage_failure_is_wrapped(pipeline: RAGPipeline) -> None:
    chunks = await pipeline.process_document("text", {"source": "s.txt"})
    pipeline.store = Mock(spec=InMemoryVectorStore)
    pipeline.store.backend_name = "memory"
    pipeline.store.store.side_effect = StoreError("disk full")

    with pytest.raises(PipelineError, match="failed to store document chunks: disk full"):
        pipeline.add_to_vector_store(chunks)


@pytest.mark.anyio
async def test_cancelled_query_skips_generation(pipeline: RAGPipeline, chat: EchoChat) -> None:
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(EmbeddingCancelledError):
        await pipeline.query("anything", cancel_event=cancel)
    assert chat.prompts == []


@pytest.mark.anyio
async def test_aclose_closes_both_providers(pipeline: RAGPipeline, embedder: FakeEmbedder, chat: EchoChat) -> None:
    await pipeline.aclose()

    assert embedder.closed and chat.closed


def test_from_settings_wires_configured_collaborators() -> None:
    settings = Settings(
        openai_api_key="sk-openai",
        deepseek_api_key="sk-deepseek",
        chunk_size=500,
        chunk_overlap=50,
        embedding_batch_size=16,
        embedding_max_concurrency=2,
        max_context_chunks=3,
        chat_model="deepseek-reasoner",
    )

    pipeline = RAGPipeline.from_settings(settings)

    assert isinstance(pipeline.embedder, EmbeddingClient)
    assert isinstance(pipeline.chat, ChatClient)
    assert pipeline.chat.model_name == "deepseek-reasoner"
    assert pipeline.splitter == TextSplitter(500, 50)
    assert (pipeline.coordinator.max_batch_size, pipeline.coordinator.max_concurrency) == (16, 2)
    assert pipeline.max_context_chunks == 3
    assert isinstance(pipeline.store, InMemoryVectorStore)


@pytest.mark.anyio
async def test_aclose_awaits_real_clients() -> None:
    embedder = Mock(spec=EmbeddingClient)
    embedder.aclose = AsyncMock()
    chat = Mock(spec=ChatClient)
    chat.aclose = AsyncMock()
    pipeline = RAGPipeline(splitter=TextSplitter(), embedder=embedder, chat=chat, store=InMemoryVectorStore())

    await pipeline.aclose()

    embedder.aclose.assert_awaited_once()
    chat.aclose.assert_awaited_once()


@pytest.mark.anyio
async def test_embedding_failure_names_the_failing_chunk(chat: EchoChat) -> None:
    embedder = FakeEmbedder(fail_when=lambda batch: "cc" in batch, error=ProviderError("boom"))
    pipeline = RAGPipeline(
        splitter=Mock(spec=TextSplitter, split=Mock(return_value=["aa", "bb", "cc"])),
        embedder=embedder,
        chat=chat,
        store=InMemoryVectorStore(),
        coordinator=BatchCoordinator(embedder, max_batch_size=2, max_concurrency=2),
    )

    with pytest.raises(PipelineError) as excinfo:
        await pipeline.process_document("ignored", {"source": "s.txt"})

    assert str(excinfo.value) == "failed to generate embedding for chunk 2: boom"
    assert excinfo.value.stage == "embed"


def test_empty_collaborators_are_kept(embedder: FakeEmbedder, chat: EchoChat) -> None:
    store = InMemoryVectorStore()
    coordinator = BatchCoordinator(embedder)

    pipeline = RAGPipeline(
        splitter=TextSplitter(), embedder=embedder, chat=chat, store=store, coordinator=coordinator
    )

    assert len(store) == 0
    assert pipeline.store is store
    assert pipeline.coordinator is coordinator
