"""Bounded-concurrency batch embedding.

Texts are cut into consecutive batches of at most ``max_batch_size``. Small
inputs go out as a single request; larger ones get one task per batch, with
an :class:`asyncio.Semaphore` of ``max_concurrency`` permits gating the
provider call. Each task posts a :class:`BatchResult` tagged with its batch
index to a queue, and the coordinator sorts the drained results by that index
before concatenating, so output position ``i`` always matches input ``i``
regardless of completion order.

Cancellation is signalled with an :class:`asyncio.Event`. Once set, no new
provider calls start and in-flight calls are abandoned; the run then fails
with the first real error seen, or :class:`EmbeddingCancelledError` when
there was none. Cancelling the awaiting task itself also works and raises
:class:`asyncio.CancelledError` as usual.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Protocol, Sequence, TypeVar

from ragqa.errors import BatchEmbeddingError, EmbeddingCancelledError
from ragqa.telemetry import emit_batch_event

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 40
DEFAULT_MAX_CONCURRENCY = 5

T = TypeVar("T")


class BatchEmbedder(Protocol):
    """Anything that embeds a list of texts in one request."""

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        ...


@dataclass(frozen=True, slots=True)
class EmbeddingBatch:
    index: int
    start: int
    texts: list[str]


@dataclass(slots=True)
class BatchResult:
    index: int
    embeddings: list[list[float]] | None = None
    error: Exception | None = None


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel_event: asyncio.Event | None,
) -> T:
    """Await *awaitable* unless *cancel_event* fires first.

    When the event wins, the pending call is cancelled and
    :class:`EmbeddingCancelledError` is raised.
    """

    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise EmbeddingCancelledError()

    call = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        call.cancel()
        raise
    finally:
        waiter.cancel()

    if call in done:
        return call.result()

    call.cancel()
    await asyncio.gather(call, return_exceptions=True)
    raise EmbeddingCancelledError()


def partition(texts: Sequence[str], max_batch_size: int) -> list[EmbeddingBatch]:
    """Cut *texts* into ordered batches of at most *max_batch_size* items."""

    if max_batch_size <= 0:
        raise ValueError("max_batch_size must be a positive integer")
    return [
        EmbeddingBatch(index=number, start=start, texts=list(texts[start : start + max_batch_size]))
        for number, start in enumerate(range(0, len(texts), max_batch_size))
    ]


class BatchCoordinator:
    """Embed any number of texts while bounding batch size and parallelism."""

    def __init__(
        self,
        embedder: BatchEmbedder,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be a positive integer")
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be a positive integer")
        self._embedder = embedder
        self.max_batch_size = max_batch_size
        self.max_concurrency = max_concurrency

    async def embed(
        self,
        texts: Sequence[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[list[float]]:
        texts = list(texts)
        if cancel_event is not None and cancel_event.is_set():
            raise EmbeddingCancelledError()

        if len(texts) <= self.max_batch_size:
            try:
                return await self._call_provider(texts, cancel_event)
            except EmbeddingCancelledError:
                raise
            except Exception as error:
                raise BatchEmbeddingError(0, 0, error) from error
        return await self._embed_parallel(texts, cancel_event)

    async def _embed_parallel(
        self,
        texts: list[str],
        cancel_event: asyncio.Event | None,
    ) -> list[list[float]]:
        batches = partition(texts, self.max_batch_size)
        req_id = uuid.uuid4().hex[:8]
        started = time.perf_counter()
        emit_batch_event(
            "embeddings.batch.start",
            req_id=req_id,
            texts=len(texts),
            batches=len(batches),
            max_batch_size=self.max_batch_size,
            max_concurrency=self.max_concurrency,
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results: asyncio.Queue[BatchResult] = asyncio.Queue(maxsize=len(batches))
        await asyncio.gather(
            *(self._run_batch(batch, semaphore, results, cancel_event) for batch in batches)
        )

        drained = [results.get_nowait() for _ in range(results.qsize())]
        drained.sort(key=lambda result: result.index)

        failure = self._select_failure(drained)
        duration_ms = (time.perf_counter() - started) * 1000.0
        if failure is not None:
            if isinstance(failure.error, EmbeddingCancelledError):
                emit_batch_event(
                    "embeddings.batch.cancelled",
                    req_id=req_id,
                    texts=len(texts),
                    batches=len(batches),
                    max_batch_size=self.max_batch_size,
                    max_concurrency=self.max_concurrency,
                    duration_ms=duration_ms,
                )
                raise failure.error
            batch = batches[failure.index]
            error = BatchEmbeddingError(failure.index, batch.start, failure.error)
            emit_batch_event(
                "embeddings.batch.error",
                req_id=req_id,
                texts=len(texts),
                batches=len(batches),
                max_batch_size=self.max_batch_size,
                max_concurrency=self.max_concurrency,
                duration_ms=duration_ms,
                failed_batch=failure.index,
                error=error,
            )
            raise error

        embeddings: list[list[float]] = []
        for result in drained:
            embeddings.extend(result.embeddings or [])

        emit_batch_event(
            "embeddings.batch.complete",
            req_id=req_id,
            texts=len(texts),
            batches=len(batches),
            max_batch_size=self.max_batch_size,
            max_concurrency=self.max_concurrency,
            duration_ms=duration_ms,
        )
        return embeddings

    async def _run_batch(
        self,
        batch: EmbeddingBatch,
        semaphore: asyncio.Semaphore,
        results: asyncio.Queue[BatchResult],
        cancel_event: asyncio.Event | None,
    ) -> None:
        try:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    raise EmbeddingCancelledError()
                embeddings = await self._call_provider(batch.texts, cancel_event)
        except Exception as error:
            LOGGER.debug("Embedding batch %d failed: %s", batch.index, error)
            results.put_nowait(BatchResult(index=batch.index, error=error))
        else:
            results.put_nowait(BatchResult(index=batch.index, embeddings=embeddings))

    async def _call_provider(
        self,
        texts: list[str],
        cancel_event: asyncio.Event | None,
    ) -> list[list[float]]:
        return await run_cancellable(self._embedder.embed_many(texts), cancel_event)

    @staticmethod
    def _select_failure(results: list[BatchResult]) -> BatchResult | None:
        cancelled: BatchResult | None = None
        for result in results:
            if result.error is None:
                continue
            if not isinstance(result.error, EmbeddingCancelledError):
                return result
            cancelled = cancelled or result
        return cancelled


__all__ = [
    "BatchCoordinator",
    "BatchEmbedder",
    "BatchResult",
    "DEFAULT_MAX_BATCH_SIZE",
    "DEFAULT_MAX_CONCURRENCY",
    "EmbeddingBatch",
    "partition",
    "run_cancellable",
]
