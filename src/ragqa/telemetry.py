"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import socket
import sys
import traceback
from typing import Any, Iterable

LOGGER = logging.getLogger("ragqa.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "PORT",
    "EMBEDDING_MODEL",
    "EMBEDDING_BASE_URL",
    "CHAT_MODEL",
    "CHAT_BASE_URL",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "EMBEDDING_BATCH_SIZE",
    "EMBEDDING_MAX_CONCURRENCY",
    "MAX_CONTEXT_CHUNKS",
    "VECTOR_STORE",
    "LOG_LEVEL",
)

_PREVIEW_CHARS = 120


def log_event(
    logger: logging.Logger,
    step: str,
    *,
    level: int = logging.INFO,
    req_id: str | None = None,
    duration_ms: float | None = None,
    details: dict[str, Any] | None = None,
    exc: BaseException | str | None = None,
) -> None:
    """Log ``{step, module, req_id?, duration_ms?, details?, exc?}`` as one record."""

    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    if isinstance(exc, BaseException):
        event["exc"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    elif exc:
        event["exc"] = exc
    logger.log(level, event)


def emit_app_startup_event() -> None:
    details = {
        "env": {key: os.environ[key] for key in _ENV_KEYS_TO_LOG if key in os.environ},
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "pid": os.getpid(),
        "hostname": socket.gethostname(),
    }
    log_event(LOGGER, "app.startup", details=details)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    level = logging.WARNING if errors else logging.INFO
    log_event(LOGGER, "embeddings.compute", level=level, duration_ms=duration_ms, details=details)


def emit_batch_event(
    step: str,
    *,
    req_id: str,
    texts: int,
    batches: int,
    max_batch_size: int,
    max_concurrency: int,
    duration_ms: float | None = None,
    failed_batch: int | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "texts": texts,
        "batches": batches,
        "max_batch_size": max_batch_size,
        "max_concurrency": max_concurrency,
        "failed_batch": failed_batch,
    }
    level = logging.ERROR if error else logging.INFO
    log_event(
        LOGGER,
        step,
        level=level,
        req_id=req_id,
        duration_ms=duration_ms,
        details=details,
        exc=str(error) if error else None,
    )


def emit_vectorstore_event(
    step: str,
    *,
    backend: str,
    count: int,
    total: int | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "backend": backend,
        "count": count,
        "total": total,
    }
    level = logging.ERROR if error else logging.INFO
    log_event(LOGGER, step, level=level, duration_ms=duration_ms, details=details, exc=error)


def emit_retriever_event(
    *,
    req_id: str,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:_PREVIEW_CHARS],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, "retriever.search", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_inference_request(
    *,
    req_id: str,
    model: str,
    prompt_preview: str,
    prompt_len: int,
    temperature: float,
    sources: Iterable[str],
) -> None:
    details = {
        "model": model,
        "prompt_preview": prompt_preview[:_PREVIEW_CHARS],
        "prompt_len": prompt_len,
        "temperature": temperature,
        "sources": list(sources),
    }
    log_event(LOGGER, "inference.request", req_id=req_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    model: str,
    duration_ms: float,
    answer_preview: str,
) -> None:
    details = {
        "model": model,
        "answer_preview": answer_preview[:_PREVIEW_CHARS],
        "answer_len": len(answer_preview),
    }
    log_event(LOGGER, "inference.result", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_ingest_event(
    step: str,
    *,
    source: str,
    req_id: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    chunks: int | None = None,
    mime_type: str | None = None,
) -> None:
    details = {
        "source": source,
        "size_bytes": size_bytes,
        "mime_type": mime_type,
        "chunks": chunks,
    }
    log_event(LOGGER, step, req_id=req_id, duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    stage: str | None = None,
) -> None:
    details = {"module": module}
    if stage:
        details["stage"] = stage
    log_event(
        LOGGER,
        "exception",
        level=logging.ERROR,
        req_id=req_id,
        details=details,
        exc=error,
    )


__all__ = [
    "emit_app_startup_event",
    "emit_batch_event",
    "emit_embeddings_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_ingest_event",
    "emit_retriever_event",
    "emit_vectorstore_event",
    "log_event",
]
