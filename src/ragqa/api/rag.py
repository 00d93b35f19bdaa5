"""API router exposing upload and query endpoints for the RAG service."""
from __future__ import annotations

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field, StrictStr

from ragqa.config import DEFAULT_MAX_UPLOAD_BYTES
from ragqa.errors import DocumentDecodeError, RAGError
from ragqa.extract import DocumentDecoder
from ragqa.models import DocumentChunk
from ragqa.services.rag import RAGPipeline
from ragqa.telemetry import emit_ingest_event

from . import codes
from .errors import NO_FILE_MESSAGE, APIError

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rag"])

_MEGABYTE = 1 << 20


def format_file_size(num_bytes: int) -> str:
    """Render *num_bytes* as ``"10MB"`` or, for non-whole values, ``"1.5MB"``."""

    if num_bytes % _MEGABYTE == 0:
        return f"{num_bytes // _MEGABYTE}MB"
    return f"{num_bytes / _MEGABYTE:.1f}MB"


class UploadDocumentSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    chunks_count: int = Field(alias="chunksCount")
    uploaded_at: datetime = Field(alias="uploadedAt")


class UploadResponse(BaseModel):
    """Response body returned from the upload endpoint."""

    document: UploadDocumentSummary


class QueryRequest(BaseModel):
    """Request body accepted by the query endpoint."""

    question: StrictStr


class AnswerSource(BaseModel):
    id: str
    content: str
    metadata: dict[str, str]


class QueryResponse(BaseModel):
    """Response payload for the query endpoint."""

    answer: str
    sources: list[AnswerSource]
    confidence: float


def get_pipeline(request: Request) -> RAGPipeline:
    return request.app.state.pipeline


def get_document_decoder(request: Request) -> DocumentDecoder:
    return request.app.state.decoder


def get_max_upload_bytes(request: Request) -> int:
    return getattr(request.app.state, "max_upload_bytes", DEFAULT_MAX_UPLOAD_BYTES)


def _serialise_sources(chunks: list[DocumentChunk]) -> list[AnswerSource]:
    return [AnswerSource(**chunk.to_dict()) for chunk in chunks]


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile | None = File(None),
    pipeline: RAGPipeline = Depends(get_pipeline),
    decoder: DocumentDecoder = Depends(get_document_decoder),
    max_upload_bytes: int = Depends(get_max_upload_bytes),
) -> UploadResponse:
    """Decode, chunk, embed and store one uploaded document."""

    if file is None or not file.filename:
        raise APIError(400, NO_FILE_MESSAGE, codes.NO_FILE)

    if file.size is not None and file.size > max_upload_bytes:
        raise _file_too_large(max_upload_bytes)
    data = await file.read()
    if len(data) > max_upload_bytes:
        raise _file_too_large(max_upload_bytes)

    started = time.perf_counter()
    emit_ingest_event(
        "ingest.file.start",
        source=file.filename,
        size_bytes=len(data),
        mime_type=file.content_type,
    )

    try:
        content = await run_in_threadpool(decoder.decode, data, file.content_type)
    except DocumentDecodeError as error:
        raise APIError(500, "Failed to process document", codes.PROCESSING_ERROR, str(error)) from error

    document = decoder.create_document(content, file.filename)
    metadata = {"source": file.filename}

    try:
        chunks = await pipeline.process_document(content, metadata)
    except RAGError as error:
        raise APIError(
            500, "Failed to process document chunks", codes.CHUNKING_ERROR, str(error)
        ) from error

    try:
        pipeline.add_to_vector_store(chunks)
    except RAGError as error:
        raise APIError(
            500, "Failed to store document chunks", codes.STORAGE_ERROR, str(error)
        ) from error

    document.chunks = chunks
    emit_ingest_event(
        "ingest.file.complete",
        source=document.name,
        size_bytes=len(data),
        mime_type=file.content_type,
        chunks=document.chunks_count,
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )

    return UploadResponse(
        document=UploadDocumentSummary(
            id=document.id,
            name=document.name,
            chunks_count=document.chunks_count,
            uploaded_at=document.uploaded_at,
        )
    )


@router.post("/query", response_model=QueryResponse)
async def query_documents(
    request: QueryRequest,
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> QueryResponse:
    """Answer a question from the stored documents."""

    if not request.question.strip():
        raise APIError(400, "Question cannot be empty", codes.EMPTY_QUESTION)

    try:
        result = await pipeline.query(request.question)
    except RAGError as error:
        raise APIError(500, "Failed to process query", codes.QUERY_ERROR, str(error)) from error

    return QueryResponse(
        answer=result.answer,
        sources=_serialise_sources(result.sources),
        confidence=result.confidence,
    )


def _file_too_large(max_upload_bytes: int) -> APIError:
    return APIError(
        400,
        f"File too large. Maximum size is {format_file_size(max_upload_bytes)}",
        codes.FILE_TOO_LARGE,
    )


__all__ = [
    "AnswerSource",
    "QueryRequest",
    "QueryResponse",
    "UploadDocumentSummary",
    "UploadResponse",
    "format_file_size",
    "get_document_decoder",
    "get_max_upload_bytes",
    "get_pipeline",
    "router",
]
