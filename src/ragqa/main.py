import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ragqa.api import register_exception_handlers
from ragqa.api import router as rag_router
from ragqa.config import DEFAULT_CORS_ORIGINS, DEFAULT_MAX_UPLOAD_BYTES, Settings, load_settings
from ragqa.errors import ConfigurationError
from ragqa.extract import DocumentDecoder
from ragqa.logging_config import configure_logging
from ragqa.services.rag import RAGPipeline
from ragqa.telemetry import emit_app_startup_event

LOGGER = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


def create_app(settings: Settings | None = None, pipeline: RAGPipeline | None = None) -> FastAPI:
    """Build the HTTP application around a single pipeline.

    When *pipeline* is omitted it is wired from *settings*, which in turn are
    loaded from the environment when omitted.
    """

    if pipeline is None:
        settings = settings or load_settings()
        pipeline = RAGPipeline.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        emit_app_startup_event()
        try:
            yield
        finally:
            await app.state.pipeline.aclose()

    app = FastAPI(title="RAG QA API", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.decoder = DocumentDecoder()
    app.state.max_upload_bytes = settings.max_upload_bytes if settings else DEFAULT_MAX_UPLOAD_BYTES

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins if settings else DEFAULT_CORS_ORIGINS),
        allow_methods=CORS_METHODS,
        allow_headers=["*"],
        allow_credentials=True,
    )
    register_exception_handlers(app)
    app.include_router(rag_router)

    @app.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        """Liveness check."""
        return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc))

    return app


def run() -> None:
    """Console entry point: load configuration and serve until interrupted."""

    try:
        settings = load_settings()
    except ConfigurationError as error:
        configure_logging()
        LOGGER.error("Invalid configuration: %s", error)
        sys.exit(1)

    configure_logging(settings.log_level, audit_log_path=settings.audit_log_path)
    app = create_app(settings)
    LOGGER.info("Server starting on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
