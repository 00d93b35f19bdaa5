"""Runtime configuration read from the environment (and an optional ``.env``)."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from ragqa.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

DEFAULT_PORT = 3001
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_CHAT_MODEL = "deepseek-chat"
DEFAULT_CHAT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_MAX_UPLOAD_BYTES = 10 << 20
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _str_from_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _list_from_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable service configuration shared by every request."""

    openai_api_key: str
    deepseek_api_key: str
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_base_url: str | None = None
    chat_model: str = DEFAULT_CHAT_MODEL
    chat_base_url: str = DEFAULT_CHAT_BASE_URL
    chunk_size: int = 1000
    chunk_overlap: int = 200
    embedding_batch_size: int = 40
    embedding_max_concurrency: int = 5
    max_context_chunks: int = 4
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    provider_timeout_seconds: float = 60.0
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"
    audit_log_path: str | None = None
    vector_store: str = "memory"

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigurationError("CHUNK_SIZE must be a positive integer")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ConfigurationError("CHUNK_OVERLAP must be non-negative and smaller than CHUNK_SIZE")
        if self.embedding_batch_size <= 0:
            raise ConfigurationError("EMBEDDING_BATCH_SIZE must be a positive integer")
        if self.embedding_max_concurrency <= 0:
            raise ConfigurationError("EMBEDDING_MAX_CONCURRENCY must be a positive integer")
        if self.max_upload_bytes <= 0:
            raise ConfigurationError("MAX_UPLOAD_BYTES must be a positive integer")

    def __repr__(self) -> str:
        return (
            f"Settings(port={self.port}, embedding_model={self.embedding_model!r}, "
            f"chat_model={self.chat_model!r}, chat_base_url={self.chat_base_url!r}, "
            f"vector_store={self.vector_store!r})"
        )


def load_settings(*, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from the process environment.

    A ``.env`` file in the working directory is loaded first when present;
    variables already set in the environment win over the file.
    Raises :class:`ConfigurationError` when a required API key is missing.
    """

    if dotenv and not load_dotenv(find_dotenv(usecwd=True)):
        LOGGER.debug("No .env file found, using environment variables")

    openai_api_key = _str_from_env("OPENAI_API_KEY")
    deepseek_api_key = _str_from_env("DEEPSEEK_API_KEY")
    if not deepseek_api_key:
        raise ConfigurationError("DEEPSEEK_API_KEY environment variable is required")
    if not openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable is required")

    return Settings(
        openai_api_key=openai_api_key,
        deepseek_api_key=deepseek_api_key,
        port=_int_from_env("PORT", DEFAULT_PORT),
        host=_str_from_env("HOST", "0.0.0.0") or "0.0.0.0",
        embedding_model=_str_from_env("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL) or DEFAULT_EMBEDDING_MODEL,
        embedding_base_url=_str_from_env("EMBEDDING_BASE_URL"),
        chat_model=_str_from_env("CHAT_MODEL", DEFAULT_CHAT_MODEL) or DEFAULT_CHAT_MODEL,
        chat_base_url=_str_from_env("CHAT_BASE_URL", DEFAULT_CHAT_BASE_URL) or DEFAULT_CHAT_BASE_URL,
        chunk_size=_int_from_env("CHUNK_SIZE", 1000),
        chunk_overlap=_int_from_env("CHUNK_OVERLAP", 200),
        embedding_batch_size=_int_from_env("EMBEDDING_BATCH_SIZE", 40),
        embedding_max_concurrency=_int_from_env("EMBEDDING_MAX_CONCURRENCY", 5),
        max_context_chunks=_int_from_env("MAX_CONTEXT_CHUNKS", 4),
        max_upload_bytes=_int_from_env("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        provider_timeout_seconds=_float_from_env("PROVIDER_TIMEOUT_SECONDS", 60.0),
        cors_origins=_list_from_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        log_level=(_str_from_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        audit_log_path=_str_from_env("AUDIT_LOG_PATH"),
        vector_store=(_str_from_env("VECTOR_STORE", "memory") or "memory").lower(),
    )


__all__ = ["Settings", "load_settings"]
