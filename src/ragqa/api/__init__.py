"""HTTP surface of the service."""

from .errors import APIError, register_exception_handlers
from .rag import router

__all__ = ["APIError", "register_exception_handlers", "router"]
