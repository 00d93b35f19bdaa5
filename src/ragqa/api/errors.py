"""Error envelope shared by every endpoint: ``{error, code, details?}``."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import codes

LOGGER = logging.getLogger(__name__)

INVALID_QUESTION_MESSAGE = "Question is required and must be a string"
NO_FILE_MESSAGE = "No file provided"


class APIError(Exception):
    """An error that maps directly onto an HTTP status and wire code."""

    def __init__(
        self,
        status_code: int,
        error: str,
        code: str,
        details: str | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.code = code
        self.details = details

    def to_payload(self) -> dict[str, str]:
        payload = {"error": self.error, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.details or exc.error,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    LOGGER.debug("Rejected request to %s: %s", request.url.path, exc.errors())
    if request.url.path.endswith("/upload"):
        error = APIError(400, NO_FILE_MESSAGE, codes.NO_FILE)
    else:
        error = APIError(400, INVALID_QUESTION_MESSAGE, codes.INVALID_REQUEST)
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


__all__ = [
    "APIError",
    "INVALID_QUESTION_MESSAGE",
    "NO_FILE_MESSAGE",
    "api_error_handler",
    "register_exception_handlers",
    "validation_error_handler",
]
