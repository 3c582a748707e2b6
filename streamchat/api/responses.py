"""Response envelopes and exception handlers.

Every non-streaming endpoint answers with
``{success, data, timestamp}`` or
``{success: false, error: {message, code, details?}, timestamp}``.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from streamchat.errors import ChatError, ErrorKind, format_validation_errors

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def success_response(data: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Wrap ``data`` (already JSON-compatible) in a success envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": data, "timestamp": _timestamp()},
    )


def error_response(error: ChatError) -> JSONResponse:
    """Render a ChatError as an error envelope with its kind's status code."""
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.to_dict(), "timestamp": _timestamp()},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers."""

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        if exc.kind in (ErrorKind.VALIDATION, ErrorKind.NOT_FOUND):
            logger.info(f"{request.method} {request.url.path}: {exc.message}")
        else:
            logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(f"Validation failed for {request.method} {request.url.path}")
        return error_response(
            ChatError.validation(
                "Invalid request data",
                details=format_validation_errors(list(exc.errors())),
            )
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error for {request.method} {request.url.path}")
        return error_response(ChatError(ErrorKind.INTERNAL, "Internal server error"))
