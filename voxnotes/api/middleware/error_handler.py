"""
Exception handlers turning failures into the ``{detail, code, timestamp}`` envelope.

Capture and save failures are user-visible and returned as-is; storage
failures and anything unexpected are logged with their traceback.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from voxnotes.core.exceptions import VoxNotesError

logger = logging.getLogger(__name__)


def _envelope(status_code: int, detail: str, code: str, timestamp: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "code": code,
            "timestamp": timestamp or datetime.now(UTC).isoformat(),
        },
    )


def _describe_validation(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into ``loc: message`` pairs."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    """Attach the VoxNotes exception handlers to *app*.

    Args:
        app: The FastAPI application instance to register handlers on.
    """

    @app.exception_handler(VoxNotesError)
    async def voxnotes_error_handler(request: Request, exc: VoxNotesError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
        else:
            logger.info("%s on %s %s", exc.code, request.method, request.url.path)
        return _envelope(exc.status_code, exc.detail, exc.code, exc.timestamp)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _envelope(422, _describe_validation(exc), "VALIDATION_ERROR")

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _envelope(500, "Internal server error", "INTERNAL_ERROR")
