"""
HTTP error handlers.

Maps forum errors to JSON responses of the form
{"code": ..., "message": ..., "details": ...}.
"""

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from loguru import logger

from app.core.exceptions import (
    ForumError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)

STATUS_CODES: dict[type[ForumError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    StoreError: 503,
}


def _error_payload(code: str, message: str, details) -> dict:
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app: FastAPI) -> None:
    """Attach forum exception handlers to the application."""

    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError):
        status_code = next(
            (
                code
                for error_type, code in STATUS_CODES.items()
                if isinstance(exc, error_type)
            ),
            400,
        )
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return ORJSONResponse(
            status_code=status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
        )
