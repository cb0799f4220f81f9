"""JSON error envelope and exception-to-status mapping shared by all routers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from music_library.auth.admin import AdminAuthError
from music_library.errors import (
    ConstraintError,
    InvalidInputError,
    LibraryError,
    NotFoundError,
    TransportError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LibraryError], int] = {
    InvalidInputError: 400,
    NotFoundError: 404,
    ConstraintError: 409,
    TransportError: 503,
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """Build a JSON error response matching the project convention."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": None,
            }
        },
    )


def install_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(AdminAuthError)
    async def admin_auth_error_handler(request: Request, exc: AdminAuthError) -> JSONResponse:
        return error_response(403, exc.code, exc.message)

    @application.exception_handler(LibraryError)
    async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), 500)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(status_code, exc.code, exc.message)

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred.")
