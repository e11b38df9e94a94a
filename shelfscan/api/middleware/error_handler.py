"""
Error Handling for the ShelfScan API

Centralized error handling:
- Structured error responses
- Logging of errors
- Translation of pipeline exceptions
"""

import traceback
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from shelfscan.identification.exceptions import (
    InvalidCandidateError,
    SourceError,
    UnknownLocationError,
)


class ShelfScanException(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class NotFoundError(ShelfScanException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )


class ValidationError(ShelfScanException):
    """Input validation failed."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )


class ExternalServiceError(ShelfScanException):
    """External service failure."""

    def __init__(self, service: str, detail: str = None):
        super().__init__(
            message=f"{service} service unavailable",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=503,
            detail=detail,
        )


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: str = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "detail": detail,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(ShelfScanException)
    async def shelfscan_exception_handler(request: Request, exc: ShelfScanException):
        logger.warning(f"ShelfScan error: {exc.code} - {exc.message}")
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
        )

    @app.exception_handler(InvalidCandidateError)
    async def invalid_candidate_handler(request: Request, exc: InvalidCandidateError):
        logger.warning(f"Rejected input on {request.url.path}: {exc}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=400,
            detail=str(exc),
        )

    @app.exception_handler(UnknownLocationError)
    async def unknown_location_handler(request: Request, exc: UnknownLocationError):
        logger.warning(str(exc))
        return create_error_response(
            error="Location not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No location with identifier '{exc.location_id}' exists",
        )

    @app.exception_handler(SourceError)
    async def source_error_handler(request: Request, exc: SourceError):
        logger.error(f"Upstream failure on {request.url.path}: {exc}")
        return create_error_response(
            error=f"{exc.source} service unavailable",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=503,
            detail=str(exc),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}\n"
            f"{traceback.format_exc()}"
        )
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=500,
            detail="An unexpected error occurred",
        )
