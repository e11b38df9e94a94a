"""
API middleware components.

Cross-cutting concerns for the API:
- Error handling
- Request logging
"""

from .error_handler import (
    ShelfScanException,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    setup_exception_handlers,
    create_error_response,
)

from .logging import (
    LoggingConfig,
    StructuredLogFormatter,
    RequestLoggingMiddleware,
    setup_logging,
    get_request_id,
)


__all__ = [
    # Error handling
    "ShelfScanException",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "setup_exception_handlers",
    "create_error_response",
    # Logging
    "LoggingConfig",
    "StructuredLogFormatter",
    "RequestLoggingMiddleware",
    "setup_logging",
    "get_request_id",
]
