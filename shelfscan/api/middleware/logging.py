"""
Request logging middleware.

Every API request gets one log line with method, path, status and timing,
tagged with a correlation id that is echoed back in the response headers.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Set

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("shelfscan.api")


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    # Paths that are never logged
    excluded_paths: Set[str] = field(default_factory=lambda: {
        "/health",
        "/favicon.ico",
    })

    # Header values replaced with [REDACTED]
    redacted_headers: Set[str] = field(default_factory=lambda: {
        "authorization",
        "x-api-key",
        "cookie",
        "set-cookie",
    })

    # Seconds
    slow_request_threshold: float = 30.0

    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        for attr in ("request_data", "status_code", "duration_ms"):
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and attaches the correlation header."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    def _redact_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {
            key: "[REDACTED]" if key.lower() in self.config.redacted_headers else value
            for key, value in headers.items()
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(
            self.config.request_id_header,
            uuid.uuid4().hex[:8],
        )
        request_id_var.set(request_id)

        if not self.config.enabled or request.url.path in self.config.excluded_paths:
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)

        response.headers[self.config.request_id_header] = request_id

        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400 or duration > self.config.slow_request_threshold:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if duration > self.config.slow_request_threshold:
            message = f"[SLOW] {message}"

        logger.log(
            log_level,
            message,
            extra={
                "request_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query) or None,
                    "headers": self._redact_headers(dict(request.headers)),
                    "client_ip": request.client.host if request.client else None,
                },
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Install the request logging middleware.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Emit JSON lines from the shelfscan logger.
    """
    if structured:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredLogFormatter())

        shelfscan_logger = logging.getLogger("shelfscan")
        shelfscan_logger.addHandler(handler)
        shelfscan_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config or LoggingConfig())
