"""
ShelfScan - FastAPI Backend.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    ServiceContainer,
)
from .schemas import (
    CandidateRequest,
    UnifiedRecordResponse,
    ScanStateResponse,
    SyncRequest,
    SyncResponse,
    BookSummary,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "ServiceContainer",
    # Schemas
    "CandidateRequest",
    "UnifiedRecordResponse",
    "ScanStateResponse",
    "SyncRequest",
    "SyncResponse",
    "BookSummary",
    "HealthResponse",
    "ErrorResponse",
]
