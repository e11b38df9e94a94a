"""
Scanning Module

Incremental shelf scans against the external vision service.
"""

from shelfscan.scanning.delta import (
    ScanState,
    ScanStatus,
    compute_delta,
)
from shelfscan.scanning.scanner import (
    Correction,
    FeedbackType,
    RemoteShelfScanner,
    ShelfScanner,
)
from shelfscan.scanning.service import ScanOutcome, ScanService

__all__ = [
    "ScanState",
    "ScanStatus",
    "compute_delta",
    "Correction",
    "FeedbackType",
    "RemoteShelfScanner",
    "ShelfScanner",
    "ScanOutcome",
    "ScanService",
]
