"""
Scan Delta Tracker

Works out which photos of a location have not yet produced a catalogued
book, so re-scanning a shelf only sends new photos to the vision service.
A photo counts as processed as soon as any catalogued book lists it in its
``sources``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class ScanStatus(str, Enum):
    """Whether a location still has photos to scan."""
    PENDING = "pending"
    COMPLETE = "complete"


@dataclass
class ScanState:
    """Derived scan state for one location."""

    status: ScanStatus
    unprocessed_count: int = 0
    unprocessed_files: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.status == ScanStatus.COMPLETE

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "unprocessed_count": self.unprocessed_count,
            "unprocessed_files": list(self.unprocessed_files),
        }


def _record_sources(record: Any) -> list[str]:
    if isinstance(record, Mapping):
        sources = record.get("sources")
    else:
        sources = getattr(record, "sources", None)

    if isinstance(sources, str):
        return [sources]
    if isinstance(sources, (list, tuple, set, frozenset)):
        return [s for s in sources if isinstance(s, str)]
    return []


def processed_photos(cataloged_records: Iterable[Any]) -> set[str]:
    """Union of ``sources`` across catalogued records."""
    processed = set()
    for record in cataloged_records or []:
        processed.update(_record_sources(record))
    return processed


def compute_delta(
    location_photo_ids: Iterable[str],
    cataloged_records: Iterable[Any],
) -> ScanState:
    """
    Compute the unprocessed photos of a location.

    A location with no known photos is ``complete``: there is nothing to
    scan, which is not an error.

    Args:
        location_photo_ids: Every photo identifier known for the location
        cataloged_records: Books catalogued for the location; mappings or
            objects exposing ``sources``

    Returns:
        ScanState with unprocessed photos in input order
    """
    processed = processed_photos(cataloged_records)
    unprocessed = [p for p in location_photo_ids or [] if p not in processed]

    return ScanState(
        status=ScanStatus.COMPLETE if not unprocessed else ScanStatus.PENDING,
        unprocessed_count=len(unprocessed),
        unprocessed_files=unprocessed,
    )
