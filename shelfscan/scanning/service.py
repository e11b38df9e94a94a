"""
Scan Service

Incremental shelf scans: only photos that no catalogued book came from are
sent to the vision service.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from loguru import logger

from shelfscan.identification.exceptions import InvalidCandidateError, UnknownLocationError
from shelfscan.identification.records import DetectedCandidate
from shelfscan.scanning.delta import ScanState, compute_delta
from shelfscan.scanning.scanner import (
    Correction,
    FeedbackType,
    ShelfScanner,
    build_reanalysis_prompt,
    parse_correction,
)
from shelfscan.storage.catalog_repository import CatalogRepository


@dataclass
class ScanOutcome:
    """State before the scan and the candidates it produced."""

    state: ScanState
    candidates: list[DetectedCandidate] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.state.is_complete


class ScanService:
    """Ties the delta tracker to the catalog store and the vision service."""

    def __init__(self, repository: CatalogRepository, scanner: Optional[ShelfScanner] = None):
        self.repository = repository
        self.scanner = scanner

    def _require_scanner(self) -> ShelfScanner:
        if self.scanner is None:
            raise RuntimeError("Vision service not configured (set VISION_SERVICE_URL)")
        return self.scanner

    def scan_state(self, location_id: str) -> ScanState:
        """
        Recompute the scan state of a location from the catalog.

        Raises:
            UnknownLocationError: If the location does not exist
        """
        location = self.repository.get_location(location_id)
        if location is None:
            raise UnknownLocationError(location_id)

        books = self.repository.list_books(location_id=location_id)
        return compute_delta(location.photo_ids, books)

    async def scan(self, location_id: str) -> ScanOutcome:
        """
        Run the vision service over the location's unprocessed photos.

        Nothing is sent when the location is complete.
        """
        state = self.scan_state(location_id)
        if state.is_complete:
            logger.info(f"Location {location_id} has no unprocessed photos, skipping scan")
            return ScanOutcome(state=state)

        candidates = await self._require_scanner().scan(
            location_id,
            target_files=state.unprocessed_files,
        )
        return ScanOutcome(state=state, candidates=candidates)

    async def reanalyze(
        self,
        location_id: str,
        sources: Sequence[str],
        current_title: str,
        current_author: Optional[str],
        feedback_type: FeedbackType = FeedbackType.BOTH_WRONG,
        feedback_details: Optional[str] = None,
    ) -> Correction:
        """
        Ask the vision service to re-read one book the user flagged as wrong.

        Raises:
            InvalidCandidateError: If no source photos are given
            ValueError: If the answer cannot be parsed
        """
        if not sources:
            raise InvalidCandidateError("Image sources are required for re-analysis")

        prompt = build_reanalysis_prompt(
            current_title, current_author, feedback_type, feedback_details
        )
        text = await self._require_scanner().reanalyze(location_id, sources, prompt)

        correction = parse_correction(text)
        logger.info(
            f"Re-analysis of '{current_title}' returned "
            f"'{correction.title}' by '{correction.author}'"
        )
        return correction
