"""
Metadata Enricher

Resolves detected candidates into unified records.

Per candidate, the catalog chain (Google Books, then Open Library when
Google Books has nothing) and generative search run concurrently and are
joined before reconciliation. Across a batch, candidates run one at a time
so external API usage stays predictable and progress is strictly ordered.
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Protocol, Sequence

from loguru import logger

from shelfscan.identification.exceptions import InvalidCandidateError
from shelfscan.identification.records import (
    DetectedCandidate,
    PartialRecord,
    UnifiedRecord,
)
from shelfscan.identification.reconciler import reconcile


class SourceAdapter(Protocol):
    """Anything that can answer a (title, author) lookup."""

    async def query(self, title: str, author: Optional[str] = None) -> Optional[PartialRecord]:
        ...


@dataclass(frozen=True)
class BatchProgress:
    """Progress tick emitted after each candidate."""

    current: int
    total: int

    @property
    def done(self) -> bool:
        return self.current == self.total

    def to_dict(self) -> dict:
        return {"current": self.current, "total": self.total}


ProgressCallback = Callable[[BatchProgress], None]


def validate_candidates(candidates: Sequence[DetectedCandidate]) -> None:
    """
    Reject unusable input before any network activity.

    Raises:
        InvalidCandidateError: Empty batch or a candidate without a title
    """
    if not candidates:
        raise InvalidCandidateError("Candidate list is empty")

    for index, candidate in enumerate(candidates):
        if not candidate.title or not candidate.title.strip():
            raise InvalidCandidateError(f"Candidate {index} has no title")


class MetadataEnricher:
    """
    Unified metadata enrichment across all sources.

    Usage:
        enricher = MetadataEnricher(
            catalog=GoogleBooksClient(api_key=...),
            open_catalog=OpenLibraryClient(),
            generative=GenerativeSearchClient(api_key=...),
        )
        record = await enricher.enrich(DetectedCandidate("Dune", "Frank Herbert"))

        async for record in enricher.enrich_all(candidates, on_progress=print):
            ...
    """

    def __init__(
        self,
        catalog: Optional[SourceAdapter] = None,
        open_catalog: Optional[SourceAdapter] = None,
        generative: Optional[SourceAdapter] = None,
    ):
        self.catalog = catalog
        self.open_catalog = open_catalog
        self.generative = generative

        logger.info(
            "MetadataEnricher initialized "
            f"(catalog={catalog is not None}, open_catalog={open_catalog is not None}, "
            f"generative={generative is not None})"
        )

    async def _query_catalogs(self, candidate: DetectedCandidate) -> Optional[PartialRecord]:
        """Google Books first; Open Library only when it returned nothing."""
        result = None
        if self.catalog is not None:
            result = await self.catalog.query(candidate.title, candidate.author)

        if result is None and self.open_catalog is not None:
            logger.info(f"No catalog match for '{candidate.title}'. Trying open catalog...")
            result = await self.open_catalog.query(candidate.title, candidate.author)

        return result

    async def _query_generative(self, candidate: DetectedCandidate) -> Optional[PartialRecord]:
        if self.generative is None:
            return None
        return await self.generative.query(candidate.title, candidate.author)

    async def lookup(self, candidate: DetectedCandidate) -> list[PartialRecord]:
        """
        Query all sources concurrently for one candidate.

        An adapter that raises is logged and treated as having found nothing.
        """
        results = await asyncio.gather(
            self._query_catalogs(candidate),
            self._query_generative(candidate),
            return_exceptions=True,
        )

        records = []
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"Source failed for '{candidate.title}': {result}")
            elif result is not None:
                records.append(result)
        return records

    async def enrich(self, candidate: DetectedCandidate) -> UnifiedRecord:
        """
        Enrich a single candidate.

        Raises:
            InvalidCandidateError: If the candidate has no title
        """
        validate_candidates([candidate])

        records = await self.lookup(candidate)
        if not records:
            logger.info(f"No source matched '{candidate.title}', keeping detected data")

        return reconcile(candidate, records)

    async def _enrich_isolated(self, candidate: DetectedCandidate) -> UnifiedRecord:
        try:
            return await self.enrich(candidate)
        except Exception:
            logger.exception(f"Enrichment failed for '{candidate.title}', keeping detected data")
            return UnifiedRecord.from_detected(candidate)

    def enrich_all(
        self,
        candidates: Sequence[DetectedCandidate],
        on_progress: Optional[ProgressCallback] = None,
    ) -> AsyncIterator[UnifiedRecord]:
        """
        Enrich a batch, yielding each record as soon as it is ready.

        Input is validated here, before iteration starts, so bad input
        fails synchronously with no network activity. A failing candidate
        degrades to its detected data; the batch always yields one record
        per candidate, in input order.

        Args:
            candidates: Detected candidates
            on_progress: Called with ``BatchProgress(i, total)`` after each candidate

        Raises:
            InvalidCandidateError: Empty list or untitled candidate
        """
        candidates = list(candidates)
        validate_candidates(candidates)
        return self._iterate(candidates, on_progress)

    async def _iterate(
        self,
        candidates: list[DetectedCandidate],
        on_progress: Optional[ProgressCallback],
    ) -> AsyncIterator[UnifiedRecord]:
        total = len(candidates)
        logger.info(f"Enriching {total} candidates")

        enriched = 0
        for index, candidate in enumerate(candidates, start=1):
            record = await self._enrich_isolated(candidate)
            if record.is_enriched:
                enriched += 1

            if on_progress is not None:
                try:
                    on_progress(BatchProgress(current=index, total=total))
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")

            yield record

        logger.info(f"Enrichment complete: {enriched}/{total} candidates matched a source")
