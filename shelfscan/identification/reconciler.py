"""
Field Reconciliation

Merges per-source answers into one record. Priority for every singular
field, decided independently per field:

    catalog (Google Books or Open Library) > generative search > detected

Authors are the exact-string union of the catalog and generative lists;
"J.R.R. Tolkien" and "Tolkien" count as different authors.
"""

from typing import Iterable, Optional

from shelfscan.identification.records import (
    DetectedCandidate,
    PartialRecord,
    SourceKind,
    UnifiedRecord,
)


SINGULAR_FIELDS = (
    "isbn",
    "publisher",
    "publication_date",
    "description",
    "cover_url",
)


def merge_authors(*author_lists: Optional[Iterable[str]]) -> list[str]:
    """Order-preserving union with exact string equality."""
    merged = []
    seen = set()
    for authors in author_lists:
        for author in authors or []:
            if author and author not in seen:
                seen.add(author)
                merged.append(author)
    return merged


def _first_of(results: list[PartialRecord], predicate) -> Optional[PartialRecord]:
    return next((r for r in results if r is not None and predicate(r.source)), None)


def _pick(field_name: str, ranked: list[PartialRecord]) -> tuple[Optional[str], Optional[PartialRecord]]:
    """Value of ``field_name`` from the highest-ranked record that has it."""
    for record in ranked:
        value = getattr(record, field_name)
        if value:
            return value, record
    return None, None


def reconcile(
    detected: DetectedCandidate,
    per_source_results: Iterable[Optional[PartialRecord]],
) -> UnifiedRecord:
    """
    Build the unified record for a candidate.

    Pure and deterministic; ``None`` entries (failed sources) are ignored.

    Args:
        detected: Candidate as read from the photos
        per_source_results: Answers from the adapters, in any order

    Returns:
        UnifiedRecord; detected-only when no source answered
    """
    results = [r for r in per_source_results or [] if r is not None]

    catalog = _first_of(results, lambda kind: kind.is_catalog)
    generative = _first_of(results, lambda kind: kind == SourceKind.GENERATIVE_SEARCH)
    ranked = [r for r in (catalog, generative) if r is not None]

    record = UnifiedRecord.from_detected(detected)
    if not ranked:
        return record

    title, _ = _pick("title", ranked)
    record.title = title or detected.title

    for field_name in SINGULAR_FIELDS:
        value, _ = _pick(field_name, ranked)
        setattr(record, field_name, value)

    source_url, provider = _pick("info_link", ranked)
    record.source_url = source_url
    record.source = (provider or ranked[0]).source

    authors = merge_authors(
        catalog.authors if catalog else None,
        generative.authors if generative else None,
    )
    if authors:
        record.authors = authors

    return record
