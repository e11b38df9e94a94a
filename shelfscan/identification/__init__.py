"""
Book Identification Module

Resolves detected books into verified metadata from external sources.
"""

from shelfscan.identification.records import (
    DetectedCandidate,
    PartialRecord,
    UnifiedRecord,
    SourceKind,
)
from shelfscan.identification.title_normalizer import normalize_title
from shelfscan.identification.retry import RetryPolicy
from shelfscan.identification.fallback import query_variants, search_with_fallback
from shelfscan.identification.google_books import GoogleBooksClient
from shelfscan.identification.open_library import OpenLibraryClient
from shelfscan.identification.generative_search import GenerativeSearchClient
from shelfscan.identification.reconciler import reconcile, merge_authors
from shelfscan.identification.enricher import (
    MetadataEnricher,
    BatchProgress,
)

__all__ = [
    # Records
    "DetectedCandidate",
    "PartialRecord",
    "UnifiedRecord",
    "SourceKind",
    # Query helpers
    "normalize_title",
    "RetryPolicy",
    "query_variants",
    "search_with_fallback",
    # Sources
    "GoogleBooksClient",
    "OpenLibraryClient",
    "GenerativeSearchClient",
    # Reconciliation
    "reconcile",
    "merge_authors",
    "MetadataEnricher",
    "BatchProgress",
]
