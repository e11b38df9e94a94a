"""
Book Records

Data shapes flowing through the metadata resolution pipeline:
- DetectedCandidate: a book guessed from shelf photos by the vision service
- PartialRecord: one source's answer for a candidate
- UnifiedRecord: the reconciled result that gets persisted
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


UNKNOWN_AUTHOR = "Unknown"


class SourceKind(str, Enum):
    """External bibliographic sources."""
    GENERATIVE_SEARCH = "generative_search"
    CATALOG = "catalog"
    OPEN_CATALOG = "open_catalog"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]

    @property
    def is_catalog(self) -> bool:
        return self in (SourceKind.CATALOG, SourceKind.OPEN_CATALOG)


_SOURCE_LABELS = {
    SourceKind.GENERATIVE_SEARCH: "Perplexity",
    SourceKind.CATALOG: "Google Books",
    SourceKind.OPEN_CATALOG: "Open Library",
}


def known_author(author: Optional[str]) -> Optional[str]:
    """Return the author, or None when it is empty or the "Unknown" sentinel."""
    if author is None:
        return None
    author = author.strip()
    if not author or author == UNKNOWN_AUTHOR:
        return None
    return author


@dataclass(frozen=True)
class DetectedCandidate:
    """A book spine inferred from one or more shelf photos."""

    title: str
    author: Optional[str] = None
    sources: tuple[str, ...] = ()

    @property
    def known_author(self) -> Optional[str]:
        return known_author(self.author)

    @classmethod
    def from_dict(cls, data: dict) -> "DetectedCandidate":
        sources = data.get("sources") or ()
        if isinstance(sources, str):
            sources = (sources,)
        return cls(
            title=data.get("title") or "",
            author=data.get("author"),
            sources=tuple(sources),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "sources": list(self.sources),
        }


@dataclass
class PartialRecord:
    """
    Metadata returned by a single source.

    Every field except ``source`` may be missing.
    """

    source: SourceKind
    title: Optional[str] = None
    authors: list[str] = field(default_factory=list)
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    info_link: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "source": self.source.value,
            "source_label": self.source.label,
            "title": self.title,
            "authors": list(self.authors),
            "isbn": self.isbn,
            "publisher": self.publisher,
            "publication_date": self.publication_date,
            "description": self.description,
            "cover_url": self.cover_url,
            "info_link": self.info_link,
        }


@dataclass
class UnifiedRecord:
    """
    Reconciled metadata for one candidate.

    Each singular field comes from exactly one PartialRecord (or the
    detected candidate, for title); ``authors`` is a union.
    """

    title: str
    authors: list[str] = field(default_factory=list)
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None

    # Provenance
    source: Optional[SourceKind] = None
    source_url: Optional[str] = None

    # Photos this book was detected in
    sources: list[str] = field(default_factory=list)

    detected_title: Optional[str] = None
    detected_author: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return self.source is not None

    @classmethod
    def from_detected(cls, candidate: DetectedCandidate) -> "UnifiedRecord":
        """Pass-through record used when enrichment produced nothing."""
        author = candidate.known_author
        return cls(
            title=candidate.title,
            authors=[author] if author else [],
            sources=list(candidate.sources),
            detected_title=candidate.title,
            detected_author=candidate.author,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "authors": list(self.authors),
            "isbn": self.isbn,
            "publisher": self.publisher,
            "publication_date": self.publication_date,
            "description": self.description,
            "cover_url": self.cover_url,
            "source": self.source.value if self.source else None,
            "source_url": self.source_url,
            "sources": list(self.sources),
            "detected_title": self.detected_title,
            "detected_author": self.detected_author,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnifiedRecord":
        source = data.get("source")
        return cls(
            title=data.get("title") or data.get("detected_title") or "",
            authors=list(data.get("authors") or []),
            isbn=data.get("isbn"),
            publisher=data.get("publisher"),
            publication_date=data.get("publication_date"),
            description=data.get("description"),
            cover_url=data.get("cover_url"),
            source=SourceKind(source) if source else None,
            source_url=data.get("source_url"),
            sources=list(data.get("sources") or []),
            detected_title=data.get("detected_title"),
            detected_author=data.get("detected_author"),
        )
