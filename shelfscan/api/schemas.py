"""
API Schemas for ShelfScan

Pydantic models for request validation and response serialization:
- Enrichment models
- Location and scan models
- Catalog models
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shelfscan.identification.records import DetectedCandidate, UnifiedRecord
from shelfscan.scanning.scanner import FeedbackType


# =============================================================================
# Enrichment Schemas
# =============================================================================

class CandidateRequest(BaseModel):
    """A detected book to look up."""

    title: Optional[str] = Field(None, max_length=500)
    author: Optional[str] = Field(None, max_length=200)
    sources: list[str] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Shoe Dog",
                "author": "Phil Knight",
                "sources": ["IMG_0412.jpg"],
            }
        }
    )

    def to_candidate(self) -> DetectedCandidate:
        return DetectedCandidate(
            title=(self.title or "").strip(),
            author=self.author,
            sources=tuple(self.sources),
        )


class BatchEnrichRequest(BaseModel):
    """Candidates to enrich in one streamed batch."""

    books: list[CandidateRequest] = Field(default_factory=list)


class LookupRequest(BaseModel):
    """Single-source lookup."""

    title: str = Field(..., min_length=1, max_length=500)
    author: Optional[str] = Field(None, max_length=200)


class UnifiedRecordResponse(BaseModel):
    """Reconciled book metadata."""

    title: str
    authors: list[str] = Field(default_factory=list)
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    sources: list[str] = Field(default_factory=list)
    detected_title: Optional[str] = None
    detected_author: Optional[str] = None

    @classmethod
    def from_record(cls, record: UnifiedRecord) -> "UnifiedRecordResponse":
        return cls(**record.to_dict())

    def to_record(self) -> UnifiedRecord:
        return UnifiedRecord.from_dict(self.model_dump())


# =============================================================================
# Location Schemas
# =============================================================================

class LocationCreate(BaseModel):
    """Location creation request."""

    name: str = Field(..., min_length=1, max_length=200)
    photo_ids: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location name cannot be blank")
        return v


class PhotoRegistration(BaseModel):
    """Photo identifiers to add to a location."""

    photo_ids: list[str] = Field(..., min_length=1)


class LocationResponse(BaseModel):
    """Location with its registered photos."""

    id: str
    name: str
    photo_ids: list[str] = Field(default_factory=list)


class ScanStateResponse(BaseModel):
    """Which photos of a location still need a scan."""

    status: str
    unprocessed_count: int
    unprocessed_files: list[str] = Field(default_factory=list)


class ScanResponse(BaseModel):
    """Result of an incremental scan."""

    location_id: str
    skipped: bool
    state: ScanStateResponse
    books: list[CandidateRequest] = Field(default_factory=list)


# =============================================================================
# Catalog Schemas
# =============================================================================

class ReanalyzeRequest(BaseModel):
    """A user correction request for one detected book."""

    location_id: str
    sources: list[str] = Field(default_factory=list)
    current_title: str = Field(..., min_length=1)
    current_author: Optional[str] = None
    feedback_type: FeedbackType = FeedbackType.BOTH_WRONG
    feedback_details: Optional[str] = Field(None, max_length=1000)


class CorrectionResponse(BaseModel):
    """Corrected identification from the vision service."""

    title: Optional[str] = None
    author: Optional[str] = None


class SyncEntry(BaseModel):
    """One enriched book to persist."""

    record: UnifiedRecordResponse
    location: str = Field(..., min_length=1)
    image_source: Optional[str] = None


class SyncRequest(BaseModel):
    """Batch of enriched books to persist."""

    items: list[SyncEntry] = Field(..., min_length=1)


class SyncResponse(BaseModel):
    """Batch sync outcome."""

    total: int
    synced: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class BookSummary(BaseModel):
    """Catalog listing entry."""

    id: str
    title: str
    author: str
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    source_url: Optional[str] = None
    source_label: Optional[str] = None
    location: Optional[str] = None
    image: Optional[str] = None
    date_added: Optional[datetime] = None


class BookListResponse(BaseModel):
    """Catalog listing."""

    books: list[BookSummary]
    total: int


class UploadResponse(BaseModel):
    """Content-addressed upload result."""

    url: str
    hash: str
    exists: bool


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    code: str
    detail: Optional[Any] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
