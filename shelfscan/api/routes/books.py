"""
Book API Routes

Catalog listing, batch sync of enriched books, and feedback-driven
re-analysis.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from shelfscan.api.dependencies import (
    get_catalog_repository,
    get_catalog_sync,
    get_scan_service,
)
from shelfscan.api.middleware.error_handler import ExternalServiceError
from shelfscan.api.schemas import (
    BookListResponse,
    BookSummary,
    CorrectionResponse,
    ErrorResponse,
    ReanalyzeRequest,
    SyncRequest,
    SyncResponse,
)
from shelfscan.storage.catalog_repository import StoredBook
from shelfscan.storage.sync import SyncItem


router = APIRouter(prefix="/books", tags=["books"])

DESCRIPTION_LIMIT = 500


def source_label(source_url: Optional[str]) -> Optional[str]:
    """Display label for a provenance link."""
    if not source_url:
        return None
    if "google" in source_url:
        return "Google Books"
    if "openlibrary" in source_url:
        return "OpenLibrary"
    return "Link"


def summarize(book: StoredBook, location_names: dict[str, str]) -> BookSummary:
    description = book.description[:DESCRIPTION_LIMIT] if book.description else None

    return BookSummary(
        id=book.id,
        title=book.title,
        author=", ".join(book.authors),
        isbn=book.isbn,
        publisher=book.publisher,
        published_date=book.publication_date,
        description=description,
        cover_url=book.cover_url,
        source_url=book.source_url,
        source_label=source_label(book.source_url),
        location=location_names.get(book.location_id),
        image=book.sources[0] if book.sources else None,
        date_added=book.date_added,
    )


@router.get("", response_model=BookListResponse)
def list_books(
    location_id: Optional[str] = Query(None, description="Only books at this location"),
    repo=Depends(get_catalog_repository),
):
    """Catalogued books, oldest first."""
    location_names = {loc.id: loc.name for loc in repo.list_locations()}
    books = repo.list_books(location_id=location_id)
    return BookListResponse(
        books=[summarize(book, location_names) for book in books],
        total=len(books),
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_books(
    request: SyncRequest,
    catalog_sync=Depends(get_catalog_sync),
):
    """
    Persist enriched books with their shelf photos.

    Per-book failures are counted and reported; they never abort the batch.
    """
    items = [
        SyncItem(
            record=entry.record.to_record(),
            location=entry.location,
            image_source=entry.image_source,
        )
        for entry in request.items
    ]
    result = await run_in_threadpool(catalog_sync.sync, items)
    logger.info(f"Sync finished: {result.synced}/{result.total} stored, {result.failed} failed")
    return SyncResponse(**result.to_dict())


@router.post(
    "/reanalyze",
    response_model=CorrectionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No source photos"},
        503: {"model": ErrorResponse, "description": "Vision service unavailable"},
    },
)
async def reanalyze_book(
    request: ReanalyzeRequest,
    scan_service=Depends(get_scan_service),
):
    """Re-read a wrongly identified book from its source photos."""
    try:
        correction = await scan_service.reanalyze(
            location_id=request.location_id,
            sources=request.sources,
            current_title=request.current_title,
            current_author=request.current_author,
            feedback_type=request.feedback_type,
            feedback_details=request.feedback_details,
        )
    except RuntimeError as e:
        raise ExternalServiceError("Vision", str(e))
    except ValueError as e:
        raise ExternalServiceError("Vision", f"Unreadable correction: {e}")

    return CorrectionResponse(**correction.to_dict())
