"""
Enrichment API Routes

Look up detected books against the bibliographic sources, one at a time or
as a streamed batch.
"""

import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from loguru import logger

from shelfscan.api.dependencies import (
    ServiceContainer,
    get_generative_search,
    get_metadata_enricher,
    get_service_container,
)
from shelfscan.api.middleware.error_handler import ExternalServiceError
from shelfscan.api.schemas import (
    BatchEnrichRequest,
    CandidateRequest,
    ErrorResponse,
    LookupRequest,
    UnifiedRecordResponse,
)
from shelfscan.identification.enricher import BatchProgress


router = APIRouter(prefix="/enrich", tags=["enrichment"])

NO_MATCH = {"error": "No books found"}


@router.post(
    "",
    response_model=UnifiedRecordResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing title"},
    },
)
async def enrich_book(
    request: CandidateRequest,
    enricher=Depends(get_metadata_enricher),
):
    """Resolve one detected book into a unified record."""
    candidate = request.to_candidate()
    logger.info(f"Enriching '{candidate.title}' by '{candidate.author}'")

    record = await enricher.enrich(candidate)
    return UnifiedRecordResponse.from_record(record)


@router.post(
    "/batch",
    responses={
        200: {"content": {"application/x-ndjson": {}}, "description": "One line per book"},
        400: {"model": ErrorResponse, "description": "Empty batch or untitled book"},
    },
)
async def enrich_batch(
    request: BatchEnrichRequest,
    enricher=Depends(get_metadata_enricher),
):
    """
    Enrich a batch of detected books, streaming results as NDJSON.

    Each line is ``{"progress": {"current", "total"}, "record": {...}}``;
    lines arrive in input order, one per book.
    """
    candidates = [book.to_candidate() for book in request.books]

    progress: list[BatchProgress] = []
    # Validation happens here so a bad batch is a 400, not a broken stream
    records = enricher.enrich_all(candidates, on_progress=progress.append)

    async def generate() -> AsyncGenerator[str, None]:
        async for record in records:
            line = {
                "progress": progress[-1].to_dict(),
                "record": record.to_dict(),
            }
            yield json.dumps(line) + "\n"

    return StreamingResponse(generate(), media_type="application/x-ndjson")


@router.post("/details")
async def fetch_details(
    request: LookupRequest,
    generative=Depends(get_generative_search),
):
    """
    Raw details from the generative search source.

    An unparseable answer comes back as ``{"error": ..., "raw": ...}``
    rather than an HTTP error.
    """
    if not generative.is_configured:
        raise ExternalServiceError("Perplexity", "PERPLEXITY_API_KEY is not set")

    return await generative.fetch_details_or_error(request.title, request.author)


@router.post("/catalog")
async def catalog_lookup(
    request: LookupRequest,
    container: ServiceContainer = Depends(get_service_container),
):
    """Structured catalog lookup, falling back to the open catalog."""
    record = await container.google_books.query(request.title, request.author)
    if record is None:
        record = await container.open_library.query(request.title, request.author)

    if record is None:
        logger.info(f"No catalog match for '{request.title}'")
        return NO_MATCH
    return record.to_dict()
