"""
Location API Routes

Shelf locations, their photos, and incremental scans.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from shelfscan.api.dependencies import get_catalog_repository, get_scan_service
from shelfscan.api.middleware.error_handler import ExternalServiceError, NotFoundError
from shelfscan.api.schemas import (
    CandidateRequest,
    ErrorResponse,
    LocationCreate,
    LocationResponse,
    PhotoRegistration,
    ScanResponse,
    ScanStateResponse,
)


router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=list[LocationResponse])
def list_locations(repo=Depends(get_catalog_repository)):
    """All locations, by name."""
    return [LocationResponse(**loc.to_dict()) for loc in repo.list_locations()]


@router.post(
    "",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Location already exists"},
    },
)
def create_location(
    request: LocationCreate,
    repo=Depends(get_catalog_repository),
):
    """Create a location, optionally with its initial photos."""
    if repo.get_location_by_name(request.name) is not None:
        raise HTTPException(status_code=409, detail=f"Location '{request.name}' already exists")

    location = repo.create_location(request.name, request.photo_ids)
    logger.info(f"Created location '{location.name}' with {len(location.photo_ids)} photos")
    return LocationResponse(**location.to_dict())


@router.post(
    "/{location_id}/photos",
    response_model=LocationResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Location not found"},
    },
)
def register_photos(
    location_id: str,
    request: PhotoRegistration,
    repo=Depends(get_catalog_repository),
):
    """Register photo identifiers with a location; duplicates are ignored."""
    location = repo.add_photos(location_id, request.photo_ids)
    if location is None:
        raise NotFoundError("Location", location_id)
    return LocationResponse(**location.to_dict())


@router.get(
    "/{location_id}/scan-state",
    response_model=ScanStateResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Location not found"},
    },
)
def get_scan_state(
    location_id: str,
    scan_service=Depends(get_scan_service),
):
    """Which of the location's photos have not produced a catalogued book yet."""
    return ScanStateResponse(**scan_service.scan_state(location_id).to_dict())


@router.post(
    "/{location_id}/scan",
    response_model=ScanResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Location not found"},
        503: {"model": ErrorResponse, "description": "Vision service unavailable"},
    },
)
async def scan_location(
    location_id: str,
    scan_service=Depends(get_scan_service),
):
    """
    Scan the location's unprocessed photos.

    Does not contact the vision service when every photo is processed.
    """
    try:
        outcome = await scan_service.scan(location_id)
    except RuntimeError as e:
        raise ExternalServiceError("Vision", str(e))

    return ScanResponse(
        location_id=location_id,
        skipped=outcome.skipped,
        state=ScanStateResponse(**outcome.state.to_dict()),
        books=[CandidateRequest(**c.to_dict()) for c in outcome.candidates],
    )
