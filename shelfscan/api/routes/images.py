"""
Image API Routes

Content-addressed upload of shelf photos.
"""

from fastapi import APIRouter, Depends, File, UploadFile
from loguru import logger

from shelfscan.api.dependencies import get_image_store
from shelfscan.api.middleware.error_handler import ValidationError
from shelfscan.api.schemas import ErrorResponse, UploadResponse


router = APIRouter(prefix="/images", tags=["images"])

MAX_IMAGE_SIZE = 20 * 1024 * 1024  # 20MB


@router.post(
    "",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Empty or oversized file"},
    },
)
async def upload_image(
    file: UploadFile = File(..., description="Photo to store"),
    store=Depends(get_image_store),
):
    """
    Store a photo under its SHA-256 digest.

    Uploading the same bytes again returns the existing address with
    ``exists: true``.
    """
    data = await file.read()
    if not data:
        raise ValidationError("Empty file", detail=file.filename)
    if len(data) > MAX_IMAGE_SIZE:
        raise ValidationError(
            "Image too large",
            detail=f"{len(data)} bytes exceeds the {MAX_IMAGE_SIZE} byte limit",
        )

    result = store.upload(data)
    logger.info(f"Upload of {file.filename}: {result.key[:12]} (exists={result.exists})")
    return UploadResponse(**result.to_dict())
