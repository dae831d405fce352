"""
Cactux Topo Backend — Image Route Handlers
============================================

What:  POST /optimize-line and POST /upload-image.
Why:   Entry points for saving an annotated route photo and for uploading
       base or line images.
How:   Validate the JSON body, hand it to AnnotationService with a
       request-scoped PersistenceAdapter, return the public URL.

Routes stay thin: every failure is raised as a CactuxError and turned into
the uniform error body by the handlers in main.py.
"""

import logging

from fastapi import APIRouter, Depends

from cactux.dependencies import get_persistence_adapter
from cactux.schemas.annotation import (
    ErrorResponse,
    OptimizeLineRequest,
    SaveResponse,
    UploadImageRequest,
)
from cactux.services.annotation_service import annotation_service
from cactux.services.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Images"])

_ERROR_RESPONSES = {
    400: {"description": "Malformed image payload or parameters", "model": ErrorResponse},
    404: {"description": "Record not found", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Processing or storage failure", "model": ErrorResponse},
}


@router.post(
    "/optimize-line",
    response_model=SaveResponse,
    responses=_ERROR_RESPONSES,
    summary="Save a photo with a route line drawn on it",
    description=(
        "Accepts the rendered editor canvas as a base64 data URL, resizes it to the "
        "original photo size, encodes it once as WebP (quality 80, effort 6), stores it "
        "under routes_lines/ or boulders_lines/ and updates the record's image_line."
    ),
)
async def optimize_line(
    body: OptimizeLineRequest,
    adapter: PersistenceAdapter = Depends(get_persistence_adapter),
) -> SaveResponse:
    logger.info("Received optimize-line request for %s %s", body.table_type, body.route_id)
    return await annotation_service.save_line(adapter, body)


@router.post(
    "/upload-image",
    response_model=SaveResponse,
    responses=_ERROR_RESPONSES,
    summary="Upload a base or line image under a size budget",
    description=(
        "Resizes the image to the given dimensions and compresses it to at most "
        "300 KB (lowering quality, then dimensions down to half size). hasLine chooses "
        "between the image and image_line fields and their storage folders."
    ),
)
async def upload_image(
    body: UploadImageRequest,
    adapter: PersistenceAdapter = Depends(get_persistence_adapter),
) -> SaveResponse:
    logger.info(
        "Received upload-image request for %s %s (hasLine=%s)",
        body.table_type, body.route_id, body.has_line,
    )
    return await annotation_service.upload_image(adapter, body)
