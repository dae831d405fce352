"""
Cactux Topo Backend — Annotation Service (Save Workflow Orchestrator)
=======================================================================

What:  Runs one save request end to end: decode → compress → store → update.
Why:   Both image endpoints share this workflow; they differ only in the
       compression policy and in which folder/field they target.
Who:   Called by the route handlers in routes/images.py.

Orchestration Flow:
    ┌──────────┐   ┌──────────┐   ┌────────────┐   ┌─────────┐   ┌──────────┐
    │ Validate │──▶│  Decode  │──▶│  Pipeline  │──▶│  Store  │──▶│  Update  │
    │ id, dims │   │ data URL │   │  (policy)  │   │  blob   │   │  record  │
    └──────────┘   └──────────┘   └────────────┘   └─────────┘   └──────────┘

    Failure at any step stops the workflow:
    - Validate/Decode → ValidationError (400), nothing touched
    - Pipeline        → ImageProcessingError (500), nothing touched
    - Store           → StorageError (500), record untouched
    - Update          → NotFoundError / RecordUpdateError, blob already written

Stateless: every dependency arrives per call, so concurrent requests share
nothing except the stores themselves.
"""

import logging
import time
from typing import Optional

from cactux.exceptions import CactuxError, ImageProcessingError
from cactux.schemas.annotation import OptimizeLineRequest, SaveResponse, UploadImageRequest
from cactux.services.image_pipeline import (
    CompressionPolicy,
    FixedQualityPolicy,
    ImagePipeline,
    SizeBudgetPolicy,
    decode_data_url,
    image_pipeline,
)
from cactux.services.persistence import BlobCategory, PersistenceAdapter, validate_record_id

logger = logging.getLogger(__name__)


class AnnotationService:
    """Save workflows for line overlays and general image uploads."""

    def __init__(self, pipeline: Optional[ImagePipeline] = None):
        self.pipeline = pipeline or image_pipeline

    async def save_line(
        self,
        adapter: PersistenceAdapter,
        request: OptimizeLineRequest,
    ) -> SaveResponse:
        """POST /optimize-line: single fixed-quality encode, updates image_line."""
        return await self._save(
            adapter,
            image_data=request.image_data,
            record_id=request.route_id,
            table=request.table_type,
            has_line=True,
            width=request.original_width,
            height=request.original_height,
            policy=FixedQualityPolicy(),
            message="Image with line saved successfully",
        )

    async def upload_image(
        self,
        adapter: PersistenceAdapter,
        request: UploadImageRequest,
    ) -> SaveResponse:
        """POST /upload-image: size-budgeted encode; hasLine picks image vs image_line."""
        return await self._save(
            adapter,
            image_data=request.image_data,
            record_id=request.route_id,
            table=request.table_type,
            has_line=request.has_line,
            width=request.original_width,
            height=request.original_height,
            policy=SizeBudgetPolicy(),
            message="Image saved successfully",
        )

    async def _save(
        self,
        adapter: PersistenceAdapter,
        *,
        image_data: str,
        record_id: str,
        table: str,
        has_line: bool,
        width: Optional[int],
        height: Optional[int],
        policy: CompressionPolicy,
        message: str,
    ) -> SaveResponse:
        started = time.perf_counter()
        try:
            # ── Step 1: Reject bad input before any heavy work ────────────
            validate_record_id(record_id)
            category = BlobCategory.for_table(table, has_line)
            self.pipeline.validate_dimensions(width, height)
            raw = decode_data_url(image_data)
            logger.info(
                "Save %s %s: %d input bytes, target %sx%s, policy=%s",
                table, record_id, len(raw), width, height, policy.name,
            )

            # ── Step 2: Decode, resize and compress ───────────────────────
            result = await self.pipeline.run(raw, policy, width, height)

            # ── Step 3: Upsert the blob ───────────────────────────────────
            url = await adapter.store(category, record_id, result.data)

            # ── Step 4: Point the record at it ────────────────────────────
            await adapter.update_record(table, record_id, category.record_field, url)

        except CactuxError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected error saving %s %s: %s", table, record_id, e, exc_info=True,
            )
            raise ImageProcessingError(
                message="Failed to process image",
                context={"error_type": type(e).__name__, "record_id": record_id},
            )

        logger.info(
            "Saved %s %s → %s (%d bytes) in %.0fms",
            table,
            record_id,
            url,
            result.size,
            (time.perf_counter() - started) * 1000,
        )
        return SaveResponse(
            success=True,
            url=url,
            message=message,
            width=result.width,
            height=result.height,
            size=result.size,
        )


annotation_service = AnnotationService()
