"""
Cactux Topo Backend — Record Listing Route
============================================

What:  GET /records/{table} lists routes or boulders for the gallery.
Why:   The drawing session needs each record's `image` and `image_line`.
"""

import logging

from fastapi import APIRouter, Depends, Response

from cactux.dependencies import get_record_store
from cactux.schemas.annotation import ErrorResponse, RecordListItem, RecordListResponse, TableType
from cactux.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["Records"])


@router.get(
    "/{table}",
    response_model=RecordListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List routes or boulders",
)
async def list_records(
    table: TableType,
    response: Response,
    record_store: RecordStore = Depends(get_record_store),
) -> RecordListResponse:
    rows = await record_store.select(
        table,
        columns=("id", "name", "grade", "image", "image_line"),
        order_by="name",
    )
    # Image URLs are stable across saves, so the listing must not be cached
    response.headers["Cache-Control"] = "no-store"
    return RecordListResponse(
        table=table,
        records=[RecordListItem(**row) for row in rows],
    )
