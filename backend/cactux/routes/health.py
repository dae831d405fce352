"""
Cactux Topo Backend — Health Check Route
==========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs `SELECT 1` against the record store and a write/delete probe
       against the blob store.

Status levels:
    - healthy:   database and storage both operational (HTTP 200)
    - degraded:  storage unwritable, database fine (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from cactux import __version__
from cactux.dependencies import get_blob_store
from cactux.schemas.annotation import HealthResponse
from cactux.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    blob_store: BlobStore = Depends(get_blob_store),
) -> HealthResponse:
    db_status = "connected"
    storage_status = "writable"
    overall = "healthy"

    try:
        from cactux.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    if not await blob_store.health_check():
        storage_status = "unavailable"
        if overall != "unhealthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
        checked_at=datetime.now(timezone.utc),
    )
