"""
Cactux Topo Backend — FastAPI Dependencies
============================================

What:  Builds the per-request PersistenceAdapter.
Why:   The blob store is constructed once (create_app) from settings and
       kept on app.state; the record store is bound to the request's DB
       session. Routes receive a ready adapter and never touch either
       client directly.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cactux.config import settings
from cactux.database import get_db_session
from cactux.services.blob_store import BlobStore
from cactux.services.persistence import PersistenceAdapter
from cactux.services.record_store import RecordStore


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_record_store(db: AsyncSession = Depends(get_db_session)) -> RecordStore:
    return RecordStore(db)


def get_persistence_adapter(
    blob_store: BlobStore = Depends(get_blob_store),
    record_store: RecordStore = Depends(get_record_store),
) -> PersistenceAdapter:
    return PersistenceAdapter(blob_store, record_store, bucket=settings.storage_bucket)
