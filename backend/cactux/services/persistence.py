"""
Cactux Topo Backend — Persistence Adapter
===========================================

What:  Stores a finished WebP blob and points a record at it.
Why:   Gives the annotation service two calls (`store`, `update_record`)
       instead of two storage technologies.
How:   Blob path is `{category}/{record_id}.webp` inside the configured
       bucket, written with upsert so each record+category has exactly one
       live blob. The public URL is therefore stable across saves; readers
       append a `?t=` query to see new content.

Consistency:
    store() and update_record() run one after the other. If the update
    fails, the blob stays behind unreferenced; the next save for the same
    record overwrites it. There is no transaction spanning both stores.
"""

import logging
import re
from enum import Enum

from cactux.exceptions import ValidationError
from cactux.services.blob_store import BlobStore
from cactux.services.image_pipeline import WEBP_CONTENT_TYPE, WEBP_EXTENSION
from cactux.services.record_store import RecordStore

logger = logging.getLogger(__name__)

# Record ids end up in blob paths; nothing else may appear there
RECORD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class BlobCategory(str, Enum):
    """Storage folder for one kind of image."""

    ROUTE_BASE = "routes"
    BOULDER_BASE = "boulders"
    ROUTE_LINE = "routes_lines"
    BOULDER_LINE = "boulders_lines"

    @classmethod
    def for_table(cls, table: str, has_line: bool) -> "BlobCategory":
        if table == "boulder":
            return cls.BOULDER_LINE if has_line else cls.BOULDER_BASE
        if table == "route":
            return cls.ROUTE_LINE if has_line else cls.ROUTE_BASE
        raise ValidationError(
            message=f"Unknown table '{table}'",
            field="tableType",
            context={"table": table},
        )

    @property
    def has_line(self) -> bool:
        return self in (BlobCategory.ROUTE_LINE, BlobCategory.BOULDER_LINE)

    @property
    def record_field(self) -> str:
        """Record column that references blobs of this category."""
        return "image_line" if self.has_line else "image"


def validate_record_id(record_id: str) -> str:
    if not isinstance(record_id, str) or not RECORD_ID_PATTERN.match(record_id):
        raise ValidationError(
            message="Record id must be 1-64 characters of letters, digits, '-' or '_'",
            field="routeId",
            context={"record_id": str(record_id)[:80]},
        )
    return record_id


def blob_path(category: BlobCategory, record_id: str) -> str:
    return f"{category.value}/{validate_record_id(record_id)}.{WEBP_EXTENSION}"


class PersistenceAdapter:
    """Blob upload + record update, wired with explicitly constructed stores."""

    def __init__(self, blob_store: BlobStore, record_store: RecordStore, bucket: str):
        self.blob_store = blob_store
        self.record_store = record_store
        self.bucket = bucket

    async def store(self, category: BlobCategory, record_id: str, data: bytes) -> str:
        """
        Upsert `data` at `{category}/{record_id}.webp` and return its public URL.

        Raises:
            ValidationError: unsafe record id.
            StorageError: the blob store rejected the write.
        """
        path = blob_path(category, record_id)
        await self.blob_store.upload(
            self.bucket,
            path,
            data,
            content_type=WEBP_CONTENT_TYPE,
            upsert=True,
        )
        url = self.blob_store.get_public_url(self.bucket, path)
        logger.info("Stored %s blob for %s at %s", category.value, record_id, url)
        return url

    async def update_record(self, table: str, record_id: str, field: str, value: str) -> None:
        """
        Set `field` (`image` or `image_line`) of the record.

        Raises:
            ValidationError: unknown table or field.
            NotFoundError: no such record.
            RecordUpdateError: the record store failed.
        """
        validate_record_id(record_id)
        await self.record_store.update(table, record_id, {field: value})
