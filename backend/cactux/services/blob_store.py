"""
Cactux Topo Backend — Blob Store
==================================

What:  Stores image bytes under `{bucket}/{path}` and resolves public URLs.
Why:   The persistence adapter only needs upload + URL resolution; keeping
       that behind a small interface lets the backing technology change
       without touching the pipeline.
How:   `BlobStore` is the abstract contract. `LocalBlobStore` writes into a
       directory that the app serves statically under /storage.
Who:   Constructed once in create_app() and injected into the
       PersistenceAdapter through a FastAPI dependency.

Write semantics (LocalBlobStore):
    1. Resolve the target and refuse anything escaping the bucket directory
    2. Write the bytes to a sibling temp file with aiofiles
    3. os.replace() the temp file over the target (atomic on POSIX)
    4. On any failure remove the temp file, so readers never see a partial
       blob and no stray files are left behind

Transient OS errors (e.g. EAGAIN on network volumes) are retried with
tenacity before surfacing as StorageError.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional

import aiofiles
import aiofiles.os
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from cactux.config import settings
from cactux.exceptions import StorageError

logger = logging.getLogger(__name__)


class BlobExistsError(StorageError):
    """Raised when upsert=False and the target blob already exists."""

    def __init__(self, path: str):
        super().__init__(
            message="A stored image already exists at this location",
            context={"path": path},
        )


class BlobStore(ABC):
    """
    Contract for the content store used by the persistence adapter.

    Implementations:
        - LocalBlobStore: files on a local or mounted volume
    """

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        """Write `data` at `bucket/path`. Raises StorageError on failure."""
        ...

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        """Stable public URL for `bucket/path` (no cache-busting applied)."""
        ...

    @abstractmethod
    async def download(self, bucket: str, path: str) -> bytes:
        """Read back the bytes stored at `bucket/path`."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the store is reachable and writable."""
        ...


class LocalBlobStore(BlobStore):
    """Filesystem-backed blob store."""

    def __init__(
        self,
        root: Optional[str] = None,
        public_base_url: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        self.root = Path(root or settings.storage_root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self.max_attempts = max_attempts or settings.retry_max_attempts
        logger.info(
            "LocalBlobStore initialized with root=%s, public_base_url=%s",
            self.root,
            self.public_base_url,
        )

    def _resolve(self, bucket: str, path: str) -> Path:
        """
        Map bucket/path to a file under root.

        Raises StorageError for absolute paths, '..' segments, or anything
        that would resolve outside the bucket directory.
        """
        relative = PurePosixPath(path)
        if (
            not bucket
            or "/" in bucket
            or bucket in (".", "..")
            or relative.is_absolute()
            or ".." in relative.parts
            or not relative.parts
        ):
            raise StorageError(
                message="Invalid storage path",
                context={"bucket": bucket, "path": path},
            )
        bucket_dir = (self.root / bucket).resolve()
        target = (bucket_dir / Path(*relative.parts)).resolve()
        if bucket_dir not in target.parents:
            raise StorageError(
                message="Invalid storage path",
                context={"bucket": bucket, "path": path},
            )
        return target

    async def upload(self, bucket, path, data, content_type="application/octet-stream", upsert=True):
        target = self._resolve(bucket, path)

        if not upsert and target.exists():
            raise BlobExistsError(f"{bucket}/{path}")

        try:
            await self._write_with_retry(target, data)
        except RetryError as e:
            last = e.last_attempt.exception() if e.last_attempt else None
            logger.error("Upload to %s/%s failed after retries: %s", bucket, path, last)
            raise StorageError(
                message="Failed to store image",
                context={"bucket": bucket, "path": path, "os_error": str(last)},
            )
        except OSError as e:
            logger.error("Upload to %s/%s failed: %s", bucket, path, e)
            raise StorageError(
                message="Failed to store image",
                context={"bucket": bucket, "path": path, "os_error": str(e)},
            )

        logger.info(
            "Stored %s/%s (%d bytes, %s, upsert=%s)",
            bucket, path, len(data), content_type, upsert,
        )

    async def _write_with_retry(self, target: Path, data: bytes) -> None:
        @retry(
            retry=retry_if_exception_type(OSError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=settings.retry_min_wait,
                max=settings.retry_max_wait,
            ) + wait_random(0, settings.retry_min_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        async def attempt() -> None:
            await self._write_atomic(target, data)

        await attempt()

    async def _write_atomic(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            os.replace(tmp_path, target)
        finally:
            if tmp_path.exists():
                await aiofiles.os.remove(tmp_path)

    def get_public_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return f"{self.public_base_url}/{bucket}/{path}"

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            async with aiofiles.open(target, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(
                message="Failed to read stored image",
                context={"bucket": bucket, "path": path, "os_error": str(e)},
            )

    async def health_check(self) -> bool:
        probe = self.root / f".health-{uuid.uuid4().hex}"
        try:
            async with aiofiles.open(probe, "wb") as f:
                await f.write(b"ok")
            await aiofiles.os.remove(probe)
            return True
        except OSError as e:
            logger.warning("Blob store health check failed: %s", e)
            return False
