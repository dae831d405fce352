"""
Cactux Topo Backend — Blob Store Unit Tests
=============================================

What:  Tests for LocalBlobStore writes, reads, URLs and path safety.
How:   Every test gets its own tmp_path-rooted store (conftest.blob_store).

Test Strategy:
    ✅ Upload → public URL → fetch returns identical bytes
    ✅ Upsert overwrites in place; one file per path
    ✅ upsert=False refuses to overwrite
    ✅ Traversal and absolute paths rejected
    ✅ Transient OSErrors retried, persistent ones → StorageError, no temp files left
"""

import os
import warnings
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.applications import Starlette
from starlette.routing import Mount
from starlette.staticfiles import StaticFiles

from cactux.exceptions import StorageError
from cactux.services.blob_store import BlobExistsError, LocalBlobStore

BUCKET = "cactux"


def files_under(root) -> list:
    return sorted(
        os.path.relpath(os.path.join(d, f), root)
        for d, _, names in os.walk(root)
        for f in names
    )


class TestUploadAndRead:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_round_trip_through_public_url(self, blob_store):
        """Bytes fetched from the public URL equal the uploaded bytes."""
        data = bytes(range(256)) * 40
        await blob_store.upload(BUCKET, "routes_lines/arete-1.webp", data, "image/webp")

        url = blob_store.get_public_url(BUCKET, "routes_lines/arete-1.webp")
        assert url == "http://testserver/storage/cactux/routes_lines/arete-1.webp"

        app = Starlette(routes=[Mount("/storage", StaticFiles(directory=str(blob_store.root)))])
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.get(url + "?t=1700000000000")
        assert response.status_code == 200
        assert response.content == data

    @pytest.mark.asyncio
    async def test_download_returns_uploaded_bytes(self, blob_store):
        await blob_store.upload(BUCKET, "boulders/roof-7.webp", b"abc", "image/webp")
        assert await blob_store.download(BUCKET, "boulders/roof-7.webp") == b"abc"

    @pytest.mark.asyncio
    async def test_download_missing_blob(self, blob_store):
        with pytest.raises(StorageError, match="Failed to read"):
            await blob_store.download(BUCKET, "routes/missing.webp")


class TestUpsert:
    """Tests for overwrite semantics."""

    @pytest.mark.asyncio
    async def test_second_upload_supersedes_first(self, blob_store):
        """Same path twice: latest bytes win and only one file exists."""
        path = "routes_lines/arete-1.webp"
        await blob_store.upload(BUCKET, path, b"first", "image/webp")
        await blob_store.upload(BUCKET, path, b"second", "image/webp")

        assert await blob_store.download(BUCKET, path) == b"second"
        assert files_under(blob_store.root) == [os.path.join(BUCKET, "routes_lines", "arete-1.webp")]

    @pytest.mark.asyncio
    async def test_upsert_false_refuses_existing(self, blob_store):
        path = "routes/arete-1.webp"
        await blob_store.upload(BUCKET, path, b"first", upsert=False)
        with pytest.raises(BlobExistsError):
            await blob_store.upload(BUCKET, path, b"second", upsert=False)
        assert await blob_store.download(BUCKET, path) == b"first"


class TestPathSafety:
    """Tests for _resolve."""

    @pytest.mark.parametrize(
        "bucket,path",
        [
            (BUCKET, "../escape.webp"),
            (BUCKET, "routes/../../escape.webp"),
            (BUCKET, "/etc/passwd"),
            (BUCKET, ""),
            ("..", "routes/a.webp"),
            ("a/b", "routes/a.webp"),
            ("", "routes/a.webp"),
        ],
    )
    @pytest.mark.asyncio
    async def test_unsafe_paths_rejected(self, blob_store, bucket, path):
        with pytest.raises(StorageError, match="Invalid storage path"):
            await blob_store.upload(bucket, path, b"x")

    def test_public_url_checks_path(self, blob_store):
        with pytest.raises(StorageError):
            blob_store.get_public_url(BUCKET, "../x.webp")


class TestFailures:
    """Tests for retry and cleanup behaviour."""

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, blob_store):
        """One failing os.replace is retried and the write succeeds."""
        real_replace = os.replace
        calls = {"n": 0}

        def flaky_replace(src, dst):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("EAGAIN")
            return real_replace(src, dst)

        with patch("cactux.services.blob_store.os.replace", side_effect=flaky_replace):
            await blob_store.upload(BUCKET, "routes/a.webp", b"data")

        assert calls["n"] == 2
        assert await blob_store.download(BUCKET, "routes/a.webp") == b"data"

    @pytest.mark.asyncio
    async def test_retry_policy_raises_no_deprecation_warning(self, blob_store):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with patch("cactux.services.blob_store.os.replace", side_effect=OSError("disk full")):
                with pytest.raises(StorageError):
                    await blob_store.upload(BUCKET, "routes/a.webp", b"data")

        deprecations = [str(w.message) for w in caught if issubclass(w.category, DeprecationWarning)]
        assert not [m for m in deprecations if "wait" in m]

    @pytest.mark.asyncio
    async def test_persistent_error_becomes_storage_error(self, blob_store):
        """After max_attempts the failure surfaces and no temp file remains."""
        with patch("cactux.services.blob_store.os.replace", side_effect=OSError("disk full")) as replace:
            with pytest.raises(StorageError, match="Failed to store image"):
                await blob_store.upload(BUCKET, "routes/a.webp", b"data")

        assert replace.call_count == 3
        assert files_under(blob_store.root) == []

    @pytest.mark.asyncio
    async def test_health_check(self, blob_store):
        assert await blob_store.health_check() is True
        assert files_under(blob_store.root) == []

    def test_root_created_on_init(self, tmp_path):
        store = LocalBlobStore(root=str(tmp_path / "new" / "root"), public_base_url="http://x/")
        assert store.root.is_dir()
        assert store.public_base_url == "http://x"
