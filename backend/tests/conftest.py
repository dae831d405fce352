"""
Cactux Topo Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (SQLite record store, temp
       blob store, sample photos, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── db_tables: route/boulder tables created in a throwaway SQLite file
    ├── db_session: AsyncSession on that file
    ├── seeded_records: two route rows and one boulder row
    ├── blob_store: LocalBlobStore rooted in tmp_path
    ├── read_record: fresh-session row lookup
    ├── photo_factory / sample_png_bytes / make_data_url: Pillow-made images
    └── test_client: HTTPX AsyncClient wired to the FastAPI app
"""

import base64
import io
import os
import tempfile

# Override settings for testing BEFORE any cactux import
# Why: the engine and the blob store root are built from settings at import time
_TEST_DIR = tempfile.mkdtemp(prefix="cactux_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["PUBLIC_BASE_URL"] = "http://testserver/storage"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from cactux.database import Base, async_session_factory, engine  # noqa: E402
from cactux.models.climb import Boulder, Route  # noqa: E402
from cactux.services.blob_store import LocalBlobStore  # noqa: E402

TEST_BUCKET = "cactux"
TEST_PUBLIC_BASE = "http://testserver/storage"


# ══════════════════════════════════════════════════════════════════════════
# Record Store
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_tables() -> AsyncGenerator[None, None]:
    """
    Creates the route and boulder tables for one test and drops them after.

    The engine is disposed at teardown so no pooled connection outlives
    the test's event loop.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_tables):
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_records(db_tables):
    """Two routes (`arete-1`, `crack-2`) and one boulder (`roof-7`), no images yet."""
    async with async_session_factory() as session:
        session.add_all([
            Route(id="arete-1", name="Arete", grade="6a"),
            Route(id="crack-2", name="Crack", grade="5c"),
            Boulder(id="roof-7", name="Roof", grade="7A"),
        ])
        await session.commit()
    return {"route": ["arete-1", "crack-2"], "boulder": ["roof-7"]}


@pytest.fixture
def read_record():
    """Reads a row in a fresh session, bypassing any identity map."""
    async def _read(table: str, record_id: str):
        model = Route if table == "route" else Boulder
        async with async_session_factory() as session:
            return await session.get(model, record_id)
    return _read


# ══════════════════════════════════════════════════════════════════════════
# Blob Store
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    """Blob store writing under tmp_path; retries without waiting."""
    return LocalBlobStore(
        root=str(tmp_path / "blobs"),
        public_base_url=TEST_PUBLIC_BASE,
        max_attempts=3,
    )


# ══════════════════════════════════════════════════════════════════════════
# Sample Images
# ══════════════════════════════════════════════════════════════════════════

def make_photo(width: int = 120, height: int = 80, color=(90, 140, 200)) -> Image.Image:
    """A small gradient 'photo' so encodes are not trivially tiny."""
    image = Image.new("RGB", (width, height), color)
    for x in range(0, width, 4):
        for y in range(0, height, 4):
            image.putpixel((x, y), ((x * 3) % 256, (y * 5) % 256, (x + y) % 256))
    return image


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def data_url(raw: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


@pytest.fixture
def photo_factory():
    return make_photo


@pytest.fixture
def sample_photo() -> Image.Image:
    return make_photo()


@pytest.fixture
def sample_png_bytes(sample_photo) -> bytes:
    return png_bytes(sample_photo)


@pytest.fixture
def make_data_url():
    """
    Factory for base64 PNG data URLs.

    Usage:
        def test_save(make_data_url):
            body = {"imageData": make_data_url(60, 40), ...}
    """
    def _make(width: int = 120, height: int = 80) -> str:
        return data_url(png_bytes(make_photo(width, height)))
    return _make


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_tables, blob_store) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient for testing API endpoints in-process.

    The app's blob store is swapped for the tmp_path one through FastAPI's
    dependency_overrides; the record store uses the test SQLite file.
    """
    from cactux.dependencies import get_blob_store
    from cactux.main import app

    app.dependency_overrides[get_blob_store] = lambda: blob_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
