"""
Cactux Topo Backend — Annotation Service Unit Tests
=====================================================

What:  Tests for the save workflow (validate → pipeline → store → update).
How:   Real image pipeline on small PNGs; the PersistenceAdapter is an
       AsyncMock so call order and arguments can be asserted.

Test Strategy:
    ✅ optimize-line: fixed policy, line folder, image_line field
    ✅ upload-image: size budget policy, hasLine picks folder and field
    ✅ Storage failure stops before the record update
    ✅ Validation failures touch neither store
    ✅ Unexpected errors are wrapped in ImageProcessingError
"""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from cactux.exceptions import ImageProcessingError, NotFoundError, StorageError, ValidationError
from cactux.schemas.annotation import OptimizeLineRequest, UploadImageRequest
from cactux.services.annotation_service import AnnotationService
from cactux.services.image_pipeline import FixedQualityPolicy, ImagePipeline, SizeBudgetPolicy
from cactux.services.persistence import BlobCategory

STORED_URL = "http://testserver/storage/cactux/routes_lines/arete-1.webp"


def mock_adapter(url: str = STORED_URL) -> MagicMock:
    adapter = MagicMock()
    adapter.store = AsyncMock(return_value=url)
    adapter.update_record = AsyncMock()
    return adapter


class TestSaveLine:
    """Tests for AnnotationService.save_line."""

    def setup_method(self):
        self.service = AnnotationService(pipeline=ImagePipeline(max_dimension=4000))
        self.adapter = mock_adapter()

    @pytest.mark.asyncio
    async def test_stores_line_and_updates_image_line(self, make_data_url):
        request = OptimizeLineRequest(
            imageData=make_data_url(60, 40),
            routeId="arete-1",
            originalWidth=120,
            originalHeight=80,
        )
        response = await self.service.save_line(self.adapter, request)

        assert response.success is True
        assert response.url == STORED_URL
        assert response.message == "Image with line saved successfully"
        assert (response.width, response.height) == (120, 80)

        category, record_id, data = self.adapter.store.await_args.args
        assert category is BlobCategory.ROUTE_LINE
        assert record_id == "arete-1"
        assert Image.open(io.BytesIO(data)).size == (120, 80)
        self.adapter.update_record.assert_awaited_once_with(
            "route", "arete-1", "image_line", STORED_URL,
        )

    @pytest.mark.asyncio
    async def test_boulder_goes_to_boulder_lines(self, make_data_url):
        request = OptimizeLineRequest(imageData=make_data_url(), routeId="roof-7", tableType="boulder")
        await self.service.save_line(self.adapter, request)

        assert self.adapter.store.await_args.args[0] is BlobCategory.BOULDER_LINE
        self.adapter.update_record.assert_awaited_once_with(
            "boulder", "roof-7", "image_line", STORED_URL,
        )

    @pytest.mark.asyncio
    async def test_uses_fixed_quality_policy(self, make_data_url):
        run = AsyncMock(side_effect=self.service.pipeline.run)
        with patch.object(self.service.pipeline, "run", run):
            await self.service.save_line(
                self.adapter, OptimizeLineRequest(imageData=make_data_url(), routeId="arete-1"),
            )
        policy = run.await_args.args[1]
        assert isinstance(policy, FixedQualityPolicy)
        assert (policy.quality, policy.effort) == (80, 6)

    @pytest.mark.asyncio
    async def test_storage_failure_skips_record_update(self, make_data_url):
        self.adapter.store.side_effect = StorageError()
        with pytest.raises(StorageError):
            await self.service.save_line(
                self.adapter, OptimizeLineRequest(imageData=make_data_url(), routeId="arete-1"),
            )
        self.adapter.update_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, make_data_url):
        self.adapter.update_record.side_effect = NotFoundError("route", "arete-1")
        with pytest.raises(NotFoundError):
            await self.service.save_line(
                self.adapter, OptimizeLineRequest(imageData=make_data_url(), routeId="arete-1"),
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"imageData": "not-base64-!!"},
            {"routeId": "../etc"},
            {"originalWidth": 0, "originalHeight": 80},
        ],
    )
    async def test_invalid_input_touches_nothing(self, make_data_url, overrides):
        body = {"imageData": make_data_url(), "routeId": "arete-1"}
        body.update(overrides)
        with pytest.raises(ValidationError):
            await self.service.save_line(self.adapter, OptimizeLineRequest(**body))
        self.adapter.store.assert_not_awaited()
        self.adapter.update_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, make_data_url):
        self.adapter.store.side_effect = RuntimeError("boom")
        with pytest.raises(ImageProcessingError):
            await self.service.save_line(
                self.adapter, OptimizeLineRequest(imageData=make_data_url(), routeId="arete-1"),
            )


class TestUploadImage:
    """Tests for AnnotationService.upload_image."""

    def setup_method(self):
        self.service = AnnotationService(pipeline=ImagePipeline(max_dimension=4000))
        self.adapter = mock_adapter("http://testserver/storage/cactux/routes/arete-1.webp")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "has_line,category,field",
        [
            (False, BlobCategory.ROUTE_BASE, "image"),
            (True, BlobCategory.ROUTE_LINE, "image_line"),
        ],
    )
    async def test_has_line_selects_folder_and_field(self, make_data_url, has_line, category, field):
        request = UploadImageRequest(
            imageData=make_data_url(),
            routeId="arete-1",
            originalWidth=120,
            originalHeight=80,
            tableType="route",
            hasLine=has_line,
        )
        response = await self.service.upload_image(self.adapter, request)

        assert response.message == "Image saved successfully"
        assert self.adapter.store.await_args.args[0] is category
        assert self.adapter.update_record.await_args.args[2] == field

    @pytest.mark.asyncio
    async def test_uses_size_budget_policy(self, make_data_url):
        run = AsyncMock(side_effect=self.service.pipeline.run)
        with patch.object(self.service.pipeline, "run", run):
            await self.service.upload_image(
                self.adapter,
                UploadImageRequest(
                    imageData=make_data_url(), routeId="arete-1",
                    originalWidth=120, originalHeight=80,
                ),
            )
        policy = run.await_args.args[1]
        assert isinstance(policy, SizeBudgetPolicy)
        assert policy.max_bytes == 300 * 1024

    @pytest.mark.asyncio
    async def test_output_within_budget(self, make_data_url):
        response = await self.service.upload_image(
            self.adapter,
            UploadImageRequest(
                imageData=make_data_url(), routeId="arete-1",
                originalWidth=800, originalHeight=600,
            ),
        )
        assert response.size <= 300 * 1024
