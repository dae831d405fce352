"""
Cactux Topo Backend — Rasterization & Compression Pipeline
============================================================

What:  Turns a captured editor canvas (or an uploaded photo) into a WebP
       blob at the original photo's resolution.
Why:   The browser capture rarely matches the photo's pixel size, and the
       stored images must stay small enough for the gallery to load fast.
How:   decode → fill-fit resize → encode under a CompressionPolicy.
Who:   Called by AnnotationService for both image endpoints.

Policies:
    FixedQualityPolicy   One encode at quality 80, effort 6. Used for line
                         overlays, where line crispness matters more than a
                         hard size cap.
    SizeBudgetPolicy     Quality/size loop for general uploads:

        quality 80 ──(> budget)──▶ 70 ▶ 60 ▶ ... ▶ 10
                                                   │ still > budget
                                                   ▼
                         width, height × 0.9, quality reset to 60
                                                   │
        accept when size ≤ budget, or when the next shrink would drop
        below 50 % of the original width or height

All work happens in memory. Pillow is CPU bound, so the async entry point
runs it in Starlette's threadpool and bounds it with a timeout.
"""

import asyncio
import base64
import binascii
import io
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from cactux.config import settings
from cactux.exceptions import ImageProcessingError, ValidationError

logger = logging.getLogger(__name__)

# Accepts "data:image/png;base64,...", "data:image/svg+xml;base64,..." etc.
DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)

WEBP_CONTENT_TYPE = "image/webp"
WEBP_EXTENSION = "webp"


def decode_data_url(image_data: Optional[str], max_bytes: Optional[int] = None) -> bytes:
    """
    Decode a base64 data URL (or bare base64 string) into raw bytes.

    Raises:
        ValidationError: payload missing, not base64, empty, or too large.
    """
    if not image_data or not isinstance(image_data, str):
        raise ValidationError(message="Image data is required", field="imageData")

    payload = DATA_URL_PREFIX.sub("", image_data.strip(), count=1)
    if payload.startswith("data:"):
        raise ValidationError(
            message="Image data must be a base64 encoded image data URL",
            field="imageData",
        )

    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            message="Image data is not valid base64",
            field="imageData",
            context={"error": str(e)},
        )

    if not raw:
        raise ValidationError(message="Image data is empty", field="imageData")

    limit = max_bytes if max_bytes is not None else settings.max_payload_bytes
    if len(raw) > limit:
        raise ValidationError(
            message=f"Image exceeds the maximum size of {limit // (1024 * 1024)}MB",
            field="imageData",
            context={"size": len(raw), "max_size": limit},
        )
    return raw


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def encode_webp(
    image: Image.Image,
    width: int,
    height: int,
    quality: int,
    effort: int,
) -> bytes:
    """
    Fill-fit resize `image` to exactly (width, height) and encode it as lossy WebP.

    Aspect ratio is deliberately not preserved: the capture and the original
    photo describe the same scene at different pixel ratios.
    """
    if image.size != (width, height):
        image = image.resize((width, height), Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=quality, method=effort, lossless=False)
    return buffer.getvalue()


@dataclass(frozen=True)
class EncodeAttempt:
    """One candidate produced by a policy."""

    width: int
    height: int
    quality: int
    size: int


@dataclass
class CompressionResult:
    """Final output of the pipeline."""

    data: bytes
    width: int
    height: int
    quality: int
    attempts: List[EncodeAttempt] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)


Encoder = Callable[[Image.Image, int, int, int, int], bytes]


class CompressionPolicy(ABC):
    """Strategy deciding how many encodes to run and which one to keep."""

    name = "policy"

    @abstractmethod
    def compress(
        self,
        image: Image.Image,
        width: int,
        height: int,
        encoder: Encoder = encode_webp,
    ) -> CompressionResult:
        ...


class FixedQualityPolicy(CompressionPolicy):
    """Single pass at a fixed quality; no size budget."""

    name = "fixed"

    def __init__(self, quality: Optional[int] = None, effort: Optional[int] = None):
        self.quality = quality if quality is not None else settings.initial_quality
        self.effort = effort if effort is not None else settings.webp_effort

    def compress(self, image, width, height, encoder=encode_webp):
        data = encoder(image, width, height, self.quality, self.effort)
        attempt = EncodeAttempt(width, height, self.quality, len(data))
        return CompressionResult(data, width, height, self.quality, [attempt])


class SizeBudgetPolicy(CompressionPolicy):
    """
    Quality-then-dimensions loop that aims for `max_bytes`.

    Exit guarantees:
        - the returned data is ≤ max_bytes, or
        - shrinking once more would go below `min_scale` of the original
          size in either axis (or would not change the size at all).
    Quality only goes down within one dimension tier; dimensions only go
    down once quality has hit its floor.
    """

    name = "size_budget"

    def __init__(
        self,
        max_bytes: Optional[int] = None,
        initial_quality: Optional[int] = None,
        quality_step: Optional[int] = None,
        quality_floor: Optional[int] = None,
        shrink_quality: Optional[int] = None,
        shrink_factor: Optional[float] = None,
        min_scale: Optional[float] = None,
        effort: Optional[int] = None,
    ):
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_image_bytes
        self.initial_quality = (
            initial_quality if initial_quality is not None else settings.initial_quality
        )
        self.quality_step = quality_step if quality_step is not None else settings.quality_step
        self.quality_floor = quality_floor if quality_floor is not None else settings.quality_floor
        self.shrink_quality = (
            shrink_quality if shrink_quality is not None else settings.shrink_quality
        )
        self.shrink_factor = shrink_factor if shrink_factor is not None else settings.shrink_factor
        self.min_scale = min_scale if min_scale is not None else settings.min_scale
        self.effort = effort if effort is not None else settings.webp_effort

    def _next_dimensions(self, width: int, height: int) -> Tuple[int, int]:
        return (
            max(1, round_half_up(width * self.shrink_factor)),
            max(1, round_half_up(height * self.shrink_factor)),
        )

    def compress(self, image, width, height, encoder=encode_webp):
        original_width, original_height = width, height
        quality = self.initial_quality
        attempts: List[EncodeAttempt] = []

        while True:
            data = encoder(image, width, height, quality, self.effort)
            attempts.append(EncodeAttempt(width, height, quality, len(data)))
            logger.debug(
                "Encoded %dx%d at q=%d: %d bytes (budget %d)",
                width, height, quality, len(data), self.max_bytes,
            )

            if len(data) <= self.max_bytes:
                break

            if quality > self.quality_floor:
                quality = max(quality - self.quality_step, self.quality_floor)
                continue

            next_width, next_height = self._next_dimensions(width, height)
            if (
                next_width < original_width * self.min_scale
                or next_height < original_height * self.min_scale
                or (next_width, next_height) == (width, height)
            ):
                logger.info(
                    "Size budget not reached; keeping %dx%d q=%d at %d bytes",
                    width, height, quality, len(data),
                )
                break

            width, height, quality = next_width, next_height, self.shrink_quality

        return CompressionResult(data, width, height, quality, attempts)


class ImagePipeline:
    """
    Decode → normalize → compress.

    Stateless; one module-level instance is shared by all requests.
    """

    def __init__(self, max_dimension: Optional[int] = None):
        self.max_dimension = max_dimension or settings.max_dimension

    def decode(self, raw: bytes) -> Image.Image:
        """
        Decode raw bytes into an RGB or RGBA Pillow image.

        Raises:
            ImageProcessingError: not an image Pillow can read, truncated
                data, or a decompression bomb.
        """
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except Image.DecompressionBombError as e:
            raise ImageProcessingError(
                message="Image is too large to process",
                context={"error": str(e)},
            )
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
            raise ImageProcessingError(
                message="Failed to process image",
                context={"error": str(e), "error_type": type(e).__name__},
            )

        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )
        target_mode = "RGBA" if has_alpha else "RGB"
        if image.mode != target_mode:
            image = image.convert(target_mode)
        return image

    def validate_dimensions(self, width: Optional[int], height: Optional[int]) -> None:
        for name, value in (("originalWidth", width), ("originalHeight", height)):
            if value is None:
                continue
            if value <= 0 or value > self.max_dimension:
                raise ValidationError(
                    message=f"{name} must be between 1 and {self.max_dimension}",
                    field=name,
                    context={name: value},
                )

    def target_size(
        self,
        source_width: int,
        source_height: int,
        width: Optional[int],
        height: Optional[int],
    ) -> Tuple[int, int]:
        if width and height:
            return width, height
        if width:
            height = max(1, round_half_up(source_height * width / source_width))
        elif height:
            width = max(1, round_half_up(source_width * height / source_height))
        else:
            return source_width, source_height
        self.validate_dimensions(width, height)
        return width, height

    def process(
        self,
        raw: bytes,
        policy: CompressionPolicy,
        width: Optional[int] = None,
        height: Optional[int] = None,
        encoder: Encoder = encode_webp,
    ) -> CompressionResult:
        """
        Run the full pipeline synchronously.

        Both dimensions given: fill-fit to exactly that size. One given: the
        other follows the decoded aspect ratio. None: the decoded size is kept.
        """
        self.validate_dimensions(width, height)
        image = self.decode(raw)

        try:
            target_width, target_height = self.target_size(image.width, image.height, width, height)
            result = policy.compress(image, target_width, target_height, encoder)
        except (OSError, ValueError) as e:
            raise ImageProcessingError(
                message="Failed to process image",
                context={"error": str(e), "policy": policy.name},
            )
        finally:
            image.close()

        logger.info(
            "Pipeline[%s]: %dx%d → %dx%d q=%d, %d bytes after %d encode(s)",
            policy.name,
            image.width,
            image.height,
            result.width,
            result.height,
            result.quality,
            result.size,
            len(result.attempts),
        )
        return result

    async def run(
        self,
        raw: bytes,
        policy: CompressionPolicy,
        width: Optional[int] = None,
        height: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> CompressionResult:
        """Async entry point: runs `process` off the event loop with a timeout."""
        limit = timeout if timeout is not None else settings.processing_timeout
        # The timeout bounds the response only: a worker thread cannot be
        # interrupted, so an expired encode still runs to completion.
        try:
            return await asyncio.wait_for(
                run_in_threadpool(self.process, raw, policy, width, height),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            raise ImageProcessingError(
                message="Image processing timed out",
                context={"timeout_seconds": limit, "policy": policy.name},
            )


image_pipeline = ImagePipeline()
