"""
Drawing Session
================

What:  One user's pass over one record: pick it, load its photo, draw a
       route line, save the composite.
Why:   The editor alone knows nothing about loading or saving. Async loads
       and saves can finish after the user has moved on to another
       record, and their results must not land on the wrong one.
How:   An explicit state enum plus a selection generation counter. Every
       load and save remembers the generation it started in and is
       discarded if the selection changed while it was awaiting.

States:
    IDLE ──load_image()──▶ LOADING ──ok──▶ READY ◀──toggle_drawing()──┐
      ▲                       │                │                       │
      └────────fail───────────┘        toggle_drawing()                │
                                               ▼                       │
                                            DRAWING ───────────────────┘
                                               │ finish_line()
                                               ▼
                    SAVING ◀──save()──── FINISHED ──clear_line()──▶ READY
                       └──ok / fail──────────▲

`select_record()` returns to IDLE from anywhere, dropping the image, the
path and any saved-line image of the previous record.
"""

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from PIL import Image, UnidentifiedImageError

from cactux.editor.client import AnnotationClient, with_cache_buster
from cactux.editor.editor import PointSequenceEditor
from cactux.editor.errors import ImageLoadError, SaveError, SessionStateError
from cactux.editor.geometry import Path
from cactux.editor.renderer import DEFAULT_STYLE, StrokeStyle, render_composite, render_png, to_data_url

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DRAWING = "drawing"
    FINISHED = "finished"
    SAVING = "saving"


@dataclass
class ClimbRecord:
    """The slice of a route/boulder row the session works with."""

    id: str
    name: str = ""
    image: Optional[str] = None
    image_line: Optional[str] = None
    table: str = "route"


@dataclass(frozen=True)
class SaveOutcome:
    record_id: str
    url: Optional[str] = None
    stale: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.url is not None and not self.stale and self.error is None


class DrawingSession:
    """
    Ties the editor, renderer and save client together for one record.

    Args:
        client: AnnotationClient used for image loads and saves.
        style: Stroke style used for display and for the saved composite.
        notify: Optional callback(level, message) for user-facing toasts.
    """

    def __init__(
        self,
        client: AnnotationClient,
        style: StrokeStyle = DEFAULT_STYLE,
        notify: Optional[Notifier] = None,
    ):
        self._client = client
        self._style = style
        self._notify = notify
        self._editor = PointSequenceEditor()
        self._state = SessionState.IDLE
        self._generation = 0
        self._record: Optional[ClimbRecord] = None
        self._base_image: Optional[Image.Image] = None
        self.show_line = True
        self.image_unavailable = False
        self.saved_line_url: Optional[str] = None

    # ── Read-only views ───────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def record(self) -> Optional[ClimbRecord]:
        return self._record

    @property
    def base_image(self) -> Optional[Image.Image]:
        return self._base_image

    @property
    def editor(self) -> PointSequenceEditor:
        return self._editor

    @property
    def points(self) -> Path:
        return self._editor.points

    @property
    def finished_path(self) -> Path:
        return self._editor.committed_path

    @property
    def can_save(self) -> bool:
        return self._state is SessionState.FINISHED

    def _emit(self, level: str, message: str) -> None:
        if self._notify is not None:
            self._notify(level, message)

    def _require(self, operation: str, *allowed: SessionState) -> None:
        if self._state not in allowed:
            raise SessionStateError(operation, self._state.value)

    # ── Selection & loading ───────────────────────────────────────────────

    def select_record(self, record: Optional[ClimbRecord]) -> None:
        """Switch to another record (or to none). In-flight work becomes stale."""
        self._generation += 1
        self._record = record
        self._base_image = None
        self._editor.reset()
        self._state = SessionState.IDLE
        self.show_line = True
        self.image_unavailable = False
        self.saved_line_url = None
        logger.debug("Selected record %s", record.id if record else None)

    async def load_image(self) -> bool:
        """
        Fetch and decode the record's base photo.

        A missing or broken image is not fatal: the session records
        `image_unavailable`, goes back to IDLE and drawing stays disabled.
        """
        self._require("load image", SessionState.IDLE)
        record = self._record
        if record is None:
            raise SessionStateError("load image", "no record selected")
        if not record.image:
            self.image_unavailable = True
            return False

        generation = self._generation
        self._state = SessionState.LOADING
        try:
            data = await self._client.fetch_image(record.image)
            image = Image.open(io.BytesIO(data))
            image.load()
        except (ImageLoadError, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            if generation != self._generation:
                return False
            logger.warning("Could not load image for %s: %s", record.id, e)
            self.image_unavailable = True
            self._state = SessionState.IDLE
            self._emit("error", "No image available")
            return False

        if generation != self._generation:
            logger.debug("Discarding image load for %s: selection changed", record.id)
            return False

        self._base_image = image.convert("RGBA")
        self._editor.attach_image(*self._base_image.size)
        self._state = SessionState.READY
        return True

    # ── Drawing ───────────────────────────────────────────────────────────

    def toggle_drawing(self) -> SessionState:
        """Enter drawing from READY, or cancel it (dropping the clicks)."""
        self._require("toggle drawing", SessionState.READY, SessionState.DRAWING)
        self._editor.toggle_drawing()
        self._state = SessionState.DRAWING if self._editor.drawing_mode else SessionState.READY
        return self._state

    def add_point(self, point) -> bool:
        """Canvas click. Ignored outside drawing mode."""
        if self._state is not SessionState.DRAWING:
            return False
        return self._editor.add_point(point)

    def undo_last_point(self) -> bool:
        if self._state is not SessionState.DRAWING:
            return False
        return self._editor.undo_last_point()

    def finish_line(self) -> bool:
        """Freeze the clicks as the route line; rejected with fewer than two."""
        self._require("finish line", SessionState.DRAWING)
        if not self._editor.finish_line():
            return False
        self._state = SessionState.FINISHED
        return True

    def clear_line(self) -> None:
        """Throw away the finished line so a new one can be drawn."""
        self._require("clear line", SessionState.FINISHED)
        width, height = self._editor.image_size
        self._editor.reset()
        self._editor.attach_image(width, height)
        self._state = SessionState.READY

    def toggle_line_visibility(self) -> bool:
        self.show_line = not self.show_line
        return self.show_line

    # ── Rendering ─────────────────────────────────────────────────────────

    def render(self) -> Image.Image:
        """What the canvas shows right now."""
        if self._base_image is None:
            raise SessionStateError("render", "no image loaded")
        return render_composite(
            self._base_image,
            committed=self._editor.committed_path,
            in_progress=self._editor.points,
            drawing=self._editor.drawing_mode,
            show_line=self.show_line,
            style=self._style,
        )

    def snapshot_data_url(self) -> str:
        """PNG data URL of the canvas as the user sees it (line hidden or not)."""
        if self._base_image is None:
            raise SessionStateError("snapshot", "no image loaded")
        composite = render_composite(
            self._base_image,
            committed=self._editor.committed_path,
            show_line=self.show_line,
            style=self._style,
        )
        return to_data_url(render_png(composite))

    # ── Saving ────────────────────────────────────────────────────────────

    async def save(self) -> SaveOutcome:
        """
        Post the composite to /optimize-line for the current record.

        Raises SessionStateError when no line is finished or a save is
        already running. Failures return an outcome with `error` set and
        leave the finished line in place for a retry. A result that
        arrives after the user switched records is reported as stale and
        changes nothing.
        """
        self._require("save", SessionState.FINISHED)
        record = self._record
        generation = self._generation
        width, height = self._editor.image_size
        data_url = self.snapshot_data_url()

        self._state = SessionState.SAVING
        try:
            url = await self._client.save_line(
                record.id, data_url, width, height, table_type=record.table,
            )
        except SaveError as e:
            if generation != self._generation:
                return SaveOutcome(record_id=record.id, stale=True, error=e.message)
            logger.warning("Save failed for %s: %s", record.id, e.message)
            self._state = SessionState.FINISHED
            self._emit("error", "Failed to save line")
            return SaveOutcome(record_id=record.id, error=e.message)
        finally:
            # Cancelled or unexpected failures must not leave the session in SAVING
            if generation == self._generation and self._state is SessionState.SAVING:
                self._state = SessionState.FINISHED

        if generation != self._generation:
            logger.info("Discarding save result for %s: selection changed", record.id)
            return SaveOutcome(record_id=record.id, url=url, stale=True)

        record.image_line = url
        self.saved_line_url = with_cache_buster(url)
        self._state = SessionState.FINISHED
        self._emit("success", "Route line saved successfully!")
        return SaveOutcome(record_id=record.id, url=url)
