"""
Point Sequence Editor
======================

Accumulates the clicks of one drawing session into a route line.

Modes:
    IDLE ──enter_drawing()──▶ DRAWING ──finish_line()──▶ FINISHED
      ▲                          │                           │
      └──────exit_drawing()──────┘                           │
      ▲                                                      │
      └──────────────────────────reset()─────────────────────┘

`drawing_mode` and `finished` are derived from the single mode value, so
both can never be true at once. Operations that are not allowed in the
current mode return False and change nothing; they never raise, because
they are wired straight to buttons and canvas clicks.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from cactux.editor.geometry import MIN_PATH_POINTS, Path, Point, as_point

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    FINISHED = "finished"


class PointSequenceEditor:
    """Working point buffer plus the committed (finished) path."""

    def __init__(self) -> None:
        self._mode = EditorMode.IDLE
        self._points: List[Point] = []
        self._committed: Path = ()
        self._image_size: Optional[Tuple[int, int]] = None

    # ── Image attachment ──────────────────────────────────────────────────

    def attach_image(self, width: int, height: int) -> None:
        """Record that a base image of the given size is loaded."""
        self._image_size = (int(width), int(height))

    @property
    def has_image(self) -> bool:
        return self._image_size is not None

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        return self._image_size

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def drawing_mode(self) -> bool:
        return self._mode is EditorMode.DRAWING

    @property
    def finished(self) -> bool:
        return self._mode is EditorMode.FINISHED

    @property
    def points(self) -> Path:
        """Snapshot of the working buffer."""
        return tuple(self._points)

    @property
    def committed_path(self) -> Path:
        """The finished path, or () when nothing is finished."""
        return self._committed

    @property
    def preview_path(self) -> Path:
        """
        Line drawn for the in-progress buffer.

        Empty below two points: one remaining point shows only its marker,
        never a one-point line.
        """
        if len(self._points) < MIN_PATH_POINTS:
            return ()
        return tuple(self._points)

    @property
    def can_undo(self) -> bool:
        return self.drawing_mode and len(self._points) >= MIN_PATH_POINTS

    @property
    def can_finish(self) -> bool:
        return self.drawing_mode and len(self._points) >= MIN_PATH_POINTS

    # ── Operations ────────────────────────────────────────────────────────

    def enter_drawing(self) -> bool:
        """Start drawing. Needs an image and no finished path."""
        if self._mode is not EditorMode.IDLE or not self.has_image:
            return False
        self._mode = EditorMode.DRAWING
        self._points = []
        return True

    def exit_drawing(self) -> bool:
        """Abandon the in-progress buffer."""
        if self._mode is not EditorMode.DRAWING:
            return False
        self._mode = EditorMode.IDLE
        self._points = []
        return True

    def toggle_drawing(self) -> bool:
        """The "Draw Route Line" / "Cancel Drawing" button."""
        if self.drawing_mode:
            return self.exit_drawing()
        return self.enter_drawing()

    def add_point(self, point) -> bool:
        """Append a click. Ignored unless drawing over a loaded image."""
        if not self.drawing_mode or not self.has_image:
            return False
        self._points.append(as_point(point))
        return True

    def undo_last_point(self) -> bool:
        """
        Drop the newest point.

        Only allowed with at least two points in the buffer, so the last
        remaining point can never be undone.
        """
        if not self.can_undo:
            return False
        self._points.pop()
        return True

    def finish_line(self) -> bool:
        """Commit the buffer as the finished path and leave drawing mode."""
        if not self.can_finish:
            return False
        self._committed = tuple(self._points)
        self._points = []
        self._mode = EditorMode.FINISHED
        logger.debug("Finished line with %d points", len(self._committed))
        return True

    def reset(self) -> None:
        """Forget everything, including the attached image."""
        self._mode = EditorMode.IDLE
        self._points = []
        self._committed = ()
        self._image_size = None
