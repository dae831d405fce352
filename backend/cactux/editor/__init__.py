"""
Cactux Topo — Drawing Client
==============================

The client half of the topo editor:

    PointSequenceEditor   click-by-click route line buffer (editor.py)
    render_composite      photo + line raster, identical to what is saved (renderer.py)
    DrawingSession        state machine tying editor, renderer and saves (session.py)
    AnnotationClient      async HTTP client for the image endpoints (client.py)

Nothing here imports the server modules, so the client can run without a
database or blob store configured.
"""

from cactux.editor.client import AnnotationClient, with_cache_buster
from cactux.editor.editor import EditorMode, PointSequenceEditor
from cactux.editor.errors import ImageLoadError, SaveError, SessionStateError
from cactux.editor.geometry import Point, flatten, unflatten
from cactux.editor.renderer import StrokeStyle, render_composite, render_png, to_data_url
from cactux.editor.session import ClimbRecord, DrawingSession, SaveOutcome, SessionState

__all__ = [
    "AnnotationClient",
    "ClimbRecord",
    "DrawingSession",
    "ImageLoadError",
    "SaveError",
    "SaveOutcome",
    "SessionState",
    "SessionStateError",
    "EditorMode",
    "Point",
    "PointSequenceEditor",
    "StrokeStyle",
    "flatten",
    "render_composite",
    "render_png",
    "to_data_url",
    "unflatten",
    "with_cache_buster",
]
