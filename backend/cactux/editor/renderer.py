"""
Path Renderer
==============

Draws a route line over a photo with Pillow.

Layers, bottom to top:
    1. the base photo
    2. finished path (when visible): wide white border, then the narrow
       orange stroke along the same points
    3. in-progress path (drawing mode only): the same two strokes plus a
       marker circle on every clicked point

Segments are straight; joins and both ends are rounded. Rendering is a
pure function of its inputs, so the composite sent to the server is
exactly what the user looked at.
"""

import base64
import io
from dataclasses import dataclass
from typing import Sequence

from PIL import Image, ImageDraw

from cactux.editor.geometry import MIN_PATH_POINTS, Point


@dataclass(frozen=True)
class StrokeStyle:
    color: str = "#ff6600"
    width: int = 4
    border_color: str = "#ffffff"
    border_width: int = 8
    marker_radius: int = 6
    marker_fill: str = "#ff6600"
    marker_outline: str = "#ffffff"
    marker_outline_width: int = 2


DEFAULT_STYLE = StrokeStyle()


def _stroke(draw: ImageDraw.ImageDraw, path: Sequence[Point], color: str, width: int) -> None:
    coords = [(p.x, p.y) for p in path]
    draw.line(coords, fill=color, width=width, joint="curve")
    # Pillow only rounds interior joints; cap both ends by hand
    radius = width / 2
    for x, y in (coords[0], coords[-1]):
        draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=color)


def _two_layer_stroke(draw: ImageDraw.ImageDraw, path: Sequence[Point], style: StrokeStyle) -> None:
    _stroke(draw, path, style.border_color, style.border_width)
    _stroke(draw, path, style.color, style.width)


def _markers(draw: ImageDraw.ImageDraw, points: Sequence[Point], style: StrokeStyle) -> None:
    r = style.marker_radius
    for p in points:
        draw.ellipse(
            (p.x - r, p.y - r, p.x + r, p.y + r),
            fill=style.marker_fill,
            outline=style.marker_outline,
            width=style.marker_outline_width,
        )


def render_composite(
    base: Image.Image,
    committed: Sequence[Point] = (),
    in_progress: Sequence[Point] = (),
    drawing: bool = False,
    show_line: bool = True,
    style: StrokeStyle = DEFAULT_STYLE,
) -> Image.Image:
    """
    Return a new RGBA image: `base` with the finished and/or in-progress path.

    `base` is never modified.
    """
    canvas = base.convert("RGBA")
    draw = ImageDraw.Draw(canvas)

    if show_line and len(committed) >= MIN_PATH_POINTS:
        _two_layer_stroke(draw, committed, style)

    if drawing and in_progress:
        if len(in_progress) >= MIN_PATH_POINTS:
            _two_layer_stroke(draw, in_progress, style)
        _markers(draw, in_progress, style)

    return canvas


def render_png(image: Image.Image) -> bytes:
    """Lossless capture of a rendered composite."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def to_data_url(png_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(png_bytes).decode('ascii')}"
