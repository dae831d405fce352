"""
Cactux Topo — Path Renderer Unit Tests
========================================

What:  Tests for render_composite and the snapshot helpers.
How:   Renders on a small black canvas and inspects individual pixels.

Test Strategy:
    ✅ Finished line: orange core over a white border
    ✅ Hidden line leaves the photo untouched
    ✅ In-progress points get markers only in drawing mode
    ✅ Same inputs give pixel-identical output; the base is never modified
    ✅ PNG snapshot and data URL encoding
"""

import base64
import io

from PIL import Image

from cactux.editor.geometry import Point
from cactux.editor.renderer import (
    DEFAULT_STYLE,
    StrokeStyle,
    render_composite,
    render_png,
    to_data_url,
)

ORANGE = (255, 102, 0, 255)
WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)

LINE = (Point(10, 30), Point(70, 30))


def black_canvas(width: int = 80, height: int = 60) -> Image.Image:
    return Image.new("RGB", (width, height), (0, 0, 0))


def column(image: Image.Image, x: int, y_from: int, y_to: int):
    return [image.getpixel((x, y)) for y in range(y_from, y_to)]


class TestFinishedLine:
    """Tests for the committed path layers."""

    def test_orange_core_with_white_border(self):
        """The centre of the stroke is orange and the border is white."""
        out = render_composite(black_canvas(), committed=LINE)
        assert out.getpixel((40, 30)) == ORANGE
        assert WHITE in column(out, 40, 22, 39)

    def test_far_pixels_untouched(self):
        out = render_composite(black_canvas(), committed=LINE)
        assert out.getpixel((40, 5)) == BLACK
        assert out.getpixel((40, 55)) == BLACK

    def test_hidden_line_not_drawn(self):
        """show_line=False renders the photo only."""
        out = render_composite(black_canvas(), committed=LINE, show_line=False)
        assert out.getpixel((40, 30)) == BLACK

    def test_single_point_path_not_drawn(self):
        """A one-point finished path has no segment to stroke."""
        out = render_composite(black_canvas(), committed=(Point(40, 30),))
        assert out.getpixel((40, 30)) == BLACK

    def test_custom_style(self):
        style = StrokeStyle(color="#00ff00", width=4, border_width=8)
        out = render_composite(black_canvas(), committed=LINE, style=style)
        assert out.getpixel((40, 30)) == (0, 255, 0, 255)


class TestInProgress:
    """Tests for the drawing-mode overlay."""

    def test_marker_on_single_point(self):
        """One click shows a filled marker but no line."""
        out = render_composite(black_canvas(), in_progress=(Point(40, 30),), drawing=True)
        assert out.getpixel((40, 30)) == ORANGE
        # nothing drawn where a line to the right would be
        assert out.getpixel((60, 30)) == BLACK

    def test_marker_outline_is_white(self):
        out = render_composite(black_canvas(), in_progress=(Point(40, 30),), drawing=True)
        ring = column(out, 40, 30 - DEFAULT_STYLE.marker_radius - 1, 30)
        assert WHITE in ring

    def test_in_progress_ignored_outside_drawing_mode(self):
        out = render_composite(black_canvas(), in_progress=LINE, drawing=False)
        assert out.getpixel((40, 30)) == BLACK

    def test_in_progress_line_drawn_between_points(self):
        out = render_composite(black_canvas(), in_progress=LINE, drawing=True)
        assert out.getpixel((40, 30)) == ORANGE


class TestDeterminism:
    """Tests for purity of the renderer."""

    def test_same_inputs_same_pixels(self):
        base = black_canvas()
        first = render_composite(base, committed=LINE, in_progress=LINE, drawing=True)
        second = render_composite(base, committed=LINE, in_progress=LINE, drawing=True)
        assert first.tobytes() == second.tobytes()

    def test_base_not_modified(self):
        base = black_canvas()
        before = base.tobytes()
        render_composite(base, committed=LINE)
        assert base.tobytes() == before

    def test_output_keeps_base_size(self):
        out = render_composite(black_canvas(123, 45), committed=LINE)
        assert out.size == (123, 45)
        assert out.mode == "RGBA"


class TestSnapshot:
    """Tests for PNG capture and data URL encoding."""

    def test_png_round_trips_pixels(self):
        out = render_composite(black_canvas(), committed=LINE)
        decoded = Image.open(io.BytesIO(render_png(out)))
        assert decoded.format == "PNG"
        assert decoded.tobytes() == out.tobytes()

    def test_data_url_prefix_and_payload(self):
        payload = b"\x89PNG fake"
        url = to_data_url(payload)
        assert url.startswith("data:image/png;base64,")
        assert base64.b64decode(url.split(",", 1)[1]) == payload
