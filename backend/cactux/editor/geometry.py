"""Points and paths in image-pixel space."""

from typing import Iterable, List, NamedTuple, Sequence, Tuple


class Point(NamedTuple):
    x: float
    y: float


Path = Tuple[Point, ...]

# A path needs at least this many points to be drawn or finished
MIN_PATH_POINTS = 2


def as_point(value) -> Point:
    """Accept a Point, an (x, y) pair or a dict with x/y keys."""
    if isinstance(value, Point):
        return value
    if isinstance(value, dict):
        return Point(float(value["x"]), float(value["y"]))
    x, y = value
    return Point(float(x), float(y))


def flatten(points: Iterable[Point]) -> List[float]:
    """[(x0, y0), (x1, y1)] → [x0, y0, x1, y1]"""
    flat: List[float] = []
    for p in points:
        flat.extend((p.x, p.y))
    return flat


def unflatten(coords: Sequence[float]) -> Path:
    """[x0, y0, x1, y1] → (Point(x0, y0), Point(x1, y1))"""
    if len(coords) % 2:
        raise ValueError("Flattened coordinates must have an even length")
    return tuple(Point(float(coords[i]), float(coords[i + 1])) for i in range(0, len(coords), 2))
