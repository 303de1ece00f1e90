"""Geometry helpers: validation, translation and bounds of shapes."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Tuple

from .models import CircleShape, LineShape, Point, PolygonShape, RectangleShape, Shape

logger = logging.getLogger(__name__)

# Anything at or below this size in image units is an accidental click
MIN_SHAPE_SIZE = 2e-6

MIN_POLYGON_POINTS = 3


def is_valid_shape(shape: Shape) -> bool:
    """
    Check that a shape is geometrically non-degenerate.

    Args:
        shape: Shape to check

    Returns:
        True if the shape's characteristic size exceeds MIN_SHAPE_SIZE
    """
    if isinstance(shape, LineShape):
        return shape.start_point.distance_to(shape.end_point) > MIN_SHAPE_SIZE
    if isinstance(shape, CircleShape):
        return shape.radius > MIN_SHAPE_SIZE
    if isinstance(shape, RectangleShape):
        return shape.width > MIN_SHAPE_SIZE and shape.height > MIN_SHAPE_SIZE
    if isinstance(shape, PolygonShape):
        return len(shape.points) >= MIN_POLYGON_POINTS
    return False


def translate_shape(shape: Shape, dx: float, dy: float) -> Shape:
    """
    Return a copy of a shape moved by (dx, dy).

    Every geometry field is translated; id, type and display
    attributes are kept.

    Args:
        shape: Shape to translate
        dx: Offset along x in image units
        dy: Offset along y in image units

    Returns:
        New translated shape
    """
    delta = Point(dx, dy)

    if isinstance(shape, LineShape):
        return replace(
            shape,
            start_point=shape.start_point + delta,
            end_point=shape.end_point + delta,
        )
    elif isinstance(shape, CircleShape):
        return replace(shape, center=shape.center + delta)
    elif isinstance(shape, RectangleShape):
        return replace(shape, top_left=shape.top_left + delta)
    elif isinstance(shape, PolygonShape):
        return replace(shape, points=tuple(p + delta for p in shape.points))

    raise TypeError(f"Unsupported shape: {shape!r}")


def normalized_rect(a: Point, b: Point) -> Tuple[Point, float, float]:
    """
    Build an axis-aligned box from two opposite corners.

    Works for any drag direction.

    Returns:
        Tuple of (top_left, width, height)
    """
    top_left = Point(min(a.x, b.x), min(a.y, b.y))
    return top_left, abs(b.x - a.x), abs(b.y - a.y)


def bounding_rect(shape: Shape) -> Tuple[float, float, float, float]:
    """
    Get the image-space bounding rectangle of a shape.

    Returns:
        Tuple of (x, y, width, height)
    """
    if isinstance(shape, LineShape):
        points = [shape.start_point, shape.end_point]
    elif isinstance(shape, CircleShape):
        r = shape.radius
        return (shape.center.x - r, shape.center.y - r, 2 * r, 2 * r)
    elif isinstance(shape, RectangleShape):
        return (shape.top_left.x, shape.top_left.y, shape.width, shape.height)
    else:
        points = list(shape.points)

    if not points:
        return (0.0, 0.0, 0.0, 0.0)

    xs = [p.x for p in points]
    ys = [p.y for p in points]

    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    return (min_x, min_y, max_x - min_x, max_y - min_y)
