"""Data models for annotation shapes."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    """A pair of real-valued coordinates."""

    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def distance_to(self, other: Point) -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)


class ShapeType(str, Enum):
    """Type of annotation shape."""

    LINE = "line"
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    POLYGON = "polygon"


@dataclass(frozen=True)
class LineShape:
    """Straight segment between two image-space points."""

    id: int
    start_point: Point
    end_point: Point
    color: Optional[str] = None
    stroke_width: Optional[float] = None

    @property
    def type(self) -> ShapeType:
        return ShapeType.LINE


@dataclass(frozen=True)
class CircleShape:
    """Circle given by its image-space center and radius."""

    id: int
    center: Point
    radius: float
    color: Optional[str] = None
    stroke_width: Optional[float] = None

    @property
    def type(self) -> ShapeType:
        return ShapeType.CIRCLE


@dataclass(frozen=True)
class RectangleShape:
    """
    Axis-aligned rectangle.

    The top-left corner is the minimum corner in image space; width and
    height are always non-negative.
    """

    id: int
    top_left: Point
    width: float
    height: float
    color: Optional[str] = None
    stroke_width: Optional[float] = None

    @property
    def type(self) -> ShapeType:
        return ShapeType.RECTANGLE

    @property
    def bottom_right(self) -> Point:
        return Point(self.top_left.x + self.width, self.top_left.y + self.height)


@dataclass(frozen=True)
class PolygonShape:
    """Closed polygon over an ordered sequence of image-space vertices."""

    id: int
    points: Tuple[Point, ...]
    color: Optional[str] = None
    stroke_width: Optional[float] = None

    def __post_init__(self) -> None:
        # Accept any sequence but keep the stored value hashable and immutable
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    @property
    def type(self) -> ShapeType:
        return ShapeType.POLYGON


Shape = Union[LineShape, CircleShape, RectangleShape, PolygonShape]
