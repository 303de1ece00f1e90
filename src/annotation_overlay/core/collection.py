"""Replace-on-write helpers for shape collections.

Every function returns a new list; the input collection is never mutated,
so a host can detect changes by identity.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Shape


def find_shape(shapes: Sequence[Shape], shape_id: int) -> Optional[Shape]:
    """Find a shape by id."""
    for shape in shapes:
        if shape.id == shape_id:
            return shape
    return None


def append_shape(shapes: Sequence[Shape], shape: Shape) -> List[Shape]:
    """Return a new collection with the shape appended."""
    return [*shapes, shape]


def remove_shape(shapes: Sequence[Shape], shape_id: int) -> List[Shape]:
    """Return a new collection without the shape with the given id."""
    return [s for s in shapes if s.id != shape_id]


def replace_shape(shapes: Sequence[Shape], shape: Shape) -> List[Shape]:
    """Return a new collection with the shape of the same id swapped in."""
    return [shape if s.id == shape.id else s for s in shapes]


def max_shape_id(shapes: Sequence[Shape]) -> int:
    """Highest id in the collection, or -1 when empty."""
    return max((s.id for s in shapes), default=-1)
