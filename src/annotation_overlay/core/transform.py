"""Coordinate conversion between viewport pixels and image space."""

from __future__ import annotations

import logging
from typing import Optional

from .interfaces import ViewportProvider
from .models import Point

logger = logging.getLogger(__name__)

ORIGIN = Point(0.0, 0.0)


class CoordinateTransform:
    """
    Converts points between viewport pixels and image coordinates.

    Keeps a live reference to the viewport rather than a snapshot of its
    transform, so conversions always reflect the current pan and zoom.
    Before a viewport is bound and ready, both conversions return the
    origin instead of failing.
    """

    def __init__(self, viewport: Optional[ViewportProvider] = None) -> None:
        self._viewport = viewport

    @property
    def viewport(self) -> Optional[ViewportProvider]:
        return self._viewport

    def bind(self, viewport: Optional[ViewportProvider]) -> None:
        """Attach (or detach with None) the backing viewport."""
        self._viewport = viewport

    @property
    def is_ready(self) -> bool:
        return self._viewport is not None and self._viewport.is_ready()

    def to_image(self, point: Point) -> Point:
        """Convert a viewport pixel position to image coordinates."""
        if not self.is_ready:
            return ORIGIN
        return self._viewport.pixel_to_image(point)

    def to_viewport(self, point: Point) -> Point:
        """Convert image coordinates to a viewport pixel position."""
        if not self.is_ready:
            return ORIGIN
        return self._viewport.image_to_pixel(point)
