"""Abstract interfaces for the collaborators around the annotation engine.

The engine never talks to a concrete viewer, scene or widget toolkit; it
talks to these interfaces. The Qt implementations live in ``ui``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .models import Point, Shape


class ViewportEvent(str, Enum):
    """Change notifications published by a viewport."""

    TRANSFORM_CHANGED = "transform_changed"
    RESIZED = "resized"
    CONTENT_LOADED = "content_loaded"


class ViewportProvider(ABC):
    """
    Abstract viewport over a large image.

    Owns the pan/zoom transform between viewport pixels and image
    coordinates and tells subscribers when it changes.
    """

    @abstractmethod
    def is_ready(self) -> bool:
        """Return True once the viewport can convert coordinates."""
        pass

    @abstractmethod
    def pixel_to_image(self, point: Point) -> Point:
        """Convert a viewport pixel position to image coordinates."""
        pass

    @abstractmethod
    def image_to_pixel(self, point: Point) -> Point:
        """Convert image coordinates to a viewport pixel position."""
        pass

    @abstractmethod
    def subscribe(self, event: ViewportEvent, callback: Callable[[], None]) -> None:
        """Register a callback for a viewport notification."""
        pass

    @abstractmethod
    def unsubscribe(self, event: ViewportEvent, callback: Callable[[], None]) -> None:
        """Remove a callback previously registered with subscribe()."""
        pass

    @abstractmethod
    def container_size(self) -> Tuple[int, int]:
        """Return the current (width, height) of the viewport in pixels."""
        pass


@dataclass(frozen=True)
class StrokeStyle:
    """Outline style of a rendered primitive."""

    color: str
    width: float
    dash: Optional[Tuple[float, ...]] = None


class SceneRenderer(ABC):
    """
    Abstract vector scene holding the annotation layer.

    Primitives are positioned in viewport pixels. A tag identifies the shape
    a primitive was drawn for; untagged primitives are never hit.
    """

    @abstractmethod
    def clear_layer(self) -> None:
        """Remove every primitive of the annotation layer."""
        pass

    @abstractmethod
    def add_line(
        self, start: Point, end: Point, style: StrokeStyle, tag: Optional[int] = None
    ) -> Any:
        """Add a line segment and return its handle."""
        pass

    @abstractmethod
    def add_circle(
        self, center: Point, radius: float, style: StrokeStyle, tag: Optional[int] = None
    ) -> Any:
        """Add a circle outline and return its handle."""
        pass

    @abstractmethod
    def add_rectangle(
        self,
        top_left: Point,
        width: float,
        height: float,
        style: StrokeStyle,
        tag: Optional[int] = None
    ) -> Any:
        """Add an axis-aligned rectangle outline and return its handle."""
        pass

    @abstractmethod
    def add_path(
        self,
        points: Sequence[Point],
        style: StrokeStyle,
        tag: Optional[int] = None,
        closed: bool = True
    ) -> Any:
        """Add a polyline (closed into a polygon if requested) and return its handle."""
        pass

    @abstractmethod
    def remove_primitive(self, handle: Any) -> None:
        """Remove a single primitive from the layer."""
        pass

    @abstractmethod
    def attach_primitive(self, handle: Any) -> None:
        """Put a previously created primitive back on top of the layer."""
        pass

    @abstractmethod
    def hit_test(self, point: Point, tolerance: float) -> Optional[int]:
        """
        Find the tagged primitive whose outline passes near a point.

        Fill is ignored; only strokes within ``tolerance`` pixels count.

        Returns:
            Tag of the topmost hit primitive, or None
        """
        pass

    @abstractmethod
    def repaint(self) -> None:
        """Flush pending changes to the screen."""
        pass


class DrawingSurface(ABC):
    """Abstract overlay surface the annotation layer is painted on."""

    @abstractmethod
    def surface_size(self) -> Tuple[int, int]:
        """Return the current (width, height) of the surface."""
        pass

    @abstractmethod
    def resize_surface(self, width: int, height: int) -> None:
        """Resize the surface."""
        pass

    @abstractmethod
    def set_pointer_passthrough(self, enabled: bool) -> None:
        """Let pointer events fall through to the viewport underneath."""
        pass


class FrameScheduler(ABC):
    """Coalesces repaint requests to at most one per animation frame."""

    @abstractmethod
    def request(self, callback: Callable[[], None]) -> None:
        """Schedule a callback, cancelling any request still pending."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Drop the pending request, if any."""
        pass


class HostState(ABC):
    """
    Owner of the shape collection and the selection.

    The engine reads the current values and reports mutations through the
    change callbacks; it never keeps its own copy as source of truth.
    """

    @property
    @abstractmethod
    def shapes(self) -> List[Shape]:
        """Current shape collection."""
        pass

    @property
    @abstractmethod
    def selected_id(self) -> Optional[int]:
        """Id of the selected shape, or None."""
        pass

    @abstractmethod
    def on_shapes_changed(self, shapes: List[Shape]) -> None:
        """Receive a new collection replacing the current one."""
        pass

    @abstractmethod
    def on_selection_changed(self, shape_id: Optional[int]) -> None:
        """Receive a new selection."""
        pass
