"""Projection of image-space shapes onto the renderer's annotation layer."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .config import OverlayConfig
from .interfaces import SceneRenderer, StrokeStyle
from .geometry import normalized_rect
from .models import CircleShape, LineShape, Point, PolygonShape, RectangleShape, Shape
from .transform import CoordinateTransform

logger = logging.getLogger(__name__)


class SceneRendererAdapter:
    """
    Draws the shape collection through a SceneRenderer.

    Every stored image-space coordinate is converted to viewport space at
    draw time, which is what keeps shapes attached to image content across
    pan and zoom. Apart from the renderer and transform, the only state
    kept between calls is the handle of the in-progress preview primitive.
    """

    def __init__(
        self,
        renderer: SceneRenderer,
        transform: CoordinateTransform,
        config: Optional[OverlayConfig] = None
    ) -> None:
        """
        Initialize the adapter.

        Args:
            renderer: Scene holding the annotation layer
            transform: Image/viewport coordinate conversion
            config: Styling settings, defaults if omitted
        """
        self.renderer = renderer
        self.transform = transform
        self.config = config or OverlayConfig()
        self._preview: Any = None

    @property
    def has_preview(self) -> bool:
        return self._preview is not None

    # === Styles ===

    def style_for(self, shape: Shape, selected: bool) -> StrokeStyle:
        """Stroke style of a committed shape."""
        if selected:
            return StrokeStyle(self.config.selected_color, self.config.selected_stroke_width)
        return StrokeStyle(
            shape.color or self.config.stroke_color,
            shape.stroke_width or self.config.stroke_width,
        )

    def preview_style(self) -> StrokeStyle:
        """Dashed stroke style of the preview primitive."""
        return StrokeStyle(
            self.config.preview_color,
            self.config.preview_stroke_width,
            tuple(self.config.preview_dash) or None,
        )

    # === Drawing ===

    def redraw(self, shapes: Sequence[Shape], selected_id: Optional[int]) -> None:
        """
        Re-emit the annotation layer from scratch.

        Only the annotation layer is cleared. A shape that fails to draw is
        logged and skipped so the rest of the frame still renders. The
        preview primitive, if any, is put back on top.

        Args:
            shapes: Current shape collection
            selected_id: Id of the selected shape, or None
        """
        self.renderer.clear_layer()

        for shape in shapes:
            try:
                self._emit(shape, self.style_for(shape, shape.id == selected_id), shape.id)
            except Exception as e:
                logger.warning(f"Error drawing shape {shape!r}: {e}")

        if self._preview is not None:
            try:
                self.renderer.attach_primitive(self._preview)
            except Exception as e:
                logger.warning(f"Error attaching preview primitive: {e}")

        try:
            self.renderer.repaint()
        except Exception as e:
            logger.warning(f"Error repainting annotation layer: {e}")

    def show_preview(self, draft: Shape, closed: bool = True) -> None:
        """
        Replace the preview primitive with a dashed rendition of a draft shape.

        Args:
            draft: Image-space shape being drawn, not part of the collection
            closed: Close polygon drafts; False draws an open polyline
        """
        self.clear_preview()
        try:
            self._preview = self._emit(draft, self.preview_style(), None, closed=closed)
        except Exception as e:
            logger.warning(f"Error drawing preview {draft!r}: {e}")
            self._preview = None
        self.renderer.repaint()

    def clear_preview(self) -> None:
        """Discard the preview primitive, if any."""
        if self._preview is None:
            return
        try:
            self.renderer.remove_primitive(self._preview)
        except Exception as e:
            logger.warning(f"Error removing preview primitive: {e}")
        self._preview = None
        self.renderer.repaint()

    def _emit(
        self,
        shape: Shape,
        style: StrokeStyle,
        tag: Optional[int],
        closed: bool = True
    ) -> Any:
        """Convert one shape to viewport space and add its primitive."""
        to_viewport = self.transform.to_viewport

        if isinstance(shape, LineShape):
            return self.renderer.add_line(
                to_viewport(shape.start_point), to_viewport(shape.end_point), style, tag
            )
        elif isinstance(shape, CircleShape):
            center = to_viewport(shape.center)
            edge = to_viewport(shape.center + Point(shape.radius, 0.0))
            return self.renderer.add_circle(center, center.distance_to(edge), style, tag)
        elif isinstance(shape, RectangleShape):
            top_left, width, height = normalized_rect(
                to_viewport(shape.top_left), to_viewport(shape.bottom_right)
            )
            if width <= 0 or height <= 0:
                logger.debug(f"Skipping rectangle {shape.id} with empty projection")
                return None
            return self.renderer.add_rectangle(top_left, width, height, style, tag)
        elif isinstance(shape, PolygonShape):
            if closed and len(shape.points) < 3:
                logger.debug(f"Skipping polygon {shape.id} with {len(shape.points)} points")
                return None
            points = [to_viewport(p) for p in shape.points]
            return self.renderer.add_path(points, style, tag, closed=closed)

        raise TypeError(f"Unsupported shape: {shape!r}")
