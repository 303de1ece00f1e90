"""Pannable, zoomable image view and its viewport adapter."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from PyQt6.QtCore import Qt, QPointF, QRectF, pyqtSignal
from PyQt6.QtGui import QPainter, QPixmap, QWheelEvent, QResizeEvent
from PyQt6.QtWidgets import QGraphicsPixmapItem, QGraphicsScene, QGraphicsView, QWidget

from ..core.config import OverlayConfig
from ..core.interfaces import ViewportEvent, ViewportProvider
from ..core.models import Point

logger = logging.getLogger(__name__)


class ImageView(QGraphicsView):
    """
    Graphics view showing a single image.

    Scene coordinates are image pixel coordinates. Dragging pans, the mouse
    wheel zooms around the cursor.
    """

    # Signals
    transform_changed = pyqtSignal()
    resized = pyqtSignal()
    content_loaded = pyqtSignal()
    zoom_changed = pyqtSignal(float)

    # Margin around a focused rectangle, as a fraction of its size
    FOCUS_MARGIN = 0.1

    def __init__(
        self,
        config: Optional[OverlayConfig] = None,
        parent: Optional[QWidget] = None
    ) -> None:
        """Initialize the image view."""
        super().__init__(parent)
        self.config = config or OverlayConfig()

        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)
        self._pixmap_item: Optional[QGraphicsPixmapItem] = None
        self.zoom_level = 1.0

        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.AnchorViewCenter)
        self.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        self.setMouseTracking(True)
        # Child widgets of the viewport must not be scrolled along with the image
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)

        self.horizontalScrollBar().valueChanged.connect(self._on_scrolled)
        self.verticalScrollBar().valueChanged.connect(self._on_scrolled)

    def has_image(self) -> bool:
        """Check if an image is loaded."""
        return self._pixmap_item is not None

    def set_image(self, pixmap: QPixmap) -> None:
        """
        Show a new image and fit it to the window.

        Args:
            pixmap: The image to display
        """
        self._scene.clear()
        self._pixmap_item = None

        if pixmap is None or pixmap.isNull():
            logger.debug("Setting empty pixmap in ImageView")
            return

        self._pixmap_item = self._scene.addPixmap(pixmap)
        self._scene.setSceneRect(QRectF(pixmap.rect()))
        self.fit_to_window()
        logger.info(f"Loaded image {pixmap.width()}x{pixmap.height()}")
        self.content_loaded.emit()

    def fit_to_window(self) -> None:
        """Zoom so the whole image is visible."""
        if self._pixmap_item is None:
            return
        self.fitInView(self._pixmap_item, Qt.AspectRatioMode.KeepAspectRatio)
        self._after_transform()

    def set_zoom(self, zoom_level: float) -> None:
        """
        Set the zoom level, clamped to the configured range.

        Args:
            zoom_level: Scale from image pixels to screen pixels
        """
        zoom_level = max(self.config.min_zoom, min(self.config.max_zoom, zoom_level))
        if zoom_level == self.zoom_level:
            return

        factor = zoom_level / self.zoom_level
        self.scale(factor, factor)
        self._after_transform()

    def zoom_in(self) -> None:
        """Zoom in by one step."""
        self.set_zoom(self.zoom_level * self.config.zoom_factor)

    def zoom_out(self) -> None:
        """Zoom out by one step."""
        self.set_zoom(self.zoom_level / self.config.zoom_factor)

    def focus_rect(self, x: float, y: float, width: float, height: float) -> None:
        """
        Zoom and pan so an image-space rectangle fills the view.

        Args:
            x: Left edge in image coordinates
            y: Top edge in image coordinates
            width: Rectangle width
            height: Rectangle height
        """
        margin_x = max(width * self.FOCUS_MARGIN, 1.0)
        margin_y = max(height * self.FOCUS_MARGIN, 1.0)
        rect = QRectF(x, y, width, height).adjusted(-margin_x, -margin_y, margin_x, margin_y)
        self.fitInView(rect, Qt.AspectRatioMode.KeepAspectRatio)
        self._after_transform()

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Handle mouse wheel for zooming."""
        if not self.has_image():
            return

        if event.angleDelta().y() > 0:
            self.zoom_in()
        else:
            self.zoom_out()
        event.accept()

    def resizeEvent(self, event: QResizeEvent) -> None:
        """Handle widget resize."""
        super().resizeEvent(event)
        self.resized.emit()

    def _after_transform(self) -> None:
        self.zoom_level = self.transform().m11()
        self.zoom_changed.emit(self.zoom_level)
        self.transform_changed.emit()

    def _on_scrolled(self, _value: int) -> None:
        self.transform_changed.emit()


class QtViewport(ViewportProvider):
    """
    ViewportProvider backed by an ImageView.

    Conversions use the view's floating point viewport transform, so a
    round trip does not lose precision to integer pixel rounding.
    """

    def __init__(self, view: ImageView) -> None:
        self.view = view

    def _signal(self, event: ViewportEvent):
        return {
            ViewportEvent.TRANSFORM_CHANGED: self.view.transform_changed,
            ViewportEvent.RESIZED: self.view.resized,
            ViewportEvent.CONTENT_LOADED: self.view.content_loaded,
        }[ViewportEvent(event)]

    def is_ready(self) -> bool:
        return self.view.has_image()

    def pixel_to_image(self, point: Point) -> Point:
        inverse, invertible = self.view.viewportTransform().inverted()
        if not invertible:
            logger.warning("Viewport transform is not invertible")
            return Point(0.0, 0.0)
        mapped = inverse.map(QPointF(point.x, point.y))
        return Point(mapped.x(), mapped.y())

    def image_to_pixel(self, point: Point) -> Point:
        mapped = self.view.viewportTransform().map(QPointF(point.x, point.y))
        return Point(mapped.x(), mapped.y())

    def subscribe(self, event: ViewportEvent, callback: Callable[[], None]) -> None:
        self._signal(event).connect(callback)

    def unsubscribe(self, event: ViewportEvent, callback: Callable[[], None]) -> None:
        try:
            self._signal(event).disconnect(callback)
        except TypeError:
            logger.warning(f"Callback was not subscribed to {ViewportEvent(event).value}")

    def container_size(self) -> Tuple[int, int]:
        size = self.view.viewport().size()
        return (size.width(), size.height())
