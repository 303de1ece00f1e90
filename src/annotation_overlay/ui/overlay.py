"""Transparent overlay that renders the annotation layer and captures pointer input."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from PyQt6.QtCore import Qt, QEvent, QObject, QPointF, QRectF, QTimer, pyqtSignal
from PyQt6.QtGui import (
    QBrush, QColor, QKeyEvent, QKeySequence, QMouseEvent, QPainter, QPainterPath,
    QPainterPathStroker, QPen, QWheelEvent
)
from PyQt6.QtWidgets import QFrame, QGraphicsPathItem, QGraphicsScene, QGraphicsView, QWidget

from ..core.interfaces import DrawingSurface, FrameScheduler, SceneRenderer, StrokeStyle
from ..core.mode import ModeController
from ..core.models import Point

logger = logging.getLogger(__name__)

# QGraphicsItem data slot holding the shape id of a primitive
TAG_KEY = 0

MODIFIER_KEY_CODES = frozenset(
    k.value for k in (Qt.Key.Key_Control, Qt.Key.Key_Shift, Qt.Key.Key_Alt, Qt.Key.Key_Meta)
)


def _to_qpoint(point: Point) -> QPointF:
    return QPointF(point.x, point.y)


def _key_code(key) -> int:
    """Integer code of a Qt key, whether given as an enum member or an int."""
    return key.value if hasattr(key, "value") else int(key)


KEY_MODIFIERS = {
    Qt.Key.Key_Control.value: Qt.KeyboardModifier.ControlModifier,
    Qt.Key.Key_Shift.value: Qt.KeyboardModifier.ShiftModifier,
    Qt.Key.Key_Alt.value: Qt.KeyboardModifier.AltModifier,
    Qt.Key.Key_Meta.value: Qt.KeyboardModifier.MetaModifier,
}


def matches_key_sequence(
    event: QKeyEvent,
    key_sequence_str: str,
    ignored_modifier: Optional[Qt.KeyboardModifier] = None
) -> bool:
    """
    Check if a key event matches a configured key sequence string.

    Args:
        event: Key press to test
        key_sequence_str: Sequence such as "Escape" or "Ctrl+Z"
        ignored_modifier: Modifier left out of the comparison, e.g. the
            annotation modifier that is held while the key is pressed

    Returns:
        True if the event produces the configured sequence
    """
    if not key_sequence_str:
        return False

    combined = _key_code(event.key())
    modifiers = event.modifiers()

    # Ignore pure modifier key presses
    if combined in MODIFIER_KEY_CODES:
        return False

    # Build combined key with modifiers
    for modifier in KEY_MODIFIERS.values():
        if modifier == ignored_modifier:
            continue
        if modifiers & modifier:
            combined |= modifier.value

    return QKeySequence(combined) == QKeySequence(key_sequence_str)


class OverlayView(QGraphicsView):
    """
    Transparent graphics view stacked over the image viewport.

    Scene coordinates equal widget pixels. Left-button gestures and
    right-clicks are re-emitted as viewport-space points.
    """

    # Signals
    pointer_pressed = pyqtSignal(object)  # Emits Point
    pointer_dragged = pyqtSignal(object)
    pointer_released = pyqtSignal(object)
    context_requested = pyqtSignal(object)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        """Initialize the overlay view."""
        super().__init__(parent)

        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)

        self.setStyleSheet("background: transparent; border: none;")
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.viewport().setAutoFillBackground(False)
        self.setFrameShape(QFrame.Shape.NoFrame)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setFocusPolicy(Qt.FocusPolicy.NoFocus)

        self._dragging = False

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Handle mouse press events."""
        pos = event.position()
        point = Point(pos.x(), pos.y())

        if event.button() == Qt.MouseButton.RightButton:
            self.context_requested.emit(point)
        elif event.button() == Qt.MouseButton.LeftButton:
            self._dragging = True
            self.pointer_pressed.emit(point)
        event.accept()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Handle mouse move events."""
        if self._dragging and event.buttons() & Qt.MouseButton.LeftButton:
            pos = event.position()
            self.pointer_dragged.emit(Point(pos.x(), pos.y()))
        event.accept()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Handle mouse release events."""
        if event.button() == Qt.MouseButton.LeftButton and self._dragging:
            self._dragging = False
            pos = event.position()
            self.pointer_released.emit(Point(pos.x(), pos.y()))
        event.accept()

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        """Treat a double click as a second press; polygon closing is timed by the engine."""
        self.mousePressEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Swallow wheel events while annotating so the image does not zoom mid-gesture."""
        event.accept()


class QtOverlay(SceneRenderer, DrawingSurface):
    """
    SceneRenderer and DrawingSurface backed by an OverlayView.

    Every primitive is a QGraphicsPathItem without fill. Hit testing looks
    at stroke outlines only, widened by the requested tolerance.
    """

    def __init__(self, view: OverlayView) -> None:
        self.view = view
        self.scene = view.scene()
        self._items: List[QGraphicsPathItem] = []

    @property
    def items(self) -> List[QGraphicsPathItem]:
        """Primitives currently on the annotation layer, bottom to top."""
        return list(self._items)

    # === SceneRenderer ===

    def clear_layer(self) -> None:
        for item in self._items:
            if item.scene() is not None:
                self.scene.removeItem(item)
        self._items = []

    def add_line(
        self, start: Point, end: Point, style: StrokeStyle, tag: Optional[int] = None
    ) -> QGraphicsPathItem:
        path = QPainterPath(_to_qpoint(start))
        path.lineTo(_to_qpoint(end))
        return self._add(path, style, tag)

    def add_circle(
        self, center: Point, radius: float, style: StrokeStyle, tag: Optional[int] = None
    ) -> QGraphicsPathItem:
        path = QPainterPath()
        path.addEllipse(_to_qpoint(center), radius, radius)
        return self._add(path, style, tag)

    def add_rectangle(
        self,
        top_left: Point,
        width: float,
        height: float,
        style: StrokeStyle,
        tag: Optional[int] = None
    ) -> QGraphicsPathItem:
        path = QPainterPath()
        path.addRect(QRectF(top_left.x, top_left.y, width, height))
        return self._add(path, style, tag)

    def add_path(
        self,
        points: Sequence[Point],
        style: StrokeStyle,
        tag: Optional[int] = None,
        closed: bool = True
    ) -> Optional[QGraphicsPathItem]:
        if not points:
            return None
        path = QPainterPath(_to_qpoint(points[0]))
        for point in points[1:]:
            path.lineTo(_to_qpoint(point))
        if closed:
            path.closeSubpath()
        return self._add(path, style, tag)

    def remove_primitive(self, handle: Optional[QGraphicsPathItem]) -> None:
        if handle is None:
            return
        if handle.scene() is not None:
            self.scene.removeItem(handle)
        if handle in self._items:
            self._items.remove(handle)

    def attach_primitive(self, handle: Optional[QGraphicsPathItem]) -> None:
        if handle is None:
            return
        if handle.scene() is None:
            self.scene.addItem(handle)
        if handle in self._items:
            self._items.remove(handle)
        self._items.append(handle)
        handle.setZValue(len(self._items))

    def hit_test(self, point: Point, tolerance: float) -> Optional[int]:
        target = _to_qpoint(point)
        for item in reversed(self._items):
            tag = item.data(TAG_KEY)
            if tag is None:
                continue
            stroker = QPainterPathStroker()
            stroker.setWidth(item.pen().widthF() + 2 * tolerance)
            if stroker.createStroke(item.path()).contains(target):
                return int(tag)
        return None

    def repaint(self) -> None:
        self.view.viewport().update()

    # === DrawingSurface ===

    def surface_size(self) -> Tuple[int, int]:
        return (self.view.width(), self.view.height())

    def resize_surface(self, width: int, height: int) -> None:
        self.view.setGeometry(0, 0, width, height)
        self.scene.setSceneRect(QRectF(0, 0, width, height))
        self.view.raise_()
        logger.debug(f"Overlay resized to {width}x{height}")

    def set_pointer_passthrough(self, enabled: bool) -> None:
        self.view.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, enabled)

    def _add(self, path: QPainterPath, style: StrokeStyle, tag: Optional[int]) -> QGraphicsPathItem:
        item = QGraphicsPathItem(path)
        item.setPen(self._make_pen(style))
        item.setBrush(QBrush(Qt.BrushStyle.NoBrush))
        if tag is not None:
            item.setData(TAG_KEY, tag)
        self.scene.addItem(item)
        self._items.append(item)
        item.setZValue(len(self._items))
        return item

    @staticmethod
    def _make_pen(style: StrokeStyle) -> QPen:
        pen = QPen(QColor(style.color), style.width)
        if style.dash and style.width > 0:
            # Qt dash lengths are in units of the pen width
            pen.setDashPattern([d / style.width for d in style.dash])
        return pen


class QtFrameScheduler(FrameScheduler):
    """
    Runs at most one repaint per frame interval.

    Requests arriving while one is pending replace its callback; the timer
    is not restarted, so a continuous drag still repaints every frame.
    """

    def __init__(self, interval_ms: int = 16, parent: Optional[QObject] = None) -> None:
        self._timer = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._fire)
        self._callback: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        return self._timer.isActive()

    def request(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        if not self._timer.isActive():
            self._timer.start()

    def cancel(self) -> None:
        self._timer.stop()
        self._callback = None

    def _fire(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class ModifierKeyFilter(QObject):
    """
    Application-wide event filter that drives a ModeController.

    Pressing the configured key turns annotation mode on, releasing it
    turns it off. Losing application focus also turns it off, since the
    release would never arrive.
    """

    def __init__(
        self,
        controller: ModeController,
        key_name: str = "Shift",
        parent: Optional[QObject] = None
    ) -> None:
        super().__init__(parent)
        self.controller = controller
        key = getattr(Qt.Key, f"Key_{key_name}", None)
        if key is None:
            logger.warning(f"Unknown annotation modifier key: {key_name}, using Shift")
            key = Qt.Key.Key_Shift
        self.key_code = _key_code(key)
        # Keyboard modifier reported on other keys while this one is held
        self.modifier = KEY_MODIFIERS.get(self.key_code)

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        """Watch key presses and releases without consuming them."""
        event_type = event.type()

        if event_type in (QEvent.Type.KeyPress, QEvent.Type.KeyRelease):
            if _key_code(event.key()) == self.key_code and not event.isAutoRepeat():
                if event_type == QEvent.Type.KeyPress:
                    self.controller.hold()
                else:
                    self.controller.release()
        elif event_type == QEvent.Type.ApplicationDeactivate:
            self.controller.release()

        return False
