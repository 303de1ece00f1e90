"""Annotation canvas: image view with the interactive annotation overlay on top."""

from __future__ import annotations

import logging
from typing import Optional, Union

from PyQt6.QtCore import Qt, QEvent, QObject, pyqtSignal
from PyQt6.QtGui import QCloseEvent, QPixmap
from PyQt6.QtWidgets import QApplication, QVBoxLayout, QWidget

from ..core.collection import find_shape
from ..core.config import OverlayConfig
from ..core.geometry import bounding_rect
from ..core.interaction import InteractionStateMachine, ToolMode
from ..core.mode import ModeController
from ..core.renderer import SceneRendererAdapter
from ..core.store import AnnotationStore
from ..core.sync import ViewportSync
from ..core.transform import CoordinateTransform
from .image_view import ImageView, QtViewport
from .overlay import (
    ModifierKeyFilter, OverlayView, QtFrameScheduler, QtOverlay, matches_key_sequence
)

logger = logging.getLogger(__name__)


class AnnotationCanvas(QWidget):
    """
    Widget combining a zoomable image with a vector annotation layer.

    Holding the annotation modifier key routes pointer input to the
    annotation engine; otherwise the image view pans and zooms as usual.
    The shapes and selection live in an AnnotationStore that other widgets
    can share.
    """

    # Signals
    annotation_mode_changed = pyqtSignal(bool)
    tool_mode_changed = pyqtSignal(str)

    def __init__(
        self,
        config: Optional[OverlayConfig] = None,
        store: Optional[AnnotationStore] = None,
        parent: Optional[QWidget] = None
    ) -> None:
        """
        Initialize the canvas.

        Args:
            config: Overlay configuration, defaults if omitted
            store: Shape collection owner, a new empty one if omitted
            parent: Parent widget
        """
        super().__init__(parent)
        self.config = config or OverlayConfig()
        self.store = store or AnnotationStore(parent=self)

        self.image_view = ImageView(self.config)
        self.overlay_view = OverlayView(self.image_view.viewport())
        self.overlay_view.raise_()

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.image_view)

        # Engine wiring
        self.overlay = QtOverlay(self.overlay_view)
        self.viewport = QtViewport(self.image_view)
        self.transform = CoordinateTransform(self.viewport)
        self.adapter = SceneRendererAdapter(self.overlay, self.transform, self.config)
        self.scheduler = QtFrameScheduler(self.config.frame_interval_ms, self)
        self.machine = InteractionStateMachine(
            self.store,
            self.transform,
            self.adapter,
            scheduler=self.scheduler,
            config=self.config,
            active=False,
        )
        self.mode = ModeController(self.overlay, on_change=self._on_mode_changed)
        self.sync = ViewportSync(self.viewport, self.overlay, self.machine.redraw)
        self.key_filter = ModifierKeyFilter(self.mode, self.config.annotation_modifier_key, self)

        self.overlay_view.pointer_pressed.connect(self.machine.pointer_down)
        self.overlay_view.pointer_dragged.connect(self.machine.pointer_drag)
        self.overlay_view.pointer_released.connect(self.machine.pointer_up)
        self.overlay_view.context_requested.connect(self.machine.delete_at)
        self.store.shapes_changed.connect(self._on_store_changed)
        self.store.selection_changed.connect(self._on_store_changed)
        self.image_view.installEventFilter(self)

        self._attached = False
        self.attach()

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def tool_mode(self) -> ToolMode:
        return self.machine.tool_mode

    def attach(self) -> None:
        """Start following the viewport and listening for the modifier key."""
        if self._attached:
            return
        self.sync.attach()
        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self.key_filter)
        self._attached = True
        self.sync.sync()
        logger.debug("Annotation canvas attached")

    def detach(self) -> None:
        """Remove every subscription made by attach() and leave annotation mode."""
        if not self._attached:
            return
        self.mode.release()
        self.scheduler.cancel()
        self.sync.detach()
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self.key_filter)
        self._attached = False
        logger.debug("Annotation canvas detached")

    def set_image(self, pixmap: QPixmap) -> None:
        """
        Show a new image.

        Shapes are kept; clear the store first to start a fresh collection.

        Args:
            pixmap: Image to annotate
        """
        self.machine.cancel()
        self.image_view.set_image(pixmap)

    def set_tool_mode(self, mode: Union[ToolMode, str]) -> None:
        """
        Select the drawing tool.

        Args:
            mode: Tool or tool name

        Raises:
            ValueError: If mode is not a known tool name
        """
        mode = ToolMode(mode)
        if mode == self.machine.tool_mode:
            return
        self.machine.set_tool_mode(mode)
        self.tool_mode_changed.emit(mode.value)

    def focus_shape(self, shape_id: int) -> bool:
        """
        Select a shape and zoom the view onto it.

        Args:
            shape_id: Id of the shape to show

        Returns:
            True if the shape exists
        """
        shape = find_shape(self.store.shapes, shape_id)
        if shape is None:
            logger.warning(f"Cannot focus unknown shape {shape_id}")
            return False

        self.store.set_selected_id(shape_id)
        self.image_view.focus_rect(*bounding_rect(shape))
        return True

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        """Handle the finish-drawing and delete keys while the image view has focus."""
        if watched is self.image_view and event.type() == QEvent.Type.KeyPress:
            # The annotation modifier is down whenever annotating
            held = self.key_filter.modifier if self.mode.active else None
            if matches_key_sequence(event, self.config.finish_drawing_key, held):
                self.machine.finish_drawing()
                return True
            if matches_key_sequence(event, self.config.delete_shape_key, held):
                self.machine.delete_selected()
                return True
        return super().eventFilter(watched, event)

    def closeEvent(self, event: QCloseEvent) -> None:
        """Tear down subscriptions when the canvas closes."""
        self.detach()
        super().closeEvent(event)

    def _on_mode_changed(self, active: bool) -> None:
        self.machine.set_active(active)
        cursor = Qt.CursorShape.CrossCursor if active else Qt.CursorShape.ArrowCursor
        self.overlay_view.viewport().setCursor(cursor)
        self.annotation_mode_changed.emit(active)

    def _on_store_changed(self, _value: object) -> None:
        self.machine.redraw()
