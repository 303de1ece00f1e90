"""Demo host window for Annotation Overlay."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QActionGroup, QColor, QPainter, QPixmap
from PyQt6.QtWidgets import (
    QDockWidget, QLabel, QListWidget, QListWidgetItem, QMainWindow,
    QPushButton, QStatusBar, QToolBar, QVBoxLayout, QWidget
)

from ..core.config import ConfigManager
from ..core.interaction import ToolMode
from ..core.models import Shape
from .canvas import AnnotationCanvas

logger = logging.getLogger(__name__)

# Size of the generated demo image in pixels
DEMO_IMAGE_SIZE = 4096
DEMO_TILE_SIZE = 256

TOOL_SHORTCUTS = [
    (ToolMode.LINE, "Line", "1"),
    (ToolMode.CIRCLE, "Circle", "2"),
    (ToolMode.RECTANGLE, "Rectangle", "3"),
    (ToolMode.POLYGON, "Polygon", "4"),
    (ToolMode.ERASER, "Eraser", "5"),
]


def create_demo_pixmap(size: int = DEMO_IMAGE_SIZE, tile: int = DEMO_TILE_SIZE) -> QPixmap:
    """
    Generate a checkerboard image to annotate.

    Args:
        size: Width and height in pixels
        tile: Checker tile size in pixels

    Returns:
        The generated pixmap
    """
    pixmap = QPixmap(size, size)
    pixmap.fill(QColor("#3C3F41"))

    painter = QPainter(pixmap)
    light = QColor("#5A5D60")
    for row in range(0, size, tile):
        for col in range(0, size, tile):
            if (row // tile + col // tile) % 2 == 0:
                painter.fillRect(col, row, tile, tile, light)
    painter.end()

    return pixmap


class MainWindow(QMainWindow):
    """
    Main window hosting an AnnotationCanvas.

    Provides:
    - Tool selection with shortcuts 1-5
    - A shape list that focuses or deletes shapes
    - Status bar with annotation mode, tool, zoom and shape count
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None) -> None:
        """Initialize the main window."""
        super().__init__()
        self.config_manager = config_manager or ConfigManager()
        config = self.config_manager.config

        self.canvas = AnnotationCanvas(config, parent=self)
        self.store = self.canvas.store
        self.tool_actions: Dict[ToolMode, QAction] = {}
        self.shape_list: Optional[QListWidget] = None

        # Status bar elements
        self.status_bar: Optional[QStatusBar] = None
        self.mode_label: Optional[QLabel] = None
        self.tool_label: Optional[QLabel] = None
        self.zoom_label: Optional[QLabel] = None
        self.count_label: Optional[QLabel] = None

        self._init_ui()
        self._connect_signals()

        self.canvas.set_image(create_demo_pixmap())
        self._update_tool(self.canvas.tool_mode.value)
        self._update_mode(False)
        self._refresh_shape_list(self.store.shapes)

    def _init_ui(self) -> None:
        """Initialize the user interface."""
        self.setWindowTitle("Annotation Overlay")
        self.setGeometry(100, 100, 1200, 800)
        self.setCentralWidget(self.canvas)

        self._create_toolbar()
        self._create_shape_dock()
        self._create_status_bar()

    def _create_toolbar(self) -> None:
        """Create the tool selection toolbar."""
        toolbar = QToolBar()
        toolbar.setObjectName("ToolsToolBar")
        self.addToolBar(toolbar)

        drawing_tools = QActionGroup(self)
        for mode, label, shortcut in TOOL_SHORTCUTS:
            action = QAction(label, self)
            action.setCheckable(True)
            action.setShortcut(shortcut)
            action.setToolTip(f"{label} ({shortcut})")
            action.triggered.connect(lambda checked, m=mode: self.canvas.set_tool_mode(m))
            drawing_tools.addAction(action)
            self.tool_actions[mode] = action

        toolbar.addActions(drawing_tools.actions())
        toolbar.addSeparator()

        fit_action = QAction("Fit", self)
        fit_action.setShortcut("Ctrl+0")
        fit_action.triggered.connect(self.canvas.image_view.fit_to_window)
        toolbar.addAction(fit_action)

        clear_action = QAction("Clear", self)
        clear_action.triggered.connect(self._clear_shapes)
        toolbar.addAction(clear_action)

    def _create_shape_dock(self) -> None:
        """Create the shape list dock."""
        dock = QDockWidget("Shapes", self)
        dock.setObjectName("ShapesDock")
        dock.setAllowedAreas(
            Qt.DockWidgetArea.LeftDockWidgetArea | Qt.DockWidgetArea.RightDockWidgetArea
        )

        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.shape_list = QListWidget()
        self.shape_list.itemDoubleClicked.connect(self._focus_shape_item)
        layout.addWidget(self.shape_list)

        delete_button = QPushButton("Delete Shape")
        delete_button.clicked.connect(self._delete_shape_from_list)
        layout.addWidget(delete_button)

        dock.setWidget(widget)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.mode_label = QLabel()
        self.status_bar.addPermanentWidget(self.mode_label)

        self.tool_label = QLabel()
        self.status_bar.addPermanentWidget(self.tool_label)

        self.zoom_label = QLabel()
        self.status_bar.addPermanentWidget(self.zoom_label)

        self.count_label = QLabel()
        self.status_bar.addPermanentWidget(self.count_label)

    def _connect_signals(self) -> None:
        """Connect canvas and store signals to the chrome."""
        self.canvas.annotation_mode_changed.connect(self._update_mode)
        self.canvas.tool_mode_changed.connect(self._update_tool)
        self.canvas.tool_mode_changed.connect(self._remember_tool)
        self.canvas.image_view.zoom_changed.connect(self._update_zoom)
        self.store.shapes_changed.connect(self._refresh_shape_list)
        self.store.selection_changed.connect(self._sync_list_selection)

    # === Slots ===

    def _update_mode(self, active: bool) -> None:
        key = self.canvas.config.annotation_modifier_key
        self.mode_label.setText("Annotating" if active else f"Hold {key} to annotate")

    def _update_tool(self, tool: str) -> None:
        mode = ToolMode(tool)
        if mode in self.tool_actions:
            self.tool_actions[mode].setChecked(True)
        self.tool_label.setText(f"Tool: {mode.value}")

    def _remember_tool(self, tool: str) -> None:
        # Next start opens with the last tool used
        if self.config_manager.config.default_tool != tool:
            self.config_manager.update(default_tool=tool)

    def _update_zoom(self, zoom_level: float) -> None:
        self.zoom_label.setText(f"Zoom: {zoom_level * 100:.0f}%")

    def _refresh_shape_list(self, shapes: List[Shape]) -> None:
        self.shape_list.clear()
        for shape in shapes:
            item = QListWidgetItem(f"{shape.type.value} #{shape.id}")
            item.setData(Qt.ItemDataRole.UserRole, shape.id)
            self.shape_list.addItem(item)
        self.count_label.setText(f"Shapes: {len(shapes)}")
        self._sync_list_selection(self.store.selected_id)

    def _sync_list_selection(self, shape_id: Optional[int]) -> None:
        for row in range(self.shape_list.count()):
            item = self.shape_list.item(row)
            item.setSelected(item.data(Qt.ItemDataRole.UserRole) == shape_id)

    def _focus_shape_item(self, item: QListWidgetItem) -> None:
        self.canvas.focus_shape(item.data(Qt.ItemDataRole.UserRole))

    def _delete_shape_from_list(self) -> None:
        item = self.shape_list.currentItem()
        if item is None:
            return
        shape_id = item.data(Qt.ItemDataRole.UserRole)
        if self.store.delete_shape(shape_id):
            self.status_bar.showMessage(f"Deleted shape {shape_id}", 3000)

    def _clear_shapes(self) -> None:
        self.canvas.machine.cancel()
        self.store.clear()
        self.status_bar.showMessage("Cleared all shapes", 3000)

    def closeEvent(self, event) -> None:
        """Detach the canvas before the window goes away."""
        self.canvas.detach()
        super().closeEvent(event)
