"""Tests for the PyQt6 collaborators, run on the offscreen platform."""

import pytest
from PyQt6.QtCore import Qt, QEvent, QObject
from PyQt6.QtGui import QKeyEvent, QPixmap
from PyQt6.QtTest import QTest
from PyQt6.QtWidgets import QApplication

from annotation_overlay.core.config import ConfigManager, OverlayConfig
from annotation_overlay.core.interaction import InteractionState, ToolMode
from annotation_overlay.core.interfaces import StrokeStyle, ViewportEvent
from annotation_overlay.core.mode import ModeController
from annotation_overlay.core.models import CircleShape, LineShape, Point
from annotation_overlay.ui.canvas import AnnotationCanvas
from annotation_overlay.ui.image_view import ImageView, QtViewport
from annotation_overlay.ui.main_window import MainWindow, create_demo_pixmap
from annotation_overlay.ui.overlay import (
    ModifierKeyFilter, OverlayView, QtFrameScheduler, QtOverlay, matches_key_sequence
)


STYLE = StrokeStyle("#FF0000", 2.0)


def key_event(key, modifiers=Qt.KeyboardModifier.NoModifier, event_type=QEvent.Type.KeyPress,
              autorep=False):
    return QKeyEvent(event_type, key.value, modifiers, "", autorep)


@pytest.fixture
def image_view(qapp):
    view = ImageView(OverlayConfig())
    view.resize(400, 300)
    view.show()
    yield view
    view.close()


@pytest.fixture
def overlay(qapp):
    view = OverlayView()
    view.resize(400, 300)
    return QtOverlay(view)


class TestQtViewport:
    """Tests for ImageView and QtViewport."""

    def test_not_ready_without_image(self, image_view):
        """Test readiness before an image is loaded."""
        assert QtViewport(image_view).is_ready() is False

    def test_round_trip(self, image_view):
        """Test image -> pixel -> image conversion precision."""
        image_view.set_image(QPixmap(1000, 800))
        image_view.set_zoom(2.7)
        viewport = QtViewport(image_view)

        for point in [Point(0, 0), Point(123.4, 56.7), Point(999.5, 799.25)]:
            back = viewport.pixel_to_image(viewport.image_to_pixel(point))
            assert back.x == pytest.approx(point.x, abs=1e-6)
            assert back.y == pytest.approx(point.y, abs=1e-6)

    def test_zoom_is_clamped(self, image_view):
        """Test the configured zoom range."""
        image_view.set_image(QPixmap(100, 100))

        image_view.set_zoom(1000.0)
        assert image_view.zoom_level == pytest.approx(40.0)

        image_view.set_zoom(0.0001)
        assert image_view.zoom_level == pytest.approx(0.01)

    def test_subscribe_and_unsubscribe(self, image_view):
        """Test that notifications reach subscribers until unsubscribed."""
        viewport = QtViewport(image_view)
        calls = []

        def callback():
            calls.append(1)

        viewport.subscribe(ViewportEvent.CONTENT_LOADED, callback)
        image_view.set_image(QPixmap(50, 50))
        assert calls == [1]

        viewport.unsubscribe(ViewportEvent.CONTENT_LOADED, callback)
        image_view.set_image(QPixmap(50, 50))
        assert calls == [1]

    def test_unsubscribe_unknown_callback(self, image_view, caplog):
        """Test that removing a missing subscription only warns."""
        QtViewport(image_view).unsubscribe(ViewportEvent.RESIZED, lambda: None)

        assert "was not subscribed" in caplog.text

    def test_zoom_notifies_transform_change(self, image_view):
        """Test that zooming emits transform_changed."""
        image_view.set_image(QPixmap(100, 100))
        calls = []
        image_view.transform_changed.connect(lambda: calls.append(1))

        image_view.zoom_in()

        assert calls


class TestQtOverlay:
    """Tests for QtOverlay."""

    def test_primitives_are_unfilled_outlines(self, overlay):
        """Test that every primitive kind lands on the scene without a fill."""
        items = [
            overlay.add_line(Point(0, 0), Point(10, 10), STYLE, tag=1),
            overlay.add_circle(Point(50, 50), 20, STYLE, tag=2),
            overlay.add_rectangle(Point(10, 10), 30, 20, STYLE, tag=3),
            overlay.add_path([Point(0, 0), Point(5, 0), Point(0, 5)], STYLE, tag=4),
        ]

        assert overlay.items == items
        assert len(overlay.scene.items()) == 4
        for item in items:
            assert item.brush().style() == Qt.BrushStyle.NoBrush

    def test_hit_test_line(self, overlay):
        """Test stroke hit testing with tolerance."""
        overlay.add_line(Point(10, 10), Point(100, 10), STYLE, tag=5)

        assert overlay.hit_test(Point(50, 13), 5.0) == 5
        assert overlay.hit_test(Point(50, 30), 5.0) is None

    def test_hit_test_ignores_fill(self, overlay):
        """Test that the inside of a circle is not a hit."""
        overlay.add_circle(Point(50, 50), 20, STYLE, tag=1)

        assert overlay.hit_test(Point(70, 50), 5.0) == 1
        assert overlay.hit_test(Point(50, 50), 5.0) is None

    def test_hit_test_topmost(self, overlay):
        """Test that the last drawn primitive wins on overlap."""
        overlay.add_rectangle(Point(10, 10), 50, 50, STYLE, tag=1)
        overlay.add_line(Point(10, 10), Point(60, 10), STYLE, tag=2)

        assert overlay.hit_test(Point(30, 10), 5.0) == 2

    def test_untagged_primitives_are_not_hit(self, overlay):
        """Test that previews cannot be hit."""
        overlay.add_line(Point(0, 0), Point(100, 0), STYLE)

        assert overlay.hit_test(Point(50, 0), 5.0) is None

    def test_clear_layer(self, overlay):
        """Test that clearing removes only the overlay's own items."""
        overlay.add_line(Point(0, 0), Point(10, 10), STYLE, tag=1)
        overlay.add_path([Point(0, 0), Point(5, 0), Point(0, 5)], STYLE, tag=2)

        overlay.clear_layer()

        assert overlay.items == []
        assert overlay.scene.items() == []

    def test_remove_and_attach(self, overlay):
        """Test moving a primitive out of and back onto the layer."""
        item = overlay.add_line(Point(0, 0), Point(10, 10), STYLE)

        overlay.remove_primitive(item)
        assert item.scene() is None

        overlay.attach_primitive(item)
        assert item.scene() is overlay.scene
        assert overlay.items == [item]

    def test_dashed_pen(self, overlay):
        """Test that dash lengths are converted to pen-width units."""
        item = overlay.add_line(Point(0, 0), Point(10, 0), StrokeStyle("#FF0000", 2.0, (6.0, 6.0)))

        assert list(item.pen().dashPattern()) == [3.0, 3.0]

    def test_empty_path(self, overlay):
        """Test that a path without points adds nothing."""
        assert overlay.add_path([], STYLE) is None
        assert overlay.items == []

    def test_surface(self, overlay):
        """Test resizing and pointer passthrough."""
        overlay.resize_surface(320, 240)
        assert overlay.surface_size() == (320, 240)

        overlay.set_pointer_passthrough(True)
        assert overlay.view.testAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        overlay.set_pointer_passthrough(False)
        assert not overlay.view.testAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)


class TestQtFrameScheduler:
    """Tests for QtFrameScheduler."""

    def test_latest_request_wins(self, qapp):
        """Test that pending requests collapse into the newest one."""
        scheduler = QtFrameScheduler(5)
        calls = []

        scheduler.request(lambda: calls.append("first"))
        scheduler.request(lambda: calls.append("second"))
        assert scheduler.pending

        QTest.qWait(100)

        assert calls == ["second"]
        assert not scheduler.pending

    def test_cancel(self, qapp):
        """Test that a cancelled request never runs."""
        scheduler = QtFrameScheduler(5)
        calls = []

        scheduler.request(lambda: calls.append(1))
        scheduler.cancel()
        QTest.qWait(50)

        assert calls == []


class TestKeys:
    """Tests for modifier tracking and key matching."""

    def test_modifier_press_and_release(self, qapp):
        """Test that the modifier key drives the mode controller."""
        controller = ModeController()
        key_filter = ModifierKeyFilter(controller, "Shift")
        target = QObject()

        key_filter.eventFilter(target, key_event(Qt.Key.Key_Shift, Qt.KeyboardModifier.ShiftModifier))
        assert controller.active is True

        key_filter.eventFilter(target, key_event(Qt.Key.Key_Shift, event_type=QEvent.Type.KeyRelease))
        assert controller.active is False

    def test_auto_repeat_is_ignored(self, qapp):
        """Test that auto-repeated releases do not end annotation mode."""
        controller = ModeController()
        key_filter = ModifierKeyFilter(controller, "Shift")
        target = QObject()

        key_filter.eventFilter(target, key_event(Qt.Key.Key_Shift))
        key_filter.eventFilter(
            target, key_event(Qt.Key.Key_Shift, event_type=QEvent.Type.KeyRelease, autorep=True)
        )

        assert controller.active is True

    def test_other_keys_are_ignored(self, qapp):
        """Test that unrelated keys leave the mode alone."""
        controller = ModeController()
        key_filter = ModifierKeyFilter(controller, "Shift")

        handled = key_filter.eventFilter(QObject(), key_event(Qt.Key.Key_A))

        assert handled is False
        assert controller.active is False

    def test_focus_loss_releases(self, qapp):
        """Test that losing application focus ends annotation mode."""
        controller = ModeController()
        key_filter = ModifierKeyFilter(controller, "Control")
        controller.hold()

        key_filter.eventFilter(QObject(), QEvent(QEvent.Type.ApplicationDeactivate))

        assert controller.active is False

    def test_unknown_modifier_falls_back(self, qapp, caplog):
        """Test that a bad key name falls back to Shift."""
        key_filter = ModifierKeyFilter(ModeController(), "NoSuchKey")

        assert key_filter.key_code == Qt.Key.Key_Shift.value
        assert "Unknown annotation modifier key" in caplog.text

    def test_matches_key_sequence(self, qapp):
        """Test matching configured key sequences."""
        assert matches_key_sequence(key_event(Qt.Key.Key_Escape), "Escape")
        assert matches_key_sequence(key_event(Qt.Key.Key_Delete), "Delete")
        assert matches_key_sequence(
            key_event(Qt.Key.Key_Z, Qt.KeyboardModifier.ControlModifier), "Ctrl+Z"
        )
        assert not matches_key_sequence(key_event(Qt.Key.Key_Escape), "Delete")
        assert not matches_key_sequence(key_event(Qt.Key.Key_Escape), "")
        assert not matches_key_sequence(key_event(Qt.Key.Key_Shift), "Shift")

    def test_ignored_modifier(self, qapp):
        """Test matching a plain key while a held modifier is reported."""
        shift_escape = key_event(Qt.Key.Key_Escape, Qt.KeyboardModifier.ShiftModifier)

        assert not matches_key_sequence(shift_escape, "Escape")
        assert matches_key_sequence(shift_escape, "Escape", Qt.KeyboardModifier.ShiftModifier)
        assert not matches_key_sequence(
            key_event(Qt.Key.Key_Z, Qt.KeyboardModifier.ShiftModifier | Qt.KeyboardModifier.ControlModifier),
            "Z",
            Qt.KeyboardModifier.ShiftModifier,
        )

    def test_modifier_mapping(self, qapp):
        """Test the keyboard modifier tracked for each annotation key."""
        assert ModifierKeyFilter(ModeController(), "Shift").modifier == Qt.KeyboardModifier.ShiftModifier
        assert ModifierKeyFilter(ModeController(), "Control").modifier == Qt.KeyboardModifier.ControlModifier
        assert ModifierKeyFilter(ModeController(), "Space").modifier is None


@pytest.fixture
def canvas(qapp):
    widget = AnnotationCanvas(OverlayConfig())
    widget.resize(400, 300)
    widget.show()
    widget.set_image(QPixmap(200, 100))
    yield widget
    widget.detach()
    widget.close()


class TestAnnotationCanvas:
    """Tests for the wired-up canvas."""

    def test_overlay_matches_viewport(self, canvas):
        """Test that loading an image sizes the overlay to the viewport."""
        assert canvas.overlay.surface_size() == canvas.viewport.container_size()

    def test_inactive_until_modifier_held(self, canvas):
        """Test that pointer input is ignored outside annotation mode."""
        assert canvas.machine.active is False
        assert canvas.overlay_view.testAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        canvas.mode.hold()

        assert canvas.machine.active is True
        assert not canvas.overlay_view.testAttribute(
            Qt.WidgetAttribute.WA_TransparentForMouseEvents
        )

    def test_draw_through_overlay_signals(self, canvas):
        """Test a full gesture from overlay signals to the store and scene."""
        canvas.set_tool_mode("circle")
        canvas.mode.hold()
        center = canvas.transform.to_viewport(Point(100, 50))
        edge = canvas.transform.to_viewport(Point(110, 50))

        canvas.overlay_view.pointer_pressed.emit(center)
        canvas.overlay_view.pointer_dragged.emit(edge)
        canvas.overlay_view.pointer_released.emit(edge)

        assert len(canvas.store.shapes) == 1
        circle = canvas.store.shapes[0]
        assert circle.center.x == pytest.approx(100, abs=1e-6)
        assert circle.radius == pytest.approx(10, abs=1e-6)
        assert len(canvas.overlay.items) == 1

    def test_context_click_deletes(self, canvas):
        """Test right-click deletion through the overlay."""
        canvas.store.set_shapes([LineShape(0, Point(20, 50), Point(180, 50))])
        canvas.mode.hold()

        canvas.overlay_view.context_requested.emit(canvas.transform.to_viewport(Point(100, 50)))

        assert canvas.store.shapes == []

    def test_release_cancels_gesture(self, canvas):
        """Test that releasing the modifier drops an unfinished gesture."""
        canvas.mode.hold()
        canvas.overlay_view.pointer_pressed.emit(Point(50, 50))
        assert canvas.machine.state == InteractionState.DRAWING

        canvas.mode.release()

        assert canvas.machine.state == InteractionState.IDLE

    def test_store_changes_redraw(self, canvas):
        """Test that external store edits reach the scene."""
        canvas.store.set_shapes([CircleShape(4, Point(100, 50), 10)])

        assert [item.data(0) for item in canvas.overlay.items] == [4]

    def test_delete_key(self, canvas):
        """Test deleting the selected shape with the configured key."""
        canvas.store.set_shapes([CircleShape(4, Point(100, 50), 10)])
        canvas.store.set_selected_id(4)

        handled = canvas.eventFilter(canvas.image_view, key_event(Qt.Key.Key_Delete))

        assert handled is True
        assert canvas.store.shapes == []

    def send_key(self, canvas, key, modifiers=Qt.KeyboardModifier.NoModifier,
                 event_type=QEvent.Type.KeyPress):
        event = key_event(key, modifiers, event_type)
        QApplication.sendEvent(canvas.image_view, event)
        return event

    def test_finish_key_closes_polygon(self, canvas):
        """Test closing a polygon with Escape while the annotation modifier is held."""
        canvas.set_tool_mode(ToolMode.POLYGON)
        self.send_key(canvas, Qt.Key.Key_Shift, Qt.KeyboardModifier.ShiftModifier)
        assert canvas.mode.active is True
        # Rapid clicks below three vertices only add vertices
        for x, y in [(10, 10), (90, 10), (50, 80)]:
            canvas.overlay_view.pointer_pressed.emit(Point(x, y))
            canvas.overlay_view.pointer_released.emit(Point(x, y))
        assert canvas.machine.state == InteractionState.DRAWING

        self.send_key(canvas, Qt.Key.Key_Escape, Qt.KeyboardModifier.ShiftModifier)

        assert canvas.machine.state == InteractionState.IDLE
        assert len(canvas.store.shapes) == 1
        assert len(canvas.store.shapes[0].points) == 3

    def test_delete_key_while_annotating(self, canvas):
        """Test deleting the selected shape with the modifier held."""
        canvas.store.set_shapes([CircleShape(4, Point(100, 50), 10)])
        canvas.store.set_selected_id(4)
        self.send_key(canvas, Qt.Key.Key_Shift, Qt.KeyboardModifier.ShiftModifier)

        self.send_key(canvas, Qt.Key.Key_Delete, Qt.KeyboardModifier.ShiftModifier)

        assert canvas.store.shapes == []

    def test_other_modifiers_still_count(self, canvas):
        """Test that only the annotation modifier is left out of key matching."""
        canvas.store.set_shapes([CircleShape(4, Point(100, 50), 10)])
        canvas.store.set_selected_id(4)
        self.send_key(canvas, Qt.Key.Key_Shift, Qt.KeyboardModifier.ShiftModifier)

        self.send_key(
            canvas,
            Qt.Key.Key_Delete,
            Qt.KeyboardModifier.ShiftModifier | Qt.KeyboardModifier.ControlModifier,
        )

        assert len(canvas.store.shapes) == 1

    def test_focus_shape(self, canvas):
        """Test selecting and zooming to a shape."""
        canvas.store.set_shapes([CircleShape(4, Point(100, 50), 10)])

        assert canvas.focus_shape(4) is True
        assert canvas.store.selected_id == 4
        assert canvas.image_view.zoom_level > 1.0
        assert canvas.focus_shape(99) is False

    def test_tool_mode_signal(self, canvas):
        """Test that tool changes are announced."""
        received = []
        canvas.tool_mode_changed.connect(received.append)

        canvas.set_tool_mode(ToolMode.RECTANGLE)
        canvas.set_tool_mode(ToolMode.RECTANGLE)

        assert received == ["rectangle"]

    def test_detach_is_symmetric(self, canvas):
        """Test that detach leaves annotation mode and stops following the viewport."""
        canvas.mode.hold()

        canvas.detach()

        assert not canvas.attached
        assert not canvas.sync.attached
        assert canvas.mode.active is False

        canvas.attach()
        assert canvas.sync.attached


class TestMainWindow:
    """Tests for the demo window."""

    def test_demo_pixmap(self, qapp):
        """Test the generated checkerboard."""
        pixmap = create_demo_pixmap(64, 16)

        assert (pixmap.width(), pixmap.height()) == (64, 64)

    def test_tool_actions(self, qapp, temp_dir):
        """Test that toolbar actions switch the canvas tool."""
        window = MainWindow(ConfigManager(temp_dir / "config.yaml"))
        try:
            assert window.tool_actions[ToolMode.LINE].isChecked()

            window.tool_actions[ToolMode.POLYGON].trigger()

            assert window.canvas.tool_mode == ToolMode.POLYGON
            assert window.tool_label.text() == "Tool: polygon"
        finally:
            window.canvas.detach()
            window.close()

    def test_shape_list_follows_store(self, qapp, temp_dir):
        """Test that the shape list mirrors the collection."""
        window = MainWindow(ConfigManager(temp_dir / "config.yaml"))
        try:
            window.store.set_shapes([CircleShape(0, Point(10, 10), 5)])

            assert window.shape_list.count() == 1
            assert window.count_label.text() == "Shapes: 1"
        finally:
            window.canvas.detach()
            window.close()

    def test_last_tool_is_remembered(self, qapp, temp_dir):
        """Test that the chosen tool is saved and restored on the next start."""
        config_path = temp_dir / "config.yaml"
        window = MainWindow(ConfigManager(config_path))
        try:
            window.tool_actions[ToolMode.RECTANGLE].trigger()
        finally:
            window.canvas.detach()
            window.close()

        assert ConfigManager(config_path).load().default_tool == "rectangle"

        window = MainWindow(ConfigManager(config_path))
        try:
            assert window.canvas.tool_mode == ToolMode.RECTANGLE
            assert window.tool_actions[ToolMode.RECTANGLE].isChecked()
        finally:
            window.canvas.detach()
            window.close()

    def test_unknown_default_tool(self, qapp, temp_dir, caplog):
        """Test that a bad configured tool opens the window with the line tool."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("defaultTool: lasso\n")

        window = MainWindow(ConfigManager(config_path))
        try:
            assert window.canvas.tool_mode == ToolMode.LINE
            assert window.tool_label.text() == "Tool: line"
            assert "Unknown default tool: lasso" in caplog.text
        finally:
            window.canvas.detach()
            window.close()
