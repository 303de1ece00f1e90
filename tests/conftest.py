"""Pytest configuration and fixtures."""

import math
import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Qt widgets are created without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from annotation_overlay.core.config import OverlayConfig
from annotation_overlay.core.interaction import InteractionStateMachine, ToolMode
from annotation_overlay.core.interfaces import (
    DrawingSurface, FrameScheduler, HostState, SceneRenderer, ViewportEvent, ViewportProvider
)
from annotation_overlay.core.models import Point
from annotation_overlay.core.renderer import SceneRendererAdapter
from annotation_overlay.core.transform import CoordinateTransform


class FakeViewport(ViewportProvider):
    """Viewport with a uniform scale and offset: pixel = image * scale + offset."""

    def __init__(self, scale=10.0, offset=Point(0.0, 0.0), ready=True, size=(800, 600)):
        self.scale = scale
        self.offset = offset
        self.ready = ready
        self.size = size
        self.subscribers = {event: [] for event in ViewportEvent}

    def is_ready(self):
        return self.ready

    def pixel_to_image(self, point):
        return Point(
            (point.x - self.offset.x) / self.scale,
            (point.y - self.offset.y) / self.scale,
        )

    def image_to_pixel(self, point):
        return Point(
            point.x * self.scale + self.offset.x,
            point.y * self.scale + self.offset.y,
        )

    def subscribe(self, event, callback):
        self.subscribers[event].append(callback)

    def unsubscribe(self, event, callback):
        self.subscribers[event].remove(callback)

    def container_size(self):
        return self.size

    def emit(self, event):
        for callback in list(self.subscribers[event]):
            callback()

    def subscription_count(self):
        return sum(len(callbacks) for callbacks in self.subscribers.values())


class Primitive:
    """Recorded renderer primitive in viewport space."""

    def __init__(self, kind, geometry, style, tag, closed=True):
        self.kind = kind
        self.geometry = geometry
        self.style = style
        self.tag = tag
        self.closed = closed

    def describe(self):
        return (self.kind, self.geometry, self.style, self.tag, self.closed)

    def distance_to(self, point):
        if self.kind == "line":
            return _segment_distance(point, *self.geometry)
        if self.kind == "circle":
            center, radius = self.geometry
            return abs(center.distance_to(point) - radius)
        if self.kind == "rectangle":
            top_left, width, height = self.geometry
            corners = [
                top_left,
                Point(top_left.x + width, top_left.y),
                Point(top_left.x + width, top_left.y + height),
                Point(top_left.x, top_left.y + height),
            ]
            return _polyline_distance(point, corners, closed=True)
        return _polyline_distance(point, list(self.geometry), self.closed)


def _segment_distance(p, a, b):
    dx, dy = b.x - a.x, b.y - a.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return p.distance_to(a)
    t = max(0.0, min(1.0, ((p.x - a.x) * dx + (p.y - a.y) * dy) / length_sq))
    return p.distance_to(Point(a.x + t * dx, a.y + t * dy))


def _polyline_distance(p, points, closed):
    segments = list(zip(points, points[1:]))
    if closed and len(points) > 2:
        segments.append((points[-1], points[0]))
    if not segments:
        return math.inf
    return min(_segment_distance(p, a, b) for a, b in segments)


class FakeRenderer(SceneRenderer):
    """Records primitives and hit-tests their outlines geometrically."""

    def __init__(self):
        self.layer = []
        self.repaints = 0
        self.clears = 0

    def clear_layer(self):
        self.clears += 1
        self.layer = []

    def _add(self, primitive):
        self.layer.append(primitive)
        return primitive

    def add_line(self, start, end, style, tag=None):
        return self._add(Primitive("line", (start, end), style, tag))

    def add_circle(self, center, radius, style, tag=None):
        return self._add(Primitive("circle", (center, radius), style, tag))

    def add_rectangle(self, top_left, width, height, style, tag=None):
        return self._add(Primitive("rectangle", (top_left, width, height), style, tag))

    def add_path(self, points, style, tag=None, closed=True):
        return self._add(Primitive("path", tuple(points), style, tag, closed))

    def remove_primitive(self, handle):
        if handle in self.layer:
            self.layer.remove(handle)

    def attach_primitive(self, handle):
        if handle in self.layer:
            self.layer.remove(handle)
        self.layer.append(handle)

    def hit_test(self, point, tolerance):
        for primitive in reversed(self.layer):
            if primitive.tag is not None and primitive.distance_to(point) <= tolerance:
                return primitive.tag
        return None

    def repaint(self):
        self.repaints += 1

    def tagged(self):
        return [p for p in self.layer if p.tag is not None]

    def previews(self):
        return [p for p in self.layer if p.tag is None]

    def snapshot(self):
        return [p.describe() for p in self.layer]


class FakeSurface(DrawingSurface):
    """Drawing surface recording resizes and passthrough changes."""

    def __init__(self, size=(0, 0)):
        self.size = size
        self.resizes = []
        self.passthrough = None
        self.passthrough_calls = []

    def surface_size(self):
        return self.size

    def resize_surface(self, width, height):
        self.size = (width, height)
        self.resizes.append((width, height))

    def set_pointer_passthrough(self, enabled):
        self.passthrough = enabled
        self.passthrough_calls.append(enabled)


class ManualScheduler(FrameScheduler):
    """Frame scheduler flushed explicitly by the test."""

    def __init__(self):
        self.callback = None
        self.requests = 0

    @property
    def pending(self):
        return self.callback is not None

    def request(self, callback):
        self.requests += 1
        self.callback = callback

    def cancel(self):
        self.callback = None

    def flush(self):
        callback, self.callback = self.callback, None
        if callback is not None:
            callback()


class FakeHost(HostState):
    """Host state owner recording every notification."""

    def __init__(self, shapes=None, selected_id=None):
        self._shapes = list(shapes or [])
        self._selected_id = selected_id
        self.shape_changes = []
        self.selection_changes = []

    @property
    def shapes(self):
        return self._shapes

    @shapes.setter
    def shapes(self, shapes):
        self._shapes = list(shapes)

    @property
    def selected_id(self):
        return self._selected_id

    @selected_id.setter
    def selected_id(self, shape_id):
        self._selected_id = shape_id

    def on_shapes_changed(self, shapes):
        self.shape_changes.append(shapes)
        self._shapes = shapes

    def on_selection_changed(self, shape_id):
        self.selection_changes.append(shape_id)
        self._selected_id = shape_id


class FakeClock:
    """Manually advanced monotonic clock in seconds."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def config():
    return OverlayConfig()


@pytest.fixture
def viewport():
    """Viewport where image = pixel / 10."""
    return FakeViewport()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transform(viewport):
    return CoordinateTransform(viewport)


@pytest.fixture
def adapter(renderer, transform, config):
    return SceneRendererAdapter(renderer, transform, config)


@pytest.fixture
def machine(host, transform, adapter, scheduler, config, clock):
    """Active state machine with the line tool selected."""
    return InteractionStateMachine(
        host,
        transform,
        adapter,
        scheduler=scheduler,
        config=config,
        tool_mode=ToolMode.LINE,
        clock=clock,
    )


@pytest.fixture
def make_host():
    """Factory for hosts pre-filled with shapes."""
    return FakeHost


@pytest.fixture
def make_viewport():
    """Factory for viewports with a custom scale and offset."""
    return FakeViewport
