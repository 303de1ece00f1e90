"""Pointer-driven interaction state machine for drawing, selecting, moving and erasing shapes."""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .collection import append_shape, find_shape, max_shape_id, remove_shape, replace_shape
from .config import OverlayConfig
from .geometry import is_valid_shape, normalized_rect, translate_shape
from .interfaces import FrameScheduler, HostState
from .models import CircleShape, LineShape, Point, PolygonShape, RectangleShape, Shape
from .renderer import SceneRendererAdapter
from .transform import CoordinateTransform

logger = logging.getLogger(__name__)

# Id carried by draft shapes shown as previews; never enters a collection
DRAFT_ID = -1


class ToolMode(str, Enum):
    """Tool selected for the next gesture."""

    LINE = "line"
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    POLYGON = "polygon"
    ERASER = "eraser"


class InteractionState(str, Enum):
    """Observable state of the interaction state machine."""

    IDLE = "idle"
    DRAWING = "drawing"
    MOVING = "moving"


@dataclass
class DrawingSession:
    """In-progress draw gesture."""

    tool: ToolMode
    start_viewport: Point
    start_image: Point
    vertices: List[Point] = field(default_factory=list)
    current_image: Optional[Point] = None


@dataclass
class MovingSession:
    """
    In-progress move gesture.

    Each frame translates ``snapshot`` (the shape as it was when the gesture
    started) by the total offset from ``anchor``, so rounding never
    accumulates across frames.
    """

    shape_id: int
    anchor: Point
    snapshot: Shape
    base_shapes: List[Shape]
    shapes: List[Shape]
    moved: bool = False


Session = Union[DrawingSession, MovingSession]


class DoubleClickDetector:
    """Reports whether a click follows the previous one within an interval."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Args:
            interval: Maximum gap between two clicks in seconds
            clock: Monotonic time source in seconds
        """
        self.interval = interval
        self._clock = clock
        self._last_click: Optional[float] = None

    def click(self) -> bool:
        """Register a click and return True if it completes a double click."""
        now = self._clock()
        is_double = self._last_click is not None and now - self._last_click < self.interval
        self._last_click = now
        return is_double

    def reset(self) -> None:
        self._last_click = None


class IdAllocator:
    """
    Strictly increasing shape id counter.

    Ids are never reused, even after deletion, and never collide with ids
    already present in the collection passed to allocate().
    """

    def __init__(self, start: int = 0) -> None:
        self._next = start

    @property
    def next_id(self) -> int:
        return self._next

    def allocate(self, shapes: Sequence[Shape] = ()) -> int:
        """Return a fresh id greater than any handed out or present in shapes."""
        shape_id = max(self._next, max_shape_id(shapes) + 1)
        self._next = shape_id + 1
        return shape_id


def _event_handler(method):
    """Keep failures inside the engine: log, drop the gesture, return None."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {method.__name__}: {e}", exc_info=True)
            self._abort()
            return None

    return wrapper


class InteractionStateMachine:
    """
    Turns pointer gestures into shape mutations.

    States are Idle, Drawing and Moving; at most one gesture is in progress
    at any time. The shape collection and the selection belong to the host:
    they are read from it at the start of each transition and every
    committed mutation is reported back as a new collection.

    Gestures:
    - Click on a shape outline selects it; a second press on the already
      selected shape starts a move.
    - Eraser click on a shape outline deletes it.
    - Press/drag/release on empty space draws a line, circle or rectangle.
    - Polygon vertices are added one click at a time; a double click closes
      the polygon once it has at least three vertices.
    """

    def __init__(
        self,
        host: HostState,
        transform: CoordinateTransform,
        adapter: SceneRendererAdapter,
        scheduler: Optional[FrameScheduler] = None,
        config: Optional[OverlayConfig] = None,
        tool_mode: Optional[ToolMode] = None,
        id_allocator: Optional[IdAllocator] = None,
        clock: Callable[[], float] = time.monotonic,
        active: bool = True
    ) -> None:
        """
        Initialize the state machine.

        Args:
            host: Owner of the shape collection and selection
            transform: Image/viewport coordinate conversion
            adapter: Renderer adapter used for previews, hit tests and redraws
            scheduler: Coalescer for drag repaints; redraws immediately if None
            config: Interaction settings, defaults if omitted
            tool_mode: Initial tool, config.default_tool if omitted
            id_allocator: Shape id source
            clock: Monotonic time source in seconds for double click detection
            active: Whether pointer input is processed initially
        """
        self.host = host
        self.transform = transform
        self.adapter = adapter
        self.scheduler = scheduler
        self.config = config or OverlayConfig()
        self.id_allocator = id_allocator or IdAllocator()
        self._tool_mode = ToolMode(tool_mode) if tool_mode else self._configured_tool()
        self._active = active
        self._session: Optional[Session] = None
        self._double_click = DoubleClickDetector(
            self.config.double_click_interval_ms / 1000.0, clock
        )

    def _configured_tool(self) -> ToolMode:
        try:
            return ToolMode(self.config.default_tool)
        except ValueError:
            logger.warning(f"Unknown default tool: {self.config.default_tool}, using line")
            return ToolMode.LINE

    # === State ===

    @property
    def state(self) -> InteractionState:
        if isinstance(self._session, MovingSession):
            return InteractionState.MOVING
        if isinstance(self._session, DrawingSession):
            return InteractionState.DRAWING
        return InteractionState.IDLE

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def tool_mode(self) -> ToolMode:
        return self._tool_mode

    @property
    def active(self) -> bool:
        return self._active

    def set_tool_mode(self, mode: Union[ToolMode, str]) -> None:
        """
        Select the tool for the next gesture, cancelling any gesture in progress.

        Raises:
            ValueError: If mode is not a known tool name
        """
        mode = ToolMode(mode)
        if mode == self._tool_mode:
            return
        self._cancel_session()
        self._tool_mode = mode
        logger.debug(f"Tool mode set to {mode.value}")

    @_event_handler
    def set_active(self, active: bool) -> None:
        """Enable or disable pointer handling; disabling cancels the gesture."""
        if active == self._active:
            return
        self._active = active
        if not active:
            self._cancel_session()

    def scene_state(self) -> Tuple[List[Shape], Optional[int]]:
        """
        Shapes and selection to render right now.

        During a move this is the session's working collection, otherwise
        the host's collection.
        """
        if isinstance(self._session, MovingSession):
            return self._session.shapes, self.host.selected_id
        return list(self.host.shapes), self.host.selected_id

    @_event_handler
    def redraw(self) -> None:
        """Redraw the annotation layer from the current scene state."""
        shapes, selected_id = self.scene_state()
        self.adapter.redraw(shapes, selected_id)

    # === Pointer events ===

    @_event_handler
    def pointer_down(self, viewport_point: Optional[Point]) -> None:
        """Handle a pointer press at a viewport position."""
        if not self._active or viewport_point is None:
            return

        is_double = self._double_click.click()
        session = self._session

        if isinstance(session, DrawingSession) and session.tool is ToolMode.POLYGON:
            if is_double and len(session.vertices) >= 3:
                self._commit_polygon(session)
                return
            # A hit outline gets selected but still receives the vertex
            hit_id = self.adapter.renderer.hit_test(viewport_point, self.config.hit_tolerance)
            if (hit_id is not None and hit_id != self.host.selected_id
                    and find_shape(self.host.shapes, hit_id) is not None):
                self.host.on_selection_changed(hit_id)
                logger.debug(f"Selected shape {hit_id} while drawing polygon")
                self.redraw()
            self._add_polygon_vertex(viewport_point)
            return

        if session is not None:
            logger.debug(f"Discarding unfinished {self.state.value} gesture")
            self._cancel_session()

        hit_id = self.adapter.renderer.hit_test(viewport_point, self.config.hit_tolerance)
        shapes = list(self.host.shapes)

        if hit_id is not None and find_shape(shapes, hit_id) is not None:
            self._handle_hit(hit_id, viewport_point, shapes)
            return

        if self._tool_mode is ToolMode.ERASER:
            return

        if self._tool_mode is ToolMode.POLYGON:
            self._add_polygon_vertex(viewport_point)
            return

        self._start_drawing(viewport_point)

    @_event_handler
    def pointer_drag(self, viewport_point: Optional[Point]) -> None:
        """Handle pointer movement with the button held."""
        if not self._active or viewport_point is None:
            return

        session = self._session
        if isinstance(session, MovingSession):
            self._update_move(session, viewport_point)
            self._request_repaint()
        elif isinstance(session, DrawingSession):
            self._update_preview(session, viewport_point)

    @_event_handler
    def pointer_up(self, viewport_point: Optional[Point]) -> None:
        """Handle a pointer release."""
        if not self._active:
            return

        session = self._session
        if isinstance(session, MovingSession):
            if viewport_point is not None:
                self._update_move(session, viewport_point)
            self._finish_move(session)
        elif isinstance(session, DrawingSession) and session.tool is not ToolMode.POLYGON:
            end_image = (
                self.transform.to_image(viewport_point)
                if viewport_point is not None
                else session.current_image
            )
            self._finish_drawing(session, end_image)

    # === Commands ===

    @_event_handler
    def cancel(self) -> None:
        """Abandon the gesture in progress; nothing is committed."""
        self._cancel_session()

    @_event_handler
    def finish_drawing(self) -> None:
        """Close an in-progress polygon if it has enough vertices, else cancel."""
        session = self._session
        if (isinstance(session, DrawingSession) and
                session.tool is ToolMode.POLYGON and
                len(session.vertices) >= 3):
            self._commit_polygon(session)
        else:
            self._cancel_session()

    @_event_handler
    def delete_at(self, viewport_point: Optional[Point]) -> bool:
        """Delete the shape whose outline is under a viewport position."""
        if not self._active or viewport_point is None:
            return False
        hit_id = self.adapter.renderer.hit_test(viewport_point, self.config.hit_tolerance)
        if hit_id is None:
            return False
        return self._delete(hit_id)

    @_event_handler
    def delete_selected(self) -> bool:
        """Delete the selected shape, if any."""
        selected_id = self.host.selected_id
        if selected_id is None:
            return False
        return self._delete(selected_id)

    @_event_handler
    def delete_shape(self, shape_id: int) -> bool:
        """Delete a shape by id."""
        return self._delete(shape_id)

    # === Internals ===

    def _handle_hit(self, hit_id: int, viewport_point: Point, shapes: List[Shape]) -> None:
        """Apply erase, select or start-move to a hit shape."""
        if self._tool_mode is ToolMode.ERASER:
            self._delete(hit_id)
            return

        if self.host.selected_id != hit_id:
            # First click only selects; the move needs a second press
            self.host.on_selection_changed(hit_id)
            logger.debug(f"Selected shape {hit_id}")
            self.redraw()
            return

        self._session = MovingSession(
            shape_id=hit_id,
            anchor=self.transform.to_image(viewport_point),
            snapshot=find_shape(shapes, hit_id),
            base_shapes=shapes,
            shapes=shapes,
        )
        logger.debug(f"Moving shape {hit_id}")

    def _start_drawing(self, viewport_point: Point) -> None:
        start_image = self.transform.to_image(viewport_point)
        session = DrawingSession(
            tool=self._tool_mode,
            start_viewport=viewport_point,
            start_image=start_image,
            current_image=start_image,
        )
        self._session = session
        self.adapter.show_preview(self._build_shape(session, start_image, DRAFT_ID))
        logger.debug(f"Started drawing {session.tool.value}")

    def _add_polygon_vertex(self, viewport_point: Point) -> None:
        image_point = self.transform.to_image(viewport_point)
        session = self._session
        if not isinstance(session, DrawingSession):
            session = DrawingSession(
                tool=ToolMode.POLYGON,
                start_viewport=viewport_point,
                start_image=image_point,
            )
            self._session = session
            logger.debug("Started drawing polygon")

        session.vertices.append(image_point)
        session.current_image = image_point
        self.adapter.show_preview(PolygonShape(DRAFT_ID, tuple(session.vertices)), closed=False)

    def _update_preview(self, session: DrawingSession, viewport_point: Point) -> None:
        current = self.transform.to_image(viewport_point)
        session.current_image = current

        if session.tool is ToolMode.POLYGON:
            if session.vertices:
                rubber_band = PolygonShape(DRAFT_ID, (*session.vertices, current))
                self.adapter.show_preview(rubber_band, closed=False)
            return

        self.adapter.show_preview(self._build_shape(session, current, DRAFT_ID))

    def _build_shape(self, session: DrawingSession, end_image: Point, shape_id: int) -> Shape:
        """Geometry of a line, circle or rectangle from the gesture's start to end_image."""
        start = session.start_image
        if session.tool is ToolMode.LINE:
            return LineShape(shape_id, start, end_image)
        if session.tool is ToolMode.CIRCLE:
            # Measured in image space; the pixel/image ratio depends on zoom
            return CircleShape(shape_id, start, start.distance_to(end_image))
        if session.tool is ToolMode.RECTANGLE:
            top_left, width, height = normalized_rect(start, end_image)
            return RectangleShape(shape_id, top_left, width, height)
        raise ValueError(f"Tool {session.tool.value} does not draw by dragging")

    def _finish_drawing(self, session: DrawingSession, end_image: Optional[Point]) -> None:
        self._session = None
        self.adapter.clear_preview()

        if end_image is None:
            return

        candidate = self._build_shape(session, end_image, DRAFT_ID)
        if not is_valid_shape(candidate):
            logger.debug(f"Discarded degenerate {session.tool.value}")
            return

        self._commit(candidate)

    def _commit_polygon(self, session: DrawingSession) -> None:
        self._session = None
        self._double_click.reset()
        self.adapter.clear_preview()

        candidate = PolygonShape(DRAFT_ID, tuple(session.vertices))
        if is_valid_shape(candidate):
            self._commit(candidate)

    def _commit(self, draft: Shape) -> None:
        """Give a validated draft a real id and append it to the host's collection."""
        shapes = list(self.host.shapes)
        shape_id = self.id_allocator.allocate(shapes)
        shape = replace(draft, id=shape_id)
        self.host.on_shapes_changed(append_shape(shapes, shape))
        logger.info(f"Created {shape.type.value} {shape_id}")
        self.redraw()

    def _update_move(self, session: MovingSession, viewport_point: Point) -> None:
        delta = self.transform.to_image(viewport_point) - session.anchor
        moved = translate_shape(session.snapshot, delta.x, delta.y)
        session.shapes = replace_shape(session.base_shapes, moved)
        if delta.x or delta.y:
            session.moved = True

    def _finish_move(self, session: MovingSession) -> None:
        self._session = None
        if self.scheduler is not None:
            self.scheduler.cancel()
        if session.moved:
            self.host.on_shapes_changed(session.shapes)
            logger.info(f"Moved shape {session.shape_id}")
        self.redraw()

    def _request_repaint(self) -> None:
        if self.scheduler is None:
            self.redraw()
        else:
            self.scheduler.request(self.redraw)

    def _delete(self, shape_id: int) -> bool:
        shapes = list(self.host.shapes)
        if find_shape(shapes, shape_id) is None:
            return False

        if isinstance(self._session, MovingSession) and self._session.shape_id == shape_id:
            self._cancel_session()

        was_selected = self.host.selected_id == shape_id
        self.host.on_shapes_changed(remove_shape(shapes, shape_id))
        if was_selected:
            self.host.on_selection_changed(None)
        logger.info(f"Deleted shape {shape_id}")
        self.redraw()
        return True

    def _cancel_session(self) -> None:
        session = self._session
        self._session = None
        if self.scheduler is not None:
            self.scheduler.cancel()
        self.adapter.clear_preview()
        if isinstance(session, MovingSession):
            # Drop the translated frame still on screen
            self.redraw()

    def _abort(self) -> None:
        """Best-effort reset after a failed handler."""
        self._session = None
        try:
            if self.scheduler is not None:
                self.scheduler.cancel()
            self.adapter.clear_preview()
        except Exception as e:
            logger.error(f"Error resetting interaction state: {e}")
