"""Core annotation engine modules for Annotation Overlay."""

from .models import (
    Point, Shape, ShapeType, LineShape, CircleShape, RectangleShape, PolygonShape
)
from .config import OverlayConfig, ConfigManager
from .transform import CoordinateTransform
from .renderer import SceneRendererAdapter
from .interaction import InteractionStateMachine, InteractionState, ToolMode
from .mode import ModeController
from .sync import ViewportSync
from .store import AnnotationStore

__all__ = [
    "Point",
    "Shape",
    "ShapeType",
    "LineShape",
    "CircleShape",
    "RectangleShape",
    "PolygonShape",
    "OverlayConfig",
    "ConfigManager",
    "CoordinateTransform",
    "SceneRendererAdapter",
    "InteractionStateMachine",
    "InteractionState",
    "ToolMode",
    "ModeController",
    "ViewportSync",
    "AnnotationStore",
]
