"""PyQt6 widgets for Annotation Overlay."""

from .image_view import ImageView, QtViewport
from .overlay import OverlayView, QtOverlay, QtFrameScheduler, ModifierKeyFilter
from .canvas import AnnotationCanvas

__all__ = [
    "ImageView",
    "QtViewport",
    "OverlayView",
    "QtOverlay",
    "QtFrameScheduler",
    "ModifierKeyFilter",
    "AnnotationCanvas",
]
