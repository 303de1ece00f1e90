"""Keeps the annotation overlay in step with the viewport."""

from __future__ import annotations

import logging
from typing import Callable, Dict

from .interfaces import DrawingSurface, ViewportEvent, ViewportProvider

logger = logging.getLogger(__name__)


class ViewportSync:
    """
    Redraws the overlay whenever the viewport moves, resizes or loads content.

    Each notification first matches the drawing surface to the viewport's
    container size, then redraws.
    """

    def __init__(
        self,
        viewport: ViewportProvider,
        surface: DrawingSurface,
        redraw: Callable[[], None]
    ) -> None:
        """
        Args:
            viewport: Source of change notifications and container size
            surface: Overlay surface to keep the same size as the viewport
            redraw: Callback that repaints the annotation layer
        """
        self.viewport = viewport
        self.surface = surface
        self.redraw = redraw
        self._handlers: Dict[ViewportEvent, Callable[[], None]] = {
            ViewportEvent.TRANSFORM_CHANGED: self._on_transform_changed,
            ViewportEvent.RESIZED: self._on_resized,
            ViewportEvent.CONTENT_LOADED: self._on_content_loaded,
        }
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        """Subscribe to every viewport notification."""
        if self._attached:
            return
        for event, handler in self._handlers.items():
            self.viewport.subscribe(event, handler)
        self._attached = True
        logger.debug("Viewport sync attached")

    def detach(self) -> None:
        """Remove every subscription made by attach()."""
        if not self._attached:
            return
        for event, handler in self._handlers.items():
            self.viewport.unsubscribe(event, handler)
        self._attached = False
        logger.debug("Viewport sync detached")

    def sync(self) -> None:
        """Resize the surface if needed, then redraw."""
        try:
            width, height = self.viewport.container_size()
            if self.surface.surface_size() != (width, height):
                self.surface.resize_surface(width, height)
            self.redraw()
        except Exception as e:
            logger.error(f"Error syncing overlay with viewport: {e}", exc_info=True)

    def _on_transform_changed(self) -> None:
        self.sync()

    def _on_resized(self) -> None:
        self.sync()

    def _on_content_loaded(self) -> None:
        self.sync()
