"""Annotation mode toggled by holding a modifier key."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .interfaces import DrawingSurface

logger = logging.getLogger(__name__)


class ModeController:
    """
    Tracks whether annotation mode is active.

    While inactive the overlay lets every pointer event through to the
    viewport underneath, so the image can be panned and zoomed. While
    active the overlay receives pointer events itself.
    """

    def __init__(
        self,
        surface: Optional[DrawingSurface] = None,
        on_change: Optional[Callable[[bool], None]] = None
    ) -> None:
        """
        Initialize the controller in the inactive state.

        Args:
            surface: Overlay whose pointer passthrough follows the mode
            on_change: Called with the new state after every change
        """
        self.surface = surface
        self.on_change = on_change
        self._active = False
        if self.surface is not None:
            self.surface.set_pointer_passthrough(True)

    @property
    def active(self) -> bool:
        return self._active

    def hold(self) -> None:
        """Modifier pressed."""
        self.set_active(True)

    def release(self) -> None:
        """Modifier released."""
        self.set_active(False)

    def set_active(self, active: bool) -> None:
        """Switch the mode; repeated calls with the same value do nothing."""
        if active == self._active:
            return

        self._active = active
        if self.surface is not None:
            self.surface.set_pointer_passthrough(not active)
        logger.debug(f"Annotation mode {'on' if active else 'off'}")

        if self.on_change is not None:
            self.on_change(active)
