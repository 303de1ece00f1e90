"""Qt-side owner of the shape collection and selection."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from PyQt6.QtCore import QObject, pyqtSignal

from .collection import find_shape, remove_shape
from .interfaces import HostState
from .models import Shape

logger = logging.getLogger(__name__)


class AnnotationStore(QObject):
    """
    Holds the current shapes and selection for a view.

    Collections are replaced wholesale, never mutated in place; listeners
    are told through signals. Implements the HostState interface.
    """

    shapes_changed = pyqtSignal(list)
    selection_changed = pyqtSignal(object)  # Emits shape id or None

    def __init__(
        self,
        shapes: Optional[Sequence[Shape]] = None,
        parent: Optional[QObject] = None
    ) -> None:
        super().__init__(parent)
        self._shapes: List[Shape] = list(shapes or [])
        self._selected_id: Optional[int] = None

    @property
    def shapes(self) -> List[Shape]:
        return self._shapes

    @property
    def selected_id(self) -> Optional[int]:
        return self._selected_id

    def set_shapes(self, shapes: Sequence[Shape]) -> None:
        """Replace the collection, dropping a selection that no longer exists."""
        self._shapes = list(shapes)
        self.shapes_changed.emit(self._shapes)

        if self._selected_id is not None and find_shape(self._shapes, self._selected_id) is None:
            self.set_selected_id(None)

    def set_selected_id(self, shape_id: Optional[int]) -> None:
        """Change the selection; unknown ids are ignored."""
        if shape_id is not None and find_shape(self._shapes, shape_id) is None:
            logger.warning(f"Cannot select unknown shape {shape_id}")
            return
        if shape_id == self._selected_id:
            return
        self._selected_id = shape_id
        self.selection_changed.emit(shape_id)

    def delete_shape(self, shape_id: int) -> bool:
        """Delete a shape by id, clearing the selection if it pointed at it."""
        if find_shape(self._shapes, shape_id) is None:
            return False
        self.set_shapes(remove_shape(self._shapes, shape_id))
        return True

    def clear(self) -> None:
        """Remove all shapes."""
        self.set_shapes([])

    # === HostState callbacks ===

    def on_shapes_changed(self, shapes: List[Shape]) -> None:
        self.set_shapes(shapes)

    def on_selection_changed(self, shape_id: Optional[int]) -> None:
        self.set_selected_id(shape_id)


HostState.register(AnnotationStore)
