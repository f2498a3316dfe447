"""
Cell selection for a table in cell-edit mode.

A click sets the anchor and selects one cell; dragging to another cell
selects the whole rectangle between the anchor and the hovered cell;
toggling adds or removes single cells for freeform selections. The
resulting indices are what the merge engine consumes.
"""

from .grid import flat_idx_to_row_col, rectangle_indices
from .models import TableElement
from .spans import jagged_to_uniform_index, uniform_to_jagged_index


class SelectionTracker:
    """
    Tracks the selected cell indices of one table element.

    `version` increases on every change so that work queued against a
    selection (a pending subdivision) can tell whether it is stale.
    """

    def __init__(self, element_id: str):
        self.element_id = element_id
        self._anchor: int | None = None
        self._selected: set[int] = set()
        self._version = 0

    @property
    def anchor(self) -> int | None:
        return self._anchor

    @property
    def selected(self) -> list[int]:
        return sorted(self._selected)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._selected)

    def _replace(self, indices: set[int]):
        if indices != self._selected:
            self._selected = indices
            self._version += 1

    def click(self, index: int):
        """Select a single cell and make it the drag anchor."""
        self._anchor = index
        self._replace({index})

    def drag_to(self, index: int, element: TableElement):
        """
        Select the rectangle spanned by the anchor and `index`.

        The rectangle is taken on the uniform grid of `element`; on a jagged
        table the selection holds the stored index of every cell it touches.
        """
        if self._anchor is None:
            self.click(index)
            return
        start = jagged_to_uniform_index(element, self._anchor)
        end = jagged_to_uniform_index(element, index)
        if start is None or end is None:
            return
        cols = element.cols
        row_a, col_a = flat_idx_to_row_col(start, cols)
        row_b, col_b = flat_idx_to_row_col(end, cols)
        stored = {
            uniform_to_jagged_index(element, idx)
            for idx in rectangle_indices(row_a, row_b, col_a, col_b, cols)
        }
        stored.discard(None)
        self._replace(stored)

    def toggle(self, index: int):
        """Add or remove one cell without touching the rest."""
        selected = set(self._selected)
        if index in selected:
            selected.discard(index)
        else:
            selected.add(index)
            self._anchor = index
        self._replace(selected)

    def clear(self):
        self._anchor = None
        self._replace(set())
