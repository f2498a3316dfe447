"""
Merging selected cells of a table.

Two paths:
- Rectangular: the bounding box of the selection becomes one master cell
  at its top-left coordinate with row/column spans; the rest of the box
  becomes hidden slave cells.
- Row-local (legacy documents only): a contiguous run of cells in a single
  row is collapsed into one wider cell of that row, switching the table to
  the jagged per-row form.

Both return False and leave the element untouched when nothing can be
merged.
"""

import logging
from collections import defaultdict
from typing import Iterable, Optional

from .config import get_config
from .grid import (
    Footprint,
    effective_cells,
    flat_idx_to_row_col,
    row_col_to_flat_idx,
    slave_cell,
)
from .models import Cell, CellStyle, SpanEntry, TableElement
from .spans import (
    from_canonical,
    jagged_to_uniform_index,
    row_lengths,
    to_canonical,
    uniform_attributes,
    write_back,
)

logger = logging.getLogger(__name__)


def _group_by_row(indices: list[int], lengths: list[int]) -> dict[int, list[int]]:
    """Group stored flat indices by row, as row -> sorted column positions."""
    groups: dict[int, list[int]] = defaultdict(list)
    offset = 0
    row = 0
    for idx in indices:
        while row < len(lengths) and idx >= offset + lengths[row]:
            offset += lengths[row]
            row += 1
        if row >= len(lengths):
            break
        groups[row].append(idx - offset)
    return {r: sorted(c) for r, c in groups.items()}


def _is_contiguous(positions: list[int]) -> bool:
    return all(b - a == 1 for a, b in zip(positions, positions[1:]))


def _has_spans(element: TableElement) -> bool:
    if element.row_col_widths is not None:
        return False
    return any(c.is_spanning for c in to_canonical(element))


def expand_to_footprints(cells: list[Cell], box: Footprint, rows: int, cols: int) -> Footprint:
    """Grow `box` until no master footprint crosses its border."""
    footprints = [e.footprint for e in effective_cells(cells, rows, cols)]
    changed = True
    while changed:
        changed = False
        for fp in footprints:
            if not box.intersects(fp):
                continue
            top = min(box.row, fp.row)
            left = min(box.col, fp.col)
            bottom = max(box.last_row, fp.last_row)
            right = max(box.last_col, fp.last_col)
            grown = Footprint(top, left, bottom - top + 1, right - left + 1)
            if grown != box:
                box = grown
                changed = True
    return box


def merge_selection(
    element: TableElement,
    selected_indices: Iterable[int],
    row_local: Optional[bool] = None,
) -> bool:
    """
    Merge the selected cells of `element` in place.

    Args:
        element: The table to edit
        selected_indices: Flat indices of the selected cells
        row_local: Use the jagged row-local path for single-row runs
            (defaults to the configured `row_local_merge`)

    Returns:
        True if the table changed
    """
    if row_local is None:
        row_local = get_config().row_local_merge

    lengths = row_lengths(element)
    stored = sum(lengths)
    indices = sorted({i for i in selected_indices if 0 <= i < stored})
    if len(indices) < 2:
        logger.debug("Merge needs at least 2 cells, got %d", len(indices))
        return False

    groups = _group_by_row(indices, lengths)
    if len(groups) == 1:
        row, positions = next(iter(groups.items()))
        if not _is_contiguous(positions):
            logger.debug("Ignoring non-contiguous merge in row %d: %s", row, positions)
            return False
        if row_local and not _has_spans(element):
            return _merge_row_local(element, row, positions[0], positions[-1])

    return _merge_rectangle(element, indices)


def _merge_row_local(element: TableElement, row: int, first: int, last: int) -> bool:
    """Collapse positions first..last of one row into a single wider cell."""
    if element.row_col_widths is None:
        content, spans = from_canonical(to_canonical(element))
        colors, styles = uniform_attributes(element)
        widths = [list(element.col_widths) for _ in range(element.rows)]
    else:
        content = list(element.legacy_content)
        spans = list(element.legacy_spans or [])
        colors = list(element.cell_colors)
        styles = list(element.cell_styles)
        widths = [list(w) for w in element.row_col_widths]

    offset = sum(len(w) for w in widths[:row])
    start, end = offset + first, offset + last + 1
    stored = sum(len(w) for w in widths)
    content += [""] * (stored - len(content))
    spans += [None] * (stored - len(spans))
    colors += [None] * (stored - len(colors))
    styles += [CellStyle() for _ in range(stored - len(styles))]

    row_widths = widths[row]
    widths[row] = row_widths[:first] + [sum(row_widths[first:last + 1])] + row_widths[last + 1:]
    content[start:end] = [content[start]]
    spans[start:end] = [SpanEntry(row_span=1, col_span=1)]
    colors[start:end] = [colors[start]]
    styles[start:end] = [styles[start]]

    element.cells = None
    element.row_col_widths = widths
    element.legacy_content = content
    element.legacy_spans = spans
    element.cell_colors = colors
    element.cell_styles = styles
    logger.info("Merged row %d positions %d-%d (row-local)", row, first, last)
    return True


def _merge_rectangle(element: TableElement, indices: list[int]) -> bool:
    """Merge the bounding box of `indices` into one master cell."""
    rows, cols = element.rows, element.cols
    if element.row_col_widths is not None:
        mapped = {jagged_to_uniform_index(element, i) for i in indices}
        indices = sorted(i for i in mapped if i is not None)
        if not indices:
            return False

    cells = to_canonical(element)
    coords = [flat_idx_to_row_col(i, cols) for i in indices]
    top = min(r for r, _ in coords)
    left = min(c for _, c in coords)
    bottom = max(r for r, _ in coords)
    right = max(c for _, c in coords)
    box = Footprint(top, left, bottom - top + 1, right - left + 1)
    box = expand_to_footprints(cells, box, rows, cols)
    if box.row_span == 1 and box.col_span == 1:
        logger.debug("Selection collapses to a single cell; nothing to merge")
        return False

    master_idx = row_col_to_flat_idx(box.row, box.col, cols)
    current = cells[master_idx]
    if (current.row_span, current.col_span) == (box.row_span, box.col_span):
        logger.debug("Cell %d already spans the selection", master_idx)
        return False

    master = Cell(
        content=cells[master_idx].content,
        row_span=box.row_span,
        col_span=box.col_span,
        is_merged=False,
    )
    for idx in box.indices(cols):
        cells[idx] = slave_cell()
    cells[master_idx] = master

    colors, styles = uniform_attributes(element)
    write_back(element, cells, colors, styles)
    logger.info(
        "Merged rows %d-%d x cols %d-%d into cell %d",
        box.row, box.last_row, box.col, box.last_col, master_idx,
    )
    return True
