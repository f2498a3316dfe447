"""
Read accessors and simple mutators for table elements.

Structural edits (merge, split, subdivide) live in their own modules;
this covers dimensions, track resizing, and per-cell content and style.
Every mutator returns True when the element changed and leaves it
untouched otherwise.
"""

import logging
from typing import Optional

from .config import get_config
from .grid import (
    blank_cell,
    even_split,
    flat_idx_to_row_col,
    normalize_percentages,
    row_col_to_flat_idx,
)
from .models import Cell, CellStyle, TableElement
from .spans import (
    fold_jagged,
    normalize_cells,
    row_lengths,
    to_canonical,
    uniform_attributes,
    write_back,
)

logger = logging.getLogger(__name__)


def new_table(rows: Optional[int] = None, cols: Optional[int] = None) -> TableElement:
    """Create a blank table with evenly sized rows and columns."""
    config = get_config()
    rows = config.default_rows if rows is None else rows
    cols = config.default_cols if cols is None else cols
    if rows < 1 or cols < 1:
        raise ValueError(f"Table needs at least 1 row and 1 column, got {rows}x{cols}")

    element = TableElement(
        rows=rows,
        cols=cols,
        col_widths=even_split(cols),
        row_heights=even_split(rows),
    )
    total = rows * cols
    write_back(
        element,
        [blank_cell() for _ in range(total)],
        [None] * total,
        [CellStyle() for _ in range(total)],
    )
    return element


# --- Read accessors ---
#
# While a table is jagged, indices address its stored per-row arrays,
# the same indices `split_cell`, merge and selection take.

def _canonical_cell(element: TableElement, index: int) -> Optional[Cell]:
    if element.cells and 0 <= index < len(element.cells):
        return element.cells[index]
    cells = to_canonical(element)
    if 0 <= index < len(cells):
        return cells[index]
    return None


def _stored_count(element: TableElement) -> int:
    return sum(row_lengths(element))


def cell_content(element: TableElement, index: int) -> str:
    """Text of the cell at `index` (empty for hidden or missing cells)."""
    if element.row_col_widths is not None:
        if 0 <= index < min(_stored_count(element), len(element.legacy_content)):
            return element.legacy_content[index]
        return ""
    cell = _canonical_cell(element, index)
    return cell.content if cell is not None and not cell.is_merged else ""


def cell_style(element: TableElement, index: int) -> CellStyle:
    """Style of the cell at `index` (defaults for missing cells)."""
    if element.row_col_widths is not None and index >= _stored_count(element):
        return CellStyle()
    if 0 <= index < len(element.cell_styles):
        return element.cell_styles[index]
    return CellStyle()


def cell_color(element: TableElement, index: int) -> Optional[str]:
    if element.row_col_widths is not None and index >= _stored_count(element):
        return None
    if 0 <= index < len(element.cell_colors):
        return element.cell_colors[index]
    return None


# --- Mutators ---

def _set_stored(element: TableElement, attr: str, index: int, value, default) -> bool:
    """Replace one slot of a jagged table's stored arrays, keeping the jagged form."""
    total = _stored_count(element)
    if not 0 <= index < total:
        logger.debug("Cell %d is outside the jagged table", index)
        return False
    values = list(getattr(element, attr)[:total])
    values.extend(default() if callable(default) else default for _ in range(total - len(values)))
    if values[index] == value:
        return False
    values[index] = value
    setattr(element, attr, values)
    return True


def set_cell_content(element: TableElement, index: int, text: str) -> bool:
    """Set the text of a visible cell."""
    if element.row_col_widths is not None:
        return _set_stored(element, "legacy_content", index, text, "")
    cells = to_canonical(element)
    if not 0 <= index < len(cells) or cells[index].is_merged:
        logger.debug("Cannot edit cell %d (missing or hidden)", index)
        return False
    if cells[index].content == text:
        return False
    cells[index] = cells[index].model_copy(update={"content": text})
    colors, styles = uniform_attributes(element)
    write_back(element, cells, colors, styles)
    return True


def set_cell_style(element: TableElement, index: int, **fields) -> bool:
    """
    Update style fields of a visible cell.

    Only the given fields change; pass None to clear an override.
    """
    unknown = set(fields) - set(CellStyle.model_fields)
    if unknown:
        raise ValueError(f"Unknown style fields: {', '.join(sorted(unknown))}")

    if element.row_col_widths is not None:
        merged = cell_style(element, index).model_dump()
        merged.update(fields)
        return _set_stored(element, "cell_styles", index, CellStyle(**merged), CellStyle)

    cells = to_canonical(element)
    if not 0 <= index < len(cells) or cells[index].is_merged:
        return False
    colors, styles = uniform_attributes(element)
    merged = styles[index].model_dump()
    merged.update(fields)
    updated = CellStyle(**merged)
    if updated == styles[index]:
        return False
    styles[index] = updated
    write_back(element, cells, colors, styles)
    return True


def set_cell_color(element: TableElement, index: int, color: Optional[str]) -> bool:
    """Set (or clear with None) the background color of a visible cell."""
    if element.row_col_widths is not None:
        return _set_stored(element, "cell_colors", index, color, None)
    cells = to_canonical(element)
    if not 0 <= index < len(cells) or cells[index].is_merged:
        return False
    colors, styles = uniform_attributes(element)
    if colors[index] == color:
        return False
    colors[index] = color
    write_back(element, cells, colors, styles)
    return True


def set_dimensions(element: TableElement, rows: int, cols: int) -> bool:
    """
    Change the row/column count.

    Cells inside the new bounds keep their content and style; spans are
    clipped to the new edge. Existing track sizes are kept, new tracks get
    an average share, and both lists are rescaled to 100.
    """
    if rows < 1 or cols < 1:
        raise ValueError(f"Table needs at least 1 row and 1 column, got {rows}x{cols}")
    if rows == element.rows and cols == element.cols:
        return False

    old_rows, old_cols = element.rows, element.cols
    old_cells = to_canonical(element)
    old_colors, old_styles = uniform_attributes(element)

    total = rows * cols
    cells = [blank_cell() for _ in range(total)]
    colors: list[Optional[str]] = [None] * total
    styles = [CellStyle() for _ in range(total)]
    for old_idx, cell in enumerate(old_cells):
        row, col = flat_idx_to_row_col(old_idx, old_cols)
        if row >= rows or col >= cols:
            continue
        idx = row_col_to_flat_idx(row, col, cols)
        cells[idx] = cell
        colors[idx] = old_colors[old_idx]
        styles[idx] = old_styles[old_idx]

    element.rows = rows
    element.cols = cols
    element.col_widths = normalize_percentages(element.col_widths, cols)
    element.row_heights = normalize_percentages(element.row_heights, rows)
    write_back(element, normalize_cells(cells, rows, cols), colors, styles)
    logger.info("Resized table from %dx%d to %dx%d", old_rows, old_cols, rows, cols)
    return True


def _resize_track(sizes: list[float], index: int, delta: float) -> Optional[list[float]]:
    """
    Move the border after track `index` by `delta` percentage points.

    The neighbouring track absorbs the change (the previous one for the
    last track) and neither may drop below the configured minimum.
    """
    if not 0 <= index < len(sizes) or len(sizes) < 2 or delta == 0:
        return None
    neighbour = index + 1 if index + 1 < len(sizes) else index - 1
    minimum = get_config().min_track_percent
    if delta > 0:
        grow = max(0.0, min(delta, sizes[neighbour] - minimum))
    else:
        grow = min(0.0, max(delta, minimum - sizes[index]))
    if grow == 0:
        return None
    resized = list(sizes)
    resized[index] += grow
    resized[neighbour] -= grow
    return resized


def resize_column(element: TableElement, index: int, delta: float) -> bool:
    """Widen column `index` by `delta` points, taken from its neighbour."""
    resized = _resize_track(element.col_widths, index, delta)
    if resized is None:
        return False
    # Per-row widths would no longer line up with the new columns
    fold_jagged(element)
    element.col_widths = resized
    return True


def resize_row(element: TableElement, index: int, delta: float) -> bool:
    """Grow row `index` by `delta` points, taken from its neighbour."""
    resized = _resize_track(element.row_heights, index, delta)
    if resized is None:
        return False
    element.row_heights = resized
    return True
