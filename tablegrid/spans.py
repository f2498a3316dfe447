"""
Conversion between the canonical cell array and the legacy encodings.

Tables are saved in two overlapping shapes:
- `tableCellDataV2`: the canonical cells ({content, rowSpan, colSpan, isMerged})
- `tableCellData` + `tableCellSpans`: parallel legacy arrays where a hidden
  (slave) cell is the sentinel span {rowSpan: 0, colSpan: 0}

A third, older shape stores per-row column widths (`tableRowColWidths`) with
the flat arrays holding a variable number of cells per row. It only ever
comes from same-row merges and is folded back onto the uniform grid before
any rectangular edit. While a table is jagged, cell indices passed to any
operation are indices into those stored arrays.

`migrate` runs once when a document is loaded; afterwards every edit works
on the canonical cells and calls `write_back`, which re-derives the legacy
arrays in the same step.
"""

import logging
from typing import Optional

from .grid import (
    blank_cell,
    even_split,
    flat_idx_to_row_col,
    normalize_percentages,
    row_col_to_flat_idx,
    slave_cell,
)
from .models import Cell, CellStyle, SpanEntry, TableElement

logger = logging.getLogger(__name__)

# Width matching tolerance when laying jagged rows onto the uniform grid
_EDGE_TOLERANCE = 1e-6


def normalize_span(entry: Optional[SpanEntry]) -> tuple[int, int, bool]:
    """Read a legacy span entry as (row_span, col_span, is_merged)."""
    if entry is None:
        return 1, 1, False
    if entry.is_hidden:
        return 1, 1, True
    return max(entry.row_span, 1), max(entry.col_span, 1), False


def normalize_cells(cells: list[Cell], rows: int, cols: int) -> list[Cell]:
    """
    Repair a cell array so that master footprints tile the grid exactly.

    Spans are clipped to the grid and shrunk where they would overlap an
    earlier footprint; every coordinate a master covers becomes a slave;
    a slave no master covers becomes a blank master. A consistent array is
    returned unchanged (as copies).
    """
    total = rows * cols
    result = [c.model_copy() for c in cells[:total]]
    result.extend(blank_cell() for _ in range(total - len(result)))
    owner: list[Optional[int]] = [None] * total

    for idx in range(total):
        cell = result[idx]
        if owner[idx] is not None:
            if not cell.is_merged or cell.content:
                logger.debug("Cell %d lies inside footprint of %d; hiding it", idx, owner[idx])
            result[idx] = slave_cell()
            continue
        if cell.is_merged:
            # Nothing covers this coordinate: promote it
            result[idx] = blank_cell()
            owner[idx] = idx
            continue

        row, col = flat_idx_to_row_col(idx, cols)
        row_span = min(cell.row_span, rows - row)
        col_span = min(cell.col_span, cols - col)
        # Shrink the first row to the free run, then stop at the first blocked row
        free_cols = 0
        while free_cols < col_span and owner[row_col_to_flat_idx(row, col + free_cols, cols)] is None:
            free_cols += 1
        col_span = max(free_cols, 1)
        free_rows = 1
        while free_rows < row_span and all(
            owner[row_col_to_flat_idx(row + free_rows, c, cols)] is None
            for c in range(col, col + col_span)
        ):
            free_rows += 1
        row_span = free_rows

        result[idx] = Cell(content=cell.content, row_span=row_span, col_span=col_span)
        for r in range(row, row + row_span):
            for c in range(col, col + col_span):
                owner[row_col_to_flat_idx(r, c, cols)] = idx

    return result


def _padded(values: list, total: int, default) -> list:
    padded = list(values[:total])
    padded.extend(default() if callable(default) else default for _ in range(total - len(padded)))
    return padded


def row_lengths(element: TableElement) -> list[int]:
    """Number of stored cells per row (uniform unless jagged)."""
    if element.row_col_widths is None:
        return [element.cols] * element.rows
    return [len(w) for w in element.row_col_widths]


def _jagged_row_layout(widths: list[float], col_widths: list[float]) -> list[tuple[int, int]]:
    """
    Lay one jagged row onto the uniform columns.

    Returns (start_col, col_span) for every jagged cell that fits; each
    jagged cell consumes uniform columns until their right edge reaches
    the jagged cell's right edge.
    """
    cols = len(col_widths)
    boundaries = [0.0]
    for w in col_widths:
        boundaries.append(boundaries[-1] + w)

    layout = []
    col = 0
    edge = 0.0
    for width in widths:
        if col >= cols:
            break
        edge += width
        end = col + 1
        while end < cols and boundaries[end + 1] <= edge + _EDGE_TOLERANCE:
            end += 1
        layout.append((col, end - col))
        col = end
    return layout


def _jagged_to_uniform(element: TableElement) -> tuple[list[Cell], list[Optional[str]], list[CellStyle]]:
    """Expand the jagged form into uniform cells, colors and styles."""
    rows, cols = element.rows, element.cols
    total = rows * cols
    col_widths = normalize_percentages(element.col_widths, cols)
    cells = [blank_cell() for _ in range(total)]
    colors: list[Optional[str]] = [None] * total
    styles = [CellStyle() for _ in range(total)]

    offset = 0
    for row, widths in enumerate(element.row_col_widths[:rows]):
        for j, (col, span) in enumerate(_jagged_row_layout(widths, col_widths)):
            source = offset + j
            master = row_col_to_flat_idx(row, col, cols)
            content = element.legacy_content[source] if source < len(element.legacy_content) else ""
            cells[master] = Cell(content=content, row_span=1, col_span=span)
            for c in range(col + 1, col + span):
                cells[row_col_to_flat_idx(row, c, cols)] = slave_cell()
            if source < len(element.cell_colors):
                colors[master] = element.cell_colors[source]
            if source < len(element.cell_styles):
                styles[master] = element.cell_styles[source].model_copy()
        offset += len(widths)

    return cells, colors, styles


def _legacy_to_canonical(element: TableElement) -> list[Cell]:
    total = element.total_cells
    content = element.legacy_content
    spans = element.legacy_spans or []
    cells = []
    for i in range(total):
        row_span, col_span, is_merged = normalize_span(spans[i] if i < len(spans) else None)
        text = content[i] if i < len(content) else ""
        cells.append(Cell(
            content="" if is_merged else text,
            row_span=row_span,
            col_span=col_span,
            is_merged=is_merged,
        ))
    return cells


def to_canonical(element: TableElement) -> list[Cell]:
    """
    Return the canonical cells of `element` (always rows*cols copies).

    Uses the stored canonical array when present, otherwise expands the
    jagged form, otherwise synthesizes cells from the legacy arrays.
    """
    if element.cells:
        cells = element.cells
    elif element.row_col_widths is not None:
        cells = _jagged_to_uniform(element)[0]
    else:
        cells = _legacy_to_canonical(element)
    return normalize_cells(cells, element.rows, element.cols)


def from_canonical(cells: list[Cell]) -> tuple[list[str], list[SpanEntry]]:
    """Derive the legacy (content, spans) arrays from canonical cells."""
    content = []
    spans = []
    for cell in cells:
        if cell.is_merged:
            content.append("")
            spans.append(SpanEntry(row_span=0, col_span=0))
        else:
            content.append(cell.content)
            spans.append(SpanEntry(row_span=cell.row_span, col_span=cell.col_span))
    return content, spans


def uniform_attributes(element: TableElement) -> tuple[list[Optional[str]], list[CellStyle]]:
    """Per-cell colors and styles laid out on the uniform grid."""
    if element.row_col_widths is not None:
        _, colors, styles = _jagged_to_uniform(element)
        return colors, styles
    total = element.total_cells
    return (
        _padded(element.cell_colors, total, None),
        [s.model_copy() for s in _padded(element.cell_styles, total, CellStyle)],
    )


def write_back(
    element: TableElement,
    cells: list[Cell],
    colors: Optional[list[Optional[str]]] = None,
    styles: Optional[list[CellStyle]] = None,
) -> None:
    """
    Store canonical cells and re-derive both legacy arrays.

    Also drops the jagged form: after this the element is on the uniform
    grid. Callers build every list before calling, so the element moves
    from one consistent state to the next in a single step.
    """
    content, spans = from_canonical(cells)
    element.cells = cells
    element.legacy_content = content
    element.legacy_spans = spans
    element.row_col_widths = None
    if colors is not None:
        element.cell_colors = colors
    if styles is not None:
        element.cell_styles = styles


def fold_jagged(element: TableElement) -> bool:
    """Rewrite a jagged table onto the uniform grid. Returns True if it was jagged."""
    if element.row_col_widths is None:
        return False
    cells, colors, styles = _jagged_to_uniform(element)
    write_back(element, normalize_cells(cells, element.rows, element.cols), colors, styles)
    logger.debug("Folded jagged table back onto %dx%d grid", element.rows, element.cols)
    return True


def jagged_to_uniform_index(element: TableElement, idx: int) -> Optional[int]:
    """
    Map a flat index into the jagged arrays to the uniform flat index of
    the cell's top-left coordinate. Uniform tables map to themselves.
    """
    if element.row_col_widths is None:
        return idx if 0 <= idx < element.total_cells else None
    if idx < 0:
        return None
    col_widths = normalize_percentages(element.col_widths, element.cols)
    offset = 0
    for row, widths in enumerate(element.row_col_widths[:element.rows]):
        if idx < offset + len(widths):
            layout = _jagged_row_layout(widths, col_widths)
            j = idx - offset
            if j >= len(layout):
                return None
            return row_col_to_flat_idx(row, layout[j][0], element.cols)
        offset += len(widths)
    return None


def uniform_to_jagged_index(element: TableElement, idx: int) -> Optional[int]:
    """Stored index of the jagged cell covering uniform flat index `idx`."""
    if element.row_col_widths is None:
        return idx if 0 <= idx < element.total_cells else None
    if not 0 <= idx < element.total_cells:
        return None
    row, col = flat_idx_to_row_col(idx, element.cols)
    col_widths = normalize_percentages(element.col_widths, element.cols)
    offset = sum(len(w) for w in element.row_col_widths[:row])
    if row >= len(element.row_col_widths):
        return None
    for j, (start, span) in enumerate(_jagged_row_layout(element.row_col_widths[row], col_widths)):
        if start <= col < start + span:
            return offset + j
    return None


def migrate(element: TableElement, keep_jagged: bool = False) -> TableElement:
    """
    Bring a loaded table onto the canonical representation.

    Track sizes are resized to the row/column counts and renormalized; the
    canonical cells are derived (or repaired) and both encodings rewritten.
    A jagged table is folded onto the uniform grid unless `keep_jagged`.
    """
    if len(element.col_widths) != element.cols or not _sums_to_100(element.col_widths):
        element.col_widths = normalize_percentages(element.col_widths, element.cols) \
            if element.col_widths else even_split(element.cols)
    if len(element.row_heights) != element.rows or not _sums_to_100(element.row_heights):
        element.row_heights = normalize_percentages(element.row_heights, element.rows) \
            if element.row_heights else even_split(element.rows)

    if element.row_col_widths is not None and keep_jagged:
        return element

    colors, styles = uniform_attributes(element)
    write_back(element, to_canonical(element), colors, styles)
    return element


def _sums_to_100(values: list[float]) -> bool:
    return abs(sum(values) - 100.0) <= 1e-6 * max(len(values), 1) * 100
