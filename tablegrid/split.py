"""
Splitting table cells.

`split_cell` undoes a merge when the cell is a spanning master. For a
plain cell it asks the caller how many rows/columns to cut it into and
hands that to `subdivide`, which inserts real rows/columns into the grid:
the target cell explodes into independent cells while every other cell
crossing the inserted tracks grows its span so the rest of the table looks
unchanged.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .config import get_config
from .grid import (
    blank_cell,
    effective_cells,
    find_master,
    flat_idx_to_row_col,
    footprint_of,
    normalize_percentages,
    row_col_to_flat_idx,
    slave_cell,
)
from .models import Cell, CellStyle, SpanEntry, TableElement
from .spans import (
    jagged_to_uniform_index,
    normalize_span,
    to_canonical,
    uniform_attributes,
    write_back,
)

logger = logging.getLogger(__name__)


class SplitAction(str, Enum):
    """What a split request did."""
    NONE = "none"                        # Nothing to split (bad index, hidden cell)
    UNMERGED = "unmerged"                # A merged block was dissolved
    LEGACY_UNMERGED = "legacy_unmerged"  # Same, on legacy-only span data
    SUBDIVIDED = "subdivided"            # Rows/columns were inserted
    PENDING = "pending"                  # Waiting for subdivision parameters
    CANCELLED = "cancelled"              # Caller declined the subdivision


@dataclass
class SubdivisionRequest:
    """Parameters for cutting one unmerged cell into a finer grid."""
    cell_index: int
    split_rows: int = 2
    split_cols: int = 1


@dataclass
class SplitResult:
    action: SplitAction
    request: Optional[SubdivisionRequest] = None

    @property
    def changed(self) -> bool:
        return self.action in (
            SplitAction.UNMERGED,
            SplitAction.LEGACY_UNMERGED,
            SplitAction.SUBDIVIDED,
        )


# Receives the proposed request; returns (split_rows, split_cols) or None to cancel
ParamsCallback = Callable[[SubdivisionRequest], Optional[tuple[int, int]]]


def split_cell(
    element: TableElement,
    cell_index: int,
    request_params: Optional[ParamsCallback] = None,
) -> SplitResult:
    """
    Split the cell at `cell_index`.

    1. A master spanning several coordinates is unmerged.
    2. Without a canonical array, a span found only in the legacy arrays is
       unmerged there and the canonical array left to be rebuilt.
    3. Any other cell is subdivided. `request_params` is asked for the
       row/column counts; without it the request is returned as PENDING
       and nothing changes.
    """
    index = cell_index
    if element.row_col_widths is not None:
        index = jagged_to_uniform_index(element, cell_index)
        if index is None:
            logger.debug("Split index %d is outside the jagged table", cell_index)
            return SplitResult(SplitAction.NONE)

    if not 0 <= index < element.total_cells:
        logger.debug("Split index %d is out of range", cell_index)
        return SplitResult(SplitAction.NONE)

    if not element.cells and element.row_col_widths is None:
        spans = element.legacy_spans or []
        entry = spans[index] if index < len(spans) else None
        row_span, col_span, is_merged = normalize_span(entry)
        if is_merged:
            return SplitResult(SplitAction.NONE)
        if row_span > 1 or col_span > 1:
            _unmerge_legacy(element, index, row_span, col_span)
            return SplitResult(SplitAction.LEGACY_UNMERGED)
    else:
        cells = to_canonical(element)
        cell = cells[index]
        if cell.is_merged:
            logger.debug("Cell %d is hidden inside a merged block", cell_index)
            return SplitResult(SplitAction.NONE)
        if cell.is_spanning:
            unmerge(element, index, cells)
            return SplitResult(SplitAction.UNMERGED)

    # The request keeps the caller's index; subdivide maps it the same way
    config = get_config()
    request = SubdivisionRequest(
        cell_index=cell_index,
        split_rows=config.default_split_rows,
        split_cols=config.default_split_cols,
    )
    if request_params is None:
        return SplitResult(SplitAction.PENDING, request)

    params = request_params(request)
    if params is None:
        return SplitResult(SplitAction.CANCELLED, request)
    split_rows, split_cols = params
    if subdivide(element, cell_index, split_rows, split_cols):
        return SplitResult(SplitAction.SUBDIVIDED, request)
    return SplitResult(SplitAction.NONE, request)


def unmerge(element: TableElement, cell_index: int, cells: Optional[list[Cell]] = None) -> bool:
    """
    Dissolve the merged block whose master is at `cell_index`.

    The master keeps its content with spans reset to 1; every other
    coordinate of the block becomes a blank, independent cell.
    """
    if cells is None:
        if element.row_col_widths is not None:
            cell_index = jagged_to_uniform_index(element, cell_index)
            if cell_index is None:
                return False
        cells = to_canonical(element)
    if not 0 <= cell_index < len(cells):
        return False
    master = cells[cell_index]
    if not master.is_spanning:
        return False

    footprint = footprint_of(cells, cell_index, element.rows, element.cols)
    for idx in footprint.indices(element.cols):
        cells[idx] = blank_cell()
    cells[cell_index] = Cell(content=master.content)

    colors, styles = uniform_attributes(element)
    write_back(element, cells, colors, styles)
    logger.info(
        "Unmerged %dx%d block at cell %d",
        footprint.row_span, footprint.col_span, cell_index,
    )
    return True


def _unmerge_legacy(element: TableElement, cell_index: int, row_span: int, col_span: int):
    """Unmerge directly on the legacy arrays; the canonical array is rebuilt on next read."""
    rows, cols = element.rows, element.cols
    total = element.total_cells
    content = list(element.legacy_content[:total])
    content += [""] * (total - len(content))
    spans = list((element.legacy_spans or [])[:total])
    spans += [None] * (total - len(spans))

    row, col = flat_idx_to_row_col(cell_index, cols)
    for r in range(row, min(row + row_span, rows)):
        for c in range(col, min(col + col_span, cols)):
            idx = row_col_to_flat_idx(r, c, cols)
            spans[idx] = SpanEntry(row_span=1, col_span=1)
            if idx != cell_index:
                content[idx] = ""

    element.legacy_content = content
    element.legacy_spans = spans
    element.cells = None
    logger.info("Unmerged legacy %dx%d block at cell %d", row_span, col_span, cell_index)


@dataclass
class _Block:
    """A master cell being moved around while the grid is rebuilt."""
    row: int
    col: int
    row_span: int
    col_span: int
    content: str = ""
    color: Optional[str] = None
    style: CellStyle = field(default_factory=CellStyle)
    is_target: bool = False

    @property
    def last_row(self) -> int:
        return self.row + self.row_span - 1

    @property
    def last_col(self) -> int:
        return self.col + self.col_span - 1

    def fragment(self, row: int, col: int, row_span: int, col_span: int, keep_content: bool) -> "_Block":
        return _Block(
            row, col, row_span, col_span,
            content=self.content if keep_content else "",
            color=self.color,
            style=self.style.model_copy(),
            is_target=True,
        )


def _grow_columns(blocks: list[_Block], target_col: int, split_cols: int) -> list[_Block]:
    """
    Insert split_cols - 1 columns by cutting `target_col` into pieces.

    A target block yields one fragment per piece of its first column; the
    last fragment also keeps the rest of the block's columns.
    """
    delta = split_cols - 1
    result = []
    for block in blocks:
        if block.is_target:
            result.extend(
                block.fragment(
                    block.row, target_col + k,
                    block.row_span, block.col_span if k == delta else 1,
                    keep_content=(k == 0),
                )
                for k in range(split_cols)
            )
            continue
        if block.col <= target_col <= block.last_col:
            block.col_span += delta
        elif block.col > target_col:
            block.col += delta
        result.append(block)
    return result


def _grow_rows(blocks: list[_Block], target_row: int, split_rows: int) -> list[_Block]:
    delta = split_rows - 1
    result = []
    for block in blocks:
        if block.is_target:
            result.extend(
                block.fragment(
                    target_row + k, block.col,
                    block.row_span if k == delta else 1, block.col_span,
                    keep_content=(k == 0),
                )
                for k in range(split_rows)
            )
            continue
        if block.row <= target_row <= block.last_row:
            block.row_span += delta
        elif block.row > target_row:
            block.row += delta
        result.append(block)
    return result


def subdivide(element: TableElement, cell_index: int, split_rows: int, split_cols: int) -> bool:
    """
    Cut the cell at `cell_index` into split_rows x split_cols cells.

    Columns are inserted first, then rows, so row growth sees the widened
    target. Widths/heights of the target track are divided evenly; every
    other cell crossing the target row or column extends its span.

    A merged block is cut along its first row and column: the new tracks
    are carved out of those, and the last fragment in each direction keeps
    the remainder of the block. A hidden cell subdivides its master.

    Args:
        element: The table to edit
        cell_index: Flat index of the cell to cut
        split_rows: Number of rows the cell becomes (1 = no new rows)
        split_cols: Number of columns the cell becomes (1 = no new columns)

    Returns:
        True if the grid changed. (1, 1), counts below 1, and out-of-range
        indices leave the element untouched.
    """
    if split_rows < 1 or split_cols < 1:
        logger.debug("Ignoring subdivision into %dx%d", split_rows, split_cols)
        return False
    if split_rows == 1 and split_cols == 1:
        return False

    if element.row_col_widths is not None:
        mapped = jagged_to_uniform_index(element, cell_index)
        if mapped is None:
            return False
        cell_index = mapped
    if not 0 <= cell_index < element.total_cells:
        return False

    rows, cols = element.rows, element.cols
    cells = to_canonical(element)
    master = find_master(cells, cell_index, rows, cols)
    if master is None:
        return False
    if master != cell_index:
        logger.debug("Cell %d is hidden; subdividing its master %d", cell_index, master)
        cell_index = master

    colors, styles = uniform_attributes(element)
    blocks = []
    for entry in effective_cells(cells, rows, cols):
        fp = entry.footprint
        blocks.append(_Block(
            fp.row, fp.col, fp.row_span, fp.col_span,
            content=entry.cell.content,
            color=colors[entry.index],
            style=styles[entry.index],
            is_target=(entry.index == cell_index),
        ))

    target_row, target_col = flat_idx_to_row_col(cell_index, cols)
    col_widths = normalize_percentages(element.col_widths, cols)
    row_heights = normalize_percentages(element.row_heights, rows)

    if split_cols > 1:
        blocks = _grow_columns(blocks, target_col, split_cols)
        piece = col_widths[target_col] / split_cols
        col_widths[target_col:target_col + 1] = [piece] * split_cols
        cols += split_cols - 1

    if split_rows > 1:
        blocks = _grow_rows(blocks, target_row, split_rows)
        piece = row_heights[target_row] / split_rows
        row_heights[target_row:target_row + 1] = [piece] * split_rows
        rows += split_rows - 1

    total = rows * cols
    new_cells = [slave_cell() for _ in range(total)]
    new_colors: list[Optional[str]] = [None] * total
    new_styles = [CellStyle() for _ in range(total)]
    for block in blocks:
        idx = row_col_to_flat_idx(block.row, block.col, cols)
        new_cells[idx] = Cell(
            content=block.content,
            row_span=block.row_span,
            col_span=block.col_span,
        )
        new_colors[idx] = block.color
        new_styles[idx] = block.style

    element.rows = rows
    element.cols = cols
    element.col_widths = col_widths
    element.row_heights = row_heights
    write_back(element, new_cells, new_colors, new_styles)
    logger.info(
        "Subdivided cell %d into %dx%d; table is now %dx%d",
        cell_index, split_rows, split_cols, rows, cols,
    )
    return True
