"""
Grid coordinate math for table elements.

Cells are stored row-major in a dense array: flat_index = row * cols + col.
Everything here is pure; nothing mutates a TableElement.
"""

from dataclasses import dataclass

from .models import Cell


def flat_idx_to_row_col(idx: int, cols: int) -> tuple[int, int]:
    """Convert a flat index to (row, col)."""
    return idx // cols, idx % cols


def row_col_to_flat_idx(row: int, col: int, cols: int) -> int:
    """Convert (row, col) to a flat index."""
    return row * cols + col


@dataclass(frozen=True)
class Footprint:
    """The rectangle of grid coordinates covered by a master cell."""
    row: int
    col: int
    row_span: int = 1
    col_span: int = 1

    @property
    def last_row(self) -> int:
        return self.row + self.row_span - 1

    @property
    def last_col(self) -> int:
        return self.col + self.col_span - 1

    def contains(self, row: int, col: int) -> bool:
        return self.row <= row <= self.last_row and self.col <= col <= self.last_col

    def intersects(self, other: "Footprint") -> bool:
        return not (
            other.last_row < self.row or other.row > self.last_row
            or other.last_col < self.col or other.col > self.last_col
        )

    def coordinates(self) -> list[tuple[int, int]]:
        return [
            (r, c)
            for r in range(self.row, self.last_row + 1)
            for c in range(self.col, self.last_col + 1)
        ]

    def indices(self, cols: int) -> list[int]:
        """Flat indices of every coordinate in the footprint."""
        return [row_col_to_flat_idx(r, c, cols) for r, c in self.coordinates()]


@dataclass(frozen=True)
class EffectiveCell:
    """A visible (master) cell together with its footprint."""
    index: int
    cell: Cell
    footprint: Footprint


def blank_cell() -> Cell:
    return Cell(content="", row_span=1, col_span=1, is_merged=False)


def slave_cell() -> Cell:
    return Cell(content="", row_span=1, col_span=1, is_merged=True)


def pad_cells(cells: list[Cell], total: int) -> list[Cell]:
    """Copy `cells`, truncated or padded with blank cells to exactly `total`."""
    padded = [c.model_copy() for c in cells[:total]]
    padded.extend(blank_cell() for _ in range(total - len(padded)))
    return padded


def even_split(count: int) -> list[float]:
    """Split 100% into `count` equal tracks."""
    return [100.0 / count] * count


def normalize_percentages(values: list[float], count: int | None = None) -> list[float]:
    """
    Rescale track sizes so they sum to 100.

    If `count` is given the list is first truncated or padded (new tracks
    get the average size) to that length. Non-positive inputs fall back to
    an even split.
    """
    if count is None:
        count = len(values)
    if count <= 0:
        return []
    sized = [v for v in values[:count] if v > 0]
    if len(sized) != len(values[:count]):
        return even_split(count)
    filler = 100.0 / count
    sized.extend(filler for _ in range(count - len(sized)))
    total = sum(sized)
    return [v * 100.0 / total for v in sized]


def rectangle_indices(row_a: int, row_b: int, col_a: int, col_b: int, cols: int) -> list[int]:
    """Flat indices covering the rectangle between two corners (inclusive)."""
    top, bottom = min(row_a, row_b), max(row_a, row_b)
    left, right = min(col_a, col_b), max(col_a, col_b)
    return Footprint(top, left, bottom - top + 1, right - left + 1).indices(cols)


def footprint_of(cells: list[Cell], idx: int, rows: int, cols: int) -> Footprint:
    """Footprint of the master at `idx`, clipped to the grid."""
    row, col = flat_idx_to_row_col(idx, cols)
    cell = cells[idx]
    row_span = min(cell.row_span, rows - row)
    col_span = min(cell.col_span, cols - col)
    return Footprint(row, col, max(row_span, 1), max(col_span, 1))


def effective_cells(cells: list[Cell], rows: int, cols: int) -> list[EffectiveCell]:
    """
    Return only the visible (non-merged) cells with their footprints.

    Slaves are never independently visible, so they are skipped. Spans
    reaching past the grid edge are clipped.
    """
    result = []
    for idx, cell in enumerate(cells[:rows * cols]):
        if cell.is_merged:
            continue
        result.append(EffectiveCell(idx, cell, footprint_of(cells, idx, rows, cols)))
    return result


def find_master(cells: list[Cell], idx: int, rows: int, cols: int) -> int | None:
    """Flat index of the master whose footprint covers `idx`."""
    if not cells[idx].is_merged:
        return idx
    row, col = flat_idx_to_row_col(idx, cols)
    for entry in effective_cells(cells, rows, cols):
        if entry.footprint.contains(row, col):
            return entry.index
    return None
