"""
Render layout for table elements.

Turns a table's percentage track sizes into absolute cell rectangles for a
node of a given size:
- Hidden (merged) cells produce no rectangle
- Masters are sized by their row/column spans
- Jagged tables lay each row out from its own width list

Layout functions never modify the table.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .grid import effective_cells
from .spans import row_lengths, to_canonical

if TYPE_CHECKING:
    from .models import TableElement


@dataclass(frozen=True)
class CellBox:
    """Absolute rectangle of one visible cell."""
    index: int
    row: int
    col: int
    row_span: int
    col_span: int
    x: float
    y: float
    width: float
    height: float

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "row": self.row,
            "col": self.col,
            "rowSpan": self.row_span,
            "colSpan": self.col_span,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


def _offsets(sizes: list[float], extent: float) -> list[float]:
    """Cumulative start positions (plus the end) of tracks scaled to `extent`."""
    total = sum(sizes) or 1.0
    offsets = [0.0]
    for size in sizes:
        offsets.append(offsets[-1] + size * extent / total)
    return offsets


def table_layout(
    element: "TableElement",
    width: float,
    height: float,
    origin_x: float = 0.0,
    origin_y: float = 0.0,
) -> list[CellBox]:
    """
    Compute the rectangle of every visible cell.

    Args:
        element: The table to lay out
        width: Width of the table area
        height: Height of the table area
        origin_x: X coordinate of the table's top-left corner
        origin_y: Y coordinate of the table's top-left corner

    Returns:
        One CellBox per visible cell, in row-major order
    """
    ys = _offsets(element.row_heights, height)

    if element.row_col_widths is not None:
        return _jagged_layout(element, width, ys, origin_x, origin_y)

    xs = _offsets(element.col_widths, width)
    boxes = []
    for entry in effective_cells(to_canonical(element), element.rows, element.cols):
        fp = entry.footprint
        boxes.append(CellBox(
            index=entry.index,
            row=fp.row,
            col=fp.col,
            row_span=fp.row_span,
            col_span=fp.col_span,
            x=origin_x + xs[fp.col],
            y=origin_y + ys[fp.row],
            width=xs[fp.last_col + 1] - xs[fp.col],
            height=ys[fp.last_row + 1] - ys[fp.row],
        ))
    return boxes


def _jagged_layout(
    element: "TableElement",
    width: float,
    ys: list[float],
    origin_x: float,
    origin_y: float,
) -> list[CellBox]:
    """Row-by-row layout for tables in the jagged per-row form."""
    boxes = []
    index = 0
    for row, count in enumerate(row_lengths(element)[:element.rows]):
        xs = _offsets(element.row_col_widths[row], width)
        for col in range(count):
            boxes.append(CellBox(
                index=index,
                row=row,
                col=col,
                row_span=1,
                col_span=1,
                x=origin_x + xs[col],
                y=origin_y + ys[row],
                width=xs[col + 1] - xs[col],
                height=ys[row + 1] - ys[row],
            ))
            index += 1
    return boxes


def hit_test(boxes: list[CellBox], x: float, y: float) -> int | None:
    """Index of the visible cell under (x, y), if any."""
    for box in boxes:
        left, top, right, bottom = box.bounds()
        if left <= x < right and top <= y < bottom:
            return box.index
    return None
