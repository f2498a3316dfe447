"""
Table Grid Core - Models and algorithms for the diagram table element.

This package provides the grid-cell model used by the backend API and the
MCP tools: coordinate math, the canonical/legacy cell encodings, selection,
merging, splitting, validation and render layout.
"""

from .models import (
    # Enums
    NodeType,
    BorderStyle,
    TextAlign,
    VerticalAlign,
    # Core models
    Cell,
    SpanEntry,
    CellStyle,
    TableElement,
    Node,
    DiagramMetadata,
    Diagram,
    # Request models (for API)
    CreateTableRequest,
    SetDimensionsRequest,
    ResizeTrackRequest,
    CellContentRequest,
    CellStyleRequest,
    SelectCellRequest,
    SplitCellRequest,
    SubdivideRequest,
)

from .config import Config, get_config, set_config
from .grid import Footprint, EffectiveCell, flat_idx_to_row_col, row_col_to_flat_idx, effective_cells
from .spans import (
    to_canonical,
    from_canonical,
    migrate,
    write_back,
    fold_jagged,
    jagged_to_uniform_index,
    uniform_to_jagged_index,
)
from .selection import SelectionTracker
from .merge import merge_selection
from .split import split_cell, subdivide, unmerge, SplitAction, SplitResult, SubdivisionRequest
from .editing import (
    new_table,
    cell_content,
    cell_style,
    cell_color,
    set_cell_content,
    set_cell_style,
    set_cell_color,
    set_dimensions,
    resize_column,
    resize_row,
)
from .validation import validate_table, validation_summary, ValidationIssue, IssueSeverity
from .layout import table_layout, hit_test, CellBox

__all__ = [
    # Enums
    "NodeType",
    "BorderStyle",
    "TextAlign",
    "VerticalAlign",
    # Models
    "Cell",
    "SpanEntry",
    "CellStyle",
    "TableElement",
    "Node",
    "DiagramMetadata",
    "Diagram",
    # Request models
    "CreateTableRequest",
    "SetDimensionsRequest",
    "ResizeTrackRequest",
    "CellContentRequest",
    "CellStyleRequest",
    "SelectCellRequest",
    "SplitCellRequest",
    "SubdivideRequest",
    # Config
    "Config",
    "get_config",
    "set_config",
    # Grid
    "Footprint",
    "EffectiveCell",
    "flat_idx_to_row_col",
    "row_col_to_flat_idx",
    "effective_cells",
    # Encodings
    "to_canonical",
    "from_canonical",
    "migrate",
    "write_back",
    "fold_jagged",
    "jagged_to_uniform_index",
    "uniform_to_jagged_index",
    # Editing
    "SelectionTracker",
    "merge_selection",
    "split_cell",
    "subdivide",
    "unmerge",
    "SplitAction",
    "SplitResult",
    "SubdivisionRequest",
    "new_table",
    "cell_content",
    "cell_style",
    "cell_color",
    "set_cell_content",
    "set_cell_style",
    "set_cell_color",
    "set_dimensions",
    "resize_column",
    "resize_row",
    # Validation
    "validate_table",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Layout
    "table_layout",
    "hit_test",
    "CellBox",
]
