"""
Core data models for diagrams and their embedded tables.

These models define the canonical schema:
- Nodes with visual properties; table nodes carry a TableElement
- TableElement: the grid of cells with row/column sizing and merge spans
- Cells in the canonical ("V2") form, plus the legacy span entries
- A structured per-cell style record

Field Naming Convention:
- Python attributes are snake_case
- JSON serialization uses the camelCase keys saved documents already contain
  (`tableRows`, `tableCellDataV2`, `rowSpan`, ...)
- Snake_case keys are accepted on input as well
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator
import uuid


class NodeType(str, Enum):
    """Logical types for nodes (semantic meaning)."""
    COMPONENT = "component"
    NOTE = "note"
    TABLE = "table"


class BorderStyle(str, Enum):
    """Border styles for cells."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"
    NONE = "none"


class TextAlign(str, Enum):
    """Horizontal alignment of cell text."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlign(str, Enum):
    """Vertical alignment of cell text."""
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def _rename_keys(data: Any, mapping: dict[str, str]) -> Any:
    """Rename camelCase input keys to attribute names (snake_case wins)."""
    if isinstance(data, dict):
        data = dict(data)
        for legacy, name in mapping.items():
            if legacy in data and name not in data:
                data[name] = data.pop(legacy)
            else:
                data.pop(legacy, None)
    return data


def _coerce_span(value: Any, minimum: int) -> int:
    """Read a span count, falling back to 1 for anything unusable."""
    if isinstance(value, bool):
        return 1
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < minimum:
        return 1
    return value


class CellStyle(BaseModel):
    """
    Per-cell style overrides.

    Every field is optional; None means "inherit the table default".
    Legacy documents stored an open map of camelCase keys; those are
    accepted and any key not listed here is dropped.
    """
    text_align: Optional[TextAlign] = None
    vertical_align: Optional[VerticalAlign] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    text_color: Optional[str] = None
    border_style: Optional[BorderStyle] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = Field(default=None, ge=0)
    border_radius: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Map legacy style-map keys onto the structured fields."""
        data = _rename_keys(data, {
            "textAlign": "text_align",
            "verticalAlign": "vertical_align",
            "fontWeight": "bold",
            "fontStyle": "italic",
            "fontSize": "font_size",
            "color": "text_color",
            "borderStyle": "border_style",
            "borderColor": "border_color",
            "borderWidth": "border_width",
            "borderRadius": "border_radius",
        })
        if isinstance(data, dict):
            # CSS-flavoured values from the old style map
            if data.get("bold") == "bold":
                data["bold"] = True
            elif data.get("bold") == "normal":
                data["bold"] = False
            if data.get("italic") == "italic":
                data["italic"] = True
            elif data.get("italic") == "normal":
                data["italic"] = False
            for name in ("font_size", "border_width", "border_radius"):
                value = data.get(name)
                if isinstance(value, str):
                    try:
                        data[name] = float(value.strip().removesuffix("px"))
                    except ValueError:
                        data[name] = None
            for name, enum in (("text_align", TextAlign),
                               ("vertical_align", VerticalAlign),
                               ("border_style", BorderStyle)):
                value = data.get(name)
                if value is not None and value not in [e.value for e in enum]:
                    data[name] = None
            data = {k: v for k, v in data.items() if k in cls.model_fields}
        return data

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())

    def to_json_dict(self) -> dict:
        """Convert to a JSON dict, omitting unset fields."""
        keys = {
            "text_align": "textAlign",
            "vertical_align": "verticalAlign",
            "bold": "bold",
            "italic": "italic",
            "font_size": "fontSize",
            "text_color": "textColor",
            "border_style": "borderStyle",
            "border_color": "borderColor",
            "border_width": "borderWidth",
            "border_radius": "borderRadius",
        }
        result = {}
        for name, value in self.model_dump(mode="json").items():
            if value is not None:
                result[keys[name]] = value
        return result


class Cell(BaseModel):
    """
    A cell in the canonical grid.

    A cell with is_merged=False is a master occupying row_span x col_span
    coordinates starting at its own; the other coordinates of that
    footprint hold slaves (is_merged=True, spans of 1, empty content).
    """
    content: str = ""
    row_span: int = 1
    col_span: int = 1
    is_merged: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        data = _rename_keys(data, {
            "rowSpan": "row_span",
            "colSpan": "col_span",
            "isMerged": "is_merged",
        })
        if isinstance(data, dict):
            data["row_span"] = _coerce_span(data.get("row_span", 1), 1)
            data["col_span"] = _coerce_span(data.get("col_span", 1), 1)
            if data.get("content") is None:
                data["content"] = ""
        return data

    @property
    def is_master(self) -> bool:
        return not self.is_merged

    @property
    def is_spanning(self) -> bool:
        """True for a master covering more than its own coordinate."""
        return not self.is_merged and (self.row_span > 1 or self.col_span > 1)

    def to_json_dict(self) -> dict:
        return {
            "content": self.content,
            "rowSpan": self.row_span,
            "colSpan": self.col_span,
            "isMerged": self.is_merged,
        }


class SpanEntry(BaseModel):
    """
    A span in the legacy parallel-array encoding.

    {0, 0} is the sentinel for a hidden (slave) cell.
    """
    row_span: int = 1
    col_span: int = 1

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        data = _rename_keys(data, {"rowSpan": "row_span", "colSpan": "col_span"})
        if isinstance(data, dict):
            data["row_span"] = _coerce_span(data.get("row_span", 1), 0)
            data["col_span"] = _coerce_span(data.get("col_span", 1), 0)
        return data

    @property
    def is_hidden(self) -> bool:
        return self.row_span == 0 and self.col_span == 0

    def to_json_dict(self) -> dict:
        return {"rowSpan": self.row_span, "colSpan": self.col_span}


class TableElement(BaseModel):
    """
    An embeddable table: a rows x cols grid of cells.

    `cells` is the canonical representation; `legacy_content` and
    `legacy_spans` are the backward-compatible parallel arrays and are
    rewritten together with it. `row_col_widths` is only set while the
    table is in the jagged row-local form.
    """
    rows: int = Field(default=3, ge=1)
    cols: int = Field(default=3, ge=1)
    col_widths: list[float] = Field(default_factory=list)    # percentages, sum 100
    row_heights: list[float] = Field(default_factory=list)   # percentages, sum 100
    cells: Optional[list[Cell]] = None                       # None = re-derive on read
    legacy_content: list[str] = Field(default_factory=list)
    legacy_spans: Optional[list[Optional[SpanEntry]]] = None
    cell_colors: list[Optional[str]] = Field(default_factory=list)
    cell_styles: list[CellStyle] = Field(default_factory=list)
    row_col_widths: Optional[list[list[float]]] = None       # jagged row-local form

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept the camelCase keys used by saved documents."""
        data = _rename_keys(data, {
            "tableRows": "rows",
            "tableCols": "cols",
            "tableColWidths": "col_widths",
            "tableRowHeights": "row_heights",
            "tableCellDataV2": "cells",
            "tableCellData": "legacy_content",
            "tableCellSpans": "legacy_spans",
            "tableCellColors": "cell_colors",
            "tableCellStyles": "cell_styles",
            "tableRowColWidths": "row_col_widths",
        })
        if isinstance(data, dict):
            if data.get("legacy_content") is not None:
                data["legacy_content"] = [
                    "" if c is None else str(c) for c in data["legacy_content"]
                ]
            styles = data.get("cell_styles")
            if styles is not None:
                data["cell_styles"] = [s if s is not None else {} for s in styles]
        return data

    @field_validator('legacy_spans', mode='before')
    @classmethod
    def drop_malformed_spans(cls, value: Any) -> Any:
        """Malformed span entries become None (read as {1, 1})."""
        if isinstance(value, list):
            return [v if isinstance(v, (dict, SpanEntry)) else None for v in value]
        return value

    @property
    def total_cells(self) -> int:
        return self.rows * self.cols

    @property
    def is_jagged(self) -> bool:
        return self.row_col_widths is not None

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with the saved-document keys."""
        result = {
            "tableRows": self.rows,
            "tableCols": self.cols,
            "tableColWidths": list(self.col_widths),
            "tableRowHeights": list(self.row_heights),
            "tableCellData": list(self.legacy_content),
            "tableCellColors": list(self.cell_colors),
            "tableCellStyles": [s.to_json_dict() for s in self.cell_styles],
        }
        if self.cells:
            result["tableCellDataV2"] = [c.to_json_dict() for c in self.cells]
        if self.legacy_spans is not None:
            result["tableCellSpans"] = [
                s.to_json_dict() if s is not None else None for s in self.legacy_spans
            ]
        if self.row_col_widths is not None:
            result["tableRowColWidths"] = [list(r) for r in self.row_col_widths]
        return result


class Node(BaseModel):
    """A node in the diagram."""
    id: str = Field(default_factory=generate_node_id)
    label: str = "New Node"
    type: str = NodeType.COMPONENT.value
    color: str = "#3478f6"
    x: float = 100
    y: float = 100
    width: float = 150
    height: float = 80
    z_index: int = 0  # Lower = further back
    table: Optional[TableElement] = None  # Only for type == "table"

    @property
    def is_table(self) -> bool:
        return self.table is not None

    def to_json_dict(self) -> dict:
        result = self.model_dump(exclude={"table"})
        if self.table is not None:
            result["table"] = self.table.to_json_dict()
        return result


class DiagramMetadata(BaseModel):
    """Metadata about the diagram."""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Diagram(BaseModel):
    """
    The complete diagram structure.
    This is what gets saved to/loaded from JSON files.
    """
    id: str = Field(default_factory=lambda: f"diagram-{uuid.uuid4().hex[:8]}")
    name: str = "Untitled Diagram"
    nodes: list[Node] = Field(default_factory=list)
    metadata: DiagramMetadata = Field(default_factory=DiagramMetadata)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with proper field names."""
        return {
            "id": self.id,
            "name": self.name,
            "nodes": [n.to_json_dict() for n in self.nodes],
            "metadata": {
                "created_at": self.metadata.created_at.isoformat(),
                "updated_at": self.metadata.updated_at.isoformat(),
            }
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "Diagram":
        """
        Create a Diagram from a JSON dict.

        Table nodes are run through the legacy-encoding migration so that
        everything downstream works on the canonical cell array.
        """
        from .config import get_config
        from .spans import migrate

        keep_jagged = get_config().row_local_merge
        nodes = [Node(**n) for n in data.get('nodes', [])]
        for node in nodes:
            if node.table is not None:
                migrate(node.table, keep_jagged=keep_jagged)

        meta_data = data.get('metadata', {})
        metadata = DiagramMetadata(
            created_at=datetime.fromisoformat(meta_data['created_at']) if 'created_at' in meta_data else datetime.utcnow(),
            updated_at=datetime.fromisoformat(meta_data['updated_at']) if 'updated_at' in meta_data else datetime.utcnow(),
        )

        return cls(
            id=data.get('id', f"diagram-{uuid.uuid4().hex[:8]}"),
            name=data.get('name', 'Untitled Diagram'),
            nodes=nodes,
            metadata=metadata
        )

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(n) - use DiagramManager for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# --- API Request/Response Models ---

class CreateTableRequest(BaseModel):
    """Request to insert a new table node."""
    label: str = "Table"
    rows: Optional[int] = Field(default=None, ge=1)
    cols: Optional[int] = Field(default=None, ge=1)
    x: float = 100
    y: float = 100
    width: float = 300
    height: float = 150


class SetDimensionsRequest(BaseModel):
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)


class ResizeTrackRequest(BaseModel):
    """Drag a column or row border by `delta` percentage points."""
    index: int = Field(ge=0)
    delta: float
    settle: bool = True  # False while the drag is still in progress


class CellContentRequest(BaseModel):
    text: str


class CellStyleRequest(BaseModel):
    """Partial style update; unset fields are left alone."""
    style: CellStyle
    color: Optional[str] = None


class SelectCellRequest(BaseModel):
    index: int = Field(ge=0)
    extend: bool = False  # drag-extend from the anchor
    toggle: bool = False  # freeform add/remove


class SplitCellRequest(BaseModel):
    index: int = Field(ge=0)


class SubdivideRequest(BaseModel):
    split_rows: int = Field(default=2, ge=1)
    split_cols: int = Field(default=1, ge=1)
