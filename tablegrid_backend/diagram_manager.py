"""
Diagram Manager - Diagram state, table editing sessions, and persistence.

This module implements:
- Single diagram state management (one diagram open at a time)
- O(1) node lookups via an index dictionary
- The cell-edit session: which table is being edited, its selection and
  any subdivision waiting for parameters
- Settle-based change notification (transient drags notify once, on settle)
- JSON file persistence
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Callable

from tablegrid import (
    CellStyle,
    Diagram,
    Node,
    NodeType,
    SelectionTracker,
    SplitAction,
    SplitResult,
    SubdivisionRequest,
    TableElement,
    get_config,
    merge_selection as core_merge_selection,
    new_table,
    resize_column as core_resize_column,
    resize_row as core_resize_row,
    set_cell_color as core_set_cell_color,
    set_cell_content as core_set_cell_content,
    set_cell_style as core_set_cell_style,
    set_dimensions as core_set_dimensions,
    split_cell as core_split_cell,
    subdivide as core_subdivide,
)

logger = logging.getLogger(__name__)


class PendingSubdivision:
    """A subdivision waiting for row/column counts from the user."""

    def __init__(self, node_id: str, request: SubdivisionRequest,
                 selection_version: int, revision: int):
        self.node_id = node_id
        self.request = request
        self.selection_version = selection_version
        self.revision = revision

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "cell_index": self.request.cell_index,
            "split_rows": self.request.split_rows,
            "split_cols": self.request.split_cols,
        }


class DiagramManager:
    """
    Manages a single diagram's state, table editing, and persistence.

    Features:
    - O(1) node lookups via an index dictionary
    - At most one table in cell-edit mode, with its SelectionTracker
    - Pending subdivisions that are dropped when their table or selection
      changes before they are confirmed
    - Change callbacks for real-time sync, called with the changed node id

    Table edits update the element immediately. Discrete edits (merge,
    split, content, dimensions) notify listeners right away; continuous
    ones (row/column drags) only when the interaction settles.
    """

    def __init__(self):
        self._diagram: Optional[Diagram] = None
        self._file_path: Optional[Path] = None
        self._dirty = False  # True if unsaved changes exist
        self._on_change_callbacks: list[Callable] = []
        self._on_save_callbacks: list[Callable] = []  # Called after successful save

        self._node_index: dict[str, Node] = {}   # node_id -> Node
        self._revisions: dict[str, int] = {}     # node_id -> edit counter
        self._unsettled: set[str] = set()        # node_ids with transient edits

        # Cell-edit session
        self._selection: Optional[SelectionTracker] = None
        self._pending: Optional[PendingSubdivision] = None

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild the node index from the current diagram state."""
        self._node_index.clear()
        self._revisions.clear()
        self._unsettled.clear()
        if self._diagram is None:
            return
        for node in self._diagram.nodes:
            self._node_index[node.id] = node

    def _reset_session(self):
        self._selection = None
        self._pending = None

    # --- Properties ---

    @property
    def diagram(self) -> Optional[Diagram]:
        """Get the current diagram."""
        return self._diagram

    @property
    def file_path(self) -> Optional[Path]:
        """Get the current file path."""
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def editing_node_id(self) -> Optional[str]:
        """The table currently in cell-edit mode, if any."""
        return self._selection.element_id if self._selection else None

    @property
    def selection(self) -> Optional[SelectionTracker]:
        return self._selection

    @property
    def pending_subdivision(self) -> Optional[PendingSubdivision]:
        return self._pending

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for diagram changes.

        Callback receives the id of the changed node, or None when the
        whole diagram changed (new/open).
        """
        self._on_change_callbacks.append(callback)

    def _notify_change(self, node_id: Optional[str] = None):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            try:
                callback(node_id)
            except Exception:
                logger.warning("Change callback failed", exc_info=True)

    # --- Save Callbacks ---

    def on_save(self, callback: Callable):
        """Register a callback for diagram saves.

        Callback receives (path: Path, diagram_info: dict) where diagram_info contains:
        - name: diagram name
        - node_count: number of nodes
        - table_count: number of table nodes
        """
        self._on_save_callbacks.append(callback)

    def _notify_save(self, path: Path):
        """Notify all registered callbacks of a successful save."""
        if not self._on_save_callbacks or self._diagram is None:
            return

        diagram_info = {
            "name": self._diagram.name,
            "node_count": len(self._diagram.nodes),
            "table_count": len([n for n in self._diagram.nodes if n.is_table]),
        }

        for callback in self._on_save_callbacks:
            try:
                callback(path, diagram_info)
            except Exception:
                logger.warning("Save callback failed for %s", path, exc_info=True)

    # --- File Operations ---

    def new_diagram(self, name: str = "Untitled Diagram") -> Diagram:
        """Create a new empty diagram."""
        self._diagram = Diagram(name=name)
        self._file_path = None
        self._dirty = False
        self._rebuild_indexes()
        self._reset_session()
        self._notify_change()
        return self._diagram

    def open_diagram(self, file_path: str | Path) -> Diagram:
        """Open a diagram from a JSON file (legacy table encodings are migrated)."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Diagram file not found: {path}")

        with open(path, 'r') as f:
            data = json.load(f)

        self._diagram = Diagram.from_json_dict(data)
        self._file_path = path
        self._dirty = False
        self._rebuild_indexes()
        self._reset_session()
        logger.info("Opened %s (%d nodes)", path, len(self._diagram.nodes))
        self._notify_change()
        return self._diagram

    def save_diagram(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the diagram to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if self._diagram is None:
            raise ValueError("No diagram to save")

        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        self._diagram.metadata.updated_at = datetime.utcnow()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(self._diagram.to_json_dict(), f, indent=2)

        self._file_path = path
        self._dirty = False
        logger.info("Saved diagram to %s", path)

        self._notify_save(path)
        return path

    # --- Node Operations ---

    def add_table(self, rows: Optional[int] = None, cols: Optional[int] = None,
                  label: str = "Table", **kwargs) -> Node:
        """Insert a new table node (rows/cols default to the configured size)."""
        if self._diagram is None:
            raise ValueError("No diagram open")

        node = Node(label=label, type=NodeType.TABLE.value,
                    table=new_table(rows, cols), **kwargs)
        self._diagram.nodes.append(node)
        self._node_index[node.id] = node
        self._dirty = True
        self._notify_change(node.id)
        return node

    def delete_node(self, node_id: str) -> bool:
        """Delete a node; ends its cell-edit session if it had one."""
        if self._diagram is None:
            raise ValueError("No diagram open")

        node = self._node_index.pop(node_id, None)
        if node is None:
            return False

        self._diagram.nodes = [n for n in self._diagram.nodes if n.id != node_id]
        self._revisions.pop(node_id, None)
        self._unsettled.discard(node_id)
        if self.editing_node_id == node_id:
            self._reset_session()

        self._dirty = True
        self._notify_change(node_id)
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def get_table(self, node_id: str) -> TableElement:
        """Get the table of a node, raising ValueError if there is none."""
        if self._diagram is None:
            raise ValueError("No diagram open")
        node = self._node_index.get(node_id)
        if node is None:
            raise ValueError(f"Node not found: {node_id}")
        if node.table is None:
            raise ValueError(f"Node is not a table: {node_id}")
        return node.table

    # --- Change bookkeeping ---

    def _touched(self, node_id: str, settle: bool = True):
        """Record an edit of a node's table."""
        self._revisions[node_id] = self._revisions.get(node_id, 0) + 1
        self._dirty = True
        if settle:
            self._unsettled.discard(node_id)
            self._notify_change(node_id)
        else:
            self._unsettled.add(node_id)

    def settle(self, node_id: str) -> bool:
        """End a continuous interaction, notifying listeners once."""
        if node_id not in self._unsettled:
            return False
        self._unsettled.discard(node_id)
        self._notify_change(node_id)
        return True

    # --- Cell-edit Session ---

    def begin_cell_edit(self, node_id: str) -> SelectionTracker:
        """Put a table into cell-edit mode (ending any other table's session)."""
        self.get_table(node_id)
        if self.editing_node_id != node_id:
            self._reset_session()
            self._selection = SelectionTracker(node_id)
        return self._selection

    def end_cell_edit(self):
        """Leave cell-edit mode; drops the selection and any pending subdivision."""
        self._reset_session()

    def _session_table(self) -> tuple[str, TableElement]:
        if self._selection is None:
            raise ValueError("No table is in cell-edit mode")
        node_id = self._selection.element_id
        return node_id, self.get_table(node_id)

    def select_cell(self, index: int, extend: bool = False, toggle: bool = False) -> list[int]:
        """
        Update the selection of the table being edited.

        A plain click replaces the selection, `extend` selects the rectangle
        from the anchor (drag), `toggle` adds/removes a single cell.
        """
        _, table = self._session_table()
        if extend:
            self._selection.drag_to(index, table)
        elif toggle:
            self._selection.toggle(index)
        else:
            self._selection.click(index)
        return self._selection.selected

    def clear_selection(self):
        if self._selection is not None:
            self._selection.clear()

    # --- Table Operations ---

    def merge_selection(self) -> bool:
        """Merge the selected cells of the table being edited."""
        node_id, table = self._session_table()
        if not core_merge_selection(table, self._selection.selected):
            return False
        self._selection.clear()
        self._touched(node_id)
        return True

    def split_cell(self, index: int) -> SplitResult:
        """
        Split a cell of the table being edited.

        Merged blocks are unmerged immediately. For a plain cell the
        subdivision request is kept pending until `confirm_subdivision`.
        """
        node_id, table = self._session_table()
        self._pending = None
        result = core_split_cell(table, index)
        if result.action == SplitAction.PENDING:
            self._pending = PendingSubdivision(
                node_id,
                result.request,
                self._selection.version,
                self._revisions.get(node_id, 0),
            )
        elif result.changed:
            self._selection.clear()
            self._touched(node_id)
        return result

    def confirm_subdivision(self, split_rows: Optional[int] = None,
                            split_cols: Optional[int] = None) -> bool:
        """
        Apply the pending subdivision.

        Returns False without changing anything if there is no pending
        request, or if its table or the selection changed since it was made.
        """
        pending = self._pending
        self._pending = None
        if pending is None:
            return False
        if (
            self.editing_node_id != pending.node_id
            or self._selection.version != pending.selection_version
            or self._revisions.get(pending.node_id, 0) != pending.revision
            or pending.node_id not in self._node_index
        ):
            logger.info("Dropping stale subdivision request for %s", pending.node_id)
            return False

        rows = pending.request.split_rows if split_rows is None else split_rows
        cols = pending.request.split_cols if split_cols is None else split_cols
        return self.subdivide(pending.node_id, pending.request.cell_index, rows, cols)

    def cancel_subdivision(self):
        self._pending = None

    def subdivide(self, node_id: str, index: int, split_rows: int, split_cols: int) -> bool:
        """Subdivide a cell of any table node."""
        table = self.get_table(node_id)
        if not core_subdivide(table, index, split_rows, split_cols):
            return False
        if self.editing_node_id == node_id:
            self._selection.clear()
        self._touched(node_id)
        return True

    def set_dimensions(self, node_id: str, rows: int, cols: int) -> bool:
        table = self.get_table(node_id)
        if not core_set_dimensions(table, rows, cols):
            return False
        if self.editing_node_id == node_id:
            self._selection.clear()
        self._touched(node_id)
        return True

    def resize_column(self, node_id: str, index: int, delta: float, settle: bool = True) -> bool:
        """Drag a column border; with settle=False listeners wait for `settle`."""
        table = self.get_table(node_id)
        if not core_resize_column(table, index, delta):
            if settle:
                self.settle(node_id)
            return False
        self._touched(node_id, settle=settle)
        return True

    def resize_row(self, node_id: str, index: int, delta: float, settle: bool = True) -> bool:
        """Drag a row border; with settle=False listeners wait for `settle`."""
        table = self.get_table(node_id)
        if not core_resize_row(table, index, delta):
            if settle:
                self.settle(node_id)
            return False
        self._touched(node_id, settle=settle)
        return True

    def set_cell_content(self, node_id: str, index: int, text: str) -> bool:
        table = self.get_table(node_id)
        if not core_set_cell_content(table, index, text):
            return False
        self._touched(node_id)
        return True

    def set_cell_style(self, node_id: str, index: int, style: CellStyle,
                       color: Optional[str] = None) -> bool:
        """Apply the fields set on `style` (and optionally a background color)."""
        table = self.get_table(node_id)
        fields = style.model_dump(exclude_unset=True)
        changed = bool(fields) and core_set_cell_style(table, index, **fields)
        if color is not None:
            changed = core_set_cell_color(table, index, color) or changed
        if changed:
            self._touched(node_id)
        return changed

    # --- State ---

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        if self._diagram is None:
            return {
                "diagram": None,
                "file_path": None,
                "is_dirty": False,
                "editing": None,
            }

        return {
            "diagram": self._diagram.to_json_dict(),
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
            "editing": self.get_session(),
        }

    def get_session(self) -> Optional[dict]:
        """Describe the current cell-edit session."""
        if self._selection is None:
            return None
        return {
            "node_id": self._selection.element_id,
            "selected": self._selection.selected,
            "anchor": self._selection.anchor,
            "pending_subdivision": self._pending.to_dict() if self._pending else None,
        }

    def default_directory(self) -> Path:
        return get_config().diagrams_dir


# Global instance for the application
diagram_manager = DiagramManager()
