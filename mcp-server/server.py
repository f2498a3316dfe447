#!/usr/bin/env python3
"""
Table Grid MCP Server

Provides MCP tools for AI agents to edit the table elements of a diagram.
All changes are immediately reflected in connected editors via WebSocket updates.
"""

import os
import httpx
from mcp.server.fastmcp import FastMCP
from typing import Optional
import json

# Backend API URL
API_BASE = os.environ.get("TABLEGRID_API_BASE", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("tablegrid")


# --- HTTP Client Helper ---

class APIError(Exception):
    """The backend rejected a request."""


def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the table grid backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        response = client.request(
            method,
            url,
            json=kwargs.get("json"),
            params=kwargs.get("params"),
        )

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise APIError(f"API error: {error}")

        return response.json()


def _dump(result: dict) -> str:
    return json.dumps(result, indent=2)


# ============================================================================
# DIAGRAM TOOLS
# ============================================================================

@mcp.tool()
def table_get_diagram() -> str:
    """
    Get the full current diagram state.

    Returns every node (tables included), the current file path and the
    active cell-edit session. Use this to find table node IDs.
    """
    return _dump(api_request("GET", "/diagram"))


@mcp.tool()
def table_list_diagrams(directory: Optional[str] = None) -> str:
    """
    List diagram files on disk.

    Args:
        directory: Directory to search (defaults to the configured diagrams directory)
    """
    params = {"directory": directory} if directory else None
    return _dump(api_request("GET", "/diagrams", params=params))


@mcp.tool()
def table_open_diagram(file_path: str) -> str:
    """
    Load a diagram from a file as the active diagram.

    Legacy table formats are migrated to the current cell format on load.
    """
    return _dump(api_request("POST", "/diagram/open", json={"file_path": file_path}))


@mcp.tool()
def table_new_diagram(name: str = "Untitled Diagram") -> str:
    """Create a new empty diagram."""
    return _dump(api_request("POST", "/diagram/new", params={"name": name}))


@mcp.tool()
def table_save_diagram(file_path: Optional[str] = None) -> str:
    """
    Save the current diagram.

    Args:
        file_path: Path to save to (uses current path if not specified)
    """
    return _dump(api_request("POST", "/diagram/save", json={"file_path": file_path}))


# ============================================================================
# TABLE TOOLS
# ============================================================================

@mcp.tool()
def table_create(
    rows: Optional[int] = None,
    cols: Optional[int] = None,
    label: str = "Table",
    x: float = 100,
    y: float = 100,
    width: float = 300,
    height: float = 150
) -> str:
    """
    Insert a new table node.

    Args:
        rows: Row count (defaults to the configured size)
        cols: Column count (defaults to the configured size)
        label: Node label
        x: X coordinate on canvas
        y: Y coordinate on canvas
        width: Node width in pixels
        height: Node height in pixels

    Returns the created node with its generated ID.
    """
    payload = {"label": label, "rows": rows, "cols": cols,
               "x": x, "y": y, "width": width, "height": height}
    return _dump(api_request("POST", "/tables", json=payload))


@mcp.tool()
def table_get(node_id: str) -> str:
    """
    Get a table element.

    Cells are listed row-major. Hidden cells (isMerged) belong to the block
    of a master cell above/left of them.
    """
    return _dump(api_request("GET", f"/tables/{node_id}"))


@mcp.tool()
def table_delete(node_id: str) -> str:
    """Delete a table node."""
    return _dump(api_request("DELETE", f"/nodes/{node_id}"))


@mcp.tool()
def table_set_dimensions(node_id: str, rows: int, cols: int) -> str:
    """
    Change the row and column count.

    Cells that still fit keep their content; spans are clipped to the new size.
    """
    return _dump(api_request("PUT", f"/tables/{node_id}/dimensions",
                             json={"rows": rows, "cols": cols}))


@mcp.tool()
def table_resize_column(node_id: str, index: int, delta: float) -> str:
    """
    Widen (positive delta) or narrow a column by `delta` percentage points.

    The neighbouring column absorbs the change; no column goes below the
    configured minimum width.
    """
    return _dump(api_request("POST", f"/tables/{node_id}/columns/resize",
                             json={"index": index, "delta": delta}))


@mcp.tool()
def table_resize_row(node_id: str, index: int, delta: float) -> str:
    """Grow (positive delta) or shrink a row by `delta` percentage points."""
    return _dump(api_request("POST", f"/tables/{node_id}/rows/resize",
                             json={"index": index, "delta": delta}))


@mcp.tool()
def table_set_cell_text(node_id: str, index: int, text: str) -> str:
    """
    Set the text of a cell.

    Args:
        node_id: Table node ID
        index: Flat row-major cell index (row * cols + col)
        text: New content
    """
    return _dump(api_request("PUT", f"/tables/{node_id}/cells/{index}/content",
                             json={"text": text}))


@mcp.tool()
def table_style_cell(
    node_id: str,
    index: int,
    color: Optional[str] = None,
    text_align: Optional[str] = None,
    vertical_align: Optional[str] = None,
    bold: Optional[bool] = None,
    italic: Optional[bool] = None,
    font_size: Optional[float] = None,
    text_color: Optional[str] = None,
    border_style: Optional[str] = None
) -> str:
    """
    Update the style of a cell. Only provided fields are changed.

    Args:
        color: Background color (hex)
        text_align: left, center or right
        vertical_align: top, middle or bottom
        bold, italic: Font flags
        font_size: Font size in pixels
        text_color: Text color (hex)
        border_style: solid, dashed, dotted or none
    """
    style = {
        key: value for key, value in {
            "text_align": text_align,
            "vertical_align": vertical_align,
            "bold": bold,
            "italic": italic,
            "font_size": font_size,
            "text_color": text_color,
            "border_style": border_style,
        }.items() if value is not None
    }
    return _dump(api_request("PATCH", f"/tables/{node_id}/cells/{index}/style",
                             json={"style": style, "color": color}))


@mcp.tool()
def table_merge_cells(node_id: str, cell_indices: list[int]) -> str:
    """
    Merge cells into one block.

    The block is the bounding rectangle of the given cells, grown so it does
    not cut through an existing merged block. The top-left cell keeps its text.
    """
    if not cell_indices:
        return _dump({"success": False, "error": "No cells given"})

    api_request("POST", f"/tables/{node_id}/edit")
    api_request("POST", "/edit/select", json={"index": cell_indices[0]})
    for index in cell_indices[1:]:
        api_request("POST", "/edit/select", json={"index": index, "toggle": True})
    result = api_request("POST", "/edit/merge")
    api_request("DELETE", "/edit")
    return _dump(result)


@mcp.tool()
def table_unmerge_cell(node_id: str, index: int) -> str:
    """
    Break a merged block back into single cells.

    Does nothing for a cell that is not merged; use table_subdivide_cell to
    cut a single cell.
    """
    api_request("POST", f"/tables/{node_id}/edit")
    result = api_request("POST", "/edit/split", json={"index": index})
    if result.get("pending_subdivision"):
        api_request("DELETE", "/edit/subdivision")
        result["changed"] = False
        result["pending_subdivision"] = None
    api_request("DELETE", "/edit")
    return _dump(result)


@mcp.tool()
def table_subdivide_cell(node_id: str, index: int, split_rows: int = 2, split_cols: int = 1) -> str:
    """
    Cut a cell into split_rows x split_cols cells.

    The row and column of the cell are split in the whole table; other cells
    on those tracks are stretched over the new tracks so the rest of the
    table looks the same. A merged block is cut along its first row and
    column.
    """
    return _dump(api_request("POST", f"/tables/{node_id}/cells/{index}/subdivide",
                             json={"split_rows": split_rows, "split_cols": split_cols}))


@mcp.tool()
def table_layout(node_id: str, width: Optional[float] = None, height: Optional[float] = None) -> str:
    """Get the pixel rectangle of every visible cell (defaults to the node's size)."""
    params = {}
    if width is not None:
        params["width"] = width
    if height is not None:
        params["height"] = height
    return _dump(api_request("GET", f"/tables/{node_id}/layout", params=params or None))


@mcp.tool()
def table_validate(node_id: str) -> str:
    """
    Check a table for structural problems.

    Reports overlapping or uncovered merged blocks, track sizes that do not
    add up to 100%, content stored in hidden cells, and similar issues.
    """
    return _dump(api_request("GET", f"/tables/{node_id}/validate"))


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    mcp.run()
