"""
Table Grid Backend - FastAPI Application

This is the main entry point for the table editing backend.
It provides:
- REST API for diagram file ops and table edits (merge, split, subdivide,
  resize, content and style)
- The cell-edit session (selection, pending subdivision) for one table
- WebSocket endpoint broadcasting settled table edits
- CORS configuration for local frontend development
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tablegrid import (
    CellContentRequest,
    CellStyleRequest,
    CreateTableRequest,
    ResizeTrackRequest,
    SelectCellRequest,
    SetDimensionsRequest,
    SplitCellRequest,
    SubdivideRequest,
    TableElement,
    get_config,
    table_layout,
    validate_table,
    validation_summary,
)
from .diagram_manager import diagram_manager
from .websocket_manager import ws_manager

logger = logging.getLogger(__name__)


# --- Async change notification ---
# Bridge between sync DiagramManager callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()
_changed_nodes: set[Optional[str]] = set()


def on_diagram_change(node_id: Optional[str]):
    """Callback for settled changes - queues the node and wakes the broadcaster."""
    _changed_nodes.add(node_id)
    _change_event.set()


async def broadcast_pending_changes():
    """Send one message per queued node (the whole table element) or diagram."""
    changed = set(_changed_nodes)
    _changed_nodes.clear()

    for node_id in changed:
        if node_id is None:
            diagram = diagram_manager.diagram
            await ws_manager.notify_diagram_updated(diagram.id if diagram else None)
            continue
        node = diagram_manager.get_node(node_id)
        table = node.table.to_json_dict() if node is not None and node.table is not None else None
        await ws_manager.notify_table_updated(node_id, table)


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()
        await broadcast_pending_changes()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    logging.basicConfig(
        level=get_config().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    diagram_manager.on_change(on_diagram_change)
    broadcaster_task = asyncio.create_task(change_broadcaster())

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- FastAPI App ---

app = FastAPI(
    title="Table Grid API",
    description="Backend API for editing table elements of a diagram",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _table(node_id: str) -> TableElement:
    """Look up a table node, mapping lookup failures to HTTP errors."""
    if diagram_manager.diagram is None:
        raise HTTPException(status_code=400, detail="No diagram open")
    node = diagram_manager.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    if node.table is None:
        raise HTTPException(status_code=400, detail="Node is not a table")
    return node.table


def _table_response(node_id: str, changed: bool, **extra) -> dict:
    return {
        "success": True,
        "changed": changed,
        "table": _table(node_id).to_json_dict(),
        **extra
    }


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Diagram State ---

@app.get("/api/diagram")
async def get_diagram():
    """Get the current diagram state."""
    return diagram_manager.get_state()


# --- File Operations ---

@app.post("/api/diagram/new")
async def new_diagram(name: str = Query(default="Untitled Diagram")):
    """Create a new empty diagram."""
    diagram = diagram_manager.new_diagram(name=name)
    return {"success": True, "diagram": diagram.to_json_dict()}


class OpenDiagramRequest(BaseModel):
    file_path: str


@app.post("/api/diagram/open")
async def open_diagram(request: OpenDiagramRequest):
    """Open a diagram from a JSON file."""
    try:
        diagram = diagram_manager.open_diagram(request.file_path)
        return {
            "success": True,
            "diagram": diagram.to_json_dict(),
            "file_path": str(diagram_manager.file_path)
        }
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to open diagram: {e}")


class SaveDiagramRequest(BaseModel):
    file_path: Optional[str] = None


@app.post("/api/diagram/save")
async def save_diagram(request: SaveDiagramRequest):
    """Save the diagram to a JSON file."""
    try:
        path = diagram_manager.save_diagram(request.file_path)
        return {"success": True, "file_path": str(path)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")


@app.get("/api/diagrams")
async def list_diagrams(directory: Optional[str] = Query(default=None)):
    """List diagram files in a directory."""
    path = Path(directory) if directory else diagram_manager.default_directory()
    if not path.exists():
        return {"success": True, "diagrams": []}

    diagrams = []
    for f in sorted(path.glob("*.json")):
        try:
            with open(f) as file:
                data = json.load(file)
        except (OSError, json.JSONDecodeError):
            logger.debug("Skipping unreadable diagram file %s", f)
            continue
        nodes = data.get("nodes", [])
        diagrams.append({
            "path": str(f),
            "name": data.get("name", f.stem),
            "nodes": len(nodes),
            "tables": len([n for n in nodes if n.get("table")])
        })

    return {"success": True, "diagrams": diagrams}


# --- Table Nodes ---

@app.post("/api/tables")
async def create_table(request: CreateTableRequest):
    """Insert a new table node."""
    try:
        node = diagram_manager.add_table(
            rows=request.rows,
            cols=request.cols,
            label=request.label,
            x=request.x,
            y=request.y,
            width=request.width,
            height=request.height
        )
        return {"success": True, "node": node.to_json_dict()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/tables/{node_id}")
async def get_table(node_id: str):
    """Get a table element."""
    return {"success": True, "table": _table(node_id).to_json_dict()}


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str):
    """Delete a node (and its table)."""
    try:
        if diagram_manager.delete_node(node_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Node not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/tables/{node_id}/dimensions")
async def set_dimensions(node_id: str, request: SetDimensionsRequest):
    """Change the row/column count of a table."""
    _table(node_id)
    changed = diagram_manager.set_dimensions(node_id, request.rows, request.cols)
    return _table_response(node_id, changed)


@app.post("/api/tables/{node_id}/columns/resize")
async def resize_column(node_id: str, request: ResizeTrackRequest):
    """Drag a column border. Send settle=false while dragging, then settle."""
    _table(node_id)
    changed = diagram_manager.resize_column(node_id, request.index, request.delta, settle=request.settle)
    return _table_response(node_id, changed)


@app.post("/api/tables/{node_id}/rows/resize")
async def resize_row(node_id: str, request: ResizeTrackRequest):
    """Drag a row border. Send settle=false while dragging, then settle."""
    _table(node_id)
    changed = diagram_manager.resize_row(node_id, request.index, request.delta, settle=request.settle)
    return _table_response(node_id, changed)


@app.post("/api/tables/{node_id}/settle")
async def settle_table(node_id: str):
    """Finish a continuous interaction and broadcast the table."""
    _table(node_id)
    return {"success": True, "broadcast": diagram_manager.settle(node_id)}


@app.put("/api/tables/{node_id}/cells/{index}/content")
async def set_cell_content(node_id: str, index: int, request: CellContentRequest):
    """Set the text of a cell."""
    _table(node_id)
    changed = diagram_manager.set_cell_content(node_id, index, request.text)
    return _table_response(node_id, changed)


@app.patch("/api/tables/{node_id}/cells/{index}/style")
async def set_cell_style(node_id: str, index: int, request: CellStyleRequest):
    """Update style overrides (and optionally the background color) of a cell."""
    _table(node_id)
    changed = diagram_manager.set_cell_style(node_id, index, request.style, request.color)
    return _table_response(node_id, changed)


@app.post("/api/tables/{node_id}/cells/{index}/subdivide")
async def subdivide_cell(node_id: str, index: int, request: SubdivideRequest):
    """Cut a cell into split_rows x split_cols cells."""
    _table(node_id)
    changed = diagram_manager.subdivide(node_id, index, request.split_rows, request.split_cols)
    return _table_response(node_id, changed)


@app.get("/api/tables/{node_id}/layout")
async def get_table_layout(
    node_id: str,
    width: Optional[float] = Query(default=None, gt=0),
    height: Optional[float] = Query(default=None, gt=0)
):
    """Cell rectangles for rendering (defaults to the node's size)."""
    table = _table(node_id)
    node = diagram_manager.get_node(node_id)
    boxes = table_layout(
        table,
        width if width is not None else node.width,
        height if height is not None else node.height,
    )
    return {"success": True, "cells": [box.to_dict() for box in boxes]}


@app.get("/api/tables/{node_id}/validate")
async def validate_table_endpoint(node_id: str):
    """
    Validate a table.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = validate_table(_table(node_id))
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Cell-edit Session ---

@app.post("/api/tables/{node_id}/edit")
async def begin_cell_edit(node_id: str):
    """Put a table into cell-edit mode."""
    _table(node_id)
    diagram_manager.begin_cell_edit(node_id)
    return {"success": True, "editing": diagram_manager.get_session()}


@app.delete("/api/edit")
async def end_cell_edit():
    """Leave cell-edit mode."""
    diagram_manager.end_cell_edit()
    return {"success": True}


@app.get("/api/edit")
async def get_cell_edit():
    """Describe the current cell-edit session."""
    return {"success": True, "editing": diagram_manager.get_session()}


def _session_node() -> str:
    node_id = diagram_manager.editing_node_id
    if node_id is None:
        raise HTTPException(status_code=400, detail="No table is in cell-edit mode")
    return node_id


@app.post("/api/edit/select")
async def select_cell(request: SelectCellRequest):
    """Click, drag-extend, or toggle a cell of the table being edited."""
    _session_node()
    selected = diagram_manager.select_cell(request.index, extend=request.extend, toggle=request.toggle)
    return {"success": True, "selected": selected}


@app.post("/api/edit/merge")
async def merge_cells():
    """Merge the selected cells."""
    node_id = _session_node()
    changed = diagram_manager.merge_selection()
    return _table_response(node_id, changed)


@app.post("/api/edit/split")
async def split_cell(request: SplitCellRequest):
    """
    Split a cell of the table being edited.

    A merged block is unmerged at once. A plain cell returns a pending
    subdivision to confirm with POST /api/edit/subdivision.
    """
    node_id = _session_node()
    result = diagram_manager.split_cell(request.index)
    pending = diagram_manager.pending_subdivision
    return _table_response(
        node_id,
        result.changed,
        action=result.action.value,
        pending_subdivision=pending.to_dict() if pending else None
    )


@app.post("/api/edit/subdivision")
async def confirm_subdivision(request: Optional[SubdivideRequest] = None):
    """Confirm the pending subdivision, optionally with other counts."""
    node_id = _session_node()
    changed = diagram_manager.confirm_subdivision(
        split_rows=request.split_rows if request else None,
        split_cols=request.split_cols if request else None
    )
    return _table_response(node_id, changed)


@app.delete("/api/edit/subdivision")
async def cancel_subdivision():
    """Abandon the pending subdivision."""
    diagram_manager.cancel_subdivision()
    return {"success": True}


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive table_updated and diagram_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

def run():
    import uvicorn

    config = get_config()
    uvicorn.run(app, host=config.api_host, port=config.api_port)


if __name__ == "__main__":
    run()
