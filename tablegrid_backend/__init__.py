"""
Table Grid Backend - Diagram state, cell-edit sessions and the HTTP/WebSocket API.
"""

from .diagram_manager import DiagramManager, PendingSubdivision, diagram_manager
from .websocket_manager import WebSocketManager, ws_manager

__all__ = [
    "DiagramManager",
    "PendingSubdivision",
    "diagram_manager",
    "WebSocketManager",
    "ws_manager",
]
