"""
WebSocket Manager - Pushes settled table edits to connected editors.

Every message carries a sequence number. Concurrent editors keep, per
table node, the element from the message with the highest sequence
(last writer wins).
"""
import asyncio
import itertools
import json
import logging
from typing import Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Keeps the pool of editor connections and fans messages out to it.

    Message types:
    - `table_updated`: the whole table element of one node (None once the
      node is deleted)
    - `diagram_updated`: the diagram was replaced; clients reload it from
      GET /api/diagram
    """

    def __init__(self):
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._sequence = itertools.count(1)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.info("Editor connected (%d open)", len(self._clients))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Editor disconnected (%d open)", len(self._clients))

    async def _send(self, websocket: WebSocket, text: str) -> Optional[WebSocket]:
        """Send to one client; returns the client if it could not be reached."""
        try:
            await websocket.send_text(text)
        except Exception:
            logger.debug("Dropping unreachable editor", exc_info=True)
            return websocket
        return None

    async def broadcast(self, message: dict) -> int:
        """
        Stamp `message` with the next sequence number and send it to every client.

        Returns the sequence number used.
        """
        seq = next(self._sequence)
        if not self._clients:
            return seq

        text = json.dumps({**message, "seq": seq})
        async with self._lock:
            unreachable = await asyncio.gather(
                *(self._send(ws, text) for ws in self._clients)
            )
            self._clients.difference_update(ws for ws in unreachable if ws is not None)
        return seq

    async def notify_table_updated(self, node_id: str, table: Optional[dict]) -> int:
        return await self.broadcast({
            "type": "table_updated",
            "node_id": node_id,
            "table": table
        })

    async def notify_diagram_updated(self, diagram_id: Optional[str] = None) -> int:
        return await self.broadcast({
            "type": "diagram_updated",
            "diagram_id": diagram_id
        })

    @property
    def connection_count(self) -> int:
        return len(self._clients)


# Shared by the API routes and the change broadcaster
ws_manager = WebSocketManager()
