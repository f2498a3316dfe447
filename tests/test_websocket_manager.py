"""Tests for WebSocket fan-out and the change broadcaster."""

import asyncio
import json

from tablegrid_backend import main
from tablegrid_backend.diagram_manager import diagram_manager
from tablegrid_backend.websocket_manager import WebSocketManager


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


class TestWebSocketManager:
    def test_broadcast_stamps_sequence(self):
        manager = WebSocketManager()
        client = FakeWebSocket()

        async def scenario():
            await manager.connect(client)
            await manager.notify_table_updated("n1", {"tableRows": 1})
            await manager.notify_diagram_updated("d1")

        asyncio.run(scenario())
        assert client.accepted
        assert client.sent == [
            {"type": "table_updated", "node_id": "n1", "table": {"tableRows": 1}, "seq": 1},
            {"type": "diagram_updated", "diagram_id": "d1", "seq": 2},
        ]

    def test_unreachable_clients_are_dropped(self):
        manager = WebSocketManager()
        good, bad = FakeWebSocket(), FakeWebSocket(fail=True)

        async def scenario():
            await manager.connect(good)
            await manager.connect(bad)
            await manager.notify_table_updated("n1", None)

        asyncio.run(scenario())
        assert manager.connection_count == 1
        assert len(good.sent) == 1


class TestChangeBroadcaster:
    def test_sends_whole_table_per_changed_node(self, monkeypatch):
        ws = WebSocketManager()
        client = FakeWebSocket()
        monkeypatch.setattr(main, "ws_manager", ws)

        diagram_manager.new_diagram("Broadcast")
        node = diagram_manager.add_table(1, 2)
        main._changed_nodes.clear()
        main.on_diagram_change(node.id)
        main.on_diagram_change(node.id)

        async def scenario():
            await ws.connect(client)
            await main.broadcast_pending_changes()

        asyncio.run(scenario())
        main._change_event.clear()
        assert len(client.sent) == 1
        message = client.sent[0]
        assert message["type"] == "table_updated"
        assert message["table"] == node.table.to_json_dict()
        assert main._changed_nodes == set()

    def test_deleted_node_sends_none(self, monkeypatch):
        ws = WebSocketManager()
        client = FakeWebSocket()
        monkeypatch.setattr(main, "ws_manager", ws)

        diagram_manager.new_diagram("Broadcast")
        main._changed_nodes.clear()
        main.on_diagram_change("gone")

        async def scenario():
            await ws.connect(client)
            await main.broadcast_pending_changes()

        asyncio.run(scenario())
        main._change_event.clear()
        assert client.sent[0]["table"] is None
