"""Tests for diagram state, cell-edit sessions and change notification."""

import json

import pytest

from tablegrid import CellStyle, SplitAction
from tablegrid.models import Cell
from tablegrid_backend.diagram_manager import DiagramManager


@pytest.fixture
def changes(manager):
    """Node ids reported to change listeners."""
    seen = []
    manager.on_change(seen.append)
    return seen


@pytest.fixture
def table_id(manager):
    return manager.add_table(3, 3).id


class TestNodes:
    def test_add_table(self, manager, changes):
        node = manager.add_table(2, 4, label="Grid", x=10)
        assert node.type == "table"
        assert (node.table.rows, node.table.cols) == (2, 4)
        assert node.x == 10
        assert manager.get_node(node.id) is node
        assert changes == [node.id]
        assert manager.is_dirty

    def test_add_table_defaults(self, manager):
        table = manager.add_table().table
        assert (table.rows, table.cols) == (3, 3)

    def test_delete_node(self, manager, table_id, changes):
        assert manager.delete_node(table_id)
        assert manager.get_node(table_id) is None
        assert not manager.delete_node(table_id)
        assert changes == [table_id]

    def test_get_table_errors(self, manager):
        note = manager.add_table()
        note.table = None
        with pytest.raises(ValueError):
            manager.get_table("missing")
        with pytest.raises(ValueError):
            manager.get_table(note.id)

    def test_no_diagram(self):
        with pytest.raises(ValueError):
            DiagramManager().add_table()


class TestCellEditSession:
    def test_select_and_merge(self, manager, table_id, changes):
        manager.begin_cell_edit(table_id)
        manager.select_cell(0)
        assert manager.select_cell(4, extend=True) == [0, 1, 3, 4]

        assert manager.merge_selection()
        table = manager.get_table(table_id)
        assert (table.cells[0].row_span, table.cells[0].col_span) == (2, 2)
        assert manager.selection.selected == []
        assert changes == [table_id]

    def test_freeform_selection(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.select_cell(0)
        assert manager.select_cell(2, toggle=True) == [0, 2]
        assert not manager.merge_selection()

    def test_no_session(self, manager, table_id):
        with pytest.raises(ValueError):
            manager.select_cell(0)
        with pytest.raises(ValueError):
            manager.merge_selection()

    def test_switching_tables_resets_selection(self, manager, table_id):
        other = manager.add_table(2, 2).id
        manager.begin_cell_edit(table_id)
        manager.select_cell(1)
        manager.begin_cell_edit(other)
        assert manager.editing_node_id == other
        assert manager.selection.selected == []

    def test_deleting_edited_table_ends_session(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.delete_node(table_id)
        assert manager.editing_node_id is None

    def test_split_unmerges_immediately(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.select_cell(0)
        manager.select_cell(1, toggle=True)
        manager.merge_selection()

        result = manager.split_cell(0)
        assert result.action == SplitAction.UNMERGED
        assert manager.pending_subdivision is None
        assert not manager.get_table(table_id).cells[0].is_spanning


class TestPendingSubdivision:
    def test_confirm_applies_request(self, manager, table_id, changes):
        manager.begin_cell_edit(table_id)
        result = manager.split_cell(4)
        assert result.action == SplitAction.PENDING
        assert manager.pending_subdivision.to_dict() == {
            "node_id": table_id, "cell_index": 4, "split_rows": 2, "split_cols": 1
        }
        assert changes == []

        assert manager.confirm_subdivision(split_cols=2)
        table = manager.get_table(table_id)
        assert (table.rows, table.cols) == (4, 4)
        assert manager.pending_subdivision is None
        assert changes == [table_id]

    def test_confirm_on_jagged_table(self, manager, default_config):
        default_config.row_local_merge = True
        table_id = manager.add_table(2, 3).id
        for i, text in enumerate("abcdef"):
            manager.set_cell_content(table_id, i, text)
        manager.begin_cell_edit(table_id)
        manager.select_cell(0)
        manager.select_cell(1, extend=True)
        assert manager.merge_selection()
        table = manager.get_table(table_id)
        assert table.is_jagged

        # Stored cells are now a c / d e f
        manager.select_cell(0)
        assert manager.select_cell(3, extend=True) == [0, 2, 3]
        assert manager.split_cell(2).action == SplitAction.PENDING
        assert manager.pending_subdivision.request.cell_index == 2

        assert manager.confirm_subdivision()
        table = manager.get_table(table_id)
        assert (table.rows, table.cols) == (3, 3)
        assert table.cells[3].content == "d"
        assert table.cells[6] == Cell()
        assert table.cells[4].row_span == 2

    def test_selection_change_abandons_request(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.split_cell(4)
        manager.select_cell(0)
        assert not manager.confirm_subdivision()
        assert manager.get_table(table_id).rows == 3

    def test_table_change_abandons_request(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.split_cell(4)
        manager.set_cell_content(table_id, 0, "edited")
        assert not manager.confirm_subdivision()
        assert manager.get_table(table_id).rows == 3

    def test_leaving_edit_mode_abandons_request(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.split_cell(4)
        manager.end_cell_edit()
        assert manager.pending_subdivision is None
        assert not manager.confirm_subdivision()

    def test_cancel(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.split_cell(4)
        manager.cancel_subdivision()
        assert not manager.confirm_subdivision()

    def test_session_description(self, manager, table_id):
        manager.begin_cell_edit(table_id)
        manager.select_cell(4)
        manager.split_cell(4)
        session = manager.get_session()
        assert session["node_id"] == table_id
        assert session["selected"] == [4]
        assert session["pending_subdivision"]["cell_index"] == 4


class TestSettle:
    def test_drag_notifies_once_on_settle(self, manager, table_id, changes):
        assert manager.resize_column(table_id, 0, 2, settle=False)
        assert manager.resize_column(table_id, 0, 2, settle=False)
        assert changes == []

        assert manager.settle(table_id)
        assert changes == [table_id]
        assert not manager.settle(table_id)
        assert changes == [table_id]

    def test_settling_resize_notifies(self, manager, table_id, changes):
        manager.resize_row(table_id, 0, 5, settle=False)
        manager.resize_row(table_id, 0, 0, settle=True)
        assert changes == [table_id]

    def test_discrete_edits_notify(self, manager, table_id, changes):
        assert manager.set_cell_content(table_id, 0, "a")
        assert not manager.set_cell_content(table_id, 0, "a")
        assert manager.set_dimensions(table_id, 2, 2)
        assert manager.subdivide(table_id, 0, 2, 1)
        assert changes == [table_id] * 3

    def test_style_update(self, manager, table_id, changes):
        assert manager.set_cell_style(table_id, 0, CellStyle(bold=True), color="#eee")
        table = manager.get_table(table_id)
        assert table.cell_styles[0].bold is True
        assert table.cell_colors[0] == "#eee"
        assert not manager.set_cell_style(table_id, 0, CellStyle(bold=True))
        assert changes == [table_id]

    def test_failing_listener_does_not_abort_edit(self, manager, table_id):
        def broken(node_id):
            raise RuntimeError("listener down")

        manager.on_change(broken)
        assert manager.set_cell_content(table_id, 0, "still saved")
        assert manager.get_table(table_id).cells[0].content == "still saved"


class TestPersistence:
    def test_save_and_open(self, manager, table_id, tmp_path):
        manager.begin_cell_edit(table_id)
        manager.select_cell(0)
        manager.select_cell(1, toggle=True)
        manager.merge_selection()

        path = manager.save_diagram(tmp_path / "out" / "tables.json")
        assert path.exists()
        assert not manager.is_dirty
        saved = json.loads(path.read_text())
        assert saved["nodes"][0]["table"]["tableCellSpans"][1] == {"rowSpan": 0, "colSpan": 0}

        reopened = DiagramManager()
        reopened.open_diagram(path)
        table = reopened.get_table(table_id)
        assert table.cells[0].col_span == 2
        assert reopened.get_state()["file_path"] == str(path)

    def test_save_requires_path(self, manager):
        with pytest.raises(ValueError):
            manager.save_diagram()

    def test_open_missing_file(self, manager, tmp_path):
        with pytest.raises(FileNotFoundError):
            manager.open_diagram(tmp_path / "nope.json")

    def test_save_callback(self, manager, table_id, tmp_path):
        saved = []
        manager.on_save(lambda path, info: saved.append(info))
        manager.save_diagram(tmp_path / "d.json")
        assert saved == [{"name": "Test", "node_count": 1, "table_count": 1}]

    def test_default_directory(self, manager, default_config):
        assert manager.default_directory() == default_config.diagrams_dir
