"""Tests for the data models and their legacy key handling."""

from pathlib import Path

from tablegrid import Config
from tablegrid.models import (
    BorderStyle,
    Cell,
    CellStyle,
    Diagram,
    Node,
    SpanEntry,
    TableElement,
    TextAlign,
)


class TestCellStyle:
    def test_legacy_style_map(self):
        style = CellStyle(**{
            "fontWeight": "bold",
            "fontStyle": "normal",
            "fontSize": "14px",
            "textAlign": "center",
            "borderStyle": "dashed",
            "boxShadow": "0 0 2px black",
        })
        assert style.bold is True
        assert style.italic is False
        assert style.font_size == 14.0
        assert style.text_align == TextAlign.CENTER
        assert style.border_style == BorderStyle.DASHED

    def test_invalid_enum_values_are_dropped(self):
        style = CellStyle(**{"textAlign": "justify", "borderStyle": "groove"})
        assert style.text_align is None
        assert style.border_style is None

    def test_json_keys(self):
        style = CellStyle(bold=True, text_color="#333")
        assert style.to_json_dict() == {"bold": True, "textColor": "#333"}

    def test_empty(self):
        assert CellStyle().is_empty()
        assert not CellStyle(italic=True).is_empty()


class TestCell:
    def test_camel_case_keys(self):
        cell = Cell(**{"content": "x", "rowSpan": 2, "colSpan": 3, "isMerged": False})
        assert (cell.row_span, cell.col_span) == (2, 3)
        assert cell.is_spanning

    def test_unusable_spans_read_as_one(self):
        cell = Cell(**{"rowSpan": "2", "colSpan": 0, "content": None})
        assert (cell.row_span, cell.col_span) == (1, 1)
        assert cell.content == ""

    def test_whole_float_spans(self):
        assert Cell(rowSpan=2.0).row_span == 2

    def test_to_json(self):
        assert Cell(content="a").to_json_dict() == {
            "content": "a", "rowSpan": 1, "colSpan": 1, "isMerged": False
        }


class TestSpanEntry:
    def test_hidden_sentinel(self):
        assert SpanEntry(**{"rowSpan": 0, "colSpan": 0}).is_hidden
        assert not SpanEntry(**{"rowSpan": 0, "colSpan": 2}).is_hidden


class TestTableElement:
    def test_saved_document_keys(self):
        table = TableElement(**{
            "tableRows": 1,
            "tableCols": 2,
            "tableColWidths": [40, 60],
            "tableRowHeights": [100],
            "tableCellData": ["a", None],
            "tableCellStyles": [None, {"fontWeight": "bold"}],
        })
        assert table.legacy_content == ["a", ""]
        assert table.cell_styles[1].bold is True
        data = table.to_json_dict()
        assert data["tableRows"] == 1
        assert data["tableColWidths"] == [40, 60]
        assert "tableCellDataV2" not in data
        assert "tableRowColWidths" not in data


class TestDiagram:
    def test_load_migrates_legacy_tables(self):
        diagram = Diagram.from_json_dict({
            "name": "Old",
            "nodes": [{
                "id": "t1",
                "type": "table",
                "table": {
                    "tableRows": 1,
                    "tableCols": 2,
                    "tableCellData": ["merged", "hidden"],
                    "tableCellSpans": [{"rowSpan": 1, "colSpan": 2}, {"rowSpan": 0, "colSpan": 0}],
                },
            }],
        })
        table = diagram.get_node("t1").table
        assert table.cells[0].col_span == 2
        assert table.cells[1].is_merged
        assert table.col_widths == [50.0, 50.0]

    def test_round_trip(self):
        diagram = Diagram(name="D", nodes=[Node(id="n1", label="plain")])
        restored = Diagram.from_json_dict(diagram.to_json_dict())
        assert restored.name == "D"
        assert restored.get_node("n1").label == "plain"
        assert restored.get_node("n1").table is None


class TestConfig:
    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("TABLEGRID_DEFAULT_ROWS", "5")
        monkeypatch.setenv("TABLEGRID_ROW_LOCAL_MERGE", "true")
        monkeypatch.setenv("TABLEGRID_DIAGRAMS_DIR", str(tmp_path))
        monkeypatch.setenv("TABLEGRID_LOG_LEVEL", "debug")
        config = Config.from_env()
        assert config.default_rows == 5
        assert config.row_local_merge is True
        assert config.diagrams_dir == Path(tmp_path)
        assert config.log_level == "DEBUG"
