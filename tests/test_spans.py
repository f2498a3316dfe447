"""Tests for the canonical and legacy cell encodings."""

import pytest

from tablegrid.models import Cell, CellStyle, SpanEntry, TableElement
from tablegrid.spans import (
    fold_jagged,
    from_canonical,
    jagged_to_uniform_index,
    migrate,
    normalize_cells,
    normalize_span,
    to_canonical,
    uniform_to_jagged_index,
)
from tablegrid.grid import slave_cell

from .conftest import SPAN_LAYOUTS, spanned_table


def legacy_table(**overrides) -> TableElement:
    data = {
        "tableRows": 2,
        "tableCols": 2,
        "tableCellData": ["a", "b", "c", "d"],
        "tableCellSpans": [
            {"rowSpan": 1, "colSpan": 2},
            {"rowSpan": 0, "colSpan": 0},
            None,
            {"rowSpan": 1, "colSpan": 1},
        ],
    }
    data.update(overrides)
    return TableElement(**data)


class TestNormalizeSpan:
    def test_missing_entry(self):
        assert normalize_span(None) == (1, 1, False)

    def test_hidden_sentinel(self):
        assert normalize_span(SpanEntry(row_span=0, col_span=0)) == (1, 1, True)

    def test_single_zero_reads_as_one(self):
        assert normalize_span(SpanEntry(row_span=0, col_span=2)) == (1, 2, False)


class TestLegacyToCanonical:
    def test_reads_parallel_arrays(self):
        cells = to_canonical(legacy_table())
        assert cells[0] == Cell(content="a", row_span=1, col_span=2)
        assert cells[1].is_merged
        assert cells[1].content == ""
        assert cells[2] == Cell(content="c")

    def test_malformed_spans_become_single_cells(self):
        table = legacy_table(tableCellSpans=["junk", 7, {"rowSpan": "x", "colSpan": -1}])
        cells = to_canonical(table)
        assert all(c.row_span == 1 and c.col_span == 1 and not c.is_merged for c in cells)
        assert [c.content for c in cells] == ["a", "b", "c", "d"]

    def test_short_arrays_are_padded(self):
        cells = to_canonical(legacy_table(tableCellData=["only"], tableCellSpans=None))
        assert len(cells) == 4
        assert cells[0].content == "only"
        assert cells[3].content == ""

    def test_prefers_canonical_array(self):
        table = legacy_table(tableCellDataV2=[
            {"content": "v2", "rowSpan": 1, "colSpan": 1, "isMerged": False}
        ] * 4)
        assert [c.content for c in to_canonical(table)] == ["v2"] * 4


class TestNormalizeCells:
    def test_consistent_cells_unchanged(self):
        cells = [Cell(content="a", row_span=2), Cell(), slave_cell(), Cell()]
        assert normalize_cells(cells, 2, 2) == cells

    def test_clips_span_at_edge(self):
        cells = normalize_cells([Cell(col_span=3), Cell(), Cell(), Cell()], 2, 2)
        assert (cells[0].row_span, cells[0].col_span) == (1, 2)
        assert cells[1].is_merged

    def test_hides_covered_visible_cell(self):
        cells = normalize_cells([Cell(row_span=2), Cell(), Cell(content="x"), Cell()], 2, 2)
        assert cells[2] == slave_cell()

    def test_promotes_orphan_slave(self):
        cells = normalize_cells([Cell(), slave_cell(), Cell(), Cell()], 2, 2)
        assert not cells[1].is_merged

    def test_shrinks_overlapping_footprint(self):
        # Cell 1 spans down into the footprint cell 0 would claim
        cells = [Cell(row_span=2, col_span=2), Cell(row_span=2), slave_cell(), slave_cell()]
        repaired = normalize_cells(cells, 2, 2)
        assert (repaired[0].row_span, repaired[0].col_span) == (2, 2)
        assert repaired[1].is_merged


class TestFromCanonical:
    def test_slaves_get_sentinel(self):
        content, spans = from_canonical([Cell(content="a", col_span=2), slave_cell()])
        assert content == ["a", ""]
        assert spans[0] == SpanEntry(row_span=1, col_span=2)
        assert spans[1].is_hidden

    def test_legacy_round_trip(self):
        table = legacy_table()
        cells = to_canonical(table)
        content, spans = from_canonical(cells)
        rebuilt = TableElement(rows=2, cols=2, legacy_content=content, legacy_spans=spans)
        assert to_canonical(rebuilt) == cells


class TestMigrate:
    def test_writes_both_encodings(self):
        table = migrate(legacy_table(tableColWidths=[1, 3]))
        assert table.col_widths == pytest.approx([25, 75])
        assert table.row_heights == pytest.approx([50, 50])
        assert len(table.cells) == 4
        assert table.legacy_content == ["a", "", "c", "d"]
        assert table.legacy_spans[1].is_hidden

    def test_pads_colors_and_styles(self):
        table = migrate(legacy_table(tableCellColors=["#fff"]))
        assert table.cell_colors == ["#fff", None, None, None]
        assert len(table.cell_styles) == 4

    def test_folds_jagged_rows(self):
        table = TableElement(**{
            "tableRows": 1,
            "tableCols": 3,
            "tableColWidths": [25, 25, 50],
            "tableRowColWidths": [[50, 50]],
            "tableCellData": ["wide", "narrow"],
            "tableCellColors": ["#f00", "#0f0"],
        })
        migrate(table)
        assert table.row_col_widths is None
        assert table.cells[0] == Cell(content="wide", row_span=1, col_span=2)
        assert table.cells[1].is_merged
        assert table.cells[2].content == "narrow"
        assert table.cell_colors == ["#f00", None, "#0f0"]

    def test_keeps_jagged_when_asked(self):
        table = TableElement(rows=1, cols=2, row_col_widths=[[100.0]], legacy_content=["x"])
        migrate(table, keep_jagged=True)
        assert table.is_jagged
        assert table.cells is None


class TestJagged:
    @pytest.fixture
    def jagged(self) -> TableElement:
        return TableElement(
            rows=2,
            cols=3,
            col_widths=[25, 25, 50],
            row_heights=[50, 50],
            row_col_widths=[[50, 50], [25, 25, 50]],
            legacy_content=["a", "b", "c", "d", "e"],
            cell_styles=[CellStyle(bold=True)],
        )

    def test_index_mapping(self, jagged):
        assert jagged_to_uniform_index(jagged, 0) == 0
        assert jagged_to_uniform_index(jagged, 1) == 2
        assert jagged_to_uniform_index(jagged, 2) == 3
        assert jagged_to_uniform_index(jagged, 4) == 5
        assert jagged_to_uniform_index(jagged, 5) is None

    def test_fold(self, jagged):
        assert fold_jagged(jagged)
        assert not fold_jagged(jagged)
        assert [c.content for c in jagged.cells] == ["a", "", "b", "c", "d", "e"]
        assert jagged.cells[0].col_span == 2
        assert jagged.cell_styles[0].bold is True

    def test_reverse_index_mapping(self, jagged):
        assert [uniform_to_jagged_index(jagged, i) for i in range(6)] == [0, 0, 1, 2, 3, 4]
        assert uniform_to_jagged_index(jagged, 6) is None
        assert uniform_to_jagged_index(jagged, -1) is None

    def test_mappings_agree(self, jagged):
        for stored in range(5):
            uniform = jagged_to_uniform_index(jagged, stored)
            assert uniform_to_jagged_index(jagged, uniform) == stored

    def test_uniform_tables_map_to_themselves(self):
        table = TableElement(rows=2, cols=2)
        assert uniform_to_jagged_index(table, 3) == 3
        assert uniform_to_jagged_index(table, 4) is None


class TestLayoutRoundTrip:
    @pytest.mark.parametrize("layout", sorted(SPAN_LAYOUTS))
    def test_legacy_arrays_rebuild_cells(self, layout):
        table = spanned_table(layout)
        content, spans = from_canonical(table.cells)
        assert content == table.legacy_content
        assert spans == table.legacy_spans

        rebuilt = TableElement(rows=3, cols=3, legacy_content=content, legacy_spans=spans)
        assert to_canonical(rebuilt) == table.cells
        assert normalize_cells(table.cells, 3, 3) == table.cells

    @pytest.mark.parametrize("layout", sorted(SPAN_LAYOUTS))
    def test_saved_document_reloads(self, layout):
        table = spanned_table(layout)
        reloaded = migrate(TableElement(**table.to_json_dict()))
        assert reloaded.to_json_dict() == table.to_json_dict()
