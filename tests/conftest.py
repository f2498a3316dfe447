"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from tablegrid import Config, TableElement, merge_selection, new_table, set_config, write_back
from tablegrid.models import Cell
from tablegrid_backend.diagram_manager import DiagramManager


@pytest.fixture(autouse=True)
def default_config(tmp_path: Path):
    """Every test runs against default settings, never the environment."""
    config = Config(diagrams_dir=tmp_path)
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def table_3x3() -> TableElement:
    """A 3x3 table whose cells hold their own index as text."""
    table = new_table(3, 3)
    write_back(table, [Cell(content=str(i)) for i in range(9)])
    return table


@pytest.fixture
def table_2x2() -> TableElement:
    return new_table(2, 2)


@pytest.fixture
def manager() -> DiagramManager:
    """A fresh manager with an empty diagram open."""
    mgr = DiagramManager()
    mgr.new_diagram("Test")
    return mgr


def visible(table: TableElement) -> list[tuple[int, int, int, str]]:
    """(index, row_span, col_span, content) of each visible cell."""
    return [
        (i, c.row_span, c.col_span, c.content)
        for i, c in enumerate(table.cells)
        if not c.is_merged
    ]


# Merges applied to a 3x3 table by `spanned_table`
SPAN_LAYOUTS = {
    "plain": [],
    "block": [[0, 1, 3, 4]],
    "column": [[2, 5, 8]],
    "block_and_row": [[0, 1, 3, 4], [7, 8]],
}


def spanned_table(layout: str) -> TableElement:
    """A 3x3 table holding its own indices as text, merged per SPAN_LAYOUTS."""
    table = new_table(3, 3)
    write_back(table, [Cell(content=str(i)) for i in range(9)])
    for selection in SPAN_LAYOUTS[layout]:
        assert merge_selection(table, selection)
    return table
