"""Tests for grid coordinate math."""

import pytest

from tablegrid.grid import (
    Footprint,
    effective_cells,
    find_master,
    flat_idx_to_row_col,
    normalize_percentages,
    rectangle_indices,
    row_col_to_flat_idx,
    slave_cell,
)
from tablegrid.models import Cell


class TestIndexConversion:
    def test_flat_to_row_col(self):
        assert flat_idx_to_row_col(0, 3) == (0, 0)
        assert flat_idx_to_row_col(5, 3) == (1, 2)
        assert flat_idx_to_row_col(6, 3) == (2, 0)

    def test_row_col_to_flat(self):
        assert row_col_to_flat_idx(1, 2, 3) == 5
        assert row_col_to_flat_idx(2, 0, 3) == 6

    def test_conversions_are_inverse(self):
        cols = 4
        for idx in range(12):
            assert row_col_to_flat_idx(*flat_idx_to_row_col(idx, cols), cols) == idx


class TestFootprint:
    def test_contains(self):
        fp = Footprint(1, 1, 2, 2)
        assert fp.contains(1, 1)
        assert fp.contains(2, 2)
        assert not fp.contains(0, 1)
        assert not fp.contains(1, 3)

    def test_intersects(self):
        fp = Footprint(0, 0, 2, 2)
        assert fp.intersects(Footprint(1, 1))
        assert not fp.intersects(Footprint(0, 2))
        assert not fp.intersects(Footprint(2, 0, 1, 3))

    def test_indices(self):
        assert Footprint(0, 1, 2, 2).indices(3) == [1, 2, 4, 5]

    def test_rectangle_indices_any_corner_order(self):
        assert rectangle_indices(1, 0, 1, 0, 3) == [0, 1, 3, 4]


class TestNormalizePercentages:
    def test_rescales_to_100(self):
        assert normalize_percentages([1, 1, 2]) == pytest.approx([25, 25, 50])

    def test_pads_to_count(self):
        result = normalize_percentages([50, 50], 4)
        assert len(result) == 4
        assert sum(result) == pytest.approx(100)

    def test_truncates_to_count(self):
        assert normalize_percentages([20, 30, 50], 2) == pytest.approx([40, 60])

    def test_non_positive_falls_back_to_even(self):
        assert normalize_percentages([0, 10], 2) == pytest.approx([50, 50])

    def test_empty(self):
        assert normalize_percentages([], 0) == []


class TestEffectiveCells:
    def test_skips_slaves(self):
        cells = [Cell(content="a", col_span=2), slave_cell(), Cell(content="c"), Cell(content="d")]
        entries = effective_cells(cells, 2, 2)
        assert [e.index for e in entries] == [0, 2, 3]
        assert entries[0].footprint == Footprint(0, 0, 1, 2)

    def test_clips_overlong_spans(self):
        cells = [Cell(row_span=5, col_span=5)] + [slave_cell() for _ in range(3)]
        assert effective_cells(cells, 2, 2)[0].footprint == Footprint(0, 0, 2, 2)

    def test_find_master(self):
        cells = [Cell(row_span=2), Cell(), slave_cell(), Cell()]
        assert find_master(cells, 2, 2, 2) == 0
        assert find_master(cells, 3, 2, 2) == 3
