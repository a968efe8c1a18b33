import math

import pytest

from sparsegrid.cell import Cell, cell_sort_key, compare_cells


class TestCompareCells:
    def test_order_by_row_col_value(self):
        a = Cell(0, 0, 1.0)
        b = Cell(0, 1, 0.0)
        c = Cell(1, 0, 5.0)
        assert a < b < c
        assert sorted([c, a, b]) == [a, b, c]

    @pytest.mark.parametrize(
        "a, b",
        [
            (Cell(0, 0, 1.0), Cell(0, 1, 0.0)),
            (Cell(2, 3, 1.0), Cell(2, 3, 2.0)),
            (Cell(1, 0), Cell(1, 0, -5.0)),
        ],
    )
    def test_antisymmetric(self, a, b):
        assert compare_cells(a, b) == -compare_cells(b, a)
        assert compare_cells(a, b) == -1

    def test_equal_cells(self):
        assert compare_cells(Cell(1, 2, 3.0), Cell(1, 2, 3.0)) == 0
        assert compare_cells(Cell(1, 2), Cell(1, 2)) == 0

    def test_none_sorts_first(self):
        cell = Cell(0, 0, 0.0)
        assert compare_cells(None, cell) == -1
        assert compare_cells(cell, None) == 1
        assert compare_cells(None, None) == 0
        assert sorted([cell, None], key=cell_sort_key) == [None, cell]

    def test_nan_value_sorts_first(self):
        assert Cell(0, 0) < Cell(0, 0, -1e30)


class TestCell:
    def test_default_value_is_nan(self):
        assert math.isnan(Cell(1, 1).value)

    def test_equality_and_hash(self):
        assert Cell(1, 2, 3.0) == Cell(1, 2, 3.0)
        assert Cell(1, 2) == Cell(1, 2)
        assert Cell(1, 2, 3.0) != Cell(1, 2, 4.0)
        # Hash only depends on the position
        assert hash(Cell(1, 2, 3.0)) == hash(Cell(1, 2, 4.0))
        assert len({Cell(1, 2, 3.0), Cell(1, 2, 3.0), Cell(2, 1, 3.0)}) == 2

    def test_str(self):
        assert str(Cell(1, 2)) == "(1,2)"
        assert str(Cell(1, 2, 3.5)) == "(1,2:3.5)"
        # Large values are printed in full
        assert str(Cell(0, 0, 1234567.0)) == "(0,0:1234567.0)"

    def test_compare_with_other_type(self):
        assert Cell(0, 0) != (0, 0)
        with pytest.raises(TypeError):
            Cell(0, 0) < (0, 0)
