import functools
import math
from dataclasses import dataclass


def _same_value(a: float, b: float) -> bool:
    # NaN equals NaN, so a NaN nodata value matches itself
    return a == b or (math.isnan(a) and math.isnan(b))


def _compare_values(a: float, b: float) -> int:
    # NaN sorts before any number
    if math.isnan(a) or math.isnan(b):
        return int(math.isnan(b)) - int(math.isnan(a))
    return (a > b) - (a < b)


@dataclass(eq=False)
class Cell:
    """A grid cell given by zero-based row and column index and a value.

    The value may differ from the value of the corresponding cell in a grid.
    Cells are ordered by row, then column, then value; they hash on row and
    column only.
    """

    row: int
    col: int
    value: float = math.nan

    def __eq__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return (
            self.row == other.row
            and self.col == other.col
            and _same_value(self.value, other.value)
        )

    def __hash__(self):
        return hash((self.row, self.col))

    def __lt__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return compare_cells(self, other) < 0

    def __le__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return compare_cells(self, other) <= 0

    def __gt__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return compare_cells(self, other) > 0

    def __ge__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return compare_cells(self, other) >= 0

    def __str__(self) -> str:
        if math.isnan(self.value):
            return f"({self.row},{self.col})"
        return f"({self.row},{self.col}:{self.value})"


def compare_cells(cell1: Cell | None, cell2: Cell | None) -> int:
    """Compare two cells by row index, column index and value.

    A missing cell (None) sorts before any cell.

    Returns:
        int: -1, 0 or 1 if cell1 is smaller than, equal to or larger than cell2.
    """
    if cell1 is None or cell2 is None:
        return int(cell1 is not None) - int(cell2 is not None)
    if cell1.row != cell2.row:
        return -1 if cell1.row < cell2.row else 1
    if cell1.col != cell2.col:
        return -1 if cell1.col < cell2.col else 1
    return _compare_values(cell1.value, cell2.value)


# Sort key for collections that may contain None, e.g. sorted(cells, key=cell_sort_key)
cell_sort_key = functools.cmp_to_key(compare_cells)
