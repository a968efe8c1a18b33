"""Storage strategies for the cell values of a grid.

A grid holds exactly one GridValueStore, selected when the grid is created:

- DenseValueStore keeps a full rows x cols numpy array.
- SparseValueStore keeps only meaningful cells in a dictionary keyed by the
  exact (x, y) coordinate of the cell centre. Cells with the nodata value are
  simply not stored.

Stores address cells by coordinate. The conversion between coordinates and
row/column indices is done by the grid header the store was created with, so
all keys are derived through the same arithmetic.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import NamedTuple

import numpy as np

logger = logging.getLogger("sparsegrid")


class CoordinateKey(NamedTuple):
    """Exact coordinate of a cell centre, used as key of the sparse store."""

    x: float
    y: float


def value_mask(values: np.ndarray, value: float) -> np.ndarray:
    """Return a boolean mask of the elements that equal value.

    The comparison is done in the dtype of values and NaN matches NaN.
    """
    values = np.asarray(values)
    if math.isnan(value):
        return np.isnan(values)
    return values == np.asarray(value).astype(values.dtype)


def skip_mask(values: np.ndarray, skip_values: Iterable[float]) -> np.ndarray:
    """Return a boolean mask of the elements that equal any of skip_values."""
    values = np.asarray(values)
    skips = np.asarray(list(skip_values), dtype=float)
    is_nan = np.isnan(skips)
    mask = np.isin(values, skips[~is_nan].astype(values.dtype))
    if is_nan.any():
        mask |= np.isnan(values)
    return mask


class GridValueStore(ABC):
    """Interface for the value storage of a grid.

    Min and max are derived values. They are stale after any mutation until
    update_min_max() is called, which is tracked by is_min_max_stale.
    """

    is_sparse = False

    def __init__(self, header):
        self.header = header
        self.min_value = math.nan
        self.max_value = math.nan
        self.is_min_max_stale = True

    @property
    def nodata(self) -> float:
        return self.header.nodata

    def _cast(self, value: float) -> float:
        # Round to the precision of the grid dtype
        return float(self.header.dtype.type(value))

    @abstractmethod
    def get(self, x: float, y: float) -> float:
        """Return the value at coordinate (x, y), or nodata if there is none."""

    @abstractmethod
    def set(self, x: float, y: float, value: float) -> None:
        """Set the value at coordinate (x, y)."""

    @abstractmethod
    def add(self, x: float, y: float, value: float) -> None:
        """Add value to the current value at (x, y); a missing value counts as zero."""

    @abstractmethod
    def reset(self) -> None:
        """Reset all values to nodata."""

    @abstractmethod
    def replace_value(self, old_value: float, new_value: float) -> None:
        """Replace all values equal to old_value by new_value and update min/max."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of cells with a meaningful value."""

    @abstractmethod
    def valid_values(self) -> np.ndarray:
        """Return all stored values that differ from nodata, in no particular order."""

    @abstractmethod
    def indexed_values(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return rows, cols and values of all non-nodata cells inside the grid."""

    @abstractmethod
    def load_from_dense(self, values: np.ndarray) -> None:
        """Replace the contents of the store by the cells of a dense array."""

    @abstractmethod
    def to_dense(self) -> np.ndarray:
        """Return the values as a dense rows x cols array."""

    @abstractmethod
    def copy(self, header=None) -> "GridValueStore":
        """Return an independent copy of the store, optionally bound to another header."""

    def update_min_max(self) -> tuple[float, float]:
        """Recompute min and max over all values that differ from nodata.

        Without such values min and max are NaN.
        """
        values = self.valid_values()
        if values.size == 0:
            logger.debug("No values available: min and max are undefined")
            self.min_value = math.nan
            self.max_value = math.nan
        else:
            self.min_value = float(np.min(values))
            self.max_value = float(np.max(values))
        self.is_min_max_stale = False
        return self.min_value, self.max_value

    def _check_shape(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values)
        if values.shape != self.header.shape:
            raise ValueError(
                f"Array shape {values.shape} does not match grid shape {self.header.shape}"
            )
        return values


class DenseValueStore(GridValueStore):
    """Store all cell values in a rows x cols numpy array."""

    def __init__(self, header, values: np.ndarray | None = None):
        super().__init__(header)
        if values is None:
            self.values = np.full(header.shape, header.nodata, dtype=header.dtype)
        else:
            self.load_from_dense(values)

    def _index(self, x: float, y: float) -> tuple[int, int, bool]:
        row = self.header.y_to_row(y)
        col = self.header.x_to_col(x)
        inside = 0 <= row < self.header.nrows and 0 <= col < self.header.ncols
        return row, col, inside

    def get(self, x: float, y: float) -> float:
        row, col, inside = self._index(x, y)
        if not inside:
            return self.nodata
        return float(self.values[row, col])

    def set(self, x: float, y: float, value: float) -> None:
        row, col, inside = self._index(x, y)
        if not inside:
            raise ValueError(f"Coordinate ({x}, {y}) lies outside the grid")
        self.values[row, col] = value
        self.is_min_max_stale = True

    def add(self, x: float, y: float, value: float) -> None:
        row, col, inside = self._index(x, y)
        if not inside:
            raise ValueError(f"Coordinate ({x}, {y}) lies outside the grid")
        current = self.values[row, col]
        if value_mask(current, self.nodata):
            self.values[row, col] = value
        else:
            self.values[row, col] = current + self.header.dtype.type(value)
        self.is_min_max_stale = True

    def reset(self) -> None:
        self.values.fill(self.nodata)
        self.is_min_max_stale = True

    def replace_value(self, old_value: float, new_value: float) -> None:
        self.values[value_mask(self.values, old_value)] = new_value
        self.update_min_max()

    def count(self) -> int:
        return int(np.count_nonzero(~value_mask(self.values, self.nodata)))

    def valid_values(self) -> np.ndarray:
        return self.values[~value_mask(self.values, self.nodata)]

    def indexed_values(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        rows, cols = np.nonzero(~value_mask(self.values, self.nodata))
        return rows, cols, self.values[rows, cols]

    def load_from_dense(self, values: np.ndarray) -> None:
        values = self._check_shape(values)
        self.values = np.array(values, dtype=self.header.dtype)
        self.is_min_max_stale = True

    def to_dense(self) -> np.ndarray:
        return self.values

    def copy(self, header=None) -> "DenseValueStore":
        store = DenseValueStore(header or self.header, self.values)
        store.min_value, store.max_value = self.min_value, self.max_value
        store.is_min_max_stale = self.is_min_max_stale
        return store


class SparseValueStore(GridValueStore):
    """Store meaningful cell values in a dictionary keyed by exact cell coordinates.

    Keys are not validated against the grid bounds: cells outside the grid may
    be stored, but are skipped when the store is converted to row/column form.
    """

    is_sparse = True

    def __init__(self, header, cells: dict[CoordinateKey, float] | None = None):
        super().__init__(header)
        self.cells: dict[CoordinateKey, float] = dict(cells) if cells else {}

    def _is_nodata(self, value: float) -> bool:
        return value == self.nodata or (math.isnan(value) and math.isnan(self.nodata))

    def get(self, x: float, y: float) -> float:
        return self.cells.get(CoordinateKey(float(x), float(y)), self.nodata)

    def set(self, x: float, y: float, value: float) -> None:
        key = CoordinateKey(float(x), float(y))
        value = self._cast(value)
        if self._is_nodata(value):
            self.cells.pop(key, None)
        else:
            self.cells[key] = value
        self.is_min_max_stale = True

    def add(self, x: float, y: float, value: float) -> None:
        key = CoordinateKey(float(x), float(y))
        dtype = self.header.dtype.type
        total = float(dtype(self.cells.get(key, 0.0)) + dtype(value))
        if self._is_nodata(total):
            self.cells.pop(key, None)
        else:
            self.cells[key] = total
        self.is_min_max_stale = True

    def reset(self) -> None:
        self.cells.clear()
        self.is_min_max_stale = True

    def replace_value(self, old_value: float, new_value: float) -> None:
        new_value = self._cast(new_value)
        old_value = self._cast(old_value)
        for key, value in list(self.cells.items()):
            if value == old_value or (math.isnan(value) and math.isnan(old_value)):
                if self._is_nodata(new_value):
                    del self.cells[key]
                else:
                    self.cells[key] = new_value
        self.update_min_max()

    def count(self) -> int:
        return len(self.cells)

    def _arrays(self) -> tuple[np.ndarray, np.ndarray]:
        keys = np.array(list(self.cells.keys()), dtype=float).reshape(-1, 2)
        values = np.fromiter(self.cells.values(), dtype=float, count=len(self.cells))
        return keys, values

    def valid_values(self) -> np.ndarray:
        _, values = self._arrays()
        return values[~value_mask(values, self.nodata)]

    def indexed_values(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        keys, values = self._arrays()
        rows = self.header.y_to_row(keys[:, 1])
        cols = self.header.x_to_col(keys[:, 0])
        inside = (
            (rows >= 0)
            & (rows < self.header.nrows)
            & (cols >= 0)
            & (cols < self.header.ncols)
            & ~value_mask(values, self.nodata)
        )
        if np.count_nonzero(inside) < len(values):
            logger.debug(
                f"Skipped {len(values) - np.count_nonzero(inside)} stored cells "
                "outside the grid or with nodata value"
            )
        return rows[inside], cols[inside], values[inside]

    def load_from_dense(self, values: np.ndarray) -> None:
        values = self._check_shape(values).astype(self.header.dtype, copy=False)
        rows, cols = np.nonzero(~value_mask(values, self.nodata))
        xs = self.header.col_to_x(cols).tolist()
        ys = self.header.row_to_y(rows).tolist()
        self.cells = dict(
            zip(map(CoordinateKey, xs, ys), values[rows, cols].astype(float).tolist())
        )
        self.is_min_max_stale = True
        logger.debug(
            f"Stored {len(self.cells)} of {values.size} cells in sparse representation"
        )

    def to_dense(self) -> np.ndarray:
        values = np.full(self.header.shape, self.nodata, dtype=self.header.dtype)
        rows, cols, data = self.indexed_values()
        values[rows, cols] = data
        return values

    def copy(self, header=None) -> "SparseValueStore":
        store = SparseValueStore(header or self.header, self.cells)
        store.min_value, store.max_value = self.min_value, self.max_value
        store.is_min_max_stale = self.is_min_max_stale
        return store
