import math

import numpy as np
import pytest

from sparsegrid.extent import Extent
from sparsegrid.grid import GridHeader
from sparsegrid.store import (
    CoordinateKey,
    DenseValueStore,
    SparseValueStore,
    skip_mask,
    value_mask,
)


@pytest.fixture
def header() -> GridHeader:
    return GridHeader(extent=Extent(0, 0, 3, 3), xcellsize=1, ycellsize=1, nodata=-9999)


@pytest.fixture(params=[DenseValueStore, SparseValueStore], ids=["dense", "sparse"])
def store(request, header):
    return request.param(header)


def test_value_mask():
    values = np.array([1.0, np.nan, -9999.0], dtype="float32")
    np.testing.assert_array_equal(value_mask(values, -9999), [False, False, True])
    np.testing.assert_array_equal(value_mask(values, math.nan), [False, True, False])


def test_value_mask_uses_value_dtype():
    # 0.1 is not representable in float32, the comparison is done in float32
    values = np.array([0.1], dtype="float32")
    assert value_mask(values, 0.1)[0]


def test_skip_mask():
    values = np.array([1.0, 2.0, np.nan, 3.0])
    mask = skip_mask(values, [2.0, math.nan])
    np.testing.assert_array_equal(mask, [False, True, True, False])


class TestValueStore:
    def test_empty_store(self, store):
        assert store.count() == 0
        assert store.get(0.5, 0.5) == -9999.0
        assert store.valid_values().size == 0

    def test_set_get(self, store):
        store.set(0.5, 2.5, 3.0)
        assert store.get(0.5, 2.5) == 3.0
        assert store.count() == 1
        assert store.is_min_max_stale

    def test_add_to_missing_value(self, store):
        store.add(1.5, 1.5, 2.5)
        assert store.get(1.5, 1.5) == 2.5
        store.add(1.5, 1.5, 1.0)
        assert store.get(1.5, 1.5) == 3.5

    def test_add_resulting_in_nodata(self, store):
        store.add(0.5, 0.5, -9999.0)
        store.set(1.5, 0.5, 1.0)
        store.add(1.5, 0.5, -10000.0)
        assert store.count() == 0
        assert store.get(0.5, 0.5) == -9999.0
        assert math.isnan(store.update_min_max()[0])

    def test_min_max_undefined_without_values(self, store):
        min_value, max_value = store.update_min_max()
        assert math.isnan(min_value)
        assert math.isnan(max_value)
        assert not store.is_min_max_stale

    def test_min_max(self, store):
        store.set(0.5, 0.5, -2.0)
        store.set(2.5, 2.5, 5.0)
        assert store.update_min_max() == (-2.0, 5.0)

    def test_replace_value(self, store):
        store.set(0.5, 0.5, 1.0)
        store.set(1.5, 0.5, 1.0)
        store.set(2.5, 0.5, 2.0)
        store.replace_value(1.0, 7.0)
        assert store.get(0.5, 0.5) == 7.0
        assert store.get(1.5, 0.5) == 7.0
        assert store.get(2.5, 0.5) == 2.0
        assert (store.min_value, store.max_value) == (2.0, 7.0)
        assert not store.is_min_max_stale

    def test_reset(self, store):
        store.set(0.5, 0.5, 1.0)
        store.reset()
        assert store.count() == 0

    def test_dense_round_trip(self, store, header):
        values = np.full(header.shape, -9999.0, dtype="float32")
        values[0, 1] = 1.0
        values[2, 2] = 2.0
        store.load_from_dense(values)
        np.testing.assert_array_equal(store.to_dense(), values)
        # Row 0 is the top row of the grid
        assert store.get(1.5, 2.5) == 1.0
        assert store.get(2.5, 0.5) == 2.0
        rows, cols, data = store.indexed_values()
        assert sorted(zip(rows.tolist(), cols.tolist(), data.tolist())) == [
            (0, 1, 1.0),
            (2, 2, 2.0),
        ]

    def test_load_wrong_shape(self, store):
        with pytest.raises(ValueError):
            store.load_from_dense(np.zeros((2, 2)))

    def test_copy_is_independent(self, store):
        store.set(0.5, 0.5, 1.0)
        other = store.copy()
        other.set(0.5, 0.5, 2.0)
        assert store.get(0.5, 0.5) == 1.0
        assert other.get(0.5, 0.5) == 2.0


class TestDenseValueStore:
    def test_outside_grid(self, header):
        store = DenseValueStore(header)
        assert store.get(10.5, 10.5) == -9999.0
        with pytest.raises(ValueError):
            store.set(10.5, 10.5, 1.0)
        with pytest.raises(ValueError):
            store.add(-0.5, 0.5, 1.0)


class TestSparseValueStore:
    def test_nodata_cells_are_not_stored(self, header):
        store = SparseValueStore(header)
        values = np.full(header.shape, -9999.0)
        values[1, 1] = 5.0
        store.load_from_dense(values)
        assert store.cells == {CoordinateKey(1.5, 1.5): 5.0}

    def test_cells_outside_grid(self, header):
        store = SparseValueStore(header)
        store.set(10.5, 10.5, 1.0)
        store.set(0.5, 0.5, 2.0)
        assert store.count() == 2
        assert store.get(10.5, 10.5) == 1.0
        # Skipped when converted to a dense array
        dense = store.to_dense()
        assert np.count_nonzero(dense != -9999.0) == 1
        assert dense[2, 0] == 2.0

    def test_values_in_grid_precision(self, header):
        store = SparseValueStore(header)
        store.set(0.5, 0.5, 0.1)
        assert store.get(0.5, 0.5) == float(np.float32(0.1))

    def test_nodata_removes_entry(self, header):
        store = SparseValueStore(header)
        store.set(0.5, 0.5, 1.0)
        store.set(1.5, 0.5, 2.0)
        store.set(0.5, 0.5, -9999.0)
        assert CoordinateKey(0.5, 0.5) not in store.cells
        store.replace_value(2.0, -9999.0)
        assert store.count() == 0
        assert not store.cells
