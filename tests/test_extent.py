import pytest
from rasterio.coords import BoundingBox

from sparsegrid.extent import Extent


@pytest.fixture
def extent() -> Extent:
    return Extent(0, 0, 10, 5)


def test_str_and_size(extent):
    assert str(extent) == "[(0.0,0.0),(10.0,5.0)]"
    assert extent.width == 10.0
    assert extent.height == 5.0
    assert extent.is_valid()
    assert not Extent(1, 1, 1, 2).is_valid()


def test_equality_and_copy(extent):
    other = extent.copy()
    assert other == extent
    assert other is not extent
    other.llx = -1
    assert extent.llx == 0.0


def test_bounds_round_trip(extent):
    bounds = extent.to_bounds()
    assert isinstance(bounds, BoundingBox)
    assert bounds == (0.0, 0.0, 10.0, 5.0)
    assert Extent.from_bounds(bounds) == extent


def test_contains(extent):
    assert extent.contains(0, 0)
    assert extent.contains(9.99, 4.99)
    assert not extent.contains(10, 2)
    assert extent.contains_extent(Extent(1, 1, 10, 5))
    assert not extent.contains_extent(Extent(-1, 1, 2, 2))


def test_intersects(extent):
    assert extent.intersects(Extent(5, 2, 20, 20))
    # Touching extents do not overlap
    assert not extent.intersects(Extent(10, 0, 20, 5))
    assert not extent.intersects(None)


def test_clip(extent):
    assert extent.clip(Extent(5, -5, 20, 2)) == Extent(5, 0, 10, 2)
    empty = extent.clip(Extent(20, 20, 30, 30))
    assert not empty.is_valid()


def test_union(extent):
    assert extent.union(Extent(-5, 2, 3, 8)) == Extent(-5, 0, 10, 8)


def test_snap(extent):
    snapped = Extent(0.4, 0.6, 2.4, 2.6).snap(1.0)
    assert snapped == Extent(0, 1, 2, 3)
    enlarged = Extent(0.4, 0.6, 2.4, 2.6).snap(1.0, enlarge=True)
    assert enlarged == Extent(0, 0, 3, 3)


def test_snap_with_origin():
    snapped = Extent(0.7, 0.7, 1.2, 1.2).snap(0.5, enlarge=True, origin=(0.25, 0.25))
    assert snapped == Extent(0.25, 0.25, 1.25, 1.25)


def test_snap_keeps_exact_multiples():
    # 0.3 / 0.1 is not exactly 3 in floating point
    assert Extent(0, 0, 0.3, 0.3).snap(0.1, enlarge=True).urx == pytest.approx(0.3)
