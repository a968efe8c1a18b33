import matplotlib
import numpy as np
import pytest
import rasterio as rio
from rasterio.transform import from_origin

from sparsegrid import config
from sparsegrid.extent import Extent
from sparsegrid.grid import Grid

matplotlib.use("Agg")

NODATA = -9999.0


@pytest.fixture(autouse=True)
def reset_settings():
    """Restore the default settings after each test."""
    yield
    config.reset_settings()


@pytest.fixture
def sample_values() -> np.ndarray:
    return np.array(
        [
            [1, 2, NODATA],
            [4, NODATA, 6],
            [7, 8, 9],
        ],
        dtype="float32",
    )


@pytest.fixture
def sample_extent() -> Extent:
    return Extent(0, 0, 3, 3)


@pytest.fixture(params=[False, True], ids=["dense", "sparse"])
def sample_grid(request, sample_values, sample_extent) -> Grid:
    """3x3 grid with unit cells in both storage representations."""
    return Grid.from_array(
        sample_values, sample_extent, nodata=NODATA, sparse=request.param
    )


@pytest.fixture
def sample_grid_path(tmp_path, sample_values):
    """Write the sample values to a temporary GeoTIFF."""
    path = tmp_path / "grid.tif"
    with rio.open(
        path,
        "w",
        driver="GTiff",
        height=3,
        width=3,
        count=1,
        dtype="float32",
        crs="EPSG:2056",
        transform=from_origin(0, 3, 1, 1),
        nodata=NODATA,
    ) as dst:
        dst.write(sample_values, 1)
    return path
