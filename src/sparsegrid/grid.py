import copy
import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import rasterio as rio
from rasterio.crs import CRS
from rasterio.transform import Affine, from_origin

from sparsegrid.cell import Cell
from sparsegrid.config import settings
from sparsegrid.errors import InconsistentStateError, UnsupportedOperationError
from sparsegrid.extent import Extent
from sparsegrid.store import (
    DenseValueStore,
    GridValueStore,
    SparseValueStore,
    value_mask,
)
from sparsegrid.utils.paths import check_path, make_parent_dir
from sparsegrid.utils.timer import Timer

logger = logging.getLogger("sparsegrid")


@dataclass(kw_only=True)
class GridHeader:
    """Geometry and metadata of a grid, without its values.

    Coordinates refer to cell centres; row 0 is the top row of the grid.
    """

    extent: Extent
    xcellsize: float
    ycellsize: float
    nodata: float = field(default=None)
    nrows: int = field(default=None)
    ncols: int = field(default=None)
    dtype: np.dtype = field(default=None)
    crs: CRS | None = None
    filename: Path | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.xcellsize = float(self.xcellsize)
        self.ycellsize = float(self.ycellsize)
        if self.xcellsize <= 0 or self.ycellsize <= 0:
            raise ValueError(
                f"Cell sizes must be positive, got ({self.xcellsize}, {self.ycellsize})"
            )
        self.dtype = np.dtype(settings.grid.dtype if self.dtype is None else self.dtype)
        if self.dtype.kind != "f":
            raise TypeError(f"Grid values must have a floating point dtype, got {self.dtype}")
        nodata = settings.grid.nodata if self.nodata is None else self.nodata
        # Keep nodata in the precision of the values it is compared with
        self.nodata = float(self.dtype.type(nodata))

        if self.ncols is None:
            self.ncols = int(round(self.extent.width / self.xcellsize))
            urx = self.extent.llx + self.ncols * self.xcellsize
            if not np.isclose(urx, self.extent.urx):
                logger.debug(f"Snapped right boundary of extent from {self.extent.urx} to {urx}")
                self.extent.urx = urx
        if self.nrows is None:
            self.nrows = int(round(self.extent.height / self.ycellsize))
            lly = self.extent.ury - self.nrows * self.ycellsize
            if not np.isclose(lly, self.extent.lly):
                logger.debug(f"Snapped lower boundary of extent from {self.extent.lly} to {lly}")
                self.extent.lly = lly
        if self.filename is not None:
            self.filename = Path(self.filename)

    @property
    def shape(self) -> tuple[int, int]:
        return self.nrows, self.ncols

    @property
    def transform(self) -> Affine:
        return from_origin(self.extent.llx, self.extent.ury, self.xcellsize, self.ycellsize)

    def copy(self, **changes) -> "GridHeader":
        """Return an independent copy, optionally with some fields changed."""
        changes.setdefault("extent", self.extent.copy())
        changes.setdefault("metadata", copy.deepcopy(self.metadata))
        return replace(self, **changes)

    def col_to_x(self, col: int | np.ndarray) -> float | np.ndarray:
        """Return the x-coordinate of the centre of the given column(s)."""
        x = self.extent.llx + (np.asarray(col) + 0.5) * self.xcellsize
        return x if np.ndim(x) else float(x)

    def row_to_y(self, row: int | np.ndarray) -> float | np.ndarray:
        """Return the y-coordinate of the centre of the given row(s)."""
        y = self.extent.ury - (np.asarray(row) + 0.5) * self.ycellsize
        return y if np.ndim(y) else float(y)

    def x_to_col(self, x: float | np.ndarray) -> int | np.ndarray:
        """Return the column index of the cell(s) containing x; may lie outside the grid."""
        col = np.floor((np.asarray(x, dtype=float) - self.extent.llx) / self.xcellsize)
        return col.astype(int) if np.ndim(col) else int(col)

    def y_to_row(self, y: float | np.ndarray) -> int | np.ndarray:
        """Return the row index of the cell(s) containing y; may lie outside the grid."""
        row = np.floor((self.extent.ury - np.asarray(y, dtype=float)) / self.ycellsize)
        return row.astype(int) if np.ndim(row) else int(row)

    @classmethod
    def from_dataset(cls, src: rio.io.DatasetReader, filename: Path | str | None = None) -> "GridHeader":
        """Read the header of an opened rasterio dataset."""
        if src.transform.b != 0 or src.transform.d != 0:
            raise ValueError(f"Rotated grids are not supported: {src.name}")
        dtype = np.dtype(src.dtypes[0])
        xres, yres = src.res
        return cls(
            extent=Extent.from_bounds(src.bounds),
            xcellsize=xres,
            ycellsize=yres,
            nodata=src.nodata,
            nrows=src.height,
            ncols=src.width,
            dtype=dtype if dtype.kind == "f" else None,
            crs=src.crs,
            filename=filename,
            metadata=dict(src.tags()),
        )


class GridState(Enum):
    """Residency of the values of a grid."""

    UNLOADED = "unloaded"  # only the header is known
    LOADED = "loaded"  # values are resident in the value store
    MATERIALIZED = "materialized"  # a dense array is in use by write or clip
    RELEASED = "released"  # values were discarded to reclaim memory


class Grid:
    """A regular grid of floating point values with a nodata value.

    The values live in a dense or a sparse value store, chosen at creation.
    Grids read from file may load their values lazily: the store is filled on
    first access and can be released again with release_memory(), after which
    the next access reloads the values from file.

    Header attributes (extent, cell sizes, nodata, ...) are available in any
    state. Value access triggers loading when needed.
    """

    def __init__(
        self,
        header: GridHeader,
        sparse: bool | None = None,
        values: np.ndarray | None = None,
        lazy: bool = False,
    ):
        self.header = header
        self.sparse = settings.grid.sparse if sparse is None else bool(sparse)
        self._store: GridValueStore | None = None
        # Min/max kept while no store is resident
        self._min_value = math.nan
        self._max_value = math.nan

        if lazy:
            if header.filename is None:
                raise ValueError("Lazy loading requires a grid file to load values from")
            self._state = GridState.UNLOADED
        else:
            self._store = self._new_store()
            if values is not None:
                self._store.load_from_dense(values)
                self._store.update_min_max()
            self._state = GridState.LOADED

    def __repr__(self) -> str:
        name = self.filename.name if self.filename else "<memory>"
        kind = "sparse" if self.sparse else "dense"
        return f"Grid({name}, {self.nrows}x{self.ncols}, {kind}, {self.state.value})"

    @classmethod
    def create(
        cls,
        extent: Extent,
        xcellsize: float,
        ycellsize: float | None = None,
        nodata: float | None = None,
        sparse: bool | None = None,
        crs: CRS | str | None = None,
        dtype: str | np.dtype | None = None,
    ) -> "Grid":
        """Create a grid with all cells set to nodata."""
        header = GridHeader(
            extent=extent.copy(),
            xcellsize=xcellsize,
            ycellsize=xcellsize if ycellsize is None else ycellsize,
            nodata=nodata,
            dtype=dtype,
            crs=CRS.from_user_input(crs) if crs is not None else None,
        )
        return cls(header, sparse=sparse)

    @classmethod
    def from_array(
        cls,
        values: np.ndarray,
        extent: Extent,
        nodata: float | None = None,
        sparse: bool | None = None,
        crs: CRS | str | None = None,
    ) -> "Grid":
        """Create a grid from a 2D array covering the given extent."""
        values = np.asarray(values)
        if values.ndim != 2 or values.size == 0:
            raise ValueError(f"Expected a non-empty 2D array, got shape {values.shape}")
        nrows, ncols = values.shape
        header = GridHeader(
            extent=extent.copy(),
            xcellsize=extent.width / ncols,
            ycellsize=extent.height / nrows,
            nodata=nodata,
            nrows=nrows,
            ncols=ncols,
            dtype=values.dtype if values.dtype.kind == "f" else None,
            crs=CRS.from_user_input(crs) if crs is not None else None,
        )
        return cls(header, sparse=sparse, values=values)

    @classmethod
    def read(
        cls,
        path: Path | str,
        sparse: bool | None = None,
        lazy: bool | None = None,
    ) -> "Grid":
        """Read a grid file.

        Args:
            path (Path | str): Path of the grid file (any raster format rasterio can read).
            sparse (bool | None, optional): Use the sparse representation. Defaults to settings.
            lazy (bool | None, optional): Defer loading values until first access. Defaults to settings.

        Returns:
            Grid: The grid.

        Raises:
            FileNotFoundError: If the grid file does not exist.
        """
        path = check_path(path, "Grid file")
        lazy = settings.grid.lazy_loading if lazy is None else lazy
        with rio.open(path) as src:
            header = GridHeader.from_dataset(src, path)
            values = None if lazy else src.read(1)
        logger.debug(f"Read header of {path.name}: {header.nrows}x{header.ncols}")
        return cls(header, sparse=sparse, values=values, lazy=lazy)

    def _new_store(self) -> GridValueStore:
        if self.sparse:
            return SparseValueStore(self.header)
        return DenseValueStore(self.header)

    @property
    def state(self) -> GridState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._store is not None

    @property
    def extent(self) -> Extent:
        return self.header.extent

    @property
    def nrows(self) -> int:
        return self.header.nrows

    @property
    def ncols(self) -> int:
        return self.header.ncols

    @property
    def shape(self) -> tuple[int, int]:
        return self.header.shape

    @property
    def xcellsize(self) -> float:
        return self.header.xcellsize

    @property
    def ycellsize(self) -> float:
        return self.header.ycellsize

    @property
    def nodata(self) -> float:
        return self.header.nodata

    @property
    def dtype(self) -> np.dtype:
        return self.header.dtype

    @property
    def crs(self) -> CRS | None:
        return self.header.crs

    @property
    def transform(self) -> Affine:
        return self.header.transform

    @property
    def filename(self) -> Path | None:
        return self.header.filename

    @property
    def metadata(self) -> dict[str, Any]:
        return self.header.metadata

    def col_to_x(self, col):
        return self.header.col_to_x(col)

    def row_to_y(self, row):
        return self.header.row_to_y(row)

    def x_to_col(self, x):
        return self.header.x_to_col(x)

    def y_to_row(self, y):
        return self.header.y_to_row(y)

    @property
    def min_value(self) -> float:
        return self._store.min_value if self._store is not None else self._min_value

    @property
    def max_value(self) -> float:
        return self._store.max_value if self._store is not None else self._max_value

    @property
    def has_min_max(self) -> bool:
        """False when min and max are undefined, i.e. no values were found."""
        return not (math.isnan(self.min_value) or math.isnan(self.max_value))

    @property
    def is_min_max_stale(self) -> bool:
        return self._store is None or self._store.is_min_max_stale

    def ensure_loaded(self) -> None:
        """Load the values from the grid file if they are not resident yet."""
        if self._store is None:
            self._load_values()

    def _load_values(self) -> None:
        if self.filename is None:
            raise InconsistentStateError(
                "Grid values are not available and there is no grid file to load them from"
            )
        path = check_path(self.filename, "Grid file")
        logger.debug(f"Lazy loading values of {path.name}")
        with Timer(logger=logger, message=f"Loading values of {path.name}"):
            with rio.open(path) as src:
                values = src.read(1)
            store = self._new_store()
            store.load_from_dense(values)
            store.update_min_max()
        self._store = store
        self._state = GridState.LOADED

    def release_memory(self) -> None:
        """Discard the values to reclaim memory.

        Only call this after the values have been written: the next value access
        reloads them from the grid file.
        """
        if self._store is None:
            return
        if self.filename is None:
            logger.debug("Released values of a grid without grid file; they cannot be reloaded")
        self._min_value = self._store.min_value
        self._max_value = self._store.max_value
        self._store = None
        self._state = GridState.RELEASED
        logger.debug(f"Released values of {self!r}")

    def materialize_dense(self) -> np.ndarray:
        """Return the values as a dense rows x cols array.

        For a sparse grid a new array is built from the stored cells; cells
        without a stored value get nodata. The array is not retained by the grid.
        """
        self.ensure_loaded()
        if self.sparse:
            logger.debug(f"Materializing dense values of {self!r}")
        return self._store.to_dense()

    @contextmanager
    def _materialized(self) -> Iterator[np.ndarray]:
        values = self.materialize_dense()
        self._state = GridState.MATERIALIZED
        try:
            yield values
        finally:
            self._state = GridState.LOADED

    def load_from_dense(self, values: np.ndarray) -> None:
        """Replace all values of the grid by those of a dense rows x cols array."""
        if self._store is None:
            self._store = self._new_store()
        self._store.load_from_dense(values)
        self._store.update_min_max()
        self._state = GridState.LOADED

    @property
    def values(self) -> np.ndarray:
        """Values as a rows x cols array ([0, 0] is the upper left cell).

        For a dense grid this is the live array; for a sparse grid it is a
        materialized copy, so changes to it do not affect the grid.
        """
        return self.materialize_dense()

    @values.setter
    def values(self, values: np.ndarray) -> None:
        self.load_from_dense(values)

    def get_value(self, x: float, y: float) -> float:
        """Return the value of the cell at (x, y), or nodata if it has none."""
        self.ensure_loaded()
        return self._store.get(x, y)

    def set_value(self, x: float, y: float, value: float) -> None:
        """Set the value of the cell at (x, y). Min and max become stale."""
        self.ensure_loaded()
        self._store.set(x, y, value)

    def add_value(self, x: float, y: float, value: float) -> None:
        """Add value to the cell at (x, y); a cell without value counts as zero."""
        self.ensure_loaded()
        self._store.add(x, y, value)

    def get_cell_value(self, row: int, col: int) -> float:
        return self.get_value(self.col_to_x(col), self.row_to_y(row))

    def set_cell_value(self, row: int, col: int, value: float) -> None:
        self.set_value(self.col_to_x(col), self.row_to_y(row), value)

    def reset_values(self) -> None:
        """Set all cells to nodata."""
        if self._store is None:
            self._store = self._new_store()
            self._state = GridState.LOADED
        else:
            self._store.reset()
        self._store.update_min_max()

    def element_count(self) -> int:
        """Return the number of cells with a value other than nodata."""
        self.ensure_loaded()
        return self._store.count()

    def update_min_max(self) -> tuple[float, float]:
        """Recompute min and max over all non-nodata values (NaN if there are none)."""
        self.ensure_loaded()
        return self._store.update_min_max()

    def iter_cells(self) -> Iterator[Cell]:
        """Yield all cells inside the grid with a value other than nodata, in Cell order."""
        self.ensure_loaded()
        rows, cols, values = self._store.indexed_values()
        cells = [
            Cell(row, col, value)
            for row, col, value in zip(rows.tolist(), cols.tolist(), values.tolist())
        ]
        yield from sorted(cells)

    def _check_dense(self, operation: str) -> None:
        if self.sparse:
            raise UnsupportedOperationError(operation, "sparse")

    def _check_aligned(self, other: "Grid") -> None:
        if other.shape != self.shape or not np.allclose(
            other.extent.to_bounds(), self.extent.to_bounds()
        ):
            raise ValueError(
                f"Grids are not aligned: {self.shape} {self.extent} vs {other.shape} {other.extent}"
            )

    def replace_values(self, old_value: float, new_value: "float | Grid") -> None:
        """Set all cells with old_value to new_value.

        new_value may be a grid with the same geometry, in which case its value
        for the cell is used. That variant is not supported for sparse grids.
        """
        self.ensure_loaded()
        if isinstance(new_value, Grid):
            self._check_dense("Replacing values by values of another grid")
            self._check_aligned(new_value)
            values = self._store.to_dense()
            mask = value_mask(values, old_value)
            values[mask] = new_value.values[mask]
            self._store.update_min_max()
        else:
            self._store.replace_value(old_value, new_value)

    def replace_values_in_selection(self, selection: "Grid", new_value: "float | Grid") -> None:
        """Set all cells that have a non-nodata value in selection to new_value.

        new_value may be a grid with the same geometry, in which case its value
        for the cell is used. Not supported for sparse grids.
        """
        self._check_dense("Replacing values in a selection grid")
        self._check_aligned(selection)
        self.ensure_loaded()
        selected = ~value_mask(selection.values, selection.nodata)
        values = self._store.to_dense()
        if isinstance(new_value, Grid):
            self._check_aligned(new_value)
            values[selected] = new_value.values[selected]
        else:
            values[selected] = new_value
        self._store.update_min_max()

    def difference(self, other: "Grid", extent: Extent | None = None) -> "Grid":
        """Return the difference other - self, optionally within an extent.

        Cells where either grid has nodata get nodata. Not supported for sparse grids.
        """
        self._check_dense("Computing a difference grid")
        base = self if extent is None else self.clip(extent)
        other = other if extent is None else other.clip(extent)
        base._check_aligned(other)

        values = base.values
        other_values = other.values.astype(base.dtype, copy=False)
        invalid = value_mask(values, base.nodata) | value_mask(other_values, other.nodata)
        difference = np.where(invalid, base.dtype.type(base.nodata), other_values - values)
        return Grid(base.header.copy(filename=None), sparse=False, values=difference)

    def copy(self, with_values: bool = True, filename: Path | str | None = None) -> "Grid":
        """Return an independent copy of this grid.

        Args:
            with_values (bool, optional): Copy the values; otherwise all cells are nodata.
            filename (Path | str | None, optional): Filename of the copy. Defaults to the
                filename of this grid.

        Returns:
            Grid: The copy, using the same storage representation.
        """
        header = self.header.copy()
        if filename is not None:
            header.filename = Path(filename)
        grid = Grid(header, sparse=self.sparse)
        if with_values:
            self.ensure_loaded()
            grid._store = self._store.copy(header)
        return grid

    def _clip_window(self, clip_extent: Extent) -> tuple[Extent, slice, slice]:
        # Snap outward to whole cells of this grid, then keep the part inside the grid
        snapped = clip_extent.snap(
            self.xcellsize,
            self.ycellsize,
            enlarge=True,
            origin=(self.extent.llx, self.extent.ury),
        ).clip(self.extent)
        col_start = int(round((snapped.llx - self.extent.llx) / self.xcellsize))
        col_stop = int(round((snapped.urx - self.extent.llx) / self.xcellsize))
        row_start = int(round((self.extent.ury - snapped.ury) / self.ycellsize))
        row_stop = int(round((self.extent.ury - snapped.lly) / self.ycellsize))
        rows = slice(max(row_start, 0), max(min(row_stop, self.nrows), row_start, 0))
        cols = slice(max(col_start, 0), max(min(col_stop, self.ncols), col_start, 0))
        return snapped, rows, cols

    def clip(self, clip_extent: Extent) -> "Grid":
        """Return a new grid with the cells of this grid that overlap clip_extent.

        The clip extent is enlarged to whole cells. The result uses the same
        storage representation and has no grid file.
        """
        header = self.clip_header(clip_extent)
        _, rows, cols = self._clip_window(clip_extent)
        with self._materialized() as values:
            clipped = np.array(values[rows, cols], copy=True)
        logger.debug(f"Clipped {self!r} to {header.extent}: {header.nrows}x{header.ncols}")
        return Grid(header, sparse=self.sparse, values=clipped)

    def clip_header(self, clip_extent: Extent) -> GridHeader:
        """Return the header clip(clip_extent) would produce, without touching values."""
        extent, rows, cols = self._clip_window(clip_extent)
        return self.header.copy(
            extent=extent,
            nrows=rows.stop - rows.start,
            ncols=cols.stop - cols.start,
            filename=None,
        )

    def write(
        self,
        path: Path | str | None = None,
        dtype: str | np.dtype | None = None,
        compress: str | None = None,
    ) -> Path:
        """Write the grid to a raster file and make it the grid file of this grid.

        Args:
            path (Path | str | None, optional): Output path. Defaults to the current grid file.
            dtype (str | np.dtype | None, optional): Output data type. Defaults to the grid dtype.
            compress (str | None, optional): Compression method. Defaults to settings.

        Returns:
            Path: The written file.
        """
        path = Path(path) if path is not None else self.filename
        if path is None:
            raise ValueError("No path given and grid has no grid file")
        make_parent_dir(path)
        dtype = np.dtype(self.dtype if dtype is None else dtype)
        profile = {
            "driver": settings.io.driver,
            "height": self.nrows,
            "width": self.ncols,
            "count": 1,
            "dtype": dtype.name,
            "crs": self.crs,
            "transform": self.transform,
            "nodata": self.nodata,
            "compress": compress or settings.io.compress,
        }
        with Timer(logger=logger, message=f"Writing {path.name}"):
            with self._materialized() as values:
                with rio.open(path, "w", **profile) as dst:
                    dst.write(values.astype(dtype, copy=False), 1)
                    if self.metadata:
                        dst.update_tags(**self.metadata)
        self.header.filename = path
        logger.info(f"Grid written to {path}")
        return path
