import json
import logging
import math
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import dask.array as da
import matplotlib.pyplot as plt
import numpy as np

from sparsegrid.config import settings
from sparsegrid.errors import InconsistentStateError
from sparsegrid.extent import Extent
from sparsegrid.grid import Grid
from sparsegrid.math import compute_nmad
from sparsegrid.store import skip_mask
from sparsegrid.utils.timer import Timer

logger = logging.getLogger("sparsegrid")


@dataclass()
class RasterStatistics:
    """Summary statistics over the values of a grid.

    valid_percentage is the share of grid cells that contributed a value. Over
    zero values every other measure is NaN.
    """

    mean: float
    std: float
    min: float
    max: float
    percentile25: float
    median: float
    percentile75: float
    nmad: float
    valid_percentage: float

    def to_dict(self) -> dict[str, float]:
        """Return the statistics as a dictionary keyed by field name."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RasterStatistics":
        """Create RasterStatistics from dictionary."""
        return cls(**data)

    @classmethod
    def from_file(cls, input_file: Path) -> "RasterStatistics":
        """Load statistics from a JSON file."""
        return load_stats_from_file(input_file)

    @classmethod
    def empty(cls, valid_percentage: float = 0.0) -> "RasterStatistics":
        """Statistics over zero values: every measure is undefined (NaN)."""
        return cls(
            mean=math.nan,
            std=math.nan,
            min=math.nan,
            max=math.nan,
            percentile25=math.nan,
            median=math.nan,
            percentile75=math.nan,
            nmad=math.nan,
            valid_percentage=valid_percentage,
        )

    @property
    def is_empty(self) -> bool:
        return math.isnan(self.min) and math.isnan(self.max)

    def __str__(self) -> str:
        """Return string representation of the statistics."""
        return "\n".join(
            [f"{key}: {value:.2f}" for key, value in self.to_dict().items()]
        )

    def __repr__(self) -> str:
        """Return string representation of the statistics."""
        return "RasterStatistics:\n" + self.__str__()

    def save(self, output_file: Path) -> None:
        """Save statistics to a JSON file."""
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        save_stats_to_file(self, output_file)


def _skip_set(skip_values: Iterable[float] | None, nodata: float) -> list[float]:
    """Deduplicate skip values and make sure nodata is one of them."""
    skip_set = []
    for value in [*(skip_values or []), nodata]:
        value = float(value)
        if not any(
            value == other or (math.isnan(value) and math.isnan(other))
            for other in skip_set
        ):
            skip_set.append(value)
    return skip_set


class GridStatistics:
    """Snapshot of the values of a grid for computing statistics.

    The values of the grid are flattened in row-major order, leaving out the
    skipped values. The nodata value of the grid is always skipped. When an
    extent is given the statistics are computed for a clipped copy of the grid,
    which is owned by the snapshot.

    Attributes:
        grid (Grid): The grid the values were taken from (possibly a clipped copy).
        owns_grid (bool): True if grid is a clipped copy made for this snapshot.
        skip_values (list[float]): The values that were left out, including nodata.
        values (np.ndarray | None): The remaining values, None after release_values().
        count (int): Number of remaining values.
        total_count (int): Number of cells in the (clipped) grid.
        skipped_count (int): Number of skipped cells.
        skipped_fraction (float): skipped_count / total_count, NaN for an empty grid.
        non_skipped_fraction (float): count / total_count, NaN for an empty grid.
    """

    def __init__(
        self,
        grid: Grid,
        skip_values: Iterable[float] | None = None,
        extent: Extent | None = None,
    ):
        if not isinstance(grid, Grid):
            raise TypeError("Input grid must be a sparsegrid.Grid object")

        if extent is None or extent == grid.extent:
            self.grid = grid
            self.owns_grid = False
        else:
            try:
                self.grid = grid.clip(extent)
            except InconsistentStateError as e:
                logger.warning(f"No values available for statistics, using empty window: {e}")
                # All cells of the window are nodata
                self.grid = Grid(grid.clip_header(extent), sparse=grid.sparse)
            self.owns_grid = True

        self.skip_values = _skip_set(skip_values, self.grid.nodata)
        self.values = self._create_values()
        self.count = int(self.values.size)
        self.total_count = self.grid.nrows * self.grid.ncols
        self.skipped_count = self.total_count - self.count
        if self.total_count > 0:
            self.skipped_fraction = self.skipped_count / self.total_count
            self.non_skipped_fraction = self.count / self.total_count
        else:
            self.skipped_fraction = math.nan
            self.non_skipped_fraction = math.nan

    @classmethod
    def from_buffer(
        cls,
        grid: Grid,
        x: float,
        y: float,
        buffer_cell_count: int,
        skip_values: Iterable[float] | None = None,
    ) -> "GridStatistics":
        """Create statistics for the cells around the cell at (x, y).

        Args:
            grid (Grid): The grid.
            x (float): x-coordinate of the center cell.
            y (float): y-coordinate of the center cell.
            buffer_cell_count (int): Number of cells left, right, above and below the
                center cell, i.e. 1 gives a window of 3x3 cells.
            skip_values (Iterable[float] | None, optional): Values to leave out besides nodata.

        Returns:
            GridStatistics: Statistics for the window.
        """
        if buffer_cell_count < 0:
            raise ValueError("buffer_cell_count must be zero or positive")
        dx = buffer_cell_count * grid.xcellsize
        dy = buffer_cell_count * grid.ycellsize
        extent = Extent(x - dx, y - dy, x + dx, y + dy)
        return cls(grid, skip_values=skip_values, extent=extent)

    def __repr__(self) -> str:
        return (
            f"GridStatistics(count={self.count}, total_count={self.total_count}, "
            f"skipped_count={self.skipped_count})"
        )

    def _create_values(self) -> np.ndarray:
        try:
            values = self.grid.values
        except InconsistentStateError as e:
            logger.warning(f"No values available for statistics, using empty values: {e}")
            return np.array([], dtype=self.grid.dtype)
        return values[~skip_mask(values, self.skip_values)]

    def to_dict(self) -> dict[str, float]:
        """Return the counts and fractions of the snapshot."""
        return {
            "count": self.count,
            "total_count": self.total_count,
            "skipped_count": self.skipped_count,
            "skipped_fraction": self.skipped_fraction,
            "non_skipped_fraction": self.non_skipped_fraction,
        }

    def compute(self, use_dask: bool = True) -> RasterStatistics:
        """Compute statistics over the values of the snapshot."""
        return compute_raster_statistics(self, use_dask=use_dask)

    def release_values(self) -> None:
        """Drop the values and, for a clipped copy, the values of that grid."""
        self.values = None
        if self.owns_grid:
            self.grid.release_memory()


def compute_raster_statistics(
    values: GridStatistics | np.ndarray,
    output_file: Path | str | None = None,
    use_dask: bool = True,
) -> RasterStatistics:
    """Compute statistics for the values of a grid.

    Args:
        values (GridStatistics | np.ndarray): Statistics snapshot of a grid, or an
            array of values. Masked elements of a masked array are left out.
        output_file (Path | str | None, optional): Path to save the statistics as JSON. Defaults to None.
        use_dask (bool, optional): Use dask for large arrays. Defaults to True.

    Returns:
        RasterStatistics: Container with computed statistics.
    """
    if isinstance(values, GridStatistics):
        if values.values is None:
            raise ValueError("Values of the statistics snapshot have been released")
        array = values.values
        fraction = values.non_skipped_fraction
        valid_percentage = 0.0 if math.isnan(fraction) else round(fraction * 100, 2)
    elif isinstance(values, np.ma.MaskedArray):
        array = values.compressed()
        valid_percentage = round(array.size / values.size * 100, 2) if values.size else 0.0
    elif isinstance(values, np.ndarray):
        array = values.ravel()
        valid_percentage = 100.0
    else:
        raise TypeError("Input must be a GridStatistics object or a numpy array")

    stats = _compute_statistics(array, valid_percentage, use_dask=use_dask)

    if output_file is not None:
        save_stats_to_file(stats, output_file)

    return stats


def _compute_statistics(
    array: np.ndarray, valid_percentage: float, use_dask: bool = True
) -> RasterStatistics:
    """Compute the statistics of a flat array of values.

    Arrays larger than the statistics.dask_threshold setting are reduced with
    dask when use_dask is True.
    """
    if array.size == 0:
        logger.warning("No values to compute statistics for; all statistics are NaN")
        return RasterStatistics.empty(valid_percentage)

    with Timer(logger=logger, message=f"Statistics over {array.size} values"):
        if use_dask and array.size > settings.statistics.dask_threshold:
            values_dask = da.from_array(array, chunks="auto")

            # Execute all tasks at once using Dask's scheduler
            mean, std, min_val, max_val, percentile25, median, percentile75 = da.compute(
                da.mean(values_dask),
                da.std(values_dask),
                da.min(values_dask),
                da.max(values_dask),
                da.percentile(values_dask, 25),
                da.percentile(values_dask, 50),
                da.percentile(values_dask, 75),
            )
        else:
            mean = np.mean(array)
            std = np.std(array)
            min_val = np.min(array)
            max_val = np.max(array)
            percentile25 = np.percentile(array, 25)
            median = np.percentile(array, 50)
            percentile75 = np.percentile(array, 75)

    # Handle array-like percentile outputs
    percentile25_val = (
        percentile25[0] if hasattr(percentile25, "__len__") else percentile25
    )
    median_val = median[0] if hasattr(median, "__len__") else median
    percentile75_val = (
        percentile75[0] if hasattr(percentile75, "__len__") else percentile75
    )

    return RasterStatistics(
        mean=float(mean),
        std=float(std),
        min=float(min_val),
        max=float(max_val),
        percentile25=float(percentile25_val),
        median=float(median_val),
        percentile75=float(percentile75_val),
        nmad=float(compute_nmad(array)),
        valid_percentage=valid_percentage,
    )


def plot_statistics(
    values: GridStatistics | np.ndarray,
    output_file: Path | str | None = None,
    stats: RasterStatistics | None = None,
    xlim: tuple[float, float] | None = None,
    fig_cfg: dict | None = None,
    hist_cfg: dict | None = None,
    box_cfg: dict | None = None,
    save_cfg: dict | None = None,
) -> tuple[plt.Figure, tuple[plt.Axes, plt.Axes]]:
    """Plot histogram and boxplot of the values of a grid.

    Args:
        values (GridStatistics | np.ndarray): Statistics snapshot or array of values.
        output_file (Path | str | None, optional): Path to save the output figure. Defaults to None.
        stats (RasterStatistics | None, optional): Statistics object to annotate on the plot. Defaults to None.
        xlim (tuple[float, float] | None, optional): Tuple of (min, max) to set x-axis limits. Defaults to None.
        fig_cfg (dict | None, optional): Configuration for plt.subplots() call. Defaults to None.
        hist_cfg (dict | None, optional): Configuration for histogram. Defaults to None.
        box_cfg (dict | None, optional): Configuration for boxplot. Defaults to None.
        save_cfg (dict | None, optional): Configuration for fig.savefig(). Defaults to None.

    Returns:
        tuple[plt.Figure, tuple[plt.Axes, plt.Axes]]: The figure and the histogram and boxplot axes.
    """
    fig_params = {"figsize": (10, 10), "sharex": True}
    hist_params = {
        "bins": 50,
        "density": True,
        "color": "C0",
        "edgecolor": "black",
        "alpha": 0.7,
    }
    box_params = {
        "vert": False,
        "widths": 0.5,
        "patch_artist": True,
        "boxprops": {"facecolor": "skyblue"},
        "medianprops": {"color": "black"},
    }
    save_params = {"dpi": 300}
    fig_params.update(fig_cfg or {})
    hist_params.update(hist_cfg or {})
    box_params.update(box_cfg or {})
    save_params.update(save_cfg or {})

    if isinstance(values, GridStatistics):
        if values.values is None:
            raise ValueError("Values of the statistics snapshot have been released")
        array = values.values
    elif isinstance(values, np.ma.MaskedArray):
        array = values.compressed()
    elif isinstance(values, np.ndarray):
        array = values.flatten()
    else:
        raise TypeError("Input must be a GridStatistics object or a numpy array")

    fig, (ax1, ax2) = plt.subplots(2, 1, **fig_params)

    ax1.hist(array, **hist_params)
    ax1.set_ylabel("Density")

    ax2.boxplot([array], **box_params)
    ax2.set_xlabel("Values")
    ax2.set_yticks([])

    if xlim is not None:
        ax1.set_xlim(xlim)
        ax2.set_xlim(xlim)

    if stats is not None:
        stats_text = "\n".join(
            [f"{key}: {value:.2f}" for key, value in stats.to_dict().items()]
        )
        plt.figtext(
            0.8, 0.8, stats_text, bbox=dict(facecolor="white", alpha=0.5), fontsize=10
        )

    fig.tight_layout()

    if output_file is not None:
        fig.savefig(output_file, **save_params)

    return fig, (ax1, ax2)


def save_stats_to_file(
    stats: RasterStatistics | dict[str, Any],
    output_file: Path | str,
    float_precision: int | None = None,
) -> None:
    """Save statistics to a JSON file.

    Args:
        stats (RasterStatistics | dict[str, Any]): Statistics object or dictionary to save.
        output_file (Path | str): Path to save the output JSON file.
        float_precision (int | None, optional): Number of decimal places for float values.
            Defaults to the statistics.float_precision setting.
    """
    if float_precision is None:
        float_precision = settings.statistics.float_precision

    def _format_value(value: Any) -> Any:
        if isinstance(value, (np.integer | np.floating)):
            value = value.item()
        if isinstance(value, float):
            return str(round(value, float_precision))
        return value

    if isinstance(stats, RasterStatistics):
        stats = stats.to_dict()
    formatted_stats = {key: _format_value(value) for key, value in stats.items()}

    output_file = Path(output_file)
    if output_file.suffix != ".json":
        output_file = output_file.with_suffix(".json")
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w") as f:
        json.dump(formatted_stats, f, indent=4)

    logger.info(f"Statistics written to {output_file}")


def load_stats_from_file(input_file: Path | str) -> RasterStatistics:
    """Load statistics from a JSON file.

    Args:
        input_file (Path | str): Path to the JSON file containing statistics.

    Returns:
        RasterStatistics: Statistics object loaded from file.

    Raises:
        JSONDecodeError: If file contains invalid JSON
        TypeError: If JSON is missing required statistics fields
    """
    with open(input_file) as f:
        loaded_stats = json.load(f)

    loaded_stats = {key: float(value) for key, value in loaded_stats.items()}

    return RasterStatistics.from_dict(loaded_stats)
