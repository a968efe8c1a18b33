import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import numpy as np
from tqdm import tqdm

from sparsegrid.config import settings
from sparsegrid.grid import Grid

logger = logging.getLogger("sparsegrid")


def load_grid(
    grid_path: Path | str,
    sparse: bool | None = None,
    lazy: bool | None = None,
) -> Grid:
    """Load a grid from disk.

    Args:
        grid_path: Path to the grid file
        sparse: Store the values sparsely. Defaults to the grid.sparse setting.
        lazy: Only read the header until values are accessed. Defaults to the
            grid.lazy_loading setting.

    Returns:
        Loaded grid object

    Raises:
        FileNotFoundError: If the grid file doesn't exist
    """
    return Grid.read(grid_path, sparse=sparse, lazy=lazy)


def load_grids(
    paths: list[Path | str],
    parallel: bool = True,
    num_threads: int | None = None,
    exclude_duplicates: bool = False,
    sparse: bool | None = None,
    lazy: bool | None = None,
) -> list[Grid | None]:
    """Load grids from disk, either in parallel or sequentially.

    Args:
        paths: List of paths to grid files
        parallel: If True, load grids in parallel using threading
        num_threads: Number of threads to use for parallel loading. Defaults to
            the io.num_threads setting.
        exclude_duplicates: If True, only load unique paths
        sparse: Store the values sparsely. Defaults to the grid.sparse setting.
        lazy: Only read the headers. Defaults to the grid.lazy_loading setting.

    Returns:
        List of loaded grids in the same order as input paths. With parallel
        loading, grids that failed to load are None. Duplicate paths share the
        same grid object.
    """
    paths = [Path(path) for path in paths]

    if exclude_duplicates:
        paths = list(dict.fromkeys(paths))  # Preserve order while removing duplicates

    if not paths:
        return []

    if not parallel:
        return [
            load_grid(path, sparse=sparse, lazy=lazy)
            for path in tqdm(paths, desc="Loading grids")
        ]

    if num_threads is None:
        num_threads = min(len(paths), settings.io.num_threads)

    results = [None] * len(paths)

    # Store all indices for each path to handle duplicates
    path_to_indices = {}
    for idx, path in enumerate(paths):
        path_to_indices.setdefault(path, []).append(idx)

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        futures = {
            executor.submit(load_grid, path, sparse, lazy): path
            for path in path_to_indices
        }

        for future in tqdm(
            as_completed(futures), total=len(futures), desc="Loading grids"
        ):
            path = futures[future]
            indices = path_to_indices[path]
            try:
                grid = future.result()
                logger.debug(f"Loaded grid: {path.name}, {grid!r}")
            except (OSError, ValueError, TypeError) as e:
                logger.error(f"Error loading grid from {path}: {e}")
                grid = None
            for idx in indices:
                results[idx] = grid

    return results


def save_grid(
    grid: Grid,
    save_path: Path | str,
    dtype: str | np.dtype | None = None,
    compress: str | None = None,
) -> Path:
    """Save grid to disk.

    Args:
        grid: Grid object to save
        save_path: Path where to save the grid
        dtype: Data type for the saved grid. Defaults to the grid dtype.
        compress: Compression method to use. Defaults to the io.compress setting.

    Returns:
        Path of the written file
    """
    return grid.write(save_path, dtype=dtype, compress=compress)
