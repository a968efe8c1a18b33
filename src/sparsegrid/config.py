"""Package wide default settings.

Factories and I/O helpers fall back to these values for arguments left as None.
Override them with a (partial) nested dictionary:

    >>> from sparsegrid import config
    >>> config.update_settings({"grid": {"nodata": -999.0}})
"""

import copy
import logging
from typing import Any

from sparsegrid.utils.dotdict import DotDict

logger = logging.getLogger("sparsegrid")

DEFAULTS = DotDict(
    {
        "grid": {
            "nodata": -9999.0,
            "dtype": "float32",
            "sparse": False,
            "lazy_loading": True,
        },
        "io": {
            "driver": "GTiff",
            "compress": "LZW",
            "num_threads": 8,
        },
        "statistics": {
            "dask_threshold": 10000,
            "float_precision": 3,
        },
    }
)

settings = copy.deepcopy(DEFAULTS)


def update_settings(user_settings: dict[str, Any]) -> DotDict:
    """Merge user settings into the current settings and return them."""
    settings.update(user_settings)
    logger.debug(f"Updated settings: {user_settings}")
    return settings


def reset_settings() -> DotDict:
    """Restore the default settings."""
    settings.clear()
    settings.update(copy.deepcopy(DEFAULTS))
    return settings
