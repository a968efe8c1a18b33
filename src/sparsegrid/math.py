"""Math and statistics utilities."""

from collections.abc import Callable

import numpy as np


def compute_nmad(data: np.ndarray) -> float:
    """Calculate the normalized median absolute deviation (NMAD) of the data.

    Args:
        data (np.ndarray): Input data.

    Returns:
        float: NMAD of the data.
    """
    return 1.4826 * np.median(np.abs(data - np.median(data)))


def round_to_multiple(
    x: float | np.ndarray,
    step: float,
    origin: float = 0.0,
    func: Callable = np.round,
    decimals: int = 6,
) -> float | np.ndarray:
    """Round a number to a multiple of step, counted from origin.

    The quotient is first rounded to a number of decimals so that values lying
    on a multiple up to floating point noise are not pushed to the next one by
    np.floor or np.ceil.

    Args:
        x (float | np.ndarray): The number(s) to round.
        step (float): The step to round to a multiple of (e.g. a cell size).
        origin (float, optional): Reference value of the multiples. Defaults to 0.
        func (Callable, optional): The rounding function to use. Defaults to np.round.
        decimals (int, optional): Decimals kept in the quotient before rounding.

    Returns:
        float | np.ndarray: The rounded number(s).
    """
    quotient = np.round((np.asarray(x, dtype=float) - origin) / step, decimals)
    result = origin + func(quotient) * step
    return result if np.ndim(result) else float(result)
