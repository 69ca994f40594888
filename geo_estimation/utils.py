r"""Utility functions and error classes for `geo_estimation`"""

import inspect
import logging
from warnings import warn

import numpy as np
import polars as pl

from .constants import SMALL_NEGATIVE_ATOL


class ColumnNotFoundError(Exception):
    """Error class for Column Not Being Found"""

    pass


class ConfigurationError(ValueError):
    """
    Error class for invalid estimator parameters.

    Raised before any location of the domain is visited.
    """

    pass


class InsufficientDataError(ConfigurationError):
    """Error class for a variable with no valid observations"""

    pass


class NumericalError(ArithmeticError):
    """
    Error class for a singular or ill-conditioned linear system, raised when an
    estimator is fitted.
    """

    pass


class EstimationCancelledError(Exception):
    """Error class for an estimation stopped by its cancellation callback"""

    pass


def adjust_small_negative(
    mat: np.ndarray | float,
    atol: float = SMALL_NEGATIVE_ATOL,
) -> np.ndarray | float:
    """
    Adjusts small negative values (with absolute value < atol) to 0.

    Raises a warning if any small negative values are detected. Larger negative
    values are left untouched.

    Parameters
    ----------
    mat : numpy.ndarray[float] | float
        Squared uncertainty values, for example Kriging variances.
    atol : float
        Absolute tolerance of the values treated as round-off.

    Returns
    -------
    ret : numpy.ndarray[float] | float
        A copy of the input with the small negative values set to 0.
    """
    arr = np.asarray(mat, dtype=float)
    small_negative_check = np.logical_and(
        np.isclose(arr, 0, atol=atol), arr < 0.0
    )
    ret = arr.copy()
    if small_negative_check.any():
        warn("Small negative vals are detected. Setting to 0.")
        logging.debug(f"Small negative values: {arr[small_negative_check]}")
        ret[small_negative_check] = 0.0
    if np.ndim(mat) == 0:
        return float(ret)
    return ret


def check_cols(
    df: pl.DataFrame,
    cols: list[str],
) -> None:
    """Check that all columns in a list of columns are in a DataFrame"""
    # Get name of function that is calling this
    calling_func = str(inspect.stack()[1][3])

    missing_cols = [c for c in cols if c not in df.columns]
    if missing_cols:
        raise ColumnNotFoundError(
            calling_func
            + ": DataFrame is missing required columns: "
            + ", ".join(missing_cols)
        )
    return None


def _get_logging_level(level: str) -> int:
    match level.lower():
        case "debug":
            level_i = 10
        case "info":
            level_i = 20
        case "warn":
            level_i = 30
        case "error":
            level_i = 40
        case "critical":
            level_i = 50
        case _:
            raise ValueError(f"Unknown logging level: {level}")
    return level_i


def init_logging(
    file: str | None = None,
    level: str = "DEBUG",
) -> None:
    """
    Initialise the logger

    Parameters
    ----------
    file : str
        File to send log messages to. If set to None (default) then print log
        messages to STDout
    level : str
        Level of logging, one of: "debug", "info", "warn", "error", "critical".

    Returns
    -------
    None
    """
    level_i: int = _get_logging_level(level)

    logging.basicConfig(
        filename=file,
        filemode="a",
        encoding="utf-8",
        format="%(levelname)s at %(asctime)s : %(message)s",
        level=level_i,
        force=True,
    )
    logging.captureWarnings(True)
    return None


def is_positive_int(val) -> bool:
    """Check that a value is an integer (not a bool) greater than 0"""
    return bool(
        isinstance(val, (int, np.integer))
        and not isinstance(val, bool)
        and val > 0
    )
