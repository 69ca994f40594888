"""
Observations
------------

A set of observations of a single variable at known positions. Observations
with missing values are removed when the set is constructed, so that estimators
only ever see valid values.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import logging

import numpy as np
import polars as pl

from .utils import InsufficientDataError, check_cols


@dataclass(frozen=True)
class ObservationSet:
    """
    Immutable observations of one variable.

    Use `ObservationSet.from_frame` or `ObservationSet.from_arrays` rather than
    the constructor, these remove missing values.

    Parameters
    ----------
    coordinates : numpy.ndarray
        Positions of the observations, shape (n, N).
    values : numpy.ndarray
        Observed values, shape (n,).
    name : str | None
        Name of the observed variable.
    """

    coordinates: np.ndarray
    values: np.ndarray
    name: str | None = None

    def __post_init__(self) -> None:
        coords = np.array(self.coordinates, dtype=float, ndmin=2, copy=True)
        values = np.array(self.values, dtype=float, ndmin=1, copy=True)
        if coords.shape[0] != values.shape[0]:
            raise ValueError(
                "Number of positions and number of values must be equal"
            )
        if coords.shape[0] == 0:
            raise InsufficientDataError(
                f"Estimation requires data, no valid values for {self.name}"
            )
        coords.flags.writeable = False
        values.flags.writeable = False
        object.__setattr__(self, "coordinates", coords)
        object.__setattr__(self, "values", values)
        return None

    @classmethod
    def from_arrays(
        cls,
        coordinates: np.ndarray | Sequence,
        values: np.ndarray | Sequence,
        name: str | None = None,
    ) -> "ObservationSet":
        """
        Build an ObservationSet from positions and values, removing values that
        are NaN or None.

        Parameters
        ----------
        coordinates : numpy.ndarray
            Positions of the observations, shape (n, N). A 1d input is treated
            as n positions in 1 dimension.
        values : numpy.ndarray
            Observed values, shape (n,).
        name : str | None
            Name of the observed variable.

        Returns
        -------
        ObservationSet
        """
        coords = np.asarray(coordinates, dtype=float)
        if coords.ndim == 1:
            coords = coords[:, None]
        vals = np.array(
            [np.nan if v is None else v for v in values], dtype=float
        )
        valid = ~np.isnan(vals)
        if not valid.all():
            logging.info(
                f"Removing {np.sum(~valid)} missing values for {name}"
            )
        return cls(coords[valid], vals[valid], name)

    @classmethod
    def from_frame(
        cls,
        df: pl.DataFrame,
        variable: str,
        coords: list[str],
    ) -> "ObservationSet":
        """
        Build an ObservationSet for one variable of an observational DataFrame.

        Rows where the variable is null or NaN are removed.

        Parameters
        ----------
        df : polars.DataFrame
            Observations, containing the columns in `coords` and the variable
            column.
        variable : str
            Name of the column containing the observed values.
        coords : list[str]
            Names of the columns containing the positional values, for
            example ["lat", "lon"].

        Returns
        -------
        ObservationSet
        """
        check_cols(df, [*coords, variable])
        valid = df.select([*coords, variable]).filter(
            pl.col(variable).is_not_null()
            & pl.col(variable).cast(pl.Float64).is_not_nan()
        )
        n_removed = df.height - valid.height
        if n_removed:
            logging.info(f"Removing {n_removed} missing values for {variable}")
        return cls(
            valid.select(coords).to_numpy(),
            valid.get_column(variable).cast(pl.Float64).to_numpy(),
            variable,
        )

    @property
    def count(self) -> int:
        """Number of observations"""
        return self.values.shape[0]

    @property
    def dim(self) -> int:
        """Number of coordinates of each position"""
        return self.coordinates.shape[1]

    def __len__(self) -> int:
        return self.count

    def subset(self, indices: np.ndarray | Sequence[int]) -> "ObservationSet":
        """Get the observations at a sequence of indices, in that order"""
        idx = np.asarray(indices, dtype=int)
        return ObservationSet(
            self.coordinates[idx], self.values[idx], self.name
        )
