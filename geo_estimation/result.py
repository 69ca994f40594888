"""
Results
-------

Collects the mean and variance of each estimated variable and assembles them
into an xarray.Dataset aligned with the target domain.
"""

from dataclasses import dataclass, field

import numpy as np
import polars as pl
import xarray as xr

from .grid import Domain, domain_coordinates, domain_size

VARIANCE_SUFFIX: str = "_variance"


@dataclass()
class EstimationResult:
    """
    Estimated mean and variance of each variable, in the canonical order of
    the locations of the domain.

    Parameters
    ----------
    domain : xarray.DataArray | polars.DataFrame | numpy.ndarray
        The target domain.
    coords : list[str] | None
        Names of the domain coordinates, see
        `geo_estimation.grid.domain_coordinates`.
    """

    domain: Domain
    coords: list[str] | None = None
    mean: dict[str, np.ndarray] = field(default_factory=dict)
    variance: dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def variables(self) -> list[str]:
        """Names of the estimated variables, in order of estimation"""
        return list(self.mean.keys())

    def add(
        self,
        variable: str,
        mean: np.ndarray,
        variance: np.ndarray,
    ) -> None:
        """Store the estimates of one variable"""
        n = domain_size(self.domain)
        if len(mean) != n or len(variance) != n:
            raise ValueError(
                f"Estimates for {variable} must have one value for each of the "
                + f"{n} locations"
            )
        self.mean[variable] = np.asarray(mean, dtype=float)
        self.variance[variable] = np.asarray(variance, dtype=float)
        return None

    def to_dataset(self) -> xr.Dataset:
        """
        Assemble the estimates into an xarray.Dataset.

        For a grid domain each variable has the shape and coordinates of the
        grid. Otherwise each variable is indexed by a "location" dimension,
        with the positions of the locations as coordinates. The variance of
        variable "var" is named "var_variance".

        Returns
        -------
        xarray.Dataset
        """
        if isinstance(self.domain, xr.DataArray):
            dims = (
                list(self.domain.dims) if self.coords is None else self.coords
            )
            shape = tuple(self.domain.sizes[d] for d in dims)
            coords = {d: self.domain.coords[d].values for d in dims}
        else:
            dims = ["location"]
            shape = (domain_size(self.domain),)
            positions = domain_coordinates(self.domain, self.coords)
            names = (
                self.coords
                or (
                    self.domain.columns
                    if isinstance(self.domain, pl.DataFrame)
                    else [f"x{i}" for i in range(positions.shape[1])]
                )
            )
            coords = {
                "location": np.arange(shape[0]),
                **{
                    name: ("location", positions[:, i])
                    for i, name in enumerate(names)
                },
            }

        data_vars = {}
        for var in self.variables:
            data_vars[var] = (dims, self.mean[var].reshape(shape, order="C"))
            data_vars[var + VARIANCE_SUFFIX] = (
                dims,
                self.variance[var].reshape(shape, order="C"),
            )
        return xr.Dataset(data_vars=data_vars, coords=coords)
