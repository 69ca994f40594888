"""
Grid
----

Functions for creating grids and for enumerating the locations of a target
domain in a canonical order.

A domain is one of:

* an `xarray.DataArray` grid, whose locations are the product of its coordinate
  values, enumerated in row-major ("C") order;
* a `polars.DataFrame` point set, one location per row;
* a `numpy.ndarray` of shape (n, N), one location per row.
"""

from collections.abc import Iterable, Sequence

import numpy as np
import polars as pl
import xarray as xr

from .utils import check_cols

Domain = xr.DataArray | pl.DataFrame | np.ndarray


def grid_from_resolution(
    resolution: float | list[float],
    bounds: list[tuple[float, float]],
    coord_names: list[str],
) -> xr.DataArray:
    """
    Generate a grid from a resolution value, or a list of resolutions for
    given boundaries and coordinate names.

    Note that all list inputs must have the same length, the ordering of values
    in the lists is assumed align.

    Parameters
    ----------
    resolution : float | list[float]
        Resolution of the grid. Can be a single resolution value that will be
        applied to all coordinates, or a list of values mapping a resolution
        value to each of the coordinates.
    bounds : list[tuple[float, float]]
        A list of bounds of the form `(lower_bound, upper_bound)` indicating
        the bounding box of the returned grid
    coord_names : list[str]
        List of coordinate names

    Returns
    -------
    grid : xarray.DataArray:
        The grid defined by the resolution and bounding box.
    """
    if not isinstance(resolution, Iterable):
        resolution = [resolution for _ in range(len(bounds))]
    if len(resolution) != len(coord_names) or len(bounds) != len(coord_names):
        raise ValueError("Input lists must have the same length")
    coords = {
        c_name: np.arange(lbound, ubound, res)
        for c_name, (lbound, ubound), res in zip(
            coord_names, bounds, resolution
        )
    }
    grid = xr.DataArray(coords=xr.Coordinates(coords))
    return grid


def cartesian_grid(
    dims: Sequence[int],
    origin: Sequence[float] | None = None,
    spacing: Sequence[float] | None = None,
    coord_names: Sequence[str] | None = None,
) -> xr.DataArray:
    """
    Generate a regular grid whose locations are the centroids of `dims` cells.

    Parameters
    ----------
    dims : Sequence[int]
        Number of cells along each coordinate.
    origin : Sequence[float] | None
        Lower corner of the grid, defaults to 0 along each coordinate.
    spacing : Sequence[float] | None
        Size of a cell along each coordinate, defaults to 1.
    coord_names : Sequence[str] | None
        Names of the coordinates, defaults to "x", "y", "z" for up to 3
        dimensions and "x1", "x2", ... otherwise.

    Returns
    -------
    grid : xarray.DataArray
    """
    n_dim = len(dims)
    origin = origin if origin is not None else [0.0] * n_dim
    spacing = spacing if spacing is not None else [1.0] * n_dim
    if coord_names is None:
        coord_names = (
            ["x", "y", "z"][:n_dim]
            if n_dim <= 3
            else [f"x{i + 1}" for i in range(n_dim)]
        )
    if not (len(origin) == len(spacing) == len(coord_names) == n_dim):
        raise ValueError("Input lists must have the same length")
    coords = {
        name: start + (np.arange(n) + 0.5) * step
        for name, n, start, step in zip(coord_names, dims, origin, spacing)
    }
    return xr.DataArray(coords=xr.Coordinates(coords))


def domain_coordinates(
    domain: Domain,
    coords: list[str] | None = None,
) -> np.ndarray:
    """
    Get the positions of all locations of a domain in canonical order.

    Parameters
    ----------
    domain : xarray.DataArray | polars.DataFrame | numpy.ndarray
        The target domain.
    coords : list[str] | None
        Names of the coordinates to use, in order. For a grid this defaults to
        the dimensions of the grid, for a DataFrame to all columns. Ignored for
        an array.

    Returns
    -------
    numpy.ndarray
        Positions, shape (n, N), where n is the number of locations in the
        domain.
    """
    if isinstance(domain, xr.DataArray):
        dims = list(domain.dims) if coords is None else coords
        for dim in dims:
            if dim not in domain.coords:
                raise KeyError(f"Cannot find coordinate {dim} in the grid.")
        axes = [domain.coords[dim].values.astype(float) for dim in dims]
        mesh = np.meshgrid(*axes, indexing="ij")
        return np.stack(mesh, axis=-1).reshape(-1, len(dims))
    if isinstance(domain, pl.DataFrame):
        cols = domain.columns if coords is None else coords
        check_cols(domain, cols)
        return domain.select(cols).cast(pl.Float64).to_numpy()
    arr = np.asarray(domain, dtype=float)
    if arr.ndim == 1:
        arr = arr[:, None]
    if arr.ndim != 2:
        raise ValueError("Domain array must have shape (n, N)")
    return arr


def domain_size(domain: Domain) -> int:
    """Number of locations in a domain"""
    if isinstance(domain, xr.DataArray):
        return int(np.prod([domain.sizes[dim] for dim in domain.dims]))
    if isinstance(domain, pl.DataFrame):
        return domain.height
    return np.asarray(domain).shape[0]


def nearest_location(
    domain: Domain,
    position: Sequence[float],
    coords: list[str] | None = None,
) -> int:
    """
    Get the canonical index of the location of a domain closest (in Euclidean
    distance) to a position.
    """
    locs = domain_coordinates(domain, coords)
    sq_dist = np.sum((locs - np.asarray(position, dtype=float)) ** 2, axis=1)
    return int(np.argmin(sq_dist))
