"""
Variograms
----------

Variogram classes giving the semivariance as a function of the lag (distance)
between two positions. Variograms can be evaluated on a single lag, a vector of
lags, or a full distance matrix.

The nugget is the discontinuity of the variogram at the origin, it is added to
strictly positive lags only so that the semivariance at lag 0 is always 0.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
import xarray as xr
from scipy.special import gamma, kv

from .types import MaternModel, VariogramModel


@dataclass()
class Variogram(ABC):
    """Generic Variogram Class - defines the abstract class"""

    nugget: float

    @abstractmethod
    def _structure(self, lag: np.ndarray) -> np.ndarray:
        """Semivariance for strictly positive lags, without the nugget"""
        raise NotImplementedError("Not implemented for base Variogram class")

    @property
    def sill(self) -> float | None:
        """
        The value of the variogram at large lags, None if the variogram is
        unbounded.
        """
        return None

    @property
    def bounded(self) -> bool:
        """Does the variogram have a sill (is it second-order stationary)"""
        return self.sill is not None

    def fit(
        self, distance_matrix: np.ndarray | xr.DataArray
    ) -> np.ndarray | xr.DataArray:
        """Fit the Variogram model to a distance matrix"""
        if isinstance(distance_matrix, xr.DataArray):
            out = distance_matrix.copy(data=self._gamma(distance_matrix.values))
            out.name = "variogram"
            return out
        return self._gamma(np.asarray(distance_matrix, dtype=float))

    def __call__(self, lag):
        """Evaluate the variogram at one or more lags"""
        out = self.fit(lag)
        if np.ndim(out) == 0:
            return float(out)
        return out

    def _gamma(self, lag: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            structure = self._structure(lag)
        return np.where(lag > 0, structure + self.nugget, 0.0)


@dataclass()
class LinearVariogram(Variogram):
    """
    Linear model

    Parameters
    ----------
    slope : float
    nugget : float
    """

    slope: float = 1.0

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        return self.slope * lag


@dataclass()
class PowerVariogram(Variogram):
    """
    Power model

    Parameters
    ----------
    scale : float
    exponent : float
        Must be in the interval (0, 2)
    nugget : float
    """

    scale: float = 1.0
    exponent: float = 1.0

    def __post_init__(self) -> None:
        if not 0 < self.exponent < 2:
            raise ValueError("exponent must be in the interval (0, 2)")
        return None

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        return self.scale * np.power(lag, self.exponent)


@dataclass()
class _BoundedVariogram(Variogram):
    psill: float = 1.0
    effective_range: float | None = None
    range: float | None = None

    # effective_range = range * _range_factor
    _range_factor = 1.0

    def __post_init__(self) -> None:
        if self.range is None and self.effective_range is None:
            raise ValueError(
                "One of range and effective_range must be specified"
            )
        if self.range is None and self.effective_range is not None:
            self.range = self.effective_range / self._range_factor
        elif self.effective_range is None and self.range is not None:
            self.effective_range = self.range * self._range_factor
        if self.range is None or self.range <= 0:
            raise ValueError("range must be positive")
        return None

    @property
    def sill(self) -> float:
        """Sill of the variogram, psill + nugget"""
        return self.psill + self.nugget


@dataclass()
class GaussianVariogram(_BoundedVariogram):
    """
    Gaussian Model

    .. math::
        \\gamma(h) = psill (1 - e^{-h^2 / r^2}) + nugget

    Parameters
    ----------
    psill : float
        The variance of the variogram.
    nugget : float
    effective_range : float | None
        The lag at which 95% of the sill is reached, equal to
        :math:`\\sqrt{3} r`
    range : float | None
        The range parameter r.
    """

    _range_factor = float(np.sqrt(3.0))

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        return self.psill * (
            1.0 - np.exp(-(np.power(lag, 2.0) / np.power(self.range, 2.0)))
        )


@dataclass()
class ExponentialVariogram(_BoundedVariogram):
    """
    Exponential Model

    .. math::
        \\gamma(h) = psill (1 - e^{-h / r}) + nugget

    Parameters
    ----------
    psill : float
        The variance of the variogram.
    nugget : float
    effective_range : float | None
        The lag at which 95% of the sill is reached, equal to 3 r.
    range : float | None
        The range parameter r.
    """

    _range_factor = 3.0

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        return self.psill * (1.0 - np.exp(-(lag / self.range)))


@dataclass()
class SphericalVariogram(_BoundedVariogram):
    """
    Spherical Model, the sill is reached exactly at the range.

    Parameters
    ----------
    psill : float
    nugget : float
    effective_range : float | None
    range : float | None
        For the spherical model range and effective_range are equal.
    """

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        scaled = np.minimum(lag / self.range, 1.0)
        return self.psill * (1.5 * scaled - 0.5 * np.power(scaled, 3.0))


@dataclass()
class MaternVariogram(_BoundedVariogram):
    """
    Matern Models

    Same args as the Variogram classes with additional nu, method parameters.

    Sklearn:

    1) This is called "sklearn" because if d/range = 1.0 and nu=0.5, it gives
       1/e correlation...
    2) This is NOT the same formulation as in GSTAT nor in papers about
       non-stationary anistropic covariance models (aka Karspeck paper).
    3) The "2" is inside the square root for middle and right.

    GeoStatic:

    Similar to Sklearn MaternVariogram model but uses the range scaling in
    gstat. There are no square root 2 or nu in middle and right. Yields the
    same answer to sklearn MaternVariogram if nu==0.5 but are otherwise
    different.

    Karspeck:

    Similar to Sklearn MaternVariogram model but the 2 is outside the square
    root for middle and right.

    Parameters
    ----------
    psill : float
        Sill of the variogram where it will flatten out. Values in the variogram
        will not exceed psill + nugget. This value is the variance.
    nugget : float
        The value of the variogram just above lag 0.
    effective_range : float | None
        Effective Range, this is 3 r if nu < 0.5 or nu > 10, otherwise 2 r
        (where r is the range). One of effective_range and range must be set.
    range : float | None
        The range parameter. One of range and effective_range must be set.
    nu : float
        Smoothing parameter, shapes to a smooth or rough variogram function
    method : MaternModel
        One of "sklearn", "gstat", or "karspeck"
    """

    nu: float = 0.5
    method: MaternModel = "sklearn"

    def __post_init__(self) -> None:
        self._range_factor = 2.0 if 0.5 <= self.nu <= 10 else 3.0
        super().__post_init__()
        if self.method.lower() not in ("sklearn", "gstat", "karspeck"):
            raise ValueError("Unexpected 'method' value")
        return None

    @property
    def _left(self) -> float:
        return 1.0 / (gamma(self.nu) * np.power(2.0, self.nu - 1.0))

    def _scaled(self, dist_over_range: np.ndarray) -> np.ndarray:
        match self.method.lower():
            case "sklearn":
                return np.sqrt(2.0 * self.nu) * dist_over_range
            case "gstat":
                return dist_over_range
            case "karspeck":
                return 2.0 * np.sqrt(self.nu) * dist_over_range
            case _:
                raise ValueError("Unexpected 'method' value")

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        scaled = self._scaled(lag / self.range)
        return self.psill * (
            1 - self._left * np.power(scaled, self.nu) * kv(self.nu, scaled)
        )


@dataclass()
class FunctionVariogram(Variogram):
    """
    A variogram defined by a function of the lag.

    Parameters
    ----------
    func : Callable
        Vectorised function of the lag returning the semivariance.
    nugget : float
    func_sill : float | None
        Optionally the limit of the function at large lags if it is bounded.
    """

    func: Callable[[np.ndarray], np.ndarray] | None = None
    func_sill: float | None = None

    def __post_init__(self) -> None:
        if self.func is None:
            raise ValueError("func must be set")
        return None

    @property
    def sill(self) -> float | None:
        """The sill of the function plus the nugget, if bounded"""
        if self.func_sill is None:
            return None
        return self.func_sill + self.nugget

    def _structure(self, lag: np.ndarray) -> np.ndarray:
        if self.func is None:
            raise ValueError("func must be set")
        return np.asarray(self.func(lag), dtype=float)


def as_variogram(variogram: Variogram | Callable) -> Variogram:
    """Wrap a function of the lag as an (unbounded) Variogram"""
    if isinstance(variogram, Variogram):
        return variogram
    if callable(variogram):
        return FunctionVariogram(nugget=0.0, func=variogram)
    raise TypeError(f"Cannot use {variogram!r} as a variogram")


def get_variogram(config: dict[str, Any]) -> Variogram:
    """
    Build a Variogram from a configuration mapping.

    Parameters
    ----------
    config : dict[str, Any]
        Mapping with a "model" key, one of "linear", "power", "gaussian",
        "exponential", "spherical", "matern". The remaining keys are passed to
        the Variogram class. The nugget defaults to 0.

    Returns
    -------
    Variogram
    """
    params = dict(config)
    model: VariogramModel = params.pop("model", "gaussian")
    params.setdefault("nugget", 0.0)
    match str(model).lower():
        case "linear":
            return LinearVariogram(**params)
        case "power":
            return PowerVariogram(**params)
        case "gaussian":
            return GaussianVariogram(**params)
        case "exponential":
            return ExponentialVariogram(**params)
        case "spherical":
            return SphericalVariogram(**params)
        case "matern":
            return MaternVariogram(**params)
        case _:
            raise ValueError(f"Unknown variogram model: {model}")


def variogram_to_covariance(
    gamma: np.ndarray | xr.DataArray,
    sill: float | None,
) -> np.ndarray | xr.DataArray:
    """
    Covariance of a second order stationary process from its variogram,
    sill minus the variogram.

    Parameters
    ----------
    gamma : numpy.ndarray | xarray.DataArray
        Variogram values, output of Variogram.fit.
    sill : float | None
        Sill of the variogram, the variance of the process. None for an
        unbounded variogram, which raises a ValueError.

    Returns
    -------
    numpy.ndarray | xarray.DataArray
        Covariance values, named "covariance" for a DataArray input.
    """
    if sill is None or not np.isfinite(sill):
        raise ValueError("Covariance is undefined for a variogram without sill")
    cov = sill - gamma
    if isinstance(cov, xr.DataArray):
        cov.name = "covariance"
    return cov
