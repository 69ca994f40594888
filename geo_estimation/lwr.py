"""
Locally Weighted Regression
---------------------------

At each location a linear model of the coordinates is fitted by weighted least
squares to the k nearest observations. Neighbours are weighted by a kernel of
their distance, normalised by the distance to the farthest neighbour.

References
----------
* Stone 1977. *Consistent non-parametric regression.*
* Cleveland 1979. *Robust locally weighted regression and smoothing
  scatterplots.*
* Cleveland & Grosse 1991. *Computational methods for local regression.*
"""

from collections.abc import Callable
from dataclasses import dataclass, field
import math

import numpy as np

from .constants import LWR_NEIGHBOR_FRACTION
from .distances import Euclidean, Metric
from .estimator import Estimator, EstimatorParams
from .observations import ObservationSet
from .search import KNearestSearch
from .utils import (
    ConfigurationError,
    InsufficientDataError,
    NumericalError,
    is_positive_int,
)


def gaussian_kernel(h: np.ndarray) -> np.ndarray:
    """Default weight function, exp(-3 h^2)"""
    return np.exp(-3 * np.power(h, 2))


@dataclass(frozen=True)
class LWRParams(EstimatorParams):
    """
    Locally weighted regression parameters.

    Parameters
    ----------
    neighbors : int | None
        Number of neighbours, defaults to 20% of the observations rounded up.
    distance : Metric
        Distance metric, defaults to the Euclidean distance.
    weightfun : Callable
        Weight as a function of the normalised distance h in [0, 1], defaults
        to exp(-3 h^2).
    """

    neighbors: int | None = None
    distance: Metric = field(default_factory=Euclidean)
    weightfun: Callable[[np.ndarray], np.ndarray] = gaussian_kernel

    def n_neighbors(self, observations: ObservationSet) -> int:
        """Number of neighbours used for a set of observations"""
        if self.neighbors is None:
            return math.ceil(LWR_NEIGHBOR_FRACTION * observations.count)
        return self.neighbors

    def validate(self, observations: ObservationSet) -> None:
        """Check the parameters against a set of observations"""
        n = observations.count
        if n == 0:
            raise InsufficientDataError("Estimation requires data")
        k = self.n_neighbors(observations)
        if not is_positive_int(k) or k > n:
            raise ConfigurationError(
                f"Invalid number of neighbours {k}, must be in [1, {n}]"
            )
        return None

    def build(
        self,
        observations: ObservationSet,
    ) -> "LocallyWeightedRegression":
        """Get the validated estimator"""
        self.validate(observations)
        return LocallyWeightedRegression(self)


@dataclass(frozen=True)
class LWRModel:
    """The observations and the search index of a fitted LWR estimator"""

    observations: ObservationSet
    searcher: KNearestSearch


class LocallyWeightedRegression(Estimator[LWRModel]):
    """
    Locally weighted regression estimator.

    Parameters
    ----------
    params : LWRParams
    """

    def __init__(self, params: LWRParams | None = None) -> None:
        self.params = params or LWRParams()
        return None

    def fit(self, observations: ObservationSet) -> LWRModel:
        """Build the nearest neighbour search of the observations"""
        self.params.validate(observations)
        searcher = KNearestSearch(
            observations.coordinates,
            self.params.n_neighbors(observations),
            self.params.distance,
        )
        return LWRModel(observations, searcher)

    def _kernel_weights(self, dist: np.ndarray) -> np.ndarray:
        max_dist = np.max(dist)
        delta = dist / max_dist if max_dist > 0 else np.zeros_like(dist)
        w = np.asarray(self.params.weightfun(delta), dtype=float)
        return np.broadcast_to(w, delta.shape)

    def predict(
        self,
        model: LWRModel,
        location: np.ndarray,
    ) -> tuple[float, float]:
        r"""
        Estimate the value at a location.

        Solves the weighted normal equations

        .. math::
            X^T W X \theta = X^T W z

        where the rows of X are [1, x_i] for each neighbour. The uncertainty is
        the norm of :math:`W X (X^T W X)^{-1} [1, x]`.

        Raises
        ------
        NumericalError
            If the normal equations are singular, for example with fewer
            neighbours than coefficients or with collinear neighbours.
        """
        idx, dist = model.searcher.search(location)
        w = self._kernel_weights(dist)

        X = np.column_stack(
            [np.ones(len(idx)), model.observations.coordinates[idx]]
        )
        z = model.observations.values[idx]
        x0 = np.concatenate(([1.0], np.asarray(location, dtype=float)))

        XtW = X.T * w
        normal = XtW @ X
        theta, _, rank, _ = np.linalg.lstsq(normal, XtW @ z, rcond=None)
        if rank < normal.shape[0]:
            raise NumericalError(
                "Singular normal equations in locally weighted regression, "
                + f"rank {rank} < {normal.shape[0]}"
            )
        hat = np.linalg.lstsq(normal, x0, rcond=None)[0]
        residual = (w[:, None] * X) @ hat

        return float(theta @ x0), float(np.linalg.norm(residual))
