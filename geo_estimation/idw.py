"""
Inverse Distance Weighting
--------------------------

The estimate at a location is the average of the k nearest observations,
weighted by the inverse of their distance to the location raised to a power.
The reported uncertainty is the distance to the closest observation, a
proximity measure rather than a statistical variance.

Reference
---------
Shepard 1968. *A two-dimensional interpolation function for irregularly-spaced
data.*
"""

from dataclasses import dataclass, field

import numpy as np

from .distances import Euclidean, Metric
from .estimator import Estimator, EstimatorParams
from .observations import ObservationSet
from .search import KNearestSearch
from .utils import ConfigurationError, InsufficientDataError, is_positive_int


@dataclass(frozen=True)
class IDWParams(EstimatorParams):
    """
    Inverse distance weighting parameters.

    Parameters
    ----------
    neighbors : int | None
        Number of neighbours, defaults to all observations.
    distance : Metric
        Distance metric, defaults to the Euclidean distance.
    power : float
        Power of the distances, defaults to 1.
    """

    neighbors: int | None = None
    distance: Metric = field(default_factory=Euclidean)
    power: float = 1.0

    def validate(self, observations: ObservationSet) -> None:
        """Check the parameters against a set of observations"""
        n = observations.count
        if n == 0:
            raise InsufficientDataError("Estimation requires data")
        if not self.power > 0:
            raise ConfigurationError(
                f"IDW power must be positive, got {self.power}"
            )
        if self.neighbors is not None:
            if not is_positive_int(self.neighbors):
                raise ConfigurationError(
                    "Number of neighbours must be a positive integer, "
                    + f"got {self.neighbors}"
                )
            if self.neighbors > n:
                raise ConfigurationError(
                    f"Invalid number of neighbours {self.neighbors}, "
                    + f"only {n} observations"
                )
        return None

    def build(
        self,
        observations: ObservationSet,
    ) -> "InverseDistanceWeighting":
        """Get the validated estimator"""
        self.validate(observations)
        return InverseDistanceWeighting(self)


@dataclass(frozen=True)
class IDWModel:
    """The observations and the search index of a fitted IDW estimator"""

    observations: ObservationSet
    searcher: KNearestSearch


class InverseDistanceWeighting(Estimator[IDWModel]):
    """
    Inverse distance weighting estimator.

    Parameters
    ----------
    params : IDWParams
    """

    def __init__(self, params: IDWParams | None = None) -> None:
        self.params = params or IDWParams()
        return None

    def fit(self, observations: ObservationSet) -> IDWModel:
        """Build the nearest neighbour search of the observations"""
        self.params.validate(observations)
        k = self.params.neighbors or observations.count
        searcher = KNearestSearch(
            observations.coordinates, k, self.params.distance
        )
        return IDWModel(observations, searcher)

    def weights(
        self,
        model: IDWModel,
        location: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Compute the normalised weights of the neighbours of a location.

        If the location coincides with an observation, that observation gets
        all of the weight.

        Returns
        -------
        indices : numpy.ndarray[int]
            Indices of the neighbouring observations.
        distances : numpy.ndarray[float]
            Distances to the neighbours.
        weights : numpy.ndarray[float]
            Weights summing to 1.
        """
        idx, dist = model.searcher.search(location)
        with np.errstate(divide="ignore", over="ignore"):
            w = 1.0 / np.power(dist, self.params.power)
        if not np.isfinite(np.sum(w)):
            # Location coincides with (or is within round-off of) a neighbour
            exact = np.zeros_like(w)
            exact[np.argmax(~np.isfinite(w))] = 1.0
            return idx, dist, exact
        return idx, dist, w / np.sum(w)

    def predict(
        self,
        model: IDWModel,
        location: np.ndarray,
    ) -> tuple[float, float]:
        """
        Estimate the value at a location. The uncertainty is the distance to
        the nearest neighbour, 0 at an observation.
        """
        idx, dist, w = self.weights(model, location)
        return float(w @ model.observations.values[idx]), float(np.min(dist))
