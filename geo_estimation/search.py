"""
Neighbour searches
------------------

Strategies for finding the candidate neighbours of a query location among a
fixed set of observation positions. Every search returns a pair of arrays
`(indices, distances)` sorted by ascending distance, with ties broken by the
index of the observation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from .distances import Euclidean, Metric, sort_neighbors
from .utils import ConfigurationError, is_positive_int


@dataclass(frozen=True)
class MetricBall:
    """
    A search neighbourhood: all positions within a radius of the query under a
    distance metric.

    Parameters
    ----------
    radius : float
    metric : Metric
        Defaults to the Euclidean distance.
    """

    radius: float
    metric: Metric = field(default_factory=Euclidean)

    def __post_init__(self) -> None:
        if not self.radius > 0:
            raise ConfigurationError("Neighbourhood radius must be positive")
        return None


class NeighborSearch(ABC):
    """Generic neighbour search - defines the abstract class"""

    @abstractmethod
    def search(self, location: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Find the candidate neighbours of a location.

        Parameters
        ----------
        location : numpy.ndarray
            The query position, shape (N,).

        Returns
        -------
        indices : numpy.ndarray[int]
            Indices of the neighbouring observations.
        distances : numpy.ndarray[float]
            Distance from the query to each neighbour.
        """
        raise NotImplementedError("Not implemented for base search class")

    @property
    @abstractmethod
    def max_neighbors(self) -> int:
        """Upper bound on the number of neighbours returned"""
        raise NotImplementedError("Not implemented for base search class")


class GlobalSearch(NeighborSearch):
    """
    Exhaustive search, every observation is a neighbour. Neighbours are
    returned in the order of the observations.

    Parameters
    ----------
    coordinates : numpy.ndarray
        Observation positions, shape (n, N).
    metric : Metric
        Used to compute the returned distances.
    """

    def __init__(
        self,
        coordinates: np.ndarray,
        metric: Metric | None = None,
    ) -> None:
        self.coordinates = np.asarray(coordinates, dtype=float)
        self.metric = metric or Euclidean()
        return None

    @property
    def max_neighbors(self) -> int:
        """Number of observations"""
        return self.coordinates.shape[0]

    def search(self, location: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Get all observations and their distances to the location"""
        dist = self.metric.pairwise(self.coordinates, np.atleast_2d(location))
        return np.arange(self.max_neighbors), dist[:, 0]


class KNearestSearch(NeighborSearch):
    """
    Search for the k nearest observations, backed by a KDTree for Minkowski
    metrics or a BallTree otherwise. Returns min(k, n) neighbours.

    Parameters
    ----------
    coordinates : numpy.ndarray
        Observation positions, shape (n, N).
    k : int
        Number of neighbours.
    metric : Metric
        Distance metric, defaults to the Euclidean distance.
    """

    def __init__(
        self,
        coordinates: np.ndarray,
        k: int,
        metric: Metric | None = None,
    ) -> None:
        if not is_positive_int(k):
            raise ConfigurationError(
                f"Number of neighbours must be a positive integer, got {k}"
            )
        self.metric = metric or Euclidean()
        self.index = self.metric.build_tree(coordinates)
        self.k = min(int(k), self.index.n)
        return None

    @property
    def max_neighbors(self) -> int:
        """Number of neighbours returned"""
        return self.k

    def search(self, location: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Get the k nearest observations to the location"""
        return self.index.query(location, self.k)


class BallSearch(NeighborSearch):
    """
    Search for all observations inside a MetricBall centred on the query.

    Parameters
    ----------
    coordinates : numpy.ndarray
        Observation positions, shape (n, N).
    ball : MetricBall
        The neighbourhood.
    """

    def __init__(self, coordinates: np.ndarray, ball: MetricBall) -> None:
        self.ball = ball
        self.index = ball.metric.build_tree(coordinates)
        return None

    @property
    def max_neighbors(self) -> int:
        """Number of observations"""
        return self.index.n

    def search(self, location: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Get the observations within the ball centred on the location"""
        return self.index.query_radius(location, self.ball.radius)


class BoundedSearch(NeighborSearch):
    """
    Cap the results of another search at its k closest neighbours.

    Parameters
    ----------
    searcher : NeighborSearch
        The search to bound.
    k : int
        Maximum number of neighbours.
    """

    def __init__(self, searcher: NeighborSearch, k: int) -> None:
        if not is_positive_int(k):
            raise ConfigurationError(
                f"Number of neighbours must be a positive integer, got {k}"
            )
        self.searcher = searcher
        self.k = int(k)
        return None

    @property
    def max_neighbors(self) -> int:
        """Maximum number of neighbours returned"""
        return min(self.k, self.searcher.max_neighbors)

    def search(self, location: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Get at most k of the closest neighbours found by the inner search"""
        idx, dist = sort_neighbors(*self.searcher.search(location))
        return idx[: self.k], dist[: self.k]
