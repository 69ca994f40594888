"""
Distance metrics used for neighbour searches and for evaluating variograms.

Each metric can compute pairwise distances between two sets of positions and
knows how to build a scikit-learn spatial index (KDTree or BallTree) with the
same notion of distance. Minkowski metrics are indexed with a KDTree, all other
metrics with a BallTree.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.metrics.pairwise import haversine_distances
from sklearn.neighbors import BallTree, KDTree

from .constants import NEIGHBOR_TIE_RTOL, RADIUS_OF_EARTH_KM
from .types import MetricName


@dataclass(frozen=True)
class Metric(ABC):
    """Generic distance metric - defines the abstract class"""

    @abstractmethod
    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """
        Compute the matrix of distances between each row of `a` and each row
        of `b`.
        """
        raise NotImplementedError("Not implemented for base Metric class")

    @property
    def is_minkowski(self) -> bool:
        """Can the metric be indexed by a KDTree"""
        return False

    def _tree_kwargs(self) -> dict[str, Any]:
        raise NotImplementedError("Not implemented for base Metric class")

    def _to_tree_space(self, coords: np.ndarray) -> np.ndarray:
        return np.asarray(coords, dtype=float)

    def _from_tree_distance(self, dist: np.ndarray) -> np.ndarray:
        return dist

    def build_tree(self, coords: np.ndarray) -> "SpatialIndex":
        """
        Build a spatial index of a set of positions.

        Parameters
        ----------
        coords : numpy.ndarray
            Positions, shape (n, N).

        Returns
        -------
        SpatialIndex
            Wrapper around a scikit-learn KDTree or BallTree that accepts and
            returns values in the coordinate system and units of this metric.
        """
        return SpatialIndex(self, coords)

    def distance(self, u: np.ndarray, v: np.ndarray) -> float:
        """Distance between two single positions"""
        return float(
            self.pairwise(np.atleast_2d(u), np.atleast_2d(v))[0, 0]
        )


@dataclass(frozen=True)
class Euclidean(Metric):
    """Euclidean (straight line) distance"""

    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Compute pairwise Euclidean distances"""
        return cdist(np.atleast_2d(a), np.atleast_2d(b), metric="euclidean")

    @property
    def is_minkowski(self) -> bool:
        """Can the metric be indexed by a KDTree"""
        return True

    def _tree_kwargs(self) -> dict[str, Any]:
        return {"metric": "euclidean"}


@dataclass(frozen=True)
class Minkowski(Metric):
    """
    Minkowski distance of order p

    Parameters
    ----------
    p : float
        Order of the distance, p = 1 is the Manhattan distance, p = 2 is the
        Euclidean distance.
    """

    p: float = 2.0

    def __post_init__(self) -> None:
        if self.p < 1:
            raise ValueError("Minkowski order p must be >= 1")
        return None

    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Compute pairwise Minkowski distances"""
        return cdist(
            np.atleast_2d(a), np.atleast_2d(b), metric="minkowski", p=self.p
        )

    @property
    def is_minkowski(self) -> bool:
        """Can the metric be indexed by a KDTree"""
        return True

    def _tree_kwargs(self) -> dict[str, Any]:
        return {"metric": "minkowski", "p": self.p}


@dataclass(frozen=True)
class Haversine(Metric):
    """
    Great circle distance on a sphere.

    Positions are (latitude, longitude) pairs in decimal degrees. Distances are
    returned in the units of the radius.

    Parameters
    ----------
    radius : float
        The radius of the sphere used for the calculation. Defaults to the
        radius of the earth in km (6371.0 km).
    """

    radius: float = RADIUS_OF_EARTH_KM

    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Compute pairwise haversine distances"""
        return self.radius * haversine_distances(
            self._to_tree_space(a), self._to_tree_space(b)
        )

    def _tree_kwargs(self) -> dict[str, Any]:
        return {"metric": "haversine"}

    def _to_tree_space(self, coords: np.ndarray) -> np.ndarray:
        coords = np.atleast_2d(np.asarray(coords, dtype=float))
        if coords.shape[1] != 2:
            raise ValueError(
                "Haversine distance requires (latitude, longitude) positions"
            )
        return np.radians(coords)

    def _from_tree_distance(self, dist: np.ndarray) -> np.ndarray:
        return self.radius * dist


@dataclass(frozen=True)
class CustomMetric(Metric):
    """
    A user supplied distance function.

    Parameters
    ----------
    func : Callable
        Function taking two 1d positions and returning their distance.
        (numpy.ndarray, numpy.ndarray) -> float
    """

    func: Callable[[np.ndarray, np.ndarray], float]

    def pairwise(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Compute pairwise distances with the custom function"""
        return cdist(np.atleast_2d(a), np.atleast_2d(b), self.func)

    def _tree_kwargs(self) -> dict[str, Any]:
        return {"metric": "pyfunc", "func": self.func}


class SpatialIndex:
    """
    Nearest neighbour oracle for a fixed set of positions.

    Distances returned by queries are sorted ascendingly, ties are broken by
    the index of the position in the input array.

    Parameters
    ----------
    metric : Metric
        The distance metric.
    coords : numpy.ndarray
        Indexed positions, shape (n, N).
    """

    def __init__(self, metric: Metric, coords: np.ndarray) -> None:
        self.metric = metric
        self.n = len(coords)
        tree_coords = metric._to_tree_space(coords)
        tree_cls = KDTree if metric.is_minkowski else BallTree
        self.tree = tree_cls(tree_coords, **metric._tree_kwargs())
        return None

    def query(
        self,
        location: np.ndarray,
        k: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Get the k nearest positions to a single location.

        The tree picks arbitrarily between positions tied with the k-th
        nearest, so all positions within the k-th distance are collected
        before the ties are broken by index.
        """
        k = min(k, self.n)
        point = self.metric._to_tree_space(np.atleast_2d(location))
        dist, idx = self.tree.query(point, k=k, sort_results=True)
        if k < self.n:
            d_k = float(dist[0, -1])
            tie_radius = np.nextafter(d_k * (1 + NEIGHBOR_TIE_RTOL), np.inf)
            idx, dist = self.tree.query_radius(
                point, r=tie_radius, return_distance=True
            )
        idx, dist = sort_neighbors(idx[0], dist[0])
        return idx[:k], self.metric._from_tree_distance(dist[:k])

    def query_radius(
        self,
        location: np.ndarray,
        radius: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Get all positions within a radius of a single location"""
        point = self.metric._to_tree_space(np.atleast_2d(location))
        # Radius is converted to the units of the tree
        tree_radius = radius / float(self.metric._from_tree_distance(1.0))
        idx, dist = self.tree.query_radius(
            point, r=tree_radius, return_distance=True
        )
        return sort_neighbors(
            idx[0], self.metric._from_tree_distance(dist[0])
        )


def sort_neighbors(
    idx: np.ndarray,
    dist: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Sort neighbours by ascending distance, breaking ties by the index"""
    idx = np.asarray(idx, dtype=int)
    dist = np.asarray(dist, dtype=float)
    order = np.lexsort((idx, dist))
    return idx[order], dist[order]


def get_metric(metric: "Metric | MetricName | Callable | None") -> Metric:
    """
    Get a Metric instance from a name, callable, or Metric.

    Parameters
    ----------
    metric : Metric | str | Callable | None
        One of "euclidean", "minkowski", "haversine", a distance function, or
        a Metric. None gives the Euclidean distance.

    Returns
    -------
    Metric
    """
    if metric is None:
        return Euclidean()
    if isinstance(metric, Metric):
        return metric
    if isinstance(metric, str):
        match metric.lower():
            case "euclidean":
                return Euclidean()
            case "minkowski":
                return Minkowski()
            case "haversine":
                return Haversine()
            case _:
                raise ValueError(f"Unknown distance metric: {metric}")
    if callable(metric):
        return CustomMetric(metric)
    raise TypeError(f"Cannot get a distance metric from {metric!r}")
