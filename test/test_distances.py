"""Tests of the distances module"""

import pytest  # noqa: F401
from math import pi
import numpy as np

from geo_estimation.distances import (
    CustomMetric,
    Euclidean,
    Haversine,
    Minkowski,
    get_metric,
    sort_neighbors,
)
from geo_estimation.search import KNearestSearch


def test_euclidean() -> None:  # noqa: D103
    a = np.array([[0.0, 0.0], [3.0, 4.0]])
    dist = Euclidean().pairwise(a, a)

    assert dist[0, 0] == dist[1, 1] == 0.0
    assert dist[0, 1] == pytest.approx(5.0)
    assert Euclidean().distance([0, 0], [3, 4]) == pytest.approx(5.0)
    return None


def test_minkowski() -> None:  # noqa: D103
    assert Minkowski(p=1).distance([0, 0], [1, 2]) == pytest.approx(3.0)
    assert Minkowski(p=2).distance([0, 0], [3, 4]) == pytest.approx(5.0)
    with pytest.raises(ValueError):
        Minkowski(p=0.5)
    return None


def test_haversine() -> None:  # noqa: D103
    R = 6371.0
    halifax = (44.6476, -63.5728)
    southampton = (50.9105, -1.4049)
    expected = 4557  # From Google

    dist = Haversine(radius=R).pairwise(
        np.array([halifax, southampton]), np.array([halifax, southampton])
    )

    assert dist[0, 0] == dist[1, 1] == 0.0
    assert dist[0, 1] == pytest.approx(expected, abs=1)  # Allow 1km out

    # Quarter of a great circle
    assert Haversine(radius=1.0).distance([0, 0], [0, 90]) == pytest.approx(
        pi / 2
    )
    return None


def test_haversine_radius_query() -> None:  # noqa: D103
    coords = np.array([[0.0, 0.0], [0.0, 1.0], [0.0, 10.0]])
    index = Haversine().build_tree(coords)

    # 1 degree of longitude at the equator is ~111 km
    idx, dist = index.query_radius(np.array([0.0, 0.0]), 200.0)

    assert list(idx) == [0, 1]
    assert dist[0] == 0.0
    assert dist[1] == pytest.approx(111.19, abs=0.1)
    return None


def test_custom_metric() -> None:  # noqa: D103
    def chebyshev(u, v):
        return float(np.max(np.abs(u - v)))

    metric = CustomMetric(chebyshev)
    coords = np.array([[0.0, 0.0], [3.0, 1.0], [1.0, 1.0]])

    assert metric.pairwise(coords, coords)[0, 1] == pytest.approx(3.0)

    idx, dist = KNearestSearch(coords, 2, metric).search(np.array([0.0, 0.0]))
    assert list(idx) == [0, 2]
    assert np.allclose(dist, [0.0, 1.0])
    return None


def test_query_tie_break() -> None:  # noqa: D103
    coords = np.array([[1.0, 0.0], [-1.0, 0.0], [0.0, 1.0], [0.0, -1.0]])
    index = Euclidean().build_tree(coords)

    idx, dist = index.query(np.array([0.0, 0.0]), 4)

    assert list(idx) == [0, 1, 2, 3]
    assert np.allclose(dist, 1.0)
    return None


def test_sort_neighbors() -> None:  # noqa: D103
    idx, dist = sort_neighbors(np.array([4, 2, 7]), np.array([1.0, 3.0, 1.0]))

    assert list(idx) == [4, 7, 2]
    assert list(dist) == [1.0, 1.0, 3.0]
    return None


@pytest.mark.parametrize(
    "metric, expected",
    [
        (None, Euclidean),
        ("euclidean", Euclidean),
        ("Haversine", Haversine),
        ("minkowski", Minkowski),
        (Haversine(radius=1.0), Haversine),
        (lambda u, v: 0.0, CustomMetric),
    ],
)
def test_get_metric(metric, expected) -> None:  # noqa: D103
    assert isinstance(get_metric(metric), expected)
    return None


def test_get_metric_unknown() -> None:  # noqa: D103
    with pytest.raises(ValueError):
        get_metric("manhattan")
    with pytest.raises(TypeError):
        get_metric(3)  # type: ignore
    return None
