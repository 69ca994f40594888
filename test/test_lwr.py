"""Tests of locally weighted regression"""

import pytest  # noqa: F401
import numpy as np
from itertools import product

from geo_estimation.lwr import LWRParams, gaussian_kernel
from geo_estimation.observations import ObservationSet
from geo_estimation.utils import ConfigurationError, NumericalError


def _grid_observations(func) -> ObservationSet:
    coords = np.array(list(product(range(5), range(5))), dtype=float)
    values = np.array([func(x) for x in coords])
    return ObservationSet(coords, values, "z")


def _direct_lwr(obs: ObservationSet, location: np.ndarray, k: int) -> float:
    """Weighted least squares fit with numpy, for comparison"""
    dist = np.linalg.norm(obs.coordinates - location, axis=1)
    idx = np.argsort(dist, kind="stable")[:k]
    w = gaussian_kernel(dist[idx] / dist[idx].max())
    X = np.column_stack([np.ones(k), obs.coordinates[idx]])
    sqrt_w = np.sqrt(w)
    theta = np.linalg.lstsq(
        X * sqrt_w[:, None], obs.values[idx] * sqrt_w, rcond=None
    )[0]
    return float(theta @ np.concatenate(([1.0], location)))


def test_linear_trend() -> None:  # noqa: D103
    obs = _grid_observations(lambda x: 1 + 2 * x[0] + 3 * x[1])
    estimator = LWRParams(neighbors=5).build(obs)
    model = estimator.fit(obs)

    mean, uncertainty = estimator.predict(model, np.array([2.2, 2.3]))

    assert mean == pytest.approx(1 + 2 * 2.2 + 3 * 2.3)
    assert uncertainty >= 0.0
    return None


def test_against_weighted_least_squares() -> None:  # noqa: D103
    obs = _grid_observations(lambda x: np.sin(x[0]) + np.cos(x[1]))
    estimator = LWRParams(neighbors=8).build(obs)
    model = estimator.fit(obs)

    for location in [np.array([1.3, 2.6]), np.array([3.7, 0.4])]:
        mean, _ = estimator.predict(model, location)
        assert mean == pytest.approx(_direct_lwr(obs, location, 8))
    return None


def test_default_neighbors() -> None:  # noqa: D103
    obs = ObservationSet.from_arrays(
        np.arange(22, dtype=float).reshape(11, 2), np.arange(11.0)
    )

    # 20% of 11 rounded up
    assert LWRParams().n_neighbors(obs) == 3
    assert LWRParams(neighbors=7).n_neighbors(obs) == 7
    return None


def test_collinear_neighbors() -> None:  # noqa: D103
    obs = ObservationSet.from_arrays(
        [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]], [0.0, 1.0, 2.0, 3.0]
    )
    estimator = LWRParams(neighbors=4).build(obs)
    model = estimator.fit(obs)

    with pytest.raises(NumericalError):
        estimator.predict(model, np.array([1.5, 1.0]))
    return None


def test_custom_weight_function() -> None:  # noqa: D103
    obs = _grid_observations(lambda x: 4 - x[0] + 0.5 * x[1])

    def uniform(h):
        return 1.0

    estimator = LWRParams(neighbors=6, weightfun=uniform).build(obs)
    model = estimator.fit(obs)

    mean, _ = estimator.predict(model, np.array([1.5, 3.5]))
    assert mean == pytest.approx(4 - 1.5 + 0.5 * 3.5)
    return None


@pytest.mark.parametrize("neighbors", [0, 26, 2.5])
def test_invalid_neighbors(neighbors) -> None:  # noqa: D103
    obs = _grid_observations(lambda x: x[0])
    with pytest.raises(ConfigurationError):
        LWRParams(neighbors=neighbors).build(obs)
    return None


def test_global_least_squares() -> None:  # noqa: D103
    # With all neighbours and uniform weights, LWR is ordinary least squares
    obs = _grid_observations(lambda x: np.sin(x[0]) * x[1])
    estimator = LWRParams(
        neighbors=obs.count, weightfun=lambda h: np.ones_like(h)
    ).build(obs)
    model = estimator.fit(obs)

    X = np.column_stack([np.ones(obs.count), obs.coordinates])
    theta = np.linalg.lstsq(X, obs.values, rcond=None)[0]

    location = np.array([1.7, 3.2])
    x0 = np.concatenate(([1.0], location))
    mean, uncertainty = estimator.predict(model, location)

    assert mean == pytest.approx(theta @ x0)
    assert uncertainty == pytest.approx(
        np.linalg.norm(X @ np.linalg.solve(X.T @ X, x0))
    )
    return None
