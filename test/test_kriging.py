"""
Tests of Kriging.

The ordinary Kriging scenario follows the example available from the
GeoStats.jl Julia package. The example can be found at

https://juliaearth.github.io/GeoStatsDocs/stable/interpolation/#Kriging

Three observations at (25, 25), (50, 75) and (75, 50) with values 1, 0 and 1
are interpolated onto a 100 x 100 domain with a Gaussian variogram (sill 1,
effective range 35, no nugget). We use a coarser grid whose nodes include the
observation positions. Global Kriging, Kriging with the 3 nearest neighbours,
and Kriging with at most 3 neighbours in a ball of radius 100 must all give the
same estimates, since every location has all 3 observations in its
neighbourhood.

The intent of these tests is to make sure that our implementation of Kriging
is correct, the estimates are checked against a direct solution of the
extended Kriging system.
"""

import pytest  # noqa: F401
import numpy as np
import polars as pl
from scipy.spatial.distance import cdist

from geo_estimation.grid import domain_coordinates, grid_from_resolution
from geo_estimation.kriging import (
    ExternalDriftKriging,
    KrigingMethod,
    KrigingParams,
    OrdinaryKriging,
    SimpleKriging,
    UniversalKriging,
    polynomial_exponents,
)
from geo_estimation.observations import ObservationSet
from geo_estimation.search import MetricBall
from geo_estimation.solvers import EstimationProblem, KrigingSolver, solve
from geo_estimation.utils import ConfigurationError, NumericalError
from geo_estimation.variogram import (
    ExponentialVariogram,
    GaussianVariogram,
    LinearVariogram,
)

VARIOGRAM = GaussianVariogram(psill=1.0, nugget=0.0, effective_range=35.0)

OBS_DF = pl.DataFrame(
    {
        "x": [25.0, 50.0, 75.0],
        "y": [25.0, 75.0, 50.0],
        "z": [1.0, 0.0, 1.0],
    }
)

SCATTERED = np.array(
    [
        [0.0, 0.0],
        [10.0, 0.0],
        [0.0, 10.0],
        [10.0, 10.0],
        [5.0, 5.0],
        [2.0, 8.0],
    ]
)


def _direct_ordinary_kriging(
    obs_coords: np.ndarray,
    obs_vals: np.ndarray,
    locations: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Solve the extended covariance system for all locations with numpy"""
    sill = VARIOGRAM.sill
    S = sill - VARIOGRAM(cdist(obs_coords, obs_coords))
    SS = sill - VARIOGRAM(cdist(obs_coords, locations))
    N, M = SS.shape
    S_ext = np.block([[S, np.ones((N, 1))], [np.ones((1, N)), 0]])
    SS_ext = np.concatenate((SS, np.ones((1, M))), axis=0)
    solution = np.linalg.solve(S_ext, SS_ext)
    mean = solution[:N].T @ obs_vals
    variance = sill - np.sum(solution * SS_ext, axis=0)
    return mean, variance


@pytest.mark.parametrize(
    "params",
    [
        KrigingParams(variogram=VARIOGRAM, maxneighbors=None),
        KrigingParams(variogram=VARIOGRAM, maxneighbors=3),
        KrigingParams(
            variogram=VARIOGRAM,
            maxneighbors=3,
            neighborhood=MetricBall(100.0),
        ),
    ],
)
def test_ordinary_kriging(params) -> None:  # noqa: D103
    grid = grid_from_resolution(5, [(0, 100), (0, 100)], ["x", "y"])
    problem = EstimationProblem(OBS_DF, grid, "z", coords=["x", "y"])

    result = solve(problem, KrigingSolver({"z": params})).to_dataset()

    locations = domain_coordinates(grid)
    expected_mean, expected_var = _direct_ordinary_kriging(
        OBS_DF.select(["x", "y"]).to_numpy(),
        OBS_DF.get_column("z").to_numpy(),
        locations,
    )

    assert result["z"].shape == (20, 20)
    assert np.allclose(
        result["z"].values.reshape(-1), expected_mean, atol=1e-3
    )
    assert np.allclose(
        result["z_variance"].values.reshape(-1),
        np.maximum(expected_var, 0.0),
        atol=1e-3,
    )

    # Exact interpolation at the observations
    for x, y, z in OBS_DF.iter_rows():
        x, y = int(x), int(y)
        assert result["z"].sel(x=x, y=y).item() == pytest.approx(z, abs=1e-6)
        assert result["z_variance"].sel(x=x, y=y).item() == pytest.approx(
            0.0, abs=1e-6
        )
    assert np.all(result["z_variance"].values >= 0.0)
    return None


def test_ordinary_weights() -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, np.arange(6.0))
    estimator = OrdinaryKriging(VARIOGRAM)
    model = estimator.fit(obs)

    for location in [np.array([3.0, 4.0]), np.array([-20.0, 50.0])]:
        w = estimator.weights(model, location)
        assert np.sum(w.weights) == pytest.approx(1.0)
        assert len(w.multipliers) == 1
        assert estimator.variance(w) >= 0.0
    return None


def test_ordinary_far_from_data() -> None:  # noqa: D103
    values = np.arange(6.0)
    obs = ObservationSet(SCATTERED, values)
    estimator = OrdinaryKriging(VARIOGRAM)
    model = estimator.fit(obs)

    # Beyond the range the estimate is the generalised least squares mean
    C = VARIOGRAM.sill - VARIOGRAM(cdist(SCATTERED, SCATTERED))
    C_inv_ones = np.linalg.solve(C, np.ones(6))
    gls_mean = (C_inv_ones @ values) / np.sum(C_inv_ones)

    mean, variance = estimator.predict(model, np.array([1e4, 1e4]))
    assert mean == pytest.approx(gls_mean, rel=1e-4)
    assert variance == pytest.approx(
        VARIOGRAM.sill + 1 / np.sum(C_inv_ones), rel=1e-4
    )
    return None


def test_unbounded_variogram() -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, SCATTERED[:, 0] + 2 * SCATTERED[:, 1])
    estimator = OrdinaryKriging(LinearVariogram(nugget=0.0, slope=1.0))
    model = estimator.fit(obs)

    assert not estimator.covariance_form
    for i, location in enumerate(SCATTERED):
        mean, variance = estimator.predict(model, location)
        assert mean == pytest.approx(obs.values[i])
        assert variance == pytest.approx(0.0, abs=1e-9)

    _, variance = estimator.predict(model, np.array([4.0, 3.0]))
    assert variance > 0.0
    return None


def test_function_variogram() -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, np.arange(6.0))
    estimator = OrdinaryKriging(lambda h: np.sqrt(h))
    model = estimator.fit(obs)

    mean, variance = estimator.predict(model, SCATTERED[2])
    assert mean == pytest.approx(2.0)
    assert variance == pytest.approx(0.0, abs=1e-9)
    return None


def test_simple_kriging() -> None:  # noqa: D103
    obs = ObservationSet(np.array([[0.0, 0.0], [1.0, 0.0]]), [12.0, 11.0])
    variogram = GaussianVariogram(psill=1.0, nugget=0.0, effective_range=10.0)
    estimator = SimpleKriging(variogram, mean=10.0)
    model = estimator.fit(obs)

    w = estimator.weights(model, np.array([0.5, 0.0]))
    assert len(w.multipliers) == 0

    # Far from the data, the known mean and the sill
    mean, variance = estimator.predict(model, np.array([1000.0, 1000.0]))
    assert mean == pytest.approx(10.0)
    assert variance == pytest.approx(1.0)

    mean, variance = estimator.predict(model, np.array([1.0, 0.0]))
    assert mean == pytest.approx(11.0)
    assert variance == pytest.approx(0.0, abs=1e-6)
    return None


def test_simple_kriging_requires_sill() -> None:  # noqa: D103
    with pytest.raises(ConfigurationError):
        SimpleKriging(LinearVariogram(nugget=0.0), mean=0.0)
    with pytest.raises(ConfigurationError):
        SimpleKriging(VARIOGRAM, mean=np.nan)
    return None


def test_polynomial_exponents() -> None:  # noqa: D103
    assert polynomial_exponents(0, 2) == [(0, 0)]
    assert polynomial_exponents(1, 2) == [(0, 0), (1, 0), (0, 1)]
    assert polynomial_exponents(2, 2) == [
        (0, 0),
        (1, 0),
        (0, 1),
        (2, 0),
        (1, 1),
        (0, 2),
    ]
    assert len(polynomial_exponents(2, 3)) == 10
    return None


def test_universal_kriging_linear_trend() -> None:  # noqa: D103
    values = 2 + SCATTERED[:, 0] - 0.5 * SCATTERED[:, 1]
    obs = ObservationSet(SCATTERED, values)
    variogram = ExponentialVariogram(psill=1.0, nugget=0.0, effective_range=10)
    estimator = UniversalKriging(variogram, degree=1, dim=2)
    model = estimator.fit(obs)

    w = estimator.weights(model, np.array([3.0, 4.0]))
    assert len(w.multipliers) == 3
    assert np.sum(w.weights) == pytest.approx(1.0)

    # Linear trends are reproduced exactly
    for location in [np.array([3.0, 4.0]), np.array([20.0, -5.0])]:
        mean, variance = estimator.predict(model, location)
        assert mean == pytest.approx(2 + location[0] - 0.5 * location[1])
        assert variance >= 0.0
    return None


@pytest.mark.parametrize("offset", [5e4, 5e5])
def test_universal_kriging_translation(offset) -> None:  # noqa: D103
    rng = np.random.default_rng(11)
    coords = 1000 * rng.random((30, 2))
    values = 3 - 0.01 * coords[:, 0] + 0.002 * coords[:, 1]
    location = np.array([420.0, 615.0])
    variogram = ExponentialVariogram(
        psill=1.0, nugget=0.0, effective_range=300.0
    )
    estimator = UniversalKriging(variogram, degree=2, dim=2)

    model = estimator.fit(ObservationSet(coords, values))
    expected_mean, expected_var = estimator.predict(model, location)

    # Moving the origin of the coordinates leaves the estimate unchanged
    model = estimator.fit(ObservationSet(coords + offset, values))
    mean, variance = estimator.predict(model, location + offset)

    assert expected_mean == pytest.approx(3 - 4.2 + 1.23, abs=1e-8)
    assert mean == pytest.approx(expected_mean, abs=1e-6)
    assert variance == pytest.approx(expected_var, abs=1e-6)
    return None


def test_universal_kriging_degree() -> None:  # noqa: D103
    with pytest.raises(ConfigurationError):
        UniversalKriging(VARIOGRAM, degree=-1, dim=2)
    with pytest.raises(ConfigurationError):
        UniversalKriging(VARIOGRAM, degree=1.5, dim=2)  # type: ignore
    return None


def test_external_drift_kriging() -> None:  # noqa: D103
    values = 5 + 2 * SCATTERED[:, 0]
    obs = ObservationSet(SCATTERED, values)
    variogram = ExponentialVariogram(psill=1.0, nugget=0.0, effective_range=10)
    estimator = ExternalDriftKriging(
        variogram, drifts=[lambda x: 1.0, lambda x: x[0]]
    )
    model = estimator.fit(obs)

    mean, _ = estimator.predict(model, np.array([3.0, 4.0]))
    assert mean == pytest.approx(11.0)

    with pytest.raises(ConfigurationError):
        ExternalDriftKriging(variogram, drifts=[])
    return None


def test_singular_system() -> None:  # noqa: D103
    obs = ObservationSet(
        np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 1.0]]), [1.0, 2.0, 3.0]
    )
    with pytest.raises(NumericalError):
        OrdinaryKriging(VARIOGRAM).fit(obs)
    return None


def test_too_few_observations_for_drift() -> None:  # noqa: D103
    # 2 observations cannot determine a linear drift in 2 dimensions
    obs = ObservationSet(np.array([[0.0, 0.0], [1.0, 1.0]]), [1.0, 2.0])
    estimator = UniversalKriging(VARIOGRAM, degree=1, dim=2)
    with pytest.raises(NumericalError):
        estimator.fit(obs)
    return None


@pytest.mark.parametrize(
    "kwargs, method, cls",
    [
        ({}, KrigingMethod.ORDINARY, OrdinaryKriging),
        ({"mean": 1.0}, KrigingMethod.SIMPLE, SimpleKriging),
        ({"mean": 1.0, "degree": 1}, KrigingMethod.UNIVERSAL, UniversalKriging),
        (
            {"mean": 1.0, "degree": 1, "drifts": [lambda x: 1.0]},
            KrigingMethod.EXTERNAL_DRIFT,
            ExternalDriftKriging,
        ),
    ],
)
def test_method_priority(kwargs, method, cls) -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, np.arange(6.0))
    params = KrigingParams(variogram=VARIOGRAM, **kwargs)

    assert params.method == method
    assert isinstance(params.build(obs), cls)
    return None


def test_lag_metric() -> None:  # noqa: D103
    ball = MetricBall(10.0)
    assert KrigingParams(neighborhood=ball).lag_metric is ball.metric
    assert KrigingParams().lag_metric == KrigingParams().distance
    return None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"minneighbors": 0},
        {"maxneighbors": 0},
        {"minneighbors": 5, "maxneighbors": 2},
        {"degree": -1},
    ],
)
def test_invalid_parameters(kwargs) -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, np.arange(6.0))
    with pytest.raises(ConfigurationError):
        KrigingParams(variogram=VARIOGRAM, **kwargs).build(obs)
    return None


def test_search_config() -> None:  # noqa: D103
    obs = ObservationSet(SCATTERED, np.arange(6.0))

    assert KrigingParams(maxneighbors=None).search_config(obs) is None
    config = KrigingParams(maxneighbors=20, minneighbors=2).search_config(obs)
    assert config is not None
    assert config.maxneighbors == 6
    assert config.minneighbors == 2
    return None
