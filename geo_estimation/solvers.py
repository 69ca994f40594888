"""
Solvers
-------

A solver pairs an estimation method with the parameters to use for each
variable of an estimation problem. Variables without explicit parameters use
the solver's default parameters.

    problem = EstimationProblem(df, grid, "sst", coords=["lat", "lon"])
    solver = KrigingSolver({"sst": KrigingParams(maxneighbors=20)})
    result = solve(problem, solver)

Solvers can also be built from a configuration mapping, for example loaded
from a yaml file with `geo_estimation.io.load_config`:

    solver: kriging
    default:
      variogram: {model: gaussian, psill: 1.0, effective_range: 35}
    variables:
      sst:
        maxneighbors: 20
        neighborhood: {radius: 500.0, distance: haversine}
"""

from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

import polars as pl

from .distances import Haversine, Metric, Minkowski, get_metric
from .driver import EstimationDriver
from .estimator import EstimatorParams
from .grid import Domain, domain_coordinates
from .idw import IDWParams
from .io import get_recurse
from .kriging import KrigingParams
from .lwr import LWRParams
from .observations import ObservationSet
from .result import EstimationResult
from .search import MetricBall
from .types import ErrorPolicy, SolverName
from .utils import ConfigurationError, check_cols
from .variogram import get_variogram


class Solver:
    """
    Class for Solvers.

    Do not use this class, use IDWSolver, LWRSolver or KrigingSolver classes.

    Parameters
    ----------
    params : dict[str, EstimatorParams] | None
        Parameters for each variable.
    default : EstimatorParams | None
        Parameters for variables not in `params`.
    """

    params_class: type[EstimatorParams]

    def __init__(
        self,
        params: dict[str, EstimatorParams] | None = None,
        default: EstimatorParams | None = None,
    ) -> None:
        if not hasattr(self, "params_class"):
            raise TypeError(
                "Do not use the generic class directly, "
                + "use IDWSolver, LWRSolver or KrigingSolver"
            )
        self.params = dict(params or {})
        self.default = default if default is not None else self.params_class()
        expected = self.params_class.__name__
        for var, var_params in self.params.items():
            if not isinstance(var_params, self.params_class):
                raise ConfigurationError(
                    f"Parameters for {var} must be {expected}"
                )
        if not isinstance(self.default, self.params_class):
            raise ConfigurationError(f"Default parameters must be {expected}")
        return None

    def params_for(self, variable: str) -> EstimatorParams:
        """Get the parameters used for a variable"""
        return self.params.get(variable, self.default)


class IDWSolver(Solver):
    """Inverse distance weighting solver, see IDWParams"""

    params_class = IDWParams


class LWRSolver(Solver):
    """Locally weighted regression solver, see LWRParams"""

    params_class = LWRParams


class KrigingSolver(Solver):
    """Kriging solver, see KrigingParams"""

    params_class = KrigingParams


@dataclass()
class EstimationProblem:
    """
    Variables to estimate from observations over a target domain.

    Parameters
    ----------
    data : polars.DataFrame
        Observations, with a column per coordinate and a column per variable.
        Missing values are null or NaN.
    domain : xarray.DataArray | polars.DataFrame | numpy.ndarray
        The target domain.
    variables : str | list[str]
        Names of the variables to estimate.
    coords : list[str]
        Names of the coordinate columns of the data.
    domain_coords : list[str] | None
        Names of the coordinates of the domain, in the same order as `coords`.
        Defaults to the dimensions of a grid, or the columns of a point set.
    """

    data: pl.DataFrame
    domain: Domain
    variables: str | list[str]
    coords: list[str]
    domain_coords: list[str] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.variables, str):
            self.variables = [self.variables]
        check_cols(self.data, [*self.coords, *self.variables])
        return None


def solve(
    problem: EstimationProblem,
    solver: Solver,
    on_error: ErrorPolicy = "raise",
    should_cancel: Callable[[], bool] | None = None,
) -> EstimationResult:
    """
    Estimate all variables of a problem over its domain.

    The estimation of every variable is configured before any variable is
    estimated, so that invalid parameters fail the call before any work is
    done.

    Parameters
    ----------
    problem : EstimationProblem
    solver : Solver
    on_error : ErrorPolicy
        What to do with a numerical failure at a single location in
        approximate mode, see EstimationDriver.
    should_cancel : Callable[[], bool] | None
        Checked between locations, see EstimationDriver.

    Returns
    -------
    EstimationResult
        Use `EstimationResult.to_dataset` to get an xarray.Dataset.
    """
    locations = domain_coordinates(problem.domain, problem.domain_coords)

    drivers: list[tuple[str, EstimationDriver]] = []
    for var in problem.variables:
        observations = ObservationSet.from_frame(
            problem.data, var, problem.coords
        )
        driver = EstimationDriver(
            observations,
            locations,
            solver.params_for(var),
            on_error=on_error,
            should_cancel=should_cancel,
        )
        drivers.append((var, driver.configure()))

    result = EstimationResult(problem.domain, problem.domain_coords)
    for var, driver in drivers:
        logging.info(f"Processing for variable {var}")
        mean, variance = driver.run()
        result.add(var, mean, variance)
    return result


def metric_from_config(config: str | dict[str, Any] | None) -> Metric:
    """
    Build a distance metric from a name, or a mapping with a "metric" key and
    the metric parameters, for example {"metric": "haversine", "radius": 1.0}.
    """
    if not isinstance(config, dict):
        return get_metric(config)
    params = dict(config)
    name = str(params.pop("metric", "euclidean")).lower()
    match name:
        case "minkowski":
            return Minkowski(**params)
        case "haversine":
            return Haversine(**params)
        case _:
            if params:
                raise ConfigurationError(
                    f"Unexpected parameters for {name} distance: {params}"
                )
            return get_metric(name)


def params_from_config(
    solver: SolverName,
    config: dict[str, Any] | None,
) -> EstimatorParams:
    """
    Build the parameters of one variable from a configuration mapping.

    Parameters
    ----------
    solver : str
        One of "idw", "lwr", "kriging".
    config : dict[str, Any] | None
        Keyword arguments of the parameter class. "distance" may be a metric
        name or mapping, "variogram" a variogram mapping (see
        geo_estimation.variogram.get_variogram) and "neighborhood" a mapping
        with "radius" and optionally "distance".

    Returns
    -------
    EstimatorParams
    """
    kwargs = dict(config or {})
    if "distance" in kwargs:
        kwargs["distance"] = metric_from_config(kwargs["distance"])
    if isinstance(kwargs.get("variogram"), dict):
        kwargs["variogram"] = get_variogram(kwargs["variogram"])
    if isinstance(kwargs.get("neighborhood"), dict):
        ball = dict(kwargs["neighborhood"])
        kwargs["neighborhood"] = MetricBall(
            radius=ball.pop("radius"),
            metric=metric_from_config(ball.pop("distance", None)),
        )

    match solver.lower():
        case "idw":
            params_class: type = IDWParams
        case "lwr":
            params_class = LWRParams
        case "kriging":
            params_class = KrigingParams
        case _:
            raise ConfigurationError(f"Unknown solver: {solver}")
    try:
        return params_class(**kwargs)
    except TypeError as err:
        raise ConfigurationError(
            f"Invalid {solver} parameters: {err}"
        ) from err


def solver_from_config(config: dict[str, Any]) -> Solver:
    """
    Build a solver from a configuration mapping with keys "solver" (one of
    "idw", "lwr", "kriging", default "kriging"), "default" (parameters for
    all variables) and "variables" (parameters for each variable).
    """
    name = str(get_recurse(config, "solver", default="kriging")).lower()
    default_config = get_recurse(config, "default", default={})
    variables = get_recurse(config, "variables", default={}) or {}

    solver_class: type[Solver]
    match name:
        case "idw":
            solver_class = IDWSolver
        case "lwr":
            solver_class = LWRSolver
        case "kriging":
            solver_class = KrigingSolver
        case _:
            raise ConfigurationError(f"Unknown solver: {name}")

    default = params_from_config(name, default_config)
    params = {
        var: params_from_config(name, {**default_config, **(var_config or {})})
        for var, var_config in variables.items()
    }
    return solver_class(params, default)
