"""
Library for estimating a variable over a spatial domain from scattered point
observations. Available estimation methods are Inverse Distance Weighting,
Locally Weighted Regression and Kriging (Simple, Ordinary, Universal and
External Drift).
"""

from .distances import Euclidean, Haversine, Minkowski, get_metric
from .driver import EstimationDriver
from .grid import cartesian_grid, grid_from_resolution
from .idw import IDWParams, InverseDistanceWeighting
from .kriging import (
    ExternalDriftKriging,
    KrigingParams,
    OrdinaryKriging,
    SimpleKriging,
    UniversalKriging,
)
from .lwr import LocallyWeightedRegression, LWRParams
from .observations import ObservationSet
from .result import EstimationResult
from .search import MetricBall
from .solvers import (
    EstimationProblem,
    IDWSolver,
    KrigingSolver,
    LWRSolver,
    solve,
    solver_from_config,
)
from .utils import (
    ConfigurationError,
    EstimationCancelledError,
    InsufficientDataError,
    NumericalError,
    init_logging,
)
from .variogram import (
    ExponentialVariogram,
    GaussianVariogram,
    MaternVariogram,
    SphericalVariogram,
)

__all__ = [
    "ConfigurationError",
    "EstimationCancelledError",
    "EstimationDriver",
    "EstimationProblem",
    "EstimationResult",
    "Euclidean",
    "ExponentialVariogram",
    "ExternalDriftKriging",
    "GaussianVariogram",
    "Haversine",
    "IDWParams",
    "IDWSolver",
    "InsufficientDataError",
    "InverseDistanceWeighting",
    "KrigingParams",
    "KrigingSolver",
    "LWRParams",
    "LWRSolver",
    "LocallyWeightedRegression",
    "MaternVariogram",
    "MetricBall",
    "Minkowski",
    "NumericalError",
    "ObservationSet",
    "OrdinaryKriging",
    "SimpleKriging",
    "SphericalVariogram",
    "UniversalKriging",
    "cartesian_grid",
    "get_metric",
    "grid_from_resolution",
    "init_logging",
    "solve",
    "solver_from_config",
]

__version__ = "1.0.0-rc.1"
