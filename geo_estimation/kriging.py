"""
Functions for performing Kriging.

Interpolation using a best linear unbiased estimator built from a variogram.
Available methods are Simple, Ordinary, Universal and External Drift Kriging.

Each method assembles the Kriging system for a set of observations

.. math::
    \\begin{bmatrix} G & F \\\\ F^T & 0 \\end{bmatrix}
    \\begin{bmatrix} \\lambda \\\\ \\nu \\end{bmatrix}
    =
    \\begin{bmatrix} g_0 \\\\ f_0 \\end{bmatrix}

Where :math:`G` is the structure between observations, :math:`g_0` the
structure between the observations and the estimation location, :math:`F` the
unbiasedness constraints evaluated at the observations and :math:`f_0` the
constraints evaluated at the estimation location. :math:`\\lambda` are the
Kriging weights and :math:`\\nu` the Lagrange multipliers.

For a variogram with a sill the structure is the covariance, sill minus the
variogram; otherwise it is the variogram itself.
"""

from abc import abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations_with_replacement
import warnings

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from .constants import MAX_CONDITION_NUMBER
from .distances import Euclidean, Metric
from .estimator import Estimator, EstimatorParams, SearchConfig
from .observations import ObservationSet
from .search import MetricBall
from .utils import (
    ConfigurationError,
    InsufficientDataError,
    NumericalError,
    adjust_small_negative,
    is_positive_int,
)
from .variogram import (
    GaussianVariogram,
    Variogram,
    as_variogram,
    variogram_to_covariance,
)


class KrigingMethod(Enum):
    """The Kriging variants"""

    SIMPLE = "simple"
    ORDINARY = "ordinary"
    UNIVERSAL = "universal"
    EXTERNAL_DRIFT = "external_drift"


@dataclass(frozen=True)
class FittedKriging:
    """
    A Kriging system factorised for a set of observations.

    Parameters
    ----------
    observations : ObservationSet
        The observations the system was built from.
    lhs : numpy.ndarray
        The left-hand-side of the Kriging system, including the constraints.
    factors : tuple[numpy.ndarray, numpy.ndarray]
        LU factorisation of `lhs`, from scipy.linalg.lu_factor.
    """

    observations: ObservationSet
    lhs: np.ndarray
    factors: tuple[np.ndarray, np.ndarray]


@dataclass(frozen=True)
class KrigingWeights:
    """
    Solution of the Kriging system at one location.

    Parameters
    ----------
    weights : numpy.ndarray
        Kriging weights of each observation.
    multipliers : numpy.ndarray
        Lagrange multipliers of each constraint (empty for Simple Kriging).
    rhs : numpy.ndarray
        Right-hand-side of the Kriging system.
    """

    weights: np.ndarray
    multipliers: np.ndarray
    rhs: np.ndarray

    @property
    def solution(self) -> np.ndarray:
        """Weights and multipliers as one vector"""
        return np.concatenate((self.weights, self.multipliers))


class Kriging(Estimator[FittedKriging]):
    """
    Class for Kriging.

    Do not use this class, use SimpleKriging, OrdinaryKriging,
    UniversalKriging or ExternalDriftKriging classes.

    Parameters
    ----------
    variogram : Variogram | Callable
        The variogram model, or a function of the lag.
    metric : Metric | None
        Distance used to compute lags, defaults to the Euclidean distance.
    """

    method: KrigingMethod

    def __init__(
        self,
        variogram: Variogram | Callable,
        metric: Metric | None = None,
    ) -> None:
        if not hasattr(self, "method"):
            raise TypeError(
                "Do not use the generic class directly, "
                + "use SimpleKriging, OrdinaryKriging, UniversalKriging or "
                + "ExternalDriftKriging"
            )
        self.variogram = as_variogram(variogram)
        self.metric = metric or Euclidean()
        return None

    @property
    def covariance_form(self) -> bool:
        """Is the system written with covariances rather than the variogram"""
        return self.variogram.bounded

    @abstractmethod
    def constraints(
        self,
        coords: np.ndarray,
        observations: ObservationSet,
    ) -> np.ndarray:
        """
        Evaluate the unbiasedness constraints at a set of positions.

        Parameters
        ----------
        coords : numpy.ndarray
            Positions, shape (m, N).
        observations : ObservationSet
            The observations the Kriging system is built from.

        Returns
        -------
        numpy.ndarray
            Constraint values, shape (m, p) for p constraints.
        """
        raise NotImplementedError(
            "`constraints` not implemented for default class"
        )

    def structure(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """
        Covariance (or variogram for an unbounded variogram) between each
        position in `a` and each position in `b`.
        """
        gamma = self.variogram.fit(self.metric.pairwise(a, b))
        if self.covariance_form:
            return variogram_to_covariance(gamma, self.variogram.sill)
        return gamma

    def fit(self, observations: ObservationSet) -> FittedKriging:
        """
        Assemble and factorise the Kriging system for a set of observations.

        Raises
        ------
        NumericalError
            If the system is singular or ill-conditioned, for example due to
            duplicated positions or too few observations for the constraints.
        """
        if observations.count == 0:
            raise InsufficientDataError("Kriging requires data")
        coords = observations.coordinates
        G = self.structure(coords, coords)
        F = self.constraints(coords, observations)
        p = F.shape[1]

        lhs = np.block([[G, F], [F.T, np.zeros((p, p))]])
        return FittedKriging(observations, lhs, _factorise(lhs))

    def weights(
        self,
        model: FittedKriging,
        location: np.ndarray,
    ) -> KrigingWeights:
        """Solve the fitted Kriging system for a single location"""
        coords = model.observations.coordinates
        x0 = np.atleast_2d(np.asarray(location, dtype=float))
        rhs = np.concatenate(
            (
                self.structure(coords, x0)[:, 0],
                self.constraints(x0, model.observations)[0],
            )
        )
        solution = lu_solve(model.factors, rhs)
        m = coords.shape[0]
        return KrigingWeights(solution[:m], solution[m:], rhs)

    def combine(self, weights: np.ndarray, values: np.ndarray) -> float:
        """Weighted combination of the observed values"""
        return float(weights @ values)

    def variance(self, weights: KrigingWeights) -> float:
        """
        Kriging variance from the solution of the system.

        .. math::
            \\sigma^2 = sill - b \\cdot x

        for the covariance form, or :math:`b \\cdot x` for the variogram form,
        where :math:`b` is the right-hand-side and :math:`x` the weights and
        multipliers. Small negative values due to round-off are set to 0.
        """
        explained = float(weights.rhs @ weights.solution)
        if self.covariance_form:
            var = float(
                variogram_to_covariance(explained, self.variogram.sill)
            )
        else:
            var = explained
        return float(adjust_small_negative(var))

    def predict(
        self,
        model: FittedKriging,
        location: np.ndarray,
    ) -> tuple[float, float]:
        """Kriging mean and variance at a location"""
        w = self.weights(model, location)
        mean = self.combine(w.weights, model.observations.values)
        return mean, self.variance(w)


class SimpleKriging(Kriging):
    r"""
    Class for SimpleKriging.

    The equation for simple Kriging is:
    .. math::
        \\mu + \\lambda^T (z - \\mu), \\quad C \\lambda = c_0

    Where :math:`\\mu` is a constant known mean. There are no constraints,
    the variogram must have a sill.

    Parameters
    ----------
    variogram : Variogram
        Variogram with a sill.
    mean : float
        The known mean.
    metric : Metric | None
        Distance used to compute lags.
    """

    method = KrigingMethod.SIMPLE

    def __init__(
        self,
        variogram: Variogram | Callable,
        mean: float,
        metric: Metric | None = None,
    ) -> None:
        super().__init__(variogram, metric)
        if not self.variogram.bounded:
            raise ConfigurationError(
                "Simple Kriging requires a variogram with a sill"
            )
        if not np.isfinite(mean):
            raise ConfigurationError("Simple Kriging mean must be finite")
        self.mean = float(mean)
        return None

    def constraints(
        self,
        coords: np.ndarray,
        observations: ObservationSet,
    ) -> np.ndarray:
        """No constraints"""
        return np.zeros((np.atleast_2d(coords).shape[0], 0))

    def combine(self, weights: np.ndarray, values: np.ndarray) -> float:
        """Known mean plus the weighted residuals"""
        return self.mean + float(weights @ (values - self.mean))


class OrdinaryKriging(Kriging):
    r"""
    Class for OrdinaryKriging.

    The mean is constant but unknown. The system is extended by a Lagrange
    multiplier term, ensuring that the Kriging weights are constrained to sum
    to 1.

    The matrix :math:`G` is extended by one row and one column, each
    containing the value 1, except at the diagonal point, which is 0. The
    right-hand-side is extended by a single value of 1.

    Parameters
    ----------
    variogram : Variogram | Callable
    metric : Metric | None
        Distance used to compute lags.
    """

    method = KrigingMethod.ORDINARY

    def constraints(
        self,
        coords: np.ndarray,
        observations: ObservationSet,
    ) -> np.ndarray:
        """A column of ones"""
        return np.ones((np.atleast_2d(coords).shape[0], 1))


def polynomial_exponents(degree: int, dim: int) -> list[tuple[int, ...]]:
    """
    Exponents of all monomials in `dim` variables with total degree at most
    `degree`, ordered by total degree.

    >>> polynomial_exponents(1, 2)
    [(0, 0), (1, 0), (0, 1)]
    """
    exponents: list[tuple[int, ...]] = []
    for total in range(degree + 1):
        for combo in combinations_with_replacement(range(dim), total):
            exponents.append(tuple(combo.count(i) for i in range(dim)))
    return exponents


class UniversalKriging(Kriging):
    r"""
    Class for UniversalKriging.

    The mean is a polynomial of the coordinates with unknown coefficients.
    The constraints are the monomials up to the polynomial degree, so that
    trends up to that degree are reproduced exactly.

    Parameters
    ----------
    variogram : Variogram | Callable
    degree : int
        Degree of the polynomial drift.
    dim : int
        Number of coordinates of a position.
    metric : Metric | None
        Distance used to compute lags.
    """

    method = KrigingMethod.UNIVERSAL

    def __init__(
        self,
        variogram: Variogram | Callable,
        degree: int,
        dim: int,
        metric: Metric | None = None,
    ) -> None:
        super().__init__(variogram, metric)
        if isinstance(degree, bool) or not isinstance(
            degree, (int, np.integer)
        ):
            raise ConfigurationError("Universal Kriging degree must be an int")
        if degree < 0:
            raise ConfigurationError(
                "Universal Kriging degree must be non-negative"
            )
        self.degree = int(degree)
        self.dim = dim
        self.exponents = np.array(polynomial_exponents(self.degree, dim))
        return None

    def constraints(
        self,
        coords: np.ndarray,
        observations: ObservationSet,
    ) -> np.ndarray:
        """
        Monomials of the coordinates, centred on the observations and scaled
        by their spread in each dimension.

        The space of polynomials of a given degree is invariant under the
        affine map, so the estimates do not depend on the origin or units of
        the coordinates.
        """
        obs_coords = observations.coordinates
        centre = obs_coords.mean(axis=0)
        spread = np.max(np.abs(obs_coords - centre), axis=0)
        spread[spread == 0] = 1.0
        scaled = (np.atleast_2d(coords) - centre) / spread
        return np.prod(
            np.power(scaled[:, None, :], self.exponents[None, :, :]), axis=2
        )


class ExternalDriftKriging(Kriging):
    r"""
    Class for ExternalDriftKriging.

    The mean is a linear combination of drift functions of the position with
    unknown coefficients. Each drift is a constraint. Include a constant
    function (`lambda x: 1.0`) to constrain the weights to sum to 1.

    Parameters
    ----------
    variogram : Variogram | Callable
    drifts : Sequence[Callable]
        Functions of a position (numpy.ndarray, shape (N,)) returning a float.
    metric : Metric | None
        Distance used to compute lags.
    """

    method = KrigingMethod.EXTERNAL_DRIFT

    def __init__(
        self,
        variogram: Variogram | Callable,
        drifts: Sequence[Callable[[np.ndarray], float]],
        metric: Metric | None = None,
    ) -> None:
        super().__init__(variogram, metric)
        drifts = list(drifts)
        if not drifts:
            raise ConfigurationError("External drift Kriging requires drifts")
        if not all(callable(d) for d in drifts):
            raise ConfigurationError("Drifts must be functions of a position")
        self.drifts = drifts
        return None

    def constraints(
        self,
        coords: np.ndarray,
        observations: ObservationSet,
    ) -> np.ndarray:
        """Drift functions evaluated at each position"""
        coords = np.atleast_2d(coords)
        return np.array(
            [[float(drift(x)) for drift in self.drifts] for x in coords],
            dtype=float,
        ).reshape(coords.shape[0], len(self.drifts))


def _factorise(lhs: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    if not np.all(np.isfinite(lhs)):
        raise NumericalError("Kriging system contains non-finite values")
    with warnings.catch_warnings():
        warnings.simplefilter("error", LinAlgWarning)
        try:
            factors = lu_factor(lhs)
        except LinAlgWarning as err:
            raise NumericalError(f"Singular Kriging system: {err}") from err
    cond = np.linalg.cond(lhs)
    if not cond < MAX_CONDITION_NUMBER:
        raise NumericalError(
            f"Ill-conditioned Kriging system, condition number {cond:.3g}"
        )
    return factors


@dataclass(frozen=True)
class KrigingParams(EstimatorParams):
    """
    Kriging parameters.

    The Kriging method is chosen from the parameters that are set, in order
    of priority: `drifts` gives External Drift Kriging, `degree` gives
    Universal Kriging, `mean` gives Simple Kriging, otherwise Ordinary
    Kriging is used.

    Parameters
    ----------
    variogram : Variogram | Callable
        Variogram model, defaults to a unit Gaussian variogram.
    mean : float | None
        Simple Kriging mean.
    degree : int | None
        Universal Kriging degree.
    drifts : Sequence[Callable] | None
        External Drift Kriging drift functions.
    minneighbors : int
        Minimum number of neighbours, locations with fewer neighbours are not
        estimated. Defaults to 1.
    maxneighbors : int | None
        Maximum number of neighbours, defaults to 10. If None, global Kriging
        is performed with all observations.
    neighborhood : MetricBall | None
        Search neighbourhood. If set, neighbours are found inside the ball
        centred on each location, otherwise the `maxneighbors` nearest
        neighbours according to `distance` are used.
    distance : Metric
        Distance used to find nearest neighbours and to compute lags when no
        neighbourhood is set. Defaults to the Euclidean distance.
    """

    variogram: Variogram | Callable = field(
        default_factory=lambda: GaussianVariogram(
            psill=1.0, nugget=0.0, effective_range=1.0
        )
    )
    mean: float | None = None
    degree: int | None = None
    drifts: Sequence[Callable[[np.ndarray], float]] | None = None
    minneighbors: int = 1
    maxneighbors: int | None = 10
    neighborhood: MetricBall | None = None
    distance: Metric = field(default_factory=Euclidean)

    @property
    def method(self) -> KrigingMethod:
        """The Kriging method selected by the parameters"""
        if self.drifts is not None:
            return KrigingMethod.EXTERNAL_DRIFT
        if self.degree is not None:
            return KrigingMethod.UNIVERSAL
        if self.mean is not None:
            return KrigingMethod.SIMPLE
        return KrigingMethod.ORDINARY

    @property
    def lag_metric(self) -> Metric:
        """Distance used to compute variogram lags"""
        if self.neighborhood is not None:
            return self.neighborhood.metric
        return self.distance

    def validate(self, observations: ObservationSet) -> None:
        """Check the parameters against a set of observations"""
        if observations.count == 0:
            raise InsufficientDataError("Estimation requires data")
        if not is_positive_int(self.minneighbors):
            raise ConfigurationError(
                "minneighbors must be a positive integer, "
                + f"got {self.minneighbors}"
            )
        if self.maxneighbors is not None:
            if not is_positive_int(self.maxneighbors):
                raise ConfigurationError(
                    "maxneighbors must be a positive integer, "
                    + f"got {self.maxneighbors}"
                )
            if self.minneighbors > self.maxneighbors:
                raise ConfigurationError(
                    "minneighbors must not exceed maxneighbors"
                )
        return None

    def build(self, observations: ObservationSet) -> Kriging:
        """Get the Kriging estimator for the selected method"""
        self.validate(observations)
        metric = self.lag_metric
        # Same priority as `method`
        if self.drifts is not None:
            return ExternalDriftKriging(self.variogram, self.drifts, metric)
        if self.degree is not None:
            return UniversalKriging(
                self.variogram, self.degree, observations.dim, metric
            )
        if self.mean is not None:
            return SimpleKriging(self.variogram, self.mean, metric)
        return OrdinaryKriging(self.variogram, metric)

    def search_config(
        self,
        observations: ObservationSet,
    ) -> SearchConfig | None:
        """
        Neighbourhood search for approximate Kriging, with `maxneighbors`
        capped at the number of observations. None for global Kriging.
        """
        if self.maxneighbors is None:
            return None
        return SearchConfig(
            maxneighbors=min(self.maxneighbors, observations.count),
            minneighbors=self.minneighbors,
            neighborhood=self.neighborhood,
            distance=self.distance,
        )
