"""
Estimation Driver
-----------------

Runs an estimator over every location of a target domain for one variable.

Two modes are available. In exact mode the estimator is fitted once to all
observations and the same model predicts at every location. In approximate
mode, used when the estimator parameters define a neighbourhood search, the
estimator is re-fitted at each location to the neighbours of that location.

Locations are always visited in the canonical order of the domain, so that
repeated runs give identical output.
"""

from collections.abc import Callable
from enum import Enum
import logging

import numpy as np

from .estimator import Estimator, EstimatorParams, SearchConfig
from .observations import ObservationSet
from .search import BallSearch, BoundedSearch, KNearestSearch, NeighborSearch
from .types import ErrorPolicy
from .utils import ConfigurationError, EstimationCancelledError, NumericalError


class DriverState(Enum):
    """States of an EstimationDriver"""

    CONFIGURING = "configuring"
    READY = "ready"
    TRAVERSING = "traversing"
    DONE = "done"
    FAILED = "failed"


def build_searcher(
    observations: ObservationSet,
    config: SearchConfig,
) -> NeighborSearch:
    """
    Build the neighbourhood search for approximate estimation.

    If a neighbourhood is set, the search returns at most `maxneighbors` of the
    closest observations inside the neighbourhood. Otherwise the `maxneighbors`
    nearest observations according to the distance are returned.
    """
    if config.neighborhood is not None:
        return BoundedSearch(
            BallSearch(observations.coordinates, config.neighborhood),
            config.maxneighbors,
        )
    return KNearestSearch(
        observations.coordinates, config.maxneighbors, config.distance
    )


class EstimationDriver:
    """
    Estimate one variable at all locations of a domain.

    Usage:

        driver = EstimationDriver(observations, locations, params)
        driver.configure()
        mean, variance = driver.run()

    Parameters
    ----------
    observations : ObservationSet
        Observations of the variable.
    locations : numpy.ndarray
        Positions of the domain in canonical order, shape (n, N). See
        `geo_estimation.grid.domain_coordinates`.
    params : EstimatorParams
        Parameters of the estimator.
    on_error : ErrorPolicy
        Action when estimating a single location fails with a NumericalError,
        either fitting to the neighbours of the location in approximate mode
        or predicting in either mode (for example a singular local fit of
        locally weighted regression). "raise" (default) aborts the run,
        "undefined" logs a warning and sets the location to NaN. Fitting the
        single model of exact mode always aborts the run on failure.
    should_cancel : Callable[[], bool] | None
        Checked between locations, the run is stopped with an
        EstimationCancelledError if it returns True.
    """

    def __init__(
        self,
        observations: ObservationSet,
        locations: np.ndarray,
        params: EstimatorParams,
        on_error: ErrorPolicy = "raise",
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        self.observations = observations
        self.locations = np.atleast_2d(np.asarray(locations, dtype=float))
        self.params = params
        self.on_error = on_error
        self.should_cancel = should_cancel
        self.state = DriverState.CONFIGURING
        self.estimator: Estimator | None = None
        self.searcher: NeighborSearch | None = None
        self.minneighbors: int = 1
        return None

    @property
    def exact(self) -> bool:
        """Is the estimator fitted once to all observations"""
        return self.searcher is None

    def _expect(self, state: DriverState) -> None:
        if self.state != state:
            raise RuntimeError(
                f"Driver is {self.state.value}, expected {state.value}"
            )
        return None

    def configure(self) -> "EstimationDriver":
        """
        Validate the parameters and build the estimator and the neighbourhood
        search. Any ConfigurationError is raised here, before any location is
        estimated.
        """
        self._expect(DriverState.CONFIGURING)
        if self.on_error not in ("raise", "undefined"):
            raise ConfigurationError(f"Unknown error policy: {self.on_error}")
        if self.locations.shape[1] != self.observations.dim:
            raise ConfigurationError(
                f"Domain has {self.locations.shape[1]} coordinates, "
                + f"observations have {self.observations.dim}"
            )

        self.estimator = self.params.build(self.observations)
        config = self.params.search_config(self.observations)
        if config is not None:
            self.searcher = build_searcher(self.observations, config)
            self.minneighbors = config.minneighbors

        logging.info(
            f"Configured {type(self.estimator).__name__} for "
            + f"{self.observations.name} with {self.observations.count} "
            + f"observations, {'exact' if self.exact else 'approximate'} mode"
        )
        self.state = DriverState.READY
        return self

    def run(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Estimate at every location.

        Returns
        -------
        mean : numpy.ndarray
            Estimated values, in the order of the locations.
        variance : numpy.ndarray
            Uncertainty of the estimates. Locations with too few neighbours,
            or undefined after a NumericalError, are NaN in both outputs.
        """
        self._expect(DriverState.READY)
        estimator = self.estimator
        if estimator is None:
            raise RuntimeError("Driver has no estimator, call `configure`")
        self.state = DriverState.TRAVERSING
        try:
            if self.searcher is None:
                result = self._run_exact(estimator)
            else:
                result = self._run_approx(estimator, self.searcher)
        except Exception:
            self.state = DriverState.FAILED
            raise
        self.state = DriverState.DONE
        return result

    def _log_progress(self, i: int) -> None:
        n = self.locations.shape[0]
        step = max(n // 10, 1)
        if (i + 1) % step == 0 or i + 1 == n:
            logging.debug(f"Processed {i + 1} of {n} locations")
        return None

    def _check_cancel(self, i: int) -> None:
        if self.should_cancel is not None and self.should_cancel():
            raise EstimationCancelledError(
                f"Estimation cancelled after {i} of "
                + f"{self.locations.shape[0]} locations"
            )
        return None

    def _undefined(self, i: int, err: NumericalError) -> None:
        if self.on_error == "raise":
            raise err
        logging.warning(f"Location {i} is undefined: {err}")
        return None

    def _run_exact(
        self,
        estimator: Estimator,
    ) -> tuple[np.ndarray, np.ndarray]:
        n = self.locations.shape[0]
        mean = np.full(n, np.nan, dtype=float)
        variance = np.full(n, np.nan, dtype=float)

        model = estimator.fit(self.observations)
        n_failed = 0
        for i, location in enumerate(self.locations):
            self._check_cancel(i)
            try:
                mean[i], variance[i] = estimator.predict(model, location)
            except NumericalError as err:
                self._undefined(i, err)
                n_failed += 1
            self._log_progress(i)
        logging.info(f"Estimated {n - n_failed} of {n} locations")
        return mean, variance

    def _run_approx(
        self,
        estimator: Estimator,
        searcher: NeighborSearch,
    ) -> tuple[np.ndarray, np.ndarray]:
        n = self.locations.shape[0]
        mean = np.full(n, np.nan, dtype=float)
        variance = np.full(n, np.nan, dtype=float)

        n_skipped = 0
        n_failed = 0
        for i, location in enumerate(self.locations):
            self._check_cancel(i)
            idx, _ = searcher.search(location)
            if len(idx) < self.minneighbors:
                n_skipped += 1
                self._log_progress(i)
                continue
            try:
                model = estimator.fit(self.observations.subset(idx))
                mean[i], variance[i] = estimator.predict(model, location)
            except NumericalError as err:
                self._undefined(i, err)
                n_failed += 1
            self._log_progress(i)

        logging.info(
            f"Estimated {n - n_skipped - n_failed} of {n} locations, "
            + f"{n_skipped} with too few neighbours, {n_failed} failed"
        )
        return mean, variance
