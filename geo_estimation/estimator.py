"""
Estimators
----------

The shared contract of all estimation methods. An Estimator is fitted to an
ObservationSet, producing a model, and the model is used to predict a mean and
an uncertainty at a location:

    model = estimator.fit(observations)
    mean, variance = estimator.predict(model, location)

Each estimator is configured by a parameter class deriving from
EstimatorParams, validated against the observations before any location is
estimated.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import numpy as np

from .distances import Euclidean, Metric
from .observations import ObservationSet
from .search import MetricBall

ModelT = TypeVar("ModelT")


class Estimator(ABC, Generic[ModelT]):
    """Generic Estimator Class - defines the abstract class"""

    @abstractmethod
    def fit(self, observations: ObservationSet) -> ModelT:
        """Fit the estimator to a set of observations"""
        raise NotImplementedError("Not implemented for base Estimator class")

    @abstractmethod
    def predict(
        self,
        model: ModelT,
        location: np.ndarray,
    ) -> tuple[float, float]:
        """
        Predict at a single location with a fitted model.

        Parameters
        ----------
        model
            Output of the `fit` method.
        location : numpy.ndarray
            Position to predict at, shape (N,).

        Returns
        -------
        mean : float
            The estimated value.
        variance : float
            The uncertainty of the estimate.
        """
        raise NotImplementedError("Not implemented for base Estimator class")

    def predict_many(
        self,
        model: ModelT,
        locations: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Predict at each row of an array of locations"""
        locations = np.atleast_2d(locations)
        mean = np.empty(locations.shape[0], dtype=float)
        variance = np.empty(locations.shape[0], dtype=float)
        for i, location in enumerate(locations):
            mean[i], variance[i] = self.predict(model, location)
        return mean, variance


@dataclass(frozen=True)
class SearchConfig:
    """
    Neighbourhood search used to re-fit an estimator at each location.

    Parameters
    ----------
    maxneighbors : int
        Maximum number of neighbours of a location.
    minneighbors : int
        Locations with fewer neighbours are not estimated.
    neighborhood : MetricBall | None
        Search inside a ball, otherwise the `maxneighbors` nearest are used.
    distance : Metric
        Metric for the nearest neighbour search.
    """

    maxneighbors: int
    minneighbors: int = 1
    neighborhood: MetricBall | None = None
    distance: Metric = field(default_factory=Euclidean)


class EstimatorParams(ABC):
    """Generic parameters of an Estimator - defines the abstract class"""

    @abstractmethod
    def validate(self, observations: ObservationSet) -> None:
        """
        Check the parameters against a set of observations, raising a
        ConfigurationError if they are invalid.
        """
        raise NotImplementedError("Not implemented for base params class")

    @abstractmethod
    def build(self, observations: ObservationSet) -> Estimator:
        """Get the Estimator configured by these parameters"""
        raise NotImplementedError("Not implemented for base params class")

    def search_config(
        self,
        observations: ObservationSet,
    ) -> SearchConfig | None:
        """
        Neighbourhood search for approximate estimation, None if the estimator
        is fitted once to all observations.
        """
        return None
