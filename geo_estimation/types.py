"""Types and Literals used by geo_estimation functions and methods."""

from typing import Literal

MetricName = Literal["euclidean", "minkowski", "haversine"]

VariogramModel = Literal[
    "linear",
    "power",
    "gaussian",
    "exponential",
    "spherical",
    "matern",
]

MaternModel = Literal["sklearn", "gstat", "karspeck"]

SolverName = Literal["idw", "lwr", "kriging"]

# What the driver does with a numerical failure at a single location in
# approximate mode
ErrorPolicy = Literal["raise", "undefined"]
