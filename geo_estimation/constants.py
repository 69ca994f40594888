"""Constants used by various functions and methods within the library"""

RADIUS_OF_EARTH_KM: float = 6371.0  # Average radius of Earth (km)

# Absolute tolerance below which negative variances are treated as round-off
SMALL_NEGATIVE_ATOL: float = 1e-8

# Systems with a larger condition number than 1 / eps are treated as singular
MAX_CONDITION_NUMBER: float = 1e15

# Default fraction of the observations used by locally weighted regression
LWR_NEIGHBOR_FRACTION: float = 0.2

# Relative tolerance for distances tied with the k-th nearest neighbour
NEIGHBOR_TIE_RTOL: float = 1e-12
