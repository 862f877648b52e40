"""Project-wide constants and run defaults."""

LORENZ_SIGMA = 10.0  # Prandtl number
LORENZ_R = 28.0      # Rayleigh number
LORENZ_B = 8.0 / 3.0  # geometric factor

DEFAULT_INITIAL = (0.1, 0.1, 0.1)
DEFAULT_STEP_SIZE = 0.01
DEFAULT_STEP_COUNT = 10000
DEFAULT_PERTURBATION = 1e-5
DEFAULT_THRESHOLD_FACTOR = 1e3

VERSION = "1"
TIME_STAMPING = "index"
METHOD = "euler"
