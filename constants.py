# constants.py

MAX_AGE: int = 120
BASE_INFLATION: float = 0.02
GROWTH_VARIANCE: float = 0.04
GROWTH_CAP: float = 0.20
DEFAULT_NUMBER_SIMULATIONS: int = 1000

HISTOGRAM_NUM_BINS: int = 30
HISTOGRAM_BIN_ROUNDING: float = 100_000
HISTOGRAM_BIN_PERCENTILE: float = 50
HISTOGRAM_BIN_DIVISOR: float = 4

SUMMARY_PERCENTILES = [0.1, 10, 20, 30, 40, 50, 60, 70, 80, 90, 99.9]
TRAJECTORY_QUANTILES = [0.05, 0.10, 0.25, 0.50, 0.75, 0.90, 0.95]
CHART_CEILING_PERCENTILE: float = 95
HIGH_GROWTH_RATE_WARNING: float = 0.12

# Plotting constants
TEXT_INPUT_COLOR = '#1f77b4'
TEXT_OUTPUT_COLOR = '#ff7f0e'
