"""Post-batch statistics: percentile ranking, survival curve and histogram."""

from typing import TYPE_CHECKING, List, Sequence

import numpy as np

from config import InvalidParameterError
from constants import (
    HISTOGRAM_BIN_DIVISOR,
    HISTOGRAM_BIN_PERCENTILE,
    HISTOGRAM_BIN_ROUNDING,
    HISTOGRAM_NUM_BINS,
    MAX_AGE,
)

if TYPE_CHECKING:
    from simulation import SimulationResult


def _as_sorted_array(values: Sequence[float], what: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise InvalidParameterError(f"Cannot compute {what} of an empty value set.")
    return np.sort(arr)


def _check_percentiles(percentiles: Sequence[float]) -> None:
    for p in percentiles:
        if not 0 <= p <= 100:
            raise InvalidParameterError(f"Percentiles must lie in [0, 100], got {p}")


# --- Percentile & decile ---


def retirement_age_values(
    batch: Sequence["SimulationResult"], retirement_age: int
) -> np.ndarray:
    """Account value of every trial at exactly ``retirement_age`` (0 if absent)."""
    return np.array([r.account_value_at(retirement_age) for r in batch], dtype=float)


def percentile_rank(values: Sequence[float], value: float) -> float:
    """
    Rank of ``value`` within ``values`` on a 0-100 scale.

    The rank is the first position of ``value`` in ascending order, so equal
    values share the lowest rank among them. A single-element set ranks 0.
    """
    sorted_values = _as_sorted_array(values, "a percentile rank")
    index = int(np.searchsorted(sorted_values, value, side="left"))
    if sorted_values.size == 1:
        return 0.0
    return 100.0 * index / (sorted_values.size - 1)


def assign_percentiles(batch: List["SimulationResult"], retirement_age: int) -> None:
    """Sets ``percentile`` on every trial from its retirement-age account value."""
    values = retirement_age_values(batch, retirement_age)
    sorted_values = _as_sorted_array(values, "percentiles")
    for result, value in zip(batch, values):
        result.percentile = percentile_rank(sorted_values, value)


def percentile_cutpoints(
    values: Sequence[float], percentiles: Sequence[float]
) -> List[float]:
    """
    Values at the requested percentiles, linearly interpolated between the
    neighbouring order statistics at fractional index ``p / 100 * (n - 1)``.
    """
    _check_percentiles(percentiles)
    sorted_values = _as_sorted_array(values, "percentile cut-points")
    return [float(v) for v in np.percentile(sorted_values, percentiles, method="linear")]


def percentile_buckets(
    values: Sequence[float], percentiles: Sequence[float]
) -> List[float]:
    """
    Order statistic at index ``floor(p / 100 * n)`` for each percentile.

    No interpolation; differs from ``percentile_cutpoints`` at most indices.
    p = 100 would index past the end and is clamped to the largest value.
    """
    _check_percentiles(percentiles)
    sorted_values = _as_sorted_array(values, "percentile buckets")
    n = sorted_values.size
    result = []
    for p in percentiles:
        index = min(int(np.floor(p / 100.0 * n)), n - 1)
        result.append(float(sorted_values[index]))
    return result


def decile_members(batch: Sequence["SimulationResult"], decile: int) -> List[int]:
    """Indices of trials whose percentile lies within decile ``decile`` (0-9), bounds inclusive."""
    if not 0 <= decile <= 9:
        raise InvalidParameterError(f"Decile must be between 0 and 9, got {decile}")
    low, high = decile * 10, (decile + 1) * 10
    return [i for i, r in enumerate(batch) if low <= r.percentile <= high]


# --- Survival probability ---


def depletion_probability_distribution(
    depletion_ages: Sequence[int], max_age: int = MAX_AGE
) -> np.ndarray:
    """
    Share of trials depleting at each integer age ``0..max_age - 1``.

    Ages outside that range (including the never-depleted marker) are left
    out of the counts but still part of the denominator.
    """
    ages = np.asarray(depletion_ages, dtype=int)
    if ages.size == 0:
        raise InvalidParameterError("Cannot build a depletion distribution from zero trials.")
    if max_age < 1:
        raise InvalidParameterError(f"max_age must be positive, got {max_age}")
    in_range = ages[(ages >= 0) & (ages < max_age)]
    frequency = np.bincount(in_range, minlength=max_age)
    return frequency / ages.size


def survival_probability_curve(
    depletion_ages: Sequence[int], max_age: int = MAX_AGE
) -> np.ndarray:
    """Probability that a trial still has funds at each age ``0..max_age - 1``."""
    cumulative = np.cumsum(depletion_probability_distribution(depletion_ages, max_age))
    return np.clip(1.0 - cumulative, 0.0, 1.0)


# --- Histogram ---


def histogram_bin_width(
    values: Sequence[float],
    percentile: float = HISTOGRAM_BIN_PERCENTILE,
    divisor: float = HISTOGRAM_BIN_DIVISOR,
    rounding: float = HISTOGRAM_BIN_ROUNDING,
) -> float:
    """Bin width from a percentile bucket, rounded half-up to ``rounding`` and never below it."""
    anchor = percentile_buckets(values, [percentile])[0]
    width = np.floor(anchor / divisor / rounding + 0.5) * rounding
    return float(max(width, rounding))


def histogram_pmf(
    values: Sequence[float],
    bin_width: float,
    num_bins: int = HISTOGRAM_NUM_BINS,
) -> np.ndarray:
    """
    Probability mass over ``num_bins`` equal-width bins starting at 0.

    Values at or beyond the lower bound of the last bin fall into that
    overflow bin.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise InvalidParameterError("Cannot build a histogram from an empty value set.")
    if not np.isfinite(bin_width) or bin_width <= 0:
        raise InvalidParameterError(f"Bin width must be positive, got {bin_width}")
    if num_bins < 1:
        raise InvalidParameterError(f"Number of bins must be positive, got {num_bins}")

    indices = np.where(
        arr < bin_width * (num_bins - 1),
        np.floor(arr / bin_width),
        num_bins - 1,
    ).astype(int)
    counts = np.bincount(np.clip(indices, 0, num_bins - 1), minlength=num_bins)
    return counts / arr.size


def histogram_bin_edges(bin_width: float, num_bins: int = HISTOGRAM_NUM_BINS) -> List[float]:
    """Upper edge of every bin, used as chart labels."""
    return [bin_width * (i + 1) for i in range(num_bins)]
