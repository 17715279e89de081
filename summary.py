import math
from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel, Field

from analytics import (
    histogram_bin_edges,
    histogram_bin_width,
    histogram_pmf,
    percentile_buckets,
    percentile_cutpoints,
    retirement_age_values,
    survival_probability_curve,
)
from config import InvalidParameterError, SimulationParameters
from constants import (
    CHART_CEILING_PERCENTILE,
    HISTOGRAM_NUM_BINS,
    MAX_AGE,
    SUMMARY_PERCENTILES,
    TRAJECTORY_QUANTILES,
)
from projection import expected_value

if TYPE_CHECKING:
    from simulation import SimulationResult


class TrialStatistics(BaseModel):
    """Accumulation and decumulation figures for a single trial."""

    starting_value: float
    total_growth_nom: float = Field(..., description="Nominal growth up to and including the retirement age.")
    total_savings: float
    value_after_retirement: float = Field(..., description="Account value in the first withdrawal year.")
    average_growth_pre_retirement: Optional[float] = None
    first_withdrawal: float
    years_before_depletion: int
    average_growth_post_retirement: Optional[float] = None


class BatchSummary(BaseModel):
    """Values the presentation layer shows for one batch."""

    scenario: str
    num_simulations: int
    retirement_age: int
    funded_to_max_age_probability: float
    percentile_levels: List[float]
    percentile_values: List[float]
    median_value: Optional[float] = None
    average_value: Optional[float] = None
    top_value: Optional[float] = None
    expected_value: float
    chart_ceiling: Optional[float] = None
    histogram_bin_width: Optional[float] = None
    histogram_bin_edges: List[float] = []
    histogram_probabilities: List[float] = []
    survival_ages: List[int]
    survival_probabilities: List[float]


def _geometric_average(growth_rates: Sequence[float], years: int) -> Optional[float]:
    if years <= 0:
        return None
    product = math.prod(1 + g for g in growth_rates)
    if product <= 0:
        return None
    return product ** (1 / years) - 1


def trial_statistics(
    result: "SimulationResult", current_age: int, retirement_age: int
) -> TrialStatistics:
    trajectory = result.trajectory
    retired_years = [y for y in trajectory if y.age > retirement_age]
    first_retired = retired_years[0] if retired_years else None

    years_before_depletion = next(
        (i for i, y in enumerate(retired_years) if y.account_value <= 0),
        MAX_AGE - retirement_age,
    )

    return TrialStatistics(
        starting_value=trajectory[0].account_value if trajectory else 0.0,
        total_growth_nom=sum(y.annual_growth_nom for y in trajectory if y.age <= retirement_age),
        total_savings=sum(y.annual_saving for y in trajectory),
        value_after_retirement=first_retired.account_value if first_retired else 0.0,
        average_growth_pre_retirement=_geometric_average(
            [y.annual_growth_perc for y in trajectory if y.age <= retirement_age],
            retirement_age - current_age,
        ),
        first_withdrawal=first_retired.annual_withdrawal if first_retired else 0.0,
        years_before_depletion=years_before_depletion,
        average_growth_post_retirement=_geometric_average(
            [y.annual_growth_perc for y in retired_years], years_before_depletion
        ),
    )


def _account_value_frame(batch: Sequence["SimulationResult"]) -> pd.DataFrame:
    """Rows are ages, columns are trials."""
    if not batch:
        raise InvalidParameterError("Cannot tabulate an empty batch.")
    ages = [y.age for y in batch[0].trajectory]
    values = np.array([[y.account_value for y in r.trajectory] for r in batch])
    return pd.DataFrame(values.T, index=pd.Index(ages, name="age"))


def trajectory_percentile_bands(
    batch: Sequence["SimulationResult"],
    quantiles: Sequence[float] = TRAJECTORY_QUANTILES,
) -> pd.DataFrame:
    """Quantiles of the account value across trials at every age."""
    trajectory_df = _account_value_frame(batch)
    return trajectory_df.quantile(list(quantiles), axis=1).transpose()


def sample_trajectories(
    batch: Sequence["SimulationResult"], n: int = 5, random_state: Optional[int] = None
) -> List[List[float]]:
    trajectory_df = _account_value_frame(batch)
    n = min(n, trajectory_df.shape[1])
    return trajectory_df.sample(n=n, axis=1, random_state=random_state).values.T.tolist()


def summarize_batch(
    batch: Sequence["SimulationResult"], params: SimulationParameters
) -> BatchSummary:
    """
    Builds the dashboard statistics of a completed batch.

    Value statistics only consider trials with a positive account value at
    the retirement age. When no trial qualifies they are left empty and the
    histogram is omitted.
    """
    if not batch:
        raise InvalidParameterError("Cannot summarize an empty batch.")

    all_values = retirement_age_values(batch, params.retirement_age)
    positive_values = all_values[all_values > 0]

    depletion_ages = [r.age_at_depletion for r in batch]
    survival = survival_probability_curve(depletion_ages, MAX_AGE)[params.retirement_age:]
    funded = sum(1 for age in depletion_ages if age > MAX_AGE) / len(batch)

    summary = BatchSummary(
        scenario=params.Nickname,
        num_simulations=len(batch),
        retirement_age=params.retirement_age,
        funded_to_max_age_probability=funded,
        percentile_levels=list(SUMMARY_PERCENTILES),
        percentile_values=[],
        expected_value=expected_value(
            params.start_amount,
            params.annual_savings,
            params.years_to_retirement,
            params.growth_rate,
        ),
        survival_ages=list(range(params.retirement_age, params.retirement_age + len(survival))),
        survival_probabilities=[float(p) for p in survival],
    )

    if positive_values.size == 0:
        logger.warning(
            f"No trial in '{params.Nickname}' has a positive balance at age {params.retirement_age}; "
            "value statistics are omitted."
        )
        return summary

    buckets = percentile_buckets(positive_values, SUMMARY_PERCENTILES)
    bin_width = histogram_bin_width(positive_values)

    summary.percentile_values = buckets
    summary.median_value = buckets[SUMMARY_PERCENTILES.index(50)]
    summary.average_value = float(positive_values.mean())
    summary.top_value = buckets[-1]
    summary.chart_ceiling = percentile_cutpoints(positive_values, [CHART_CEILING_PERCENTILE])[0]
    summary.histogram_bin_width = bin_width
    summary.histogram_bin_edges = histogram_bin_edges(bin_width, HISTOGRAM_NUM_BINS)
    summary.histogram_probabilities = [
        float(p) for p in histogram_pmf(positive_values, bin_width, HISTOGRAM_NUM_BINS)
    ]
    return summary
