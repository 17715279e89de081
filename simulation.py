import multiprocessing
from typing import List, Optional

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from analytics import assign_percentiles
from config import InvalidParameterError, SimulationParameters, build_parameters
from constants import BASE_INFLATION, GROWTH_CAP, GROWTH_VARIANCE, MAX_AGE
from variates import _generate_seed_from_timestamp, normal


class SimulationYear(BaseModel):
    """One simulated age of one trial."""

    model_config = ConfigDict(alias_generator=to_camel, validate_by_name=True)

    age: int
    account_value: float
    annual_growth_nom: float = 0.0
    annual_growth_perc: float = 0.0
    annual_saving: float = 0.0
    annual_withdrawal: float = 0.0


class SimulationResult(BaseModel):
    """A full trajectory, from the starting age through MAX_AGE."""

    model_config = ConfigDict(alias_generator=to_camel, validate_by_name=True)

    trajectory: List[SimulationYear]
    age_at_depletion: int
    percentile: float = 0.0

    def account_value_at(self, age: int) -> float:
        """Account value at exactly ``age``, or 0 if the trajectory has no such year."""
        for year in self.trajectory:
            if year.age == age:
                return year.account_value
        return 0.0


def simulate_trajectory(
    params: SimulationParameters, rng: np.random.Generator
) -> SimulationResult:
    """
    Advances one account from ``current_age`` to MAX_AGE or depletion.

    Growth is applied to the beginning-of-year balance; savings and withdrawals
    land at the end of the year. Withdrawal needs grow with inflation every
    year, including the accumulation years.
    """
    age = params.current_age
    current_needs = params.annual_withdrawal
    account_value_eop = params.start_amount

    # No growth in the starting year
    trajectory: List[SimulationYear] = [
        SimulationYear(age=age, account_value=account_value_eop)
    ]
    age += 1
    current_needs *= 1 + BASE_INFLATION

    while account_value_eop > 0 and age <= MAX_AGE:
        account_value_bop = account_value_eop
        account_change = (
            params.annual_savings if age <= params.retirement_age else -current_needs
        )
        growth = min(GROWTH_CAP, normal(params.growth_rate, GROWTH_VARIANCE, rng))
        account_value_eop = account_value_bop + account_value_bop * growth + account_change

        trajectory.append(
            SimulationYear(
                age=age,
                account_value=max(0.0, account_value_eop),
                annual_growth_nom=account_value_eop - account_value_bop - account_change,
                annual_growth_perc=growth,
                annual_saving=account_change if account_change > 0 else 0.0,
                annual_withdrawal=account_change if account_change < 0 else 0.0,
            )
        )
        age += 1
        current_needs *= 1 + BASE_INFLATION

    age_at_depletion = age

    while age <= MAX_AGE:
        trajectory.append(
            SimulationYear(age=age, account_value=max(0.0, account_value_eop))
        )
        age += 1

    return SimulationResult(trajectory=trajectory, age_at_depletion=age_at_depletion)


class RetirementMonteCarloSimulator:
    """
    Runs a batch of independent retirement trajectories with identical inputs.

    Every trial draws from its own generator seeded with ``main_seed + i``, so a
    trial can be reproduced on its own and the batch is identical whether it
    runs sequentially or on a process pool.
    """

    def __init__(
        self, params_model: SimulationParameters, main_seed_override: Optional[int] = None
    ):
        self.params_model = params_model.model_copy(deep=True)

        if main_seed_override is not None:
            self.main_seed = main_seed_override
        elif self.params_model.seed is not None:
            self.main_seed = self.params_model.seed
        else:
            self.main_seed = _generate_seed_from_timestamp()
        logger.info(
            f"Simulator initialized for scenario '{self.params_model.Nickname}' with main seed: {self.main_seed}"
        )

    def _run_single_simulation_path(self, path_seed: int) -> SimulationResult:
        rng = np.random.default_rng(path_seed)
        return simulate_trajectory(self.params_model, rng)

    def run_monte_carlo_simulations(
        self, num_simulations: Optional[int] = None
    ) -> List[SimulationResult]:
        """
        Runs all trials, either sequentially or in parallel, then ranks each
        trial by its retirement-age account value.
        """
        if num_simulations is None:
            num_simulations = self.params_model.num_simulations
        if num_simulations < 1:
            raise InvalidParameterError(
                f"Number of simulations must be at least 1, got {num_simulations}"
            )

        path_seeds = [self.main_seed + i for i in range(num_simulations)]
        num_procs_to_use = (
            self.params_model.num_processes
            if self.params_model.num_processes is not None
            else 1
        )

        batch: List[SimulationResult]

        if num_procs_to_use <= 1:
            logger.debug(f"Running {num_simulations} simulations sequentially.")
            batch = [self._run_single_simulation_path(seed) for seed in path_seeds]
        else:
            logger.debug(
                f"Running {num_simulations} simulations in parallel using {num_procs_to_use} processes."
            )
            try:
                with multiprocessing.Pool(processes=num_procs_to_use) as pool:
                    batch = pool.map(self._run_single_simulation_path, path_seeds)
            except Exception as e:
                logger.exception(
                    f"Multiprocessing pool error: {e}. Falling back to sequential execution."
                )
                batch = [self._run_single_simulation_path(seed) for seed in path_seeds]

        assign_percentiles(batch, self.params_model.retirement_age)

        depleted = sum(1 for r in batch if r.age_at_depletion <= MAX_AGE)
        logger.info(
            f"Completed {len(batch)} simulations for '{self.params_model.Nickname}'; "
            f"{depleted} depleted before age {MAX_AGE + 1}."
        )
        return batch


def simulate(
    start_amount: float,
    annual_savings: float,
    annual_withdrawal: float,
    growth_rate: float,
    current_age: int,
    retirement_age: int,
    trial_count: int,
    seed: Optional[int] = None,
    num_processes: int = 1,
) -> List[SimulationResult]:
    """Validates the inputs and runs one batch of ``trial_count`` trials."""
    params = build_parameters(
        start_amount=start_amount,
        annual_savings=annual_savings,
        annual_withdrawal=annual_withdrawal,
        growth_rate=growth_rate,
        current_age=current_age,
        retirement_age=retirement_age,
        num_simulations=trial_count,
        seed=seed,
        num_processes=num_processes,
    )
    return RetirementMonteCarloSimulator(params).run_monte_carlo_simulations()
