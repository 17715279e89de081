import numpy as np
import pytest

from config import InvalidParameterError, SimulationParameters
from constants import GROWTH_CAP, MAX_AGE
from simulation import RetirementMonteCarloSimulator, simulate, simulate_trajectory


def make_params(**overrides):
    values = dict(
        start_amount=100_000,
        annual_savings=10_000,
        annual_withdrawal=50_000,
        growth_rate=0.05,
        current_age=30,
        retirement_age=65,
        num_simulations=50,
        seed=42,
    )
    values.update(overrides)
    return SimulationParameters(**values)


@pytest.fixture(scope="module")
def reference_batch():
    return simulate(100_000, 10_000, 50_000, 0.05, 30, 65, 1000, seed=42)


def test_reference_batch_shape(reference_batch):
    assert len(reference_batch) == 1000
    for result in reference_batch:
        assert len(result.trajectory) == 91
        assert [y.age for y in result.trajectory] == list(range(30, MAX_AGE + 1))
        assert result.account_value_at(65) >= 0


def test_account_values_never_negative(reference_batch):
    assert all(y.account_value >= 0 for r in reference_batch for y in r.trajectory)


def test_growth_is_capped_from_above_only(reference_batch):
    growth = [y.annual_growth_perc for r in reference_batch for y in r.trajectory]
    assert max(growth) <= GROWTH_CAP
    assert min(growth) < 0


def test_exactly_one_flow_per_simulated_year(reference_batch):
    for result in reference_batch:
        for year in result.trajectory[1:]:
            if year.age >= result.age_at_depletion:
                break
            assert (year.annual_saving > 0) != (year.annual_withdrawal < 0)
            assert year.annual_saving >= 0 and year.annual_withdrawal <= 0


def test_percentiles_assigned_over_batch(reference_batch):
    percentiles = [r.percentile for r in reference_batch]
    assert min(percentiles) == 0
    assert max(percentiles) == 100


def test_baseline_year_has_no_flows():
    result = simulate_trajectory(make_params(), np.random.default_rng(1))
    baseline = result.trajectory[0]
    assert baseline.age == 30
    assert baseline.account_value == 100_000
    assert baseline.annual_growth_nom == 0
    assert baseline.annual_saving == 0 and baseline.annual_withdrawal == 0


def test_never_depleted_reports_age_past_max(constant_growth):
    constant_growth(0.05)
    params = make_params(start_amount=1_000_000, annual_withdrawal=0)
    result = simulate_trajectory(params, np.random.default_rng(0))
    assert result.age_at_depletion == MAX_AGE + 1
    assert result.trajectory[-1].age == MAX_AGE
    assert result.trajectory[-1].account_value > 0


def test_depletion_pads_trajectory_with_zero_years(constant_growth):
    constant_growth(0.0)
    params = make_params(
        start_amount=100, annual_savings=0, annual_withdrawal=50, current_age=60, retirement_age=60
    )
    result = simulate_trajectory(params, np.random.default_rng(0))

    assert result.age_at_depletion == 63
    assert len(result.trajectory) == MAX_AGE + 1 - 60
    year_61, year_62 = result.trajectory[1], result.trajectory[2]
    assert year_61.account_value == pytest.approx(49.0)
    assert year_61.annual_withdrawal == pytest.approx(-51.0)
    assert year_62.account_value == 0
    assert year_62.annual_withdrawal == pytest.approx(-52.02)
    for year in result.trajectory[3:]:
        assert year.account_value == 0
        assert year.annual_growth_perc == 0
        assert year.annual_saving == 0 and year.annual_withdrawal == 0


def test_withdrawal_escalates_with_inflation_during_accumulation(constant_growth):
    constant_growth(0.0)
    params = make_params(
        start_amount=10_000, annual_savings=100, annual_withdrawal=100, current_age=30, retirement_age=32
    )
    result = simulate_trajectory(params, np.random.default_rng(0))
    by_age = {y.age: y for y in result.trajectory}
    assert by_age[31].annual_saving == 100
    assert by_age[32].annual_saving == 100
    assert by_age[33].annual_saving == 0
    assert by_age[33].annual_withdrawal == pytest.approx(-100 * 1.02**3)


def test_growth_draw_above_cap_is_clipped(constant_growth):
    constant_growth(0.5)
    result = simulate_trajectory(make_params(annual_withdrawal=0), np.random.default_rng(0))
    year = result.trajectory[1]
    assert year.annual_growth_perc == GROWTH_CAP
    assert year.annual_growth_nom == pytest.approx(100_000 * GROWTH_CAP)
    assert year.account_value == pytest.approx(100_000 * 1.2 + 10_000)


def test_retirement_at_or_before_start_only_withdraws():
    params = make_params(start_amount=5_000_000, current_age=70, retirement_age=65)
    result = simulate_trajectory(params, np.random.default_rng(3))
    simulated = [y for y in result.trajectory[1:] if y.age < result.age_at_depletion]
    assert simulated
    assert all(y.annual_saving == 0 and y.annual_withdrawal < 0 for y in simulated)


def test_start_at_max_age_has_only_baseline():
    result = simulate_trajectory(make_params(current_age=MAX_AGE, retirement_age=MAX_AGE), np.random.default_rng(0))
    assert [y.age for y in result.trajectory] == [MAX_AGE]
    assert result.age_at_depletion == MAX_AGE + 1


def test_seeded_batches_are_reproducible():
    a = simulate(100_000, 10_000, 50_000, 0.05, 30, 65, 20, seed=7)
    b = simulate(100_000, 10_000, 50_000, 0.05, 30, 65, 20, seed=7)
    assert [r.trajectory for r in a] == [r.trajectory for r in b]
    assert [r.percentile for r in a] == [r.percentile for r in b]


def test_single_trial_reproducible_in_isolation():
    simulator = RetirementMonteCarloSimulator(make_params(num_simulations=10), main_seed_override=100)
    batch = simulator.run_monte_carlo_simulations()
    alone = simulator._run_single_simulation_path(100 + 3)
    assert alone.trajectory == batch[3].trajectory
    assert alone.age_at_depletion == batch[3].age_at_depletion


def test_parallel_matches_sequential():
    sequential = RetirementMonteCarloSimulator(make_params(num_simulations=12, num_processes=1))
    parallel = RetirementMonteCarloSimulator(make_params(num_simulations=12, num_processes=2))
    seq_batch = sequential.run_monte_carlo_simulations()
    par_batch = parallel.run_monte_carlo_simulations()
    assert [r.trajectory for r in seq_batch] == [r.trajectory for r in par_batch]


def test_run_uses_requested_simulation_count():
    simulator = RetirementMonteCarloSimulator(make_params(num_simulations=10))
    assert len(simulator.run_monte_carlo_simulations(num_simulations=4)) == 4


def test_unseeded_simulator_derives_a_seed():
    simulator = RetirementMonteCarloSimulator(make_params(seed=None))
    assert isinstance(simulator.main_seed, int)


@pytest.mark.parametrize(
    "overrides",
    [
        {"trial_count": 0},
        {"current_age": MAX_AGE + 1},
        {"retirement_age": -1},
        {"growth_rate": float("nan")},
        {"growth_rate": float("inf")},
        {"start_amount": -1},
    ],
)
def test_simulate_rejects_invalid_parameters(overrides):
    args = dict(
        start_amount=100_000,
        annual_savings=10_000,
        annual_withdrawal=50_000,
        growth_rate=0.05,
        current_age=30,
        retirement_age=65,
        trial_count=10,
    )
    args.update(overrides)
    with pytest.raises(InvalidParameterError):
        simulate(**args)


def test_run_rejects_non_positive_count():
    simulator = RetirementMonteCarloSimulator(make_params())
    with pytest.raises(InvalidParameterError):
        simulator.run_monte_carlo_simulations(num_simulations=0)
