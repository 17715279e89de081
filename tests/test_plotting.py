import pytest

from config import SimulationParameters
from simulation import RetirementMonteCarloSimulator
from summary import sample_trajectories, summarize_batch, trajectory_percentile_bands
from plotting import plot_portfolio_trajectories, plot_retirement_histogram, plot_survival_curve


@pytest.fixture(scope="module")
def scenario():
    params = SimulationParameters(
        scenario="PlotTest",
        start_amount=400_000,
        annual_savings=15_000,
        annual_withdrawal=45_000,
        growth_rate=0.05,
        current_age=45,
        retirement_age=65,
        num_simulations=60,
        seed=5,
    )
    batch = RetirementMonteCarloSimulator(params).run_monte_carlo_simulations()
    return params, batch, summarize_batch(batch, params)


def test_plots_are_written(scenario, tmp_path):
    params, batch, summary = scenario

    plot_survival_curve(summary, str(tmp_path / "surv.png"))
    plot_retirement_histogram(summary, params, str(tmp_path / "hist.png"))
    plot_portfolio_trajectories(
        trajectory_percentile_bands(batch),
        sample_trajectories(batch, random_state=5),
        params,
        str(tmp_path / "nested" / "traj.png"),
        dpi_setting=50,
    )

    assert (tmp_path / "surv.png").stat().st_size > 0
    assert (tmp_path / "hist.png").stat().st_size > 0
    assert (tmp_path / "nested" / "traj.png").stat().st_size > 0


def test_histogram_skipped_without_values(scenario, tmp_path):
    params, _, summary = scenario
    empty = summary.model_copy(update={"histogram_probabilities": []})
    plot_retirement_histogram(empty, params, str(tmp_path / "hist.png"))
    assert not (tmp_path / "hist.png").exists()


def test_trajectory_plot_skipped_without_bands(scenario, tmp_path):
    params, _, _ = scenario
    plot_portfolio_trajectories(None, None, params, str(tmp_path / "traj.png"))
    assert not (tmp_path / "traj.png").exists()
