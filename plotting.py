import os
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from loguru import logger
from matplotlib.ticker import FuncFormatter, PercentFormatter
from typing import List, Optional

from config import SimulationParameters
from constants import TEXT_INPUT_COLOR, TEXT_OUTPUT_COLOR
from summary import BatchSummary


def _save_figure(filename: str, description: str, dpi_setting: int = 150) -> None:
    try:
        file_directory = os.path.dirname(filename)
        if file_directory:
            os.makedirs(file_directory, exist_ok=True)
        plt.savefig(filename, dpi=dpi_setting)
        logger.info(f"{description} plot saved to {filename}")
    except Exception as e:
        logger.exception(f"Error saving {description.lower()} plot '{filename}': {e}")
    finally:
        plt.close()


def millions_formatter(x_val, pos):
    return f"{x_val:.1f}M" if x_val != 0 else "0"


def plot_survival_curve(summary: BatchSummary, filename: str):
    """Probability that the account still funds retirement at each age."""
    if not summary.survival_ages:
        logger.warning(f"No survival data to plot for '{filename}'. Skipping.")
        return

    plt.figure(figsize=(12, 6))
    ax = plt.gca()
    ax.bar(
        summary.survival_ages,
        summary.survival_probabilities,
        color="mediumseagreen",
        alpha=0.35,
        edgecolor="seagreen",
        linewidth=0.8,
    )
    ax.set_ylim(0, 1.02)
    ax.yaxis.set_major_formatter(PercentFormatter(xmax=1.0))
    ax.set_xlabel("Age that Account gets Depleted", fontsize=9)
    ax.set_ylabel("Probability of Having Enough Funds", fontsize=9)
    ax.set_title(
        f"Probability that you can Fund Retirement up to a Certain Age - {summary.scenario}",
        fontsize=11,
    )
    ax.grid(True, linestyle=":", alpha=0.6)
    plt.tight_layout()
    _save_figure(filename, "Survival")


def plot_retirement_histogram(
    summary: BatchSummary, input_config: SimulationParameters, filename: str
):
    """Probability mass of the account value at the retirement age."""
    if not summary.histogram_probabilities:
        logger.info(f"No positive retirement balances to plot in histogram for {filename}.")
        return

    plt.figure(figsize=(12, 7.5))
    ax = plt.gca()

    edges_in_millions = np.array(summary.histogram_bin_edges) / 1e6
    width_in_millions = summary.histogram_bin_width / 1e6
    ax.bar(
        edges_in_millions - width_in_millions,
        summary.histogram_probabilities,
        width=width_in_millions,
        align="edge",
        edgecolor="black",
        alpha=0.7,
        label="Probability you end up in this bucket",
    )
    ax.axvline(
        summary.median_value / 1e6,
        color="blue",
        linestyle="dashed",
        linewidth=1.2,
        label=rf"Median: \${summary.median_value / 1e6:.2f}M",
    )
    ax.axvline(
        summary.expected_value / 1e6,
        color="darkorange",
        linestyle="-.",
        linewidth=1.2,
        label=rf"Expected (No Volatility): \${summary.expected_value / 1e6:.2f}M",
    )

    p = input_config
    input_lines = [
        f"Scenario: {p.Nickname}",
        f"Sims: {summary.num_simulations:,}",
        rf"Start: \${p.start_amount:,.0f}, Savings: \${p.annual_savings:,.0f}/yr",
        rf"Withdrawal (T0): \${p.annual_withdrawal:,.0f}/yr",
        f"Growth: {p.growth_rate * 100:.1f}%, Ages {p.current_age} -> {p.retirement_age}",
    ]
    output_lines = [
        "--- Results ---",
        rf"Median: \${summary.median_value:,.0f}",
        rf"Average: \${summary.average_value:,.0f}",
        f"Funded past 120: {summary.funded_to_max_age_probability * 100:.1f}%",
    ]

    x_pos_text = 0.98
    y_coord_start = 0.98
    line_spacing_val = 0.035
    fontsize_text = 6.5

    for i, line_text in enumerate(input_lines + output_lines):
        is_output = i >= len(input_lines)
        ax.text(
            x_pos_text,
            y_coord_start - i * line_spacing_val,
            line_text,
            transform=ax.transAxes,
            ha="right",
            va="top",
            fontsize=fontsize_text,
            color=TEXT_OUTPUT_COLOR if is_output else TEXT_INPUT_COLOR,
            fontweight="bold" if is_output else "normal",
            bbox=dict(
                facecolor="white",
                alpha=0.80,
                pad=2,
                edgecolor="lightgrey",
                boxstyle="round,pad=0.3",
            ),
        )

    ax.set_title(
        f"Account Value at Age {summary.retirement_age}: {summary.scenario}", fontsize=14
    )
    ax.set_xlabel("Account Value (Millions of $)", fontsize=10)
    ax.set_ylabel("Probability", fontsize=10)
    ax.yaxis.set_major_formatter(PercentFormatter(xmax=1.0))
    ax.legend(fontsize=7, loc="upper left", bbox_to_anchor=(0.01, 0.98))
    ax.grid(True, linestyle=":", alpha=0.6)
    plt.tight_layout()
    _save_figure(filename, "Histogram")


def plot_portfolio_trajectories(
    trajectory_percentiles_df: Optional[pd.DataFrame],
    sample_trajectories: Optional[List[List[float]]],
    input_config: SimulationParameters,
    filename: str,
    dpi_setting: int = 300,
):
    """
    Plots account value trajectories by age, with percentile bands, sample
    paths and a retirement line.

    Args:
        trajectory_percentiles_df: Index is age, columns are quantiles (e.g. 0.1, 0.5, 0.9).
        sample_trajectories: Individual trajectories, one value per age.
        input_config: Scenario settings.
        filename: The full path and filename to save the plot to.
        dpi_setting: The DPI (dots per inch) for the saved image.
    """
    if trajectory_percentiles_df is None or trajectory_percentiles_df.empty:
        logger.warning(
            f"No trajectory percentile data to plot for '{filename}'. Skipping."
        )
        return

    plt.figure(figsize=(12, 7))
    ax = plt.gca()

    ages_x_axis = np.asarray(trajectory_percentiles_df.index)

    for i, trajectory in enumerate(sample_trajectories or []):
        if len(trajectory) == len(ages_x_axis):
            ax.plot(
                ages_x_axis,
                np.array(trajectory) / 1e6,
                color="grey",
                alpha=0.20,
                linewidth=0.6,
                label="_nolegend_",
            )
        else:
            logger.warning(
                f"Sample trajectory {i} for '{filename}' length mismatch (expected {len(ages_x_axis)}, got {len(trajectory)}). Skipping."
            )

    percentile_bands_to_plot = [
        (0.05, 0.95, "salmon", 0.15, "5th-95th Percentile Range"),
        (0.25, 0.75, "skyblue", 0.25, "25th-75th Percentile Range"),
    ]
    for low, high, color, alpha, label in percentile_bands_to_plot:
        if low in trajectory_percentiles_df.columns and high in trajectory_percentiles_df.columns:
            ax.fill_between(
                ages_x_axis,
                trajectory_percentiles_df[low] / 1e6,
                trajectory_percentiles_df[high] / 1e6,
                color=color,
                alpha=alpha,
                label=label,
                interpolate=True,
            )
        else:
            logger.warning(f"Columns for percentile band {label} not found. Skipping band.")

    if 0.5 in trajectory_percentiles_df.columns:
        ax.plot(
            ages_x_axis,
            trajectory_percentiles_df[0.5] / 1e6,
            color="blue",
            linewidth=1.8,
            label="Median (50th Percentile)",
        )

    if ages_x_axis[0] <= input_config.retirement_age <= ages_x_axis[-1]:
        ax.axvline(
            x=input_config.retirement_age,
            color="black",
            linestyle="--",
            linewidth=1.2,
            label=f"Retirement (age {input_config.retirement_age})",
        )

    ax.set_xlabel("Age", fontsize=9)
    ax.set_ylabel("Account Value (Millions of $)", fontsize=9)
    ax.set_title(
        f"Account Value Trajectories - Scenario: {input_config.Nickname}",
        fontsize=11,
    )
    ax.tick_params(axis="both", which="major", labelsize=7)
    ax.grid(True, linestyle=":", alpha=0.6)
    ax.yaxis.set_major_formatter(FuncFormatter(millions_formatter))
    ax.set_xlim(left=ages_x_axis[0], right=ages_x_axis[-1])

    max_data_val = float(np.nanmax(trajectory_percentiles_df.values)) / 1e6
    ax.set_ylim(bottom=0, top=max_data_val * 1.05 if max_data_val > 0 else 1)

    ax.legend(fontsize=7.5, loc="best")
    plt.tight_layout()
    _save_figure(filename, "Trajectory", dpi_setting)
