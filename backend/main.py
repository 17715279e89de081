import sys
import datetime as _dt
import multiprocessing
from loguru import logger

from config import ConfigurationError, InvalidParameterError, SimulationParameters, load_config_from_json
from backend.utils import log_input_parameters, log_simulation_results
from simulation import RetirementMonteCarloSimulator
from summary import summarize_batch, trajectory_percentile_bands, sample_trajectories
from plotting import plot_survival_curve, plot_retirement_histogram, plot_portfolio_trajectories


def main():
    """
    Main execution entry point.

    Loads configuration, runs the batch of trajectories, logs the summary
    statistics and writes the charts.
    """
    current_timestamp_str = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = f"ret_sim_log_{current_timestamp_str}.log"

    # Configure loguru
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="INFO",
        colorize=True,
    )
    logger.add(
        log_filename,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
        level="INFO",
        rotation="10 MB",
    )

    logger.info(f"Logging initialized. Log file: {log_filename}")

    # --- LOAD CONFIGURATION FROM JSON ---
    if len(sys.argv) > 1:
        json_filename = sys.argv[1]
    else:
        json_filename = "config.json"
        logger.info(
            f"No config file specified via argument. Defaulting to '{json_filename}'"
        )

    logger.info(f"Loading configuration from: {json_filename}")
    try:
        config_dict = load_config_from_json(json_filename)
        config = SimulationParameters(**config_dict)
        logger.info(
            f"Configuration for scenario '{config.Nickname}' loaded and validated successfully."
        )
    except ConfigurationError as e:
        logger.error(f"Configuration file error: {e}")
        return
    except Exception as e:
        logger.exception(f"Configuration validation error: {e}")
        return

    log_input_parameters(config)

    simulator = RetirementMonteCarloSimulator(config)
    try:
        batch = simulator.run_monte_carlo_simulations()
        summary = summarize_batch(batch, config)
    except InvalidParameterError as e:
        logger.error(f"Simulation for '{config.Nickname}' failed: {e}")
        return

    log_simulation_results(config, summary)

    safe_nickname = "".join(
        c if c.isalnum() or c in ["_", "-"] else "_" for c in config.Nickname
    )
    plot_file_base = f"ret_sim_{safe_nickname}_{current_timestamp_str}"

    plot_survival_curve(summary, f"{plot_file_base}_SURV.png")
    plot_retirement_histogram(summary, config, f"{plot_file_base}_HIST.png")
    plot_portfolio_trajectories(
        trajectory_percentile_bands(batch),
        sample_trajectories(batch, random_state=simulator.main_seed),
        config,
        f"{plot_file_base}_TRAJ.png",
    )

    logger.info(
        f"--- Main execution finished for scenario '{config.Nickname}'. Outputs in current directory. Log: {log_filename} ---"
    )


if __name__ == "__main__":
    multiprocessing.freeze_support()
    main()
