from loguru import logger

from config import SimulationParameters
from constants import MAX_AGE
from summary import BatchSummary


def log_input_parameters(config: SimulationParameters) -> None:
    """Logs the input parameters for the simulation."""
    logger.info(f"--- Input Parameters For Scenario: {config.Nickname} ---")
    config_as_dict_for_logging = config.model_dump(by_alias=False)
    for key, value in config_as_dict_for_logging.items():
        if key == "Nickname":
            continue
        if key == "growth_rate":
            logger.info(f"{key.replace('_', ' ').title()}: {value * 100:.2f}%")
        elif isinstance(value, float) and any(
            curr_kw in key for curr_kw in ["amount", "savings", "withdrawal"]
        ):
            logger.info(f"{key.replace('_', ' ').title()}: ${value:,.2f}")
        else:
            logger.info(f"{key.replace('_', ' ').title()}: {value}")
    logger.info(
        f"Years To Retirement (Calculated): {config.years_to_retirement}"
    )
    logger.info("--- End of Input Parameters ---")


def log_simulation_results(config: SimulationParameters, summary: BatchSummary) -> None:
    """Logs the final results of the simulation."""
    logger.info(f"--- Simulation Results for Scenario: '{config.Nickname}' ---")
    logger.info(
        f"Probability of Funds Lasting Past Age {MAX_AGE}: {summary.funded_to_max_age_probability * 100:.2f}%"
    )
    logger.info(
        f"Expected Value at Age {config.retirement_age} (No Volatility): ${summary.expected_value:,.2f}"
    )
    if summary.median_value is None:
        logger.warning("No positive account values at retirement; percentiles unavailable.")
        return

    logger.info(f"Median Value at Age {config.retirement_age}: ${summary.median_value:,.2f}")
    logger.info(f"Average Value at Age {config.retirement_age}: ${summary.average_value:,.2f}")
    logger.info(f"Account Value Percentiles at Age {config.retirement_age} ($):")
    for p_val, value in zip(summary.percentile_levels, summary.percentile_values):
        logger.info(f"  {p_val:g}th: {value:,.2f}")

    for age, prob in zip(summary.survival_ages, summary.survival_probabilities):
        if (age - config.retirement_age) % 10 == 0:
            logger.info(f"  Funded through age {age}: {prob * 100:.1f}%")
