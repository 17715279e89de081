import os
import json
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator, ValidationInfo
from loguru import logger

from constants import DEFAULT_NUMBER_SIMULATIONS, HIGH_GROWTH_RATE_WARNING, MAX_AGE


class ConfigurationError(Exception):
    """Raised when the configuration file cannot be loaded or parsed."""


class InvalidParameterError(ValueError):
    """Raised when simulation or analytics inputs cannot produce a meaningful result."""


class SimulationParameters(BaseModel):
    """Inputs of one batch of retirement trajectories."""

    Nickname: str = Field(
        "DefaultScenario",
        alias="scenario",
        description="A nickname for this simulation scenario.",
    )
    start_amount: float = Field(..., ge=0, allow_inf_nan=False)
    annual_savings: float = Field(..., ge=0, allow_inf_nan=False)
    annual_withdrawal: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="First-year withdrawal need in today's terms; escalated by inflation every year.",
    )
    growth_rate: float = Field(
        ..., allow_inf_nan=False, description="Expected annual growth rate (mean of the yearly draw)."
    )
    current_age: int = Field(..., ge=0, le=MAX_AGE)
    retirement_age: int = Field(..., ge=0, le=MAX_AGE)

    num_simulations: int = Field(DEFAULT_NUMBER_SIMULATIONS, gt=0)
    seed: Optional[int] = Field(None, ge=0)
    num_processes: Optional[int] = Field(1, ge=1)

    model_config = {"validate_by_name": True, "validate_assignment": True}

    @field_validator("growth_rate")
    @classmethod
    def check_growth_rate(cls, v: float, info: ValidationInfo) -> float:
        if v > HIGH_GROWTH_RATE_WARNING:
            scen_name = info.data.get("Nickname", "N/A")
            logger.warning(
                f"Expected growth rate ({v * 100:.1f}%) is relatively high for scenario '{scen_name}'."
            )
        return v

    @property
    def years_to_retirement(self) -> int:
        return max(0, self.retirement_age - self.current_age)


def build_parameters(**kwargs: Any) -> SimulationParameters:
    """Validates keyword inputs, reporting failures as InvalidParameterError."""
    try:
        return SimulationParameters(**kwargs)
    except ValidationError as e:
        raise InvalidParameterError(f"Invalid simulation parameters: {e}") from e


def load_config_from_json(file_path: str) -> Dict[str, Any]:
    """Loads and returns the configuration dictionary from a JSON file."""
    if not os.path.exists(file_path):
        raise ConfigurationError(f"Configuration file not found at: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Error parsing JSON file '{file_path}': {e}"
        ) from e
    except Exception as e:
        raise ConfigurationError(
            f"Unexpected error reading config file '{file_path}': {e}"
        ) from e
