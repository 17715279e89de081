import asyncio
import json
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from analytics import decile_members
from config import InvalidParameterError, SimulationParameters
from projection import expected_value
from simulation import RetirementMonteCarloSimulator
from summary import (
    BatchSummary,
    TrialStatistics,
    sample_trajectories,
    summarize_batch,
    trajectory_percentile_bands,
    trial_statistics,
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class TrajectoryData(BaseModel):
    ages: List[int]
    percentiles: Dict[str, List[float]]
    sample_paths: List[List[float]]


class TrialData(BaseModel):
    percentile: float
    age_at_depletion: int
    account_values: List[float]
    statistics: TrialStatistics


class SimulationResponse(BaseModel):
    scenario: str
    seed: int
    summary: BatchSummary
    trajectory: TrajectoryData
    trials: Optional[List[TrialData]] = None
    decile_members: Optional[List[int]] = None


class ExpectedValueResponse(BaseModel):
    expected_value: float


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class SimulationRequest(BaseModel):
    config: Dict[str, Any] = Field(
        ...,
        description="Simulation parameters (same schema as config.json).",
    )
    include_trials: bool = Field(
        False,
        description="If True, return every trial's account values by age.",
    )
    decile: Optional[int] = Field(
        None,
        ge=0,
        le=9,
        description="If set, return the indices of the trials in this decile (0-9).",
    )


class ExpectedValueRequest(BaseModel):
    start: float = Field(..., ge=0)
    annual_savings: float = Field(..., ge=0)
    years: int = Field(..., ge=0)
    growth_rate: float = Field(..., allow_inf_nan=False)


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def _configure_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level="INFO",
        colorize=True,
    )
    logger.add(
        "server.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
        level="INFO",
        rotation="10 MB",
    )


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(_app: FastAPI):
    _configure_logging()
    logger.info("Retirement Trajectory API starting up")
    yield
    logger.info("Retirement Trajectory API shutting down")


app = FastAPI(
    title="Retirement Trajectory Simulator API",
    description="Runs Monte Carlo retirement trajectories and returns the statistics a frontend charts.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _run_simulation(
    config: SimulationParameters,
    include_trials: bool = False,
    decile: Optional[int] = None,
) -> dict:
    """Heavy, synchronous work -- called via ``asyncio.to_thread``."""
    simulator = RetirementMonteCarloSimulator(config)
    logger.info(
        f"Running simulation for '{config.Nickname}' ({config.num_simulations} sims)"
    )
    batch = simulator.run_monte_carlo_simulations()
    summary = summarize_batch(batch, config)

    bands_df = trajectory_percentile_bands(batch)
    trajectory_data = {
        "ages": [int(a) for a in bands_df.index],
        "percentiles": {
            f"p{round(col * 100)}": [round(float(v), 2) for v in bands_df[col]]
            for col in bands_df.columns
        },
        "sample_paths": [
            [round(float(v), 2) for v in path]
            for path in sample_trajectories(batch, random_state=simulator.main_seed)
        ],
    }

    trials = None
    if include_trials:
        trials = [
            {
                "percentile": r.percentile,
                "age_at_depletion": r.age_at_depletion,
                "account_values": [round(y.account_value, 2) for y in r.trajectory],
                "statistics": trial_statistics(
                    r, config.current_age, config.retirement_age
                ),
            }
            for r in batch
        ]

    members = None
    if decile is not None:
        members = decile_members(batch, decile)

    return {
        "scenario": config.Nickname,
        "seed": simulator.main_seed,
        "summary": summary,
        "trajectory": trajectory_data,
        "trials": trials,
        "decile_members": members,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/config/default")
async def get_default_config():
    """Return the bundled ``config.json`` as a ready-to-use template."""
    config_path = os.path.join(os.path.dirname(__file__), "config.json")
    if not os.path.exists(config_path):
        raise HTTPException(status_code=404, detail="Default config.json not found.")
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


@app.post("/api/validate")
async def validate_config(body: SimulationRequest):
    """Validate a configuration without running any simulation."""
    try:
        config = SimulationParameters(**body.config)
    except Exception as e:
        raise HTTPException(status_code=422, detail=f"Invalid configuration: {e}")
    return {"valid": True, "scenario": config.Nickname}


@app.post("/api/expected-value", response_model=ExpectedValueResponse)
async def get_expected_value(body: ExpectedValueRequest):
    """Deterministic account value under constant growth."""
    return {
        "expected_value": expected_value(
            body.start, body.annual_savings, body.years, body.growth_rate
        )
    }


@app.post("/api/simulate", response_model=SimulationResponse)
async def simulate(body: SimulationRequest):
    """Run the Monte Carlo simulation and return all data needed for charts."""
    try:
        config = SimulationParameters(**body.config)
    except Exception as e:
        raise HTTPException(status_code=422, detail=f"Invalid configuration: {e}")

    logger.info(f"Received simulation request for scenario '{config.Nickname}'")

    try:
        result = await asyncio.to_thread(
            _run_simulation, config, body.include_trials, body.decile
        )
    except InvalidParameterError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Simulation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Simulation error: {e}")

    logger.info(f"Simulation complete for '{config.Nickname}'")
    return result


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    _configure_logging()
    uvicorn.run("server:app", host="0.0.0.0", port=8080, reload=True)
