import json
from pathlib import Path

import pytest

from config import (
    ConfigurationError,
    InvalidParameterError,
    SimulationParameters,
    build_parameters,
    load_config_from_json,
)

BUNDLED_CONFIG = Path(__file__).resolve().parent.parent / "config.json"


def test_bundled_config_is_valid():
    config = SimulationParameters(**load_config_from_json(str(BUNDLED_CONFIG)))
    assert config.Nickname == "Baseline"
    assert config.years_to_retirement == 35


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config_from_json(str(tmp_path / "nope.json"))


def test_load_malformed_file(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config_from_json(str(path))


def test_load_round_trip(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"start_amount": 1, "annual_savings": 2}), encoding="utf-8")
    assert load_config_from_json(str(path)) == {"start_amount": 1, "annual_savings": 2}


def test_defaults_and_alias():
    config = SimulationParameters(
        scenario="Early",
        start_amount=0,
        annual_savings=0,
        annual_withdrawal=0,
        growth_rate=0.0,
        current_age=20,
        retirement_age=50,
    )
    assert config.Nickname == "Early"
    assert config.num_simulations == 1000
    assert config.num_processes == 1
    assert config.seed is None


def test_years_to_retirement_never_negative():
    config = build_parameters(
        start_amount=0,
        annual_savings=0,
        annual_withdrawal=0,
        growth_rate=0.0,
        current_age=70,
        retirement_age=65,
    )
    assert config.years_to_retirement == 0


@pytest.mark.parametrize(
    "field, value",
    [
        ("current_age", 121),
        ("retirement_age", -5),
        ("annual_withdrawal", -1),
        ("growth_rate", float("nan")),
        ("num_simulations", 0),
        ("num_processes", 0),
    ],
)
def test_build_parameters_rejects_invalid(field, value):
    values = dict(
        start_amount=1000,
        annual_savings=0,
        annual_withdrawal=0,
        growth_rate=0.05,
        current_age=30,
        retirement_age=65,
    )
    values[field] = value
    with pytest.raises(InvalidParameterError):
        build_parameters(**values)
