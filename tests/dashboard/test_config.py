from __future__ import annotations

import pytest

from dashboard.config import DashboardConfig, DashboardConfigError


def test_defaults_when_environment_is_empty() -> None:
    config = DashboardConfig.from_env({})

    assert config.history_capacity == 100
    assert config.stress_vol_surface_assets == ["SPX_OPTION"]
    assert config.monte_carlo_seed is None
    assert config.metrics_enabled is False
    assert config.log_level == "INFO"


def test_environment_overrides() -> None:
    config = DashboardConfig.from_env(
        {
            "SCENARIO_HISTORY_PATH": "/tmp/history.json",
            "SCENARIO_HISTORY_CAPACITY": "25",
            "BACKTEST_STEP_DELAY": "0",
            "STRESS_VOL_SURFACE_ASSETS": "SPX_OPTION, NDX_OPTION,",
            "MONTE_CARLO_SEED": "42",
            "METRICS_ENABLED": "yes",
            "LOG_LEVEL": "debug",
        }
    )

    assert config.history_path == "/tmp/history.json"
    assert config.history_capacity == 25
    assert config.backtest_step_delay == 0.0
    assert config.stress_vol_surface_assets == ["SPX_OPTION", "NDX_OPTION"]
    assert config.monte_carlo_seed == 42
    assert config.metrics_enabled is True
    assert config.as_dict()["log_level"] == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"SCENARIO_HISTORY_CAPACITY": "0"},
        {"SCENARIO_HISTORY_CAPACITY": "many"},
        {"BACKTEST_STEP_DELAY": "-1"},
        {"METRICS_ENABLED": "sometimes"},
        {"MONTE_CARLO_SEED": "abc"},
    ],
)
def test_invalid_values_raise(env) -> None:
    with pytest.raises(DashboardConfigError):
        DashboardConfig.from_env(env)
