"""Configuration helpers for the scenario dashboard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, MutableMapping

from infra.errors import ScenarioDashboardError

DEFAULT_USER_AGENT = "scenario-dashboard-cli/0.1"


class DashboardConfigError(ScenarioDashboardError, ValueError):
    """Raised when required configuration is missing or invalid."""


def _get_env(source: Mapping[str, str] | None) -> Mapping[str, str]:
    if source is None:
        return os.environ
    return source


def _get_int(source: Mapping[str, str], key: str, default: int) -> int:
    raw = source.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise DashboardConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise DashboardConfigError(f"{key} must be positive, got {value}")
    return value


def _get_optional_int(source: Mapping[str, str], key: str) -> int | None:
    raw = source.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise DashboardConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _get_float(source: Mapping[str, str], key: str, default: float) -> float:
    raw = source.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise DashboardConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value < 0:
        raise DashboardConfigError(f"{key} must not be negative, got {value}")
    return value


def _get_bool(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if not lowered:
        return default
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise DashboardConfigError(f"{key} must be a boolean string, got {raw!r}")


def _get_list(source: Mapping[str, str], key: str, default: List[str]) -> List[str]:
    raw = source.get(key)
    if raw is None:
        return list(default)
    return [token.strip() for token in raw.split(",") if token.strip()]


@dataclass(frozen=True)
class DashboardConfig:
    """Storage locations, ledger bounds, and valuation knobs."""

    history_path: str = "storage/scenario_history.json"
    positions_path: str | None = "storage/positions.json"
    history_capacity: int = 100
    override_ttl_seconds: int = 3600
    backtest_step_delay: float = 0.2
    stress_vol_surface_assets: List[str] = field(default_factory=lambda: ["SPX_OPTION"])
    monte_carlo_seed: int | None = None
    user_agent: str = DEFAULT_USER_AGENT
    metrics_enabled: bool = False
    metrics_port: int = 9464
    environment: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "DashboardConfig":
        env_map = _get_env(env)
        return cls(
            history_path=env_map.get("SCENARIO_HISTORY_PATH") or "storage/scenario_history.json",
            positions_path=env_map.get("POSITIONS_PATH") or "storage/positions.json",
            history_capacity=_get_int(env_map, "SCENARIO_HISTORY_CAPACITY", 100),
            override_ttl_seconds=_get_int(env_map, "OVERRIDE_TTL_SECONDS", 3600),
            backtest_step_delay=_get_float(env_map, "BACKTEST_STEP_DELAY", 0.2),
            stress_vol_surface_assets=_get_list(env_map, "STRESS_VOL_SURFACE_ASSETS", ["SPX_OPTION"]),
            monte_carlo_seed=_get_optional_int(env_map, "MONTE_CARLO_SEED"),
            user_agent=env_map.get("USER_AGENT") or DEFAULT_USER_AGENT,
            metrics_enabled=_get_bool(env_map, "METRICS_ENABLED", False),
            metrics_port=_get_int(env_map, "PROMETHEUS_METRICS_PORT", 9464),
            environment=env_map.get("ENVIRONMENT"),
            log_level=(env_map.get("LOG_LEVEL") or "INFO").upper(),
        )

    def as_dict(self) -> MutableMapping[str, object]:
        """Expose configuration for debugging/log serialization."""

        return {
            "history_path": self.history_path,
            "positions_path": self.positions_path,
            "history_capacity": self.history_capacity,
            "override_ttl_seconds": self.override_ttl_seconds,
            "backtest_step_delay": self.backtest_step_delay,
            "stress_vol_surface_assets": list(self.stress_vol_surface_assets),
            "monte_carlo_seed": self.monte_carlo_seed,
            "user_agent": self.user_agent,
            "metrics_enabled": self.metrics_enabled,
            "metrics_port": self.metrics_port,
            "environment": self.environment,
            "log_level": self.log_level,
        }


__all__ = ["DashboardConfig", "DashboardConfigError"]
