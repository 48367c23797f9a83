"""Scenario dashboard facade and its configuration surface."""

from .config import DashboardConfig, DashboardConfigError
from .service import BacktestRun, ScenarioDashboard, ScenarioRun

__all__ = [
    "BacktestRun",
    "DashboardConfig",
    "DashboardConfigError",
    "ScenarioDashboard",
    "ScenarioRun",
]
