"""Exception hierarchy shared by the scenario dashboard packages."""

from __future__ import annotations


class ScenarioDashboardError(Exception):
    """Base class for recoverable, user-facing failures."""


class ScenarioInputError(ScenarioDashboardError, ValueError):
    """Raised when a scenario run is requested with missing or invalid inputs."""


class CustomScenarioNameError(ScenarioInputError):
    """Raised when a custom scenario is run without a name."""


class PositionValidationError(ScenarioDashboardError, ValueError):
    """Raised when a position draft fails validation."""


class OverrideValidationError(ScenarioDashboardError, ValueError):
    """Raised when a market-data override carries an invalid payload."""


class ClearNotConfirmedError(ScenarioDashboardError):
    """Raised when the history is cleared without explicit confirmation."""


class BacktestCancelled(ScenarioDashboardError):
    """Raised when a backtest is aborted through its cancellation token."""


__all__ = [
    "BacktestCancelled",
    "ClearNotConfirmedError",
    "CustomScenarioNameError",
    "OverrideValidationError",
    "PositionValidationError",
    "ScenarioDashboardError",
    "ScenarioInputError",
]
