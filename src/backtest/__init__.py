"""Backtesting toolkit replaying canned market history against the portfolio."""

from .engine import (
    BacktestEngine,
    BacktestParams,
    BacktestResult,
    BacktestRow,
    CancellationToken,
    DealEvent,
)
from .periods import HISTORICAL_PERIODS, HistoricalPeriod, MarketMove, get_period

__all__ = [
    "BacktestEngine",
    "BacktestParams",
    "BacktestResult",
    "BacktestRow",
    "CancellationToken",
    "DealEvent",
    "HISTORICAL_PERIODS",
    "HistoricalPeriod",
    "MarketMove",
    "get_period",
]
