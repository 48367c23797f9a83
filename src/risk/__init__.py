"""Scenario valuation, aggregation, stress profiles, and the risk matrix."""

from .aggregation import PortfolioStats, aggregate
from .matrix import MatrixCell, build_risk_matrix, summarise_matrix
from .stress import StressProfileTable
from .valuation import (
    Result,
    ShockOutcome,
    ValuationContext,
    compute_shocked_price,
    value_portfolio,
    value_position,
)

__all__ = [
    "MatrixCell",
    "PortfolioStats",
    "Result",
    "ShockOutcome",
    "StressProfileTable",
    "ValuationContext",
    "aggregate",
    "build_risk_matrix",
    "compute_shocked_price",
    "summarise_matrix",
    "value_portfolio",
    "value_position",
]
