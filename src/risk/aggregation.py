"""Portfolio-level statistics over a single scenario's result rows."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict, Sequence

from .valuation import Result

VAR_TAIL = 0.05


@dataclass(frozen=True, slots=True)
class PortfolioStats:
    total_impact: float
    impact_percentage: float
    max_loss: float
    var95: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def aggregate(results: Sequence[Result]) -> PortfolioStats:
    """Sum impacts and derive percentage, max loss, and a 95% tail figure.

    ``var95`` is the empirical 5% quantile of per-position impacts within this
    one run. It is not a distributional VaR: there is no return history here.
    """

    impacts = [result.impact for result in results]
    total_impact = sum(impacts)
    total_value = sum(result.original_price * result.quantity for result in results)
    impact_percentage = total_impact / total_value * 100 if total_value else 0.0
    if not math.isfinite(impact_percentage):
        impact_percentage = 0.0
    max_loss = min(0.0, min(impacts, default=0.0))
    var95 = 0.0
    if impacts:
        ordered = sorted(impacts)
        var95 = ordered[math.floor(VAR_TAIL * len(ordered))]
    return PortfolioStats(
        total_impact=total_impact,
        impact_percentage=impact_percentage,
        max_loss=max_loss,
        var95=var95,
    )


__all__ = ["PortfolioStats", "aggregate"]
