"""Linearised scenario revaluation of individual positions.

Every shock path is a pure function of the position, the scenario shock, and a
:class:`ValuationContext` snapshot (reference data, stress profiles, random
source). Category dispatch goes through ``CATEGORY_STRATEGIES`` so that adding
a category only means registering another function.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping

from marketdata.overrides import MarketDataOverride
from marketdata.reference import ReferenceMarketData, default_reference_data
from portfolio.store import Position, RiskFactors
from scenarios.catalog import Scenario, ScenarioCategory

from .stress import StressProfileTable, stress_return

OVERRIDE_VOL_ANCHOR = 0.2
OVERRIDE_RATE_ANCHOR = 0.05
OVERRIDE_SENSITIVITY = 0.1
THETA_DAILY_DECAY = 0.01
MONTE_CARLO_NOISE = 0.02
MONTE_CARLO_REFERENCE_PATHS = 10_000
MONTE_CARLO_QUALITY = math.log(MONTE_CARLO_REFERENCE_PATHS) / math.log(1000)


@dataclass(frozen=True)
class ValuationContext:
    reference: ReferenceMarketData = field(default_factory=default_reference_data)
    stress_profiles: StressProfileTable = field(default_factory=StressProfileTable)
    rng: random.Random = field(default_factory=random.Random)


ShockStrategy = Callable[[Position, float, ValuationContext], float]


@dataclass(frozen=True, slots=True)
class ShockOutcome:
    new_price: float
    impact: float
    is_edited_data: bool = False
    edited_price: float | None = None


@dataclass(frozen=True, slots=True)
class Result:
    asset: str
    quantity: float
    shock: float
    impact: float
    original_value: float
    shocked_value: float
    original_price: float
    new_price: float
    is_edited_data: bool
    risk_metrics: RiskFactors
    edited_price: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "quantity": self.quantity,
            "shock": self.shock,
            "impact": self.impact,
            "originalValue": self.original_value,
            "shockedValue": self.shocked_value,
            "originalPrice": self.original_price,
            "newPrice": self.new_price,
            "isEditedData": self.is_edited_data,
            "editedPrice": self.edited_price,
            "riskMetrics": self.risk_metrics.as_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Result":
        metrics = payload.get("riskMetrics")
        edited = payload.get("editedPrice")
        return cls(
            asset=str(payload.get("asset", "")),
            quantity=float(payload.get("quantity", 0.0)),
            shock=float(payload.get("shock", 0.0)),
            impact=float(payload.get("impact", 0.0)),
            original_value=float(payload.get("originalValue", 0.0)),
            shocked_value=float(payload.get("shockedValue", 0.0)),
            original_price=float(payload.get("originalPrice", 0.0)),
            new_price=float(payload.get("newPrice", 0.0)),
            is_edited_data=bool(payload.get("isEditedData", False)),
            risk_metrics=RiskFactors.from_mapping(metrics if isinstance(metrics, Mapping) else None),
            edited_price=float(edited) if isinstance(edited, (int, float)) else None,
        )


def _equity(position: Position, shock: float, _: ValuationContext) -> float:
    factors = position.risk_factors
    return position.price * (1 + factors.delta * shock + 0.5 * factors.gamma * shock * shock)


def _fx(position: Position, shock: float, _: ValuationContext) -> float:
    return position.price * (1 + shock)


def _rates(position: Position, shock: float, context: ValuationContext) -> float:
    factors = position.risk_factors
    base_rate = context.reference.base_rate_for(position.asset)
    duration_effect = -factors.duration * shock * base_rate
    convexity_effect = 0.5 * factors.convexity * shock * shock
    return position.price * (1 + duration_effect + convexity_effect)


def _volatility(position: Position, shock: float, context: ValuationContext) -> float:
    vol_scale = context.reference.vol_scale_for(position.asset)
    return position.price * (1 + position.risk_factors.vega * shock * vol_scale)


def _credit(position: Position, shock: float, context: ValuationContext) -> float:
    base_rate = context.reference.credit_base_rate()
    return position.price * (1 - position.risk_factors.duration * shock * base_rate)


def _stress(position: Position, shock: float, context: ValuationContext) -> float:
    profile = context.stress_profiles.profile_for(position.asset)
    return position.price * (1 + stress_return(position.risk_factors, shock, profile))


def _monte_carlo(position: Position, shock: float, context: ValuationContext) -> float:
    noise = (context.rng.random() - 0.5) * MONTE_CARLO_NOISE
    adjusted = (shock + noise) * MONTE_CARLO_QUALITY
    return position.price * (1 + adjusted)


def _flat(position: Position, shock: float, _: ValuationContext) -> float:
    return position.price * (1 + shock)


CATEGORY_STRATEGIES: Dict[ScenarioCategory | str, ShockStrategy] = {
    ScenarioCategory.EQUITY: _equity,
    ScenarioCategory.FX: _fx,
    ScenarioCategory.RATES: _rates,
    ScenarioCategory.VOLATILITY: _volatility,
    ScenarioCategory.CREDIT: _credit,
    ScenarioCategory.STRESS_TEST: _stress,
    ScenarioCategory.MONTE_CARLO: _monte_carlo,
}


def strategy_for(category: ScenarioCategory | str) -> ShockStrategy:
    """Look up the shock path; unknown and custom categories take the flat path."""
    if not isinstance(category, ScenarioCategory):
        category = ScenarioCategory.parse(str(category))
    return CATEGORY_STRATEGIES.get(category, _flat)


def _override_price(position: Position, shock: float, override: MarketDataOverride) -> float | None:
    data = override.market_data
    if data.spot is not None:
        return data.spot.spot * (1 + shock)
    if data.volatility is not None:
        vol_point = data.volatility.reference_point()
        return position.price * (
            1 + shock + (vol_point - OVERRIDE_VOL_ANCHOR) * OVERRIDE_SENSITIVITY
        )
    if data.rates:
        rate_point = data.rates[0].rate
        return position.price * (
            1 + shock + (rate_point - OVERRIDE_RATE_ANCHOR) * OVERRIDE_SENSITIVITY
        )
    return None


def compute_shocked_price(
    position: Position,
    scenario: Scenario,
    override: MarketDataOverride | None = None,
    *,
    context: ValuationContext | None = None,
) -> ShockOutcome:
    """Revalue ``position`` under ``scenario``.

    A matching override takes precedence over the category path. Options then
    pick up one day of theta decay.
    """

    ctx = context or ValuationContext()
    shock = scenario.shock
    new_price: float | None = None
    edited_price: float | None = None
    if override is not None and override.matches(position.asset):
        new_price = _override_price(position, shock, override)
        if new_price is not None and override.market_data.spot is not None:
            edited_price = override.market_data.spot.spot
    is_edited = new_price is not None
    if new_price is None:
        new_price = strategy_for(scenario.category)(position, shock, ctx)

    if position.instrument_type == "option":
        new_price += position.risk_factors.theta * THETA_DAILY_DECAY

    impact = (new_price - position.price) * position.quantity
    return ShockOutcome(
        new_price=new_price,
        impact=impact,
        is_edited_data=is_edited,
        edited_price=edited_price,
    )


def value_position(
    position: Position,
    scenario: Scenario,
    override: MarketDataOverride | None = None,
    *,
    context: ValuationContext | None = None,
) -> Result:
    outcome = compute_shocked_price(position, scenario, override, context=context)
    return Result(
        asset=position.asset,
        quantity=position.quantity,
        shock=scenario.shock,
        impact=outcome.impact,
        original_value=position.price * position.quantity,
        shocked_value=outcome.new_price * position.quantity,
        original_price=position.price,
        new_price=outcome.new_price,
        is_edited_data=outcome.is_edited_data,
        edited_price=outcome.edited_price,
        risk_metrics=position.risk_factors,
    )


def value_portfolio(
    positions: Iterable[Position],
    scenario: Scenario,
    override: MarketDataOverride | None = None,
    *,
    context: ValuationContext | None = None,
) -> List[Result]:
    ctx = context or ValuationContext()
    return [value_position(position, scenario, override, context=ctx) for position in positions]


__all__ = [
    "CATEGORY_STRATEGIES",
    "MONTE_CARLO_QUALITY",
    "Result",
    "ShockOutcome",
    "ShockStrategy",
    "ValuationContext",
    "compute_shocked_price",
    "strategy_for",
    "value_portfolio",
    "value_position",
]
