"""Named market-shock scenarios and the custom scenario builder."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from infra.errors import CustomScenarioNameError, ScenarioInputError


class ScenarioCategory(str, Enum):
    EQUITY = "equity"
    RATES = "rates"
    FX = "fx"
    VOLATILITY = "volatility"
    CREDIT = "credit"
    STRESS_TEST = "stress-test"
    MONTE_CARLO = "monte-carlo"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str) -> "ScenarioCategory | str":
        """Return the enum member, or the raw string for unknown categories."""
        try:
            return cls(value)
        except ValueError:
            return value


CUSTOM_SCENARIO_ID = "custom"


@dataclass(frozen=True, slots=True)
class Scenario:
    id: str
    name: str
    category: ScenarioCategory | str
    shock: float
    description: str = ""
    severity: str | None = None
    historical_basis: str | None = None
    num_simulations: int | None = None
    confidence_level: float | None = None
    time_horizon: int | None = None
    distribution_type: str | None = None

    @property
    def category_value(self) -> str:
        if isinstance(self.category, ScenarioCategory):
            return self.category.value
        return str(self.category)

    @property
    def is_custom(self) -> bool:
        return self.category == ScenarioCategory.CUSTOM

    def metadata(self) -> Dict[str, Any]:
        """Category-specific extras, omitting unset fields."""

        payload: Dict[str, Any] = {
            "severity": self.severity,
            "historicalBasis": self.historical_basis,
            "numSimulations": self.num_simulations,
            "confidenceLevel": self.confidence_level,
            "timeHorizon": self.time_horizon,
            "distributionType": self.distribution_type,
        }
        return {key: value for key, value in payload.items() if value is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category_value,
            "shock": self.shock,
            "description": self.description,
            **self.metadata(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Scenario":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            category=ScenarioCategory.parse(str(payload.get("category", ""))),
            shock=float(payload.get("shock", 0.0)),
            description=str(payload.get("description", "")),
            severity=payload.get("severity"),
            historical_basis=payload.get("historicalBasis"),
            num_simulations=payload.get("numSimulations"),
            confidence_level=payload.get("confidenceLevel"),
            time_horizon=payload.get("timeHorizon"),
            distribution_type=payload.get("distributionType"),
        )


STANDARD_SCENARIOS: List[Scenario] = [
    Scenario("equity-down-5", "Equity -5%", ScenarioCategory.EQUITY, -0.05, "Market downturn scenario"),
    Scenario("equity-up-5", "Equity +5%", ScenarioCategory.EQUITY, 0.05, "Market upturn scenario"),
    Scenario(
        "dividend-yield-up",
        "Dividend Yield +50bps",
        ScenarioCategory.EQUITY,
        0.005,
        "Dividend yield increase scenario",
    ),
    Scenario("rates-up-50bps", "Rates +50bps", ScenarioCategory.RATES, 0.005, "Parallel yield curve shift"),
    Scenario("curve-twist", "Curve Twist", ScenarioCategory.RATES, 0.01, "Yield curve twist scenario"),
    Scenario("fx-up-2", "FX +2%", ScenarioCategory.FX, 0.02, "Currency appreciation"),
    Scenario("fx-vol-spike", "FX Volatility Spike", ScenarioCategory.FX, 0.30, "FX volatility increase"),
    Scenario("vol-up-25", "Vol +25%", ScenarioCategory.VOLATILITY, 0.25, "Implied volatility spike"),
    Scenario(
        "credit-ig-widen",
        "IG Credit +100bps",
        ScenarioCategory.CREDIT,
        0.01,
        "Investment grade spread widening",
    ),
    Scenario(
        "credit-hy-widen",
        "HY Credit +200bps",
        ScenarioCategory.CREDIT,
        0.02,
        "High yield spread widening",
    ),
]

STRESS_TEST_SCENARIOS: List[Scenario] = [
    Scenario(
        "2008-financial-crisis",
        "2008 Financial Crisis",
        ScenarioCategory.STRESS_TEST,
        -0.40,
        "Historical replication with 40% equity decline",
        severity="extreme",
        historical_basis="2008-09-15",
    ),
    Scenario(
        "covid-march-2020",
        "COVID-19 March 2020",
        ScenarioCategory.STRESS_TEST,
        -0.30,
        "Pandemic market shock simulation",
        severity="severe",
        historical_basis="2020-03-16",
    ),
    Scenario(
        "mild-recession",
        "Mild Recession",
        ScenarioCategory.STRESS_TEST,
        -0.15,
        "Mild economic downturn",
        severity="mild",
    ),
    Scenario(
        "moderate-crisis",
        "Moderate Crisis",
        ScenarioCategory.STRESS_TEST,
        -0.25,
        "Moderate market stress",
        severity="moderate",
    ),
]

MONTE_CARLO_SCENARIOS: List[Scenario] = [
    Scenario(
        "daily-var-95",
        "Daily VaR 95%",
        ScenarioCategory.MONTE_CARLO,
        0.0,
        "10,000 simulations with normal distribution",
        num_simulations=10_000,
        confidence_level=0.95,
        time_horizon=1,
        distribution_type="normal",
    ),
    Scenario(
        "monthly-var-99",
        "Monthly VaR 99%",
        ScenarioCategory.MONTE_CARLO,
        0.0,
        "50,000 simulations with t-distribution",
        num_simulations=50_000,
        confidence_level=0.99,
        time_horizon=21,
        distribution_type="t-distribution",
    ),
    Scenario(
        "custom-mc",
        "Custom Monte Carlo",
        ScenarioCategory.MONTE_CARLO,
        0.0,
        "Customizable parameters and distributions",
        num_simulations=25_000,
        confidence_level=0.95,
        time_horizon=5,
        distribution_type="historical",
    ),
]

CUSTOM_SCENARIO = Scenario(
    CUSTOM_SCENARIO_ID, "Custom", ScenarioCategory.CUSTOM, 0.0, "Define your own shock"
)


class ScenarioCatalog:
    """Read-only registry of shock definitions keyed by id."""

    def __init__(self, scenarios: Iterable[Scenario] | None = None) -> None:
        source: Sequence[Scenario] = (
            list(scenarios)
            if scenarios is not None
            else [*STANDARD_SCENARIOS, *STRESS_TEST_SCENARIOS, *MONTE_CARLO_SCENARIOS, CUSTOM_SCENARIO]
        )
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in source:
            if not math.isfinite(scenario.shock):
                raise ValueError(f"scenario {scenario.id} has a non-finite shock")
            self._scenarios[scenario.id] = scenario

    def list(self) -> List[Scenario]:
        return list(self._scenarios.values())

    def by_category(self, category: ScenarioCategory | str) -> List[Scenario]:
        return [scenario for scenario in self._scenarios.values() if scenario.category == category]

    def get(self, scenario_id: str) -> Scenario:
        try:
            return self._scenarios[scenario_id]
        except KeyError as exc:
            raise ScenarioInputError(f"unknown scenario: {scenario_id}") from exc

    def find_by_name(self, name: str) -> Scenario | None:
        for scenario in self._scenarios.values():
            if scenario.name == name:
                return scenario
        return None

    def resolve(
        self,
        scenario_id: str,
        *,
        custom_name: str | None = None,
        custom_shock_pct: float | None = None,
    ) -> Scenario:
        """Return a runnable scenario, materialising the custom variant."""

        scenario = self.get(scenario_id)
        if not scenario.is_custom:
            return scenario
        return build_custom_scenario(custom_name, custom_shock_pct or 0.0)


def build_custom_scenario(name: str | None, shock_pct: float) -> Scenario:
    """Custom shocks are entered in percentage points; the scenario stores a fraction."""

    label = (name or "").strip()
    if not label:
        raise CustomScenarioNameError("custom scenarios need a name before they can run")
    if not math.isfinite(shock_pct):
        raise ScenarioInputError("custom shock must be a finite number")
    return replace(CUSTOM_SCENARIO, name=label, shock=shock_pct / 100)


__all__ = [
    "CUSTOM_SCENARIO",
    "CUSTOM_SCENARIO_ID",
    "MONTE_CARLO_SCENARIOS",
    "STANDARD_SCENARIOS",
    "STRESS_TEST_SCENARIOS",
    "Scenario",
    "ScenarioCatalog",
    "ScenarioCategory",
    "build_custom_scenario",
]
