"""Scenario history records and the filters applied to them."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Sequence

from marketdata.overrides import MarketDataOverride
from risk.valuation import Result
from scenarios.catalog import Scenario

BACKTEST_TYPE = "backtesting"
MANUAL_EDIT_TYPE = "manual-edit"
SCOPES = ("portfolio", "single")


@dataclass(frozen=True)
class ScenarioHistoryRecord:
    scenario_name: str
    scenario_type: str
    scenario_scope: str
    shock_value: float | None
    assets_analyzed: int
    selected_asset: str | None
    results: Sequence[Result]
    total_impact: float
    max_loss: float
    session_id: str
    user_agent: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    backtest_metadata: Mapping[str, Any] | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_custom(self) -> bool:
        return self.scenario_type == "custom"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "scenarioName": self.scenario_name,
            "scenarioType": self.scenario_type,
            "scenarioScope": self.scenario_scope,
            "shockValue": self.shock_value,
            "assetsAnalyzed": self.assets_analyzed,
            "selectedAsset": self.selected_asset,
            "results": [result.to_dict() for result in self.results],
            "totalImpact": self.total_impact,
            "maxLoss": self.max_loss,
            "sessionId": self.session_id,
            "userAgent": self.user_agent,
            "metadata": dict(self.metadata),
            "backtestMetadata": dict(self.backtest_metadata) if self.backtest_metadata else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ScenarioHistoryRecord":
        """Rebuild a record; raises ``KeyError``/``TypeError``/``ValueError`` on bad rows."""

        shock = payload.get("shockValue")
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise TypeError("results must be a list")
        metadata = payload.get("metadata")
        backtest = payload.get("backtestMetadata")
        selected = payload.get("selectedAsset")
        return cls(
            id=str(payload["id"]),
            timestamp=str(payload["timestamp"]),
            scenario_name=str(payload["scenarioName"]),
            scenario_type=str(payload["scenarioType"]),
            scenario_scope=str(payload.get("scenarioScope", "portfolio")),
            shock_value=float(shock) if shock is not None else None,
            assets_analyzed=int(payload.get("assetsAnalyzed", len(results))),
            selected_asset=str(selected) if selected else None,
            results=[Result.from_dict(row) for row in results if isinstance(row, Mapping)],
            total_impact=float(payload.get("totalImpact", 0.0)),
            max_loss=float(payload.get("maxLoss", 0.0)),
            session_id=str(payload.get("sessionId", "")),
            user_agent=str(payload.get("userAgent", "")),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
            backtest_metadata=dict(backtest) if isinstance(backtest, Mapping) else None,
        )


@dataclass(frozen=True, slots=True)
class HistoryFilter:
    """Active history filters; ``None``/empty values are ignored."""

    search_term: str | None = None
    scenario_type: str | None = None
    scope: str | None = None

    def matches(self, record: ScenarioHistoryRecord) -> bool:
        term = (self.search_term or "").strip().lower()
        if term:
            haystacks = [record.scenario_name, record.selected_asset or ""]
            if not any(term in text.lower() for text in haystacks):
                return False
        if self.scenario_type and record.scenario_type != self.scenario_type:
            return False
        if self.scope and record.scenario_scope != self.scope:
            return False
        return True


@dataclass(frozen=True, slots=True)
class ReplayState:
    """What the caller needs to re-run the valuation that produced a record."""

    record_id: str
    scope: str
    selected_asset: str | None
    scenario: Scenario | None
    override: MarketDataOverride | None = None
    custom_name: str | None = None
    custom_shock_pct: float | None = None
    backtest_params: Mapping[str, Any] | None = None
    scenario_type: str | None = None


__all__ = [
    "BACKTEST_TYPE",
    "HistoryFilter",
    "MANUAL_EDIT_TYPE",
    "ReplayState",
    "SCOPES",
    "ScenarioHistoryRecord",
]
