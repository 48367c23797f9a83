"""Session-scoped market-data edits applied to a single asset."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Sequence

from infra.errors import OverrideValidationError
from storage.ephemeral import EphemeralStore

from .reference import CurvePoint, SpotQuote, VolSurface

OVERRIDE_KEY = "marketDataOverride"

_LOGGER = logging.getLogger("scenario_dashboard.marketdata.overrides")


@dataclass(frozen=True, slots=True)
class OverrideMarketData:
    """Edited market data; at most one of the three shapes is populated."""

    spot: SpotQuote | None = None
    volatility: VolSurface | None = None
    rates: Sequence[CurvePoint] | None = None

    def __post_init__(self) -> None:
        populated = [
            name
            for name, value in (
                ("spot", self.spot),
                ("volatility", self.volatility),
                ("rates", self.rates),
            )
            if value
        ]
        if len(populated) > 1:
            raise OverrideValidationError(
                f"override may carry only one market-data shape, got {', '.join(populated)}"
            )

    @property
    def kind(self) -> str | None:
        if self.spot is not None:
            return "spot"
        if self.volatility is not None:
            return "volatility"
        if self.rates:
            return "rates"
        return None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.spot is not None:
            payload["equity"] = self.spot.to_dict()
        if self.volatility is not None:
            payload["volatilityMatrix"] = self.volatility.to_dict()
        if self.rates:
            payload["rateCurve"] = [point.to_dict() for point in self.rates]
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "OverrideMarketData":
        payload = payload or {}
        spot = payload.get("equity")
        vol = payload.get("volatilityMatrix")
        curve = payload.get("rateCurve")
        return cls(
            spot=SpotQuote.from_dict(spot) if isinstance(spot, Mapping) else None,
            volatility=VolSurface.from_dict(vol) if isinstance(vol, Mapping) else None,
            rates=(
                [CurvePoint.from_dict(point) for point in curve if isinstance(point, Mapping)]
                if isinstance(curve, list)
                else None
            ),
        )


@dataclass(frozen=True, slots=True)
class MarketDataOverride:
    asset: str
    market_data: OverrideMarketData
    scenario_name: str = "Manual edit"
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def matches(self, asset: str) -> bool:
        return self.asset == asset

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "marketData": self.market_data.to_dict(),
            "timestamp": self.timestamp,
            "scenarioName": self.scenario_name,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MarketDataOverride":
        market_data = payload.get("marketData")
        return cls(
            asset=str(payload["asset"]),
            market_data=OverrideMarketData.from_dict(
                market_data if isinstance(market_data, Mapping) else None
            ),
            scenario_name=str(payload.get("scenarioName") or "Manual edit"),
            timestamp=str(payload.get("timestamp") or datetime.now(timezone.utc).isoformat()),
        )


def spot_override(asset: str, spot: float, *, scenario_name: str = "Manual edit") -> MarketDataOverride:
    if spot <= 0:
        raise OverrideValidationError("override spot must be positive")
    return MarketDataOverride(
        asset=asset,
        market_data=OverrideMarketData(spot=SpotQuote(spot=spot, bid=spot, ask=spot)),
        scenario_name=scenario_name,
    )


def rate_curve_override(
    asset: str,
    points: Sequence[CurvePoint],
    *,
    scenario_name: str = "Manual edit",
) -> MarketDataOverride:
    if not points:
        raise OverrideValidationError("rate curve override needs at least one point")
    return MarketDataOverride(
        asset=asset,
        market_data=OverrideMarketData(rates=list(points)),
        scenario_name=scenario_name,
    )


def vol_surface_override(
    asset: str,
    surface: VolSurface,
    *,
    scenario_name: str = "Manual edit",
) -> MarketDataOverride:
    return MarketDataOverride(
        asset=asset,
        market_data=OverrideMarketData(volatility=surface),
        scenario_name=scenario_name,
    )


class MarketDataOverrideStore:
    """Single-slot holder for the active override; the latest edit wins."""

    def __init__(self, store: EphemeralStore[Dict[str, Any]] | None = None) -> None:
        self._store: EphemeralStore[Dict[str, Any]] = store or EphemeralStore()

    def set(self, override: MarketDataOverride) -> MarketDataOverride:
        self._store.set(OVERRIDE_KEY, override.to_dict())
        _LOGGER.info(
            "market data override set for %s (%s)", override.asset, override.market_data.kind
        )
        return override

    def current(self) -> MarketDataOverride | None:
        hit, payload = self._store.get(OVERRIDE_KEY)
        if not hit or payload is None:
            return None
        return MarketDataOverride.from_dict(payload)

    def for_asset(self, asset: str) -> MarketDataOverride | None:
        override = self.current()
        if override is not None and override.matches(asset):
            return override
        return None

    def exit_edit_mode(self) -> None:
        self._store.invalidate(OVERRIDE_KEY)
        _LOGGER.info("market data override cleared")


__all__ = [
    "MarketDataOverride",
    "MarketDataOverrideStore",
    "OVERRIDE_KEY",
    "OverrideMarketData",
    "rate_curve_override",
    "spot_override",
    "vol_surface_override",
]
