from __future__ import annotations

import pytest

from infra.errors import OverrideValidationError
from marketdata.overrides import (
    MarketDataOverride,
    MarketDataOverrideStore,
    OverrideMarketData,
    rate_curve_override,
    spot_override,
)
from marketdata.reference import CurvePoint, SpotQuote, VolSurface
from storage.ephemeral import EphemeralStore


def test_override_rejects_more_than_one_shape() -> None:
    surface = VolSurface(strikes=[100.0], maturities=["1M"], values=[[0.2]])

    with pytest.raises(OverrideValidationError):
        OverrideMarketData(spot=SpotQuote(spot=1.0, bid=1.0, ask=1.0), volatility=surface)


def test_builders_validate_inputs() -> None:
    with pytest.raises(OverrideValidationError):
        spot_override("AAPL", 0.0)
    with pytest.raises(OverrideValidationError):
        rate_curve_override("USD_3Y_NOTE", [])


def test_override_payload_uses_dashboard_keys() -> None:
    override = rate_curve_override(
        "USD_3Y_NOTE", [CurvePoint(date="2027-01-15", rate=0.04, tenor="3Y")], scenario_name="Curve edit"
    )

    payload = override.to_dict()
    restored = MarketDataOverride.from_dict(payload)

    assert set(payload["marketData"]) == {"rateCurve"}
    assert restored.market_data.kind == "rates"
    assert restored.scenario_name == "Curve edit"
    assert restored.market_data.rates[0].rate == 0.04


def test_store_keeps_single_latest_override() -> None:
    store = MarketDataOverrideStore(EphemeralStore(ttl_seconds=60))
    store.set(spot_override("AAPL", 210.0))
    store.set(spot_override("TSLA", 240.0))

    current = store.current()
    assert current is not None and current.asset == "TSLA"
    assert store.for_asset("AAPL") is None
    assert store.for_asset("TSLA").market_data.spot.spot == 240.0

    store.exit_edit_mode()
    assert store.current() is None


def test_expired_override_is_dropped() -> None:
    now = [1_000.0]
    store = MarketDataOverrideStore(EphemeralStore(ttl_seconds=5, clock=lambda: now[0]))
    store.set(spot_override("AAPL", 210.0))

    now[0] = 1_010.0
    assert store.current() is None
