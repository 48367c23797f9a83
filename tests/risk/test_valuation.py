from __future__ import annotations

import random

import pytest

from marketdata.overrides import rate_curve_override, spot_override, vol_surface_override
from marketdata.reference import CurvePoint, VolSurface
from portfolio.store import Position, RiskFactors
from risk.valuation import (
    MONTE_CARLO_QUALITY,
    ValuationContext,
    compute_shocked_price,
    strategy_for,
    value_portfolio,
    value_position,
)
from scenarios.catalog import Scenario, ScenarioCategory


def _position(asset: str = "AAPL", *, price: float = 100.0, quantity: float = 10, **factors) -> Position:
    instrument = factors.pop("instrument_type", "equity")
    return Position(
        id=f"pos-{asset}",
        asset=asset,
        quantity=quantity,
        price=price,
        instrument_type=instrument,
        risk_factors=RiskFactors(**factors),
    )


def _scenario(category, shock: float) -> Scenario:
    return Scenario(id="test", name="Test", category=category, shock=shock)


def test_equity_shock_moves_price_by_delta() -> None:
    result = value_position(_position(delta=1.0), _scenario(ScenarioCategory.EQUITY, -0.05))

    assert result.new_price == pytest.approx(95.0)
    assert result.impact == pytest.approx(-50.0)
    assert result.original_value == pytest.approx(1000.0)
    assert result.is_edited_data is False


def test_bond_duration_uses_curve_rate_for_tenor() -> None:
    bond = _position("USD_3Y_NOTE", quantity=1_000_000, duration=2.8, instrument_type="bond")

    result = value_position(bond, _scenario(ScenarioCategory.RATES, 0.005))

    duration_effect = -2.8 * 0.005 * 0.032856
    assert result.impact == pytest.approx(100.0 * duration_effect * 1_000_000, abs=1e-6)


def test_rates_without_tenor_falls_back_to_unit_base_rate() -> None:
    bond = _position("USD_10Y_BOND", price=100.0, quantity=1, duration=4.0, convexity=20.0)

    result = value_position(bond, _scenario(ScenarioCategory.RATES, 0.01))

    assert result.new_price == pytest.approx(100.0 * (1 - 4.0 * 0.01 + 0.5 * 20.0 * 0.0001))


def test_volatility_scales_vega_by_reference_atm_vol() -> None:
    option = _position("SPX_OPTION", price=15.0, quantity=1, vega=10.0)

    result = value_position(option, _scenario(ScenarioCategory.VOLATILITY, 0.25))

    assert result.new_price == pytest.approx(15.0 * (1 + 10.0 * 0.25 * 0.18))


def test_credit_uses_one_year_rate() -> None:
    bond = _position("CORP", duration=4.0)

    result = value_position(bond, _scenario(ScenarioCategory.CREDIT, 0.01))

    assert result.new_price == pytest.approx(100.0 * (1 - 4.0 * 0.01 * 0.041245))


def test_option_theta_applied_after_category_path() -> None:
    option = _position("SPX_OPTION", price=15.0, quantity=1, delta=0.5, instrument_type="option", theta=-0.02)

    result = value_position(option, _scenario(ScenarioCategory.FX, 0.0))

    assert result.new_price == pytest.approx(15.0 - 0.0002)


@pytest.mark.parametrize("category", [ScenarioCategory.CUSTOM, "mystery-category"])
def test_custom_and_unknown_categories_use_flat_shock(category) -> None:
    result = value_position(_position(delta=0.0), _scenario(category, 0.1))

    assert result.new_price == pytest.approx(110.0)


def test_strategy_lookup_accepts_raw_category_strings() -> None:
    assert strategy_for("equity") is strategy_for(ScenarioCategory.EQUITY)


def test_spot_override_takes_precedence_for_matching_asset_only() -> None:
    positions = [_position("AAPL", delta=1.0), _position("MSFT", delta=1.0)]
    override = spot_override("AAPL", 120.0)

    for category in (ScenarioCategory.EQUITY, ScenarioCategory.RATES, ScenarioCategory.STRESS_TEST):
        aapl, msft = value_portfolio(positions, _scenario(category, -0.05), override)
        assert aapl.new_price == pytest.approx(120.0 * 0.95)
        assert aapl.is_edited_data is True
        assert aapl.edited_price == 120.0
        assert msft.is_edited_data is False

    _, msft = value_portfolio(positions, _scenario(ScenarioCategory.EQUITY, -0.05), override)
    assert msft.new_price == pytest.approx(95.0)


def test_vol_and_rate_overrides_nudge_price() -> None:
    position = _position("AAPL", delta=1.0)
    surface = VolSurface(strikes=[90, 100, 110], maturities=["1M"], values=[[0.3], [0.25], [0.2]])
    vol = compute_shocked_price(position, _scenario(ScenarioCategory.EQUITY, 0.0), vol_surface_override("AAPL", surface))
    rates = compute_shocked_price(
        position,
        _scenario(ScenarioCategory.EQUITY, 0.0),
        rate_curve_override("AAPL", [CurvePoint(date="", rate=0.07, tenor="1Y")]),
    )

    assert vol.new_price == pytest.approx(100.0 * (1 + (0.25 - 0.2) * 0.1))
    assert vol.edited_price is None
    assert rates.new_price == pytest.approx(100.0 * (1 + (0.07 - 0.05) * 0.1))


def test_non_random_scenarios_are_repeatable() -> None:
    positions = [
        _position("AAPL", delta=1.0),
        _position("SPX_OPTION", price=15.0, instrument_type="option", delta=0.5, vega=10.0, theta=-0.02),
    ]
    for category in (ScenarioCategory.EQUITY, ScenarioCategory.STRESS_TEST, ScenarioCategory.VOLATILITY):
        scenario = _scenario(category, -0.1)
        assert value_portfolio(positions, scenario) == value_portfolio(positions, scenario)


def test_monte_carlo_uses_injected_random_source() -> None:
    scenario = _scenario(ScenarioCategory.MONTE_CARLO, 0.0)
    first = value_position(_position(), scenario, context=ValuationContext(rng=random.Random(7)))
    second = value_position(_position(), scenario, context=ValuationContext(rng=random.Random(7)))

    draw = random.Random(7).random()
    expected = 100.0 * (1 + (draw - 0.5) * 0.02 * MONTE_CARLO_QUALITY)
    assert first == second
    assert first.new_price == pytest.approx(expected)
