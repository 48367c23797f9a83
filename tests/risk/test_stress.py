from __future__ import annotations

import pytest

from portfolio.store import Position, RiskFactors
from risk.stress import STANDARD_PROFILE, VOL_SURFACE_PROFILE, StressProfileTable, stress_return
from risk.valuation import ValuationContext, value_position
from scenarios.catalog import STRESS_TEST_SCENARIOS


def test_standard_profile_damps_duration_and_vega() -> None:
    factors = RiskFactors(delta=1.0, duration=4.0, vega=10.0)

    move = stress_return(factors, -0.4, STANDARD_PROFILE)

    assert move == pytest.approx(-0.4 + 4.0 * 0.4 * 0.1 + 10.0 * 0.4 * 0.05)


def test_vol_surface_profile_ignores_duration() -> None:
    factors = RiskFactors(delta=0.5, duration=4.0, vega=10.0)

    move = stress_return(factors, -0.3, VOL_SURFACE_PROFILE)

    assert move == pytest.approx(0.5 * -0.3 + 10.0 * 0.3 * 0.3)


def test_profile_table_lookup_and_validation() -> None:
    table = StressProfileTable.vol_surface_assets(["SPX_OPTION"])

    assert table.profile_for("SPX_OPTION") == VOL_SURFACE_PROFILE
    assert table.profile_for("AAPL") == STANDARD_PROFILE
    with pytest.raises(ValueError):
        StressProfileTable(profiles={"AAPL": "exotic"})


def test_stress_scenario_routes_through_asset_profile() -> None:
    crisis = STRESS_TEST_SCENARIOS[0]
    option = Position(
        id="pos-1",
        asset="SPX_OPTION",
        quantity=1,
        price=15.0,
        instrument_type="option",
        risk_factors=RiskFactors(delta=0.5, vega=10.0),
    )
    table = StressProfileTable.vol_surface_assets(["SPX_OPTION"])

    plain = value_position(option, crisis, context=ValuationContext())
    surfaced = value_position(option, crisis, context=ValuationContext(stress_profiles=table))

    assert plain.new_price == pytest.approx(15.0 * (1 + 0.5 * -0.4 + 10.0 * 0.4 * 0.05))
    assert surfaced.new_price == pytest.approx(15.0 * (1 + 0.5 * -0.4 + 10.0 * 0.4 * 0.3))
