from __future__ import annotations

import asyncio
import json
from datetime import date

import pytest

from backtest.engine import (
    BacktestEngine,
    BacktestParams,
    CancellationToken,
    evaluate_deals,
    position_return,
    replay_portfolio,
)
from backtest.periods import HISTORICAL_PERIODS, MarketMove, get_period
from infra.errors import BacktestCancelled, ScenarioInputError
from marketdata.deals import AccrualTerms, Deal, FixingDate, load_deals
from marketdata.reference import default_reference_data
from portfolio.store import Position, RiskFactors


def _equity(price: float = 100.0, quantity: float = 10) -> Position:
    return Position(
        id="pos-1",
        asset="AAPL",
        quantity=quantity,
        price=price,
        instrument_type="equity",
        risk_factors=RiskFactors(delta=1.0),
    )


def _move(day: int, equity: float = 0.0, rate: float = 0.0, vol: float = 0.0, fx: float = 0.0) -> MarketMove:
    return MarketMove(date=date(2024, 1, day), equity_return=equity, rate_change=rate, vol_change=vol, fx_return=fx)


def test_periods_cover_known_windows() -> None:
    assert set(HISTORICAL_PERIODS) == {"2008-crisis", "covid-2020", "rates-2022"}
    crisis = get_period("2008-crisis")
    assert crisis.start_date == date(2008, 9, 15)
    assert all(move.date.weekday() < 5 for move in crisis.moves)
    with pytest.raises(ScenarioInputError):
        get_period("1987-crash")


def test_position_return_combines_legs() -> None:
    reference = default_reference_data()
    bond = Position(
        id="pos-2",
        asset="USD_10Y_BOND",
        quantity=1,
        price=100.0,
        instrument_type="bond",
        risk_factors=RiskFactors(duration=4.0, convexity=20.0),
    )

    assert position_return(_equity(), _move(2, equity=-0.05), reference) == pytest.approx(-0.05)
    assert position_return(bond, _move(2, rate=0.001), reference) == pytest.approx(-0.004 + 0.5 * 20.0 * 1e-6)


def test_replay_tracks_pnl_and_drawdown() -> None:
    rows, prices = replay_portfolio([_equity()], [_move(2, equity=-0.1), _move(3, equity=0.05)], default_reference_data())

    assert [round(row.portfolio_value, 6) for row in rows] == [900.0, 945.0]
    assert rows[0].daily_pnl == pytest.approx(-100.0)
    assert rows[1].cumulative_pnl == pytest.approx(-55.0)
    assert rows[1].drawdown == pytest.approx(-0.055)
    assert prices["pos-1"] == pytest.approx(94.5)


def test_deal_barriers_and_accrual() -> None:
    deal = Deal(
        deal_id="D1",
        underlying="SPX",
        underlying_factor="equity",
        notional=252_000.0,
        knock_in_level=0.9,
        fixings=[FixingDate(offset=2, knock_out_level=1.05), FixingDate(offset=3, knock_out_level=1.0)],
        accrual=AccrualTerms(coupon_rate=0.1, day_count_basis=252),
    )
    moves = [_move(2, equity=-0.05), _move(3, equity=-0.06), _move(4, equity=0.2), _move(5, equity=0.1)]

    events = evaluate_deals([deal], moves)

    assert [event.event for event in events] == ["knock-in", "accrual", "accrual", "knock-out"]
    assert events[1].amount == pytest.approx(252_000.0 * 0.1 * 2 / 252)
    assert events[2].amount == pytest.approx(252_000.0 * 0.1 * 1 / 252)
    assert events[-1].date == "2024-01-04"


def test_engine_run_reports_progress_and_metadata(tmp_path) -> None:
    engine = BacktestEngine(step_delay=0)
    stages = []
    params = BacktestParams(period="covid-2020", positions=[_equity()], deals=load_deals())

    result = asyncio.run(engine.run(params, progress=lambda fraction, stage: stages.append((fraction, stage))))

    assert stages[0] == (0.0, "loading period")
    assert stages[-1] == (1.0, "complete")
    assert len(result.rows) == 22
    assert result.metadata["period"] == "covid-2020"
    assert result.metadata["tradingDays"] == 22
    assert result.metadata["dealsEvaluated"] == 2
    assert result.final_pnl == pytest.approx(result.rows[-1].cumulative_pnl)
    assert result.worst_pnl <= 0.0
    assert result.position_results[0].new_price == pytest.approx(result.rows[-1].portfolio_value / 10)

    saved = result.save(tmp_path / "out" / "result.json")
    payload = json.loads(saved.read_text())
    assert payload["metadata"]["startDate"] == "2020-02-24"
    assert len(payload["rows"]) == 22


def test_engine_rejects_empty_portfolio() -> None:
    engine = BacktestEngine(step_delay=0)

    with pytest.raises(ScenarioInputError):
        asyncio.run(engine.run(BacktestParams(period="covid-2020", positions=[])))


def test_cancelled_token_aborts_run() -> None:
    engine = BacktestEngine(step_delay=0)
    token = CancellationToken()

    def cancel_on_replay(fraction: float, stage: str) -> None:
        if stage == "replaying market moves":
            token.cancel()

    with pytest.raises(BacktestCancelled):
        asyncio.run(
            engine.run(
                BacktestParams(period="rates-2022", positions=[_equity()]),
                progress=cancel_on_replay,
                cancel_token=token,
            )
        )
