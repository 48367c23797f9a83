"""Backtest engine replaying canned market history against the portfolio."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from infra.errors import BacktestCancelled, ScenarioInputError
from marketdata.deals import Deal
from marketdata.reference import ReferenceMarketData, default_reference_data
from portfolio.store import Position
from risk.valuation import THETA_DAILY_DECAY, Result

from .periods import HistoricalPeriod, MarketMove, get_period

ProgressCallback = Callable[[float, str], None]

_LOGGER = logging.getLogger("scenario_dashboard.backtest")


class CancellationToken:
    """Cooperative cancel flag checked at every suspension point."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise BacktestCancelled("backtest cancelled")


@dataclass(frozen=True)
class BacktestParams:
    """User-specified run parameters."""

    period: str
    positions: Sequence[Position]
    deals: Sequence[Deal] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BacktestRow:
    date: str
    portfolio_value: float
    daily_pnl: float
    cumulative_pnl: float
    drawdown: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "portfolioValue": self.portfolio_value,
            "dailyPnl": self.daily_pnl,
            "cumulativePnl": self.cumulative_pnl,
            "drawdown": self.drawdown,
        }


@dataclass(frozen=True, slots=True)
class DealEvent:
    deal_id: str
    date: str
    event: str
    level: float
    amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dealId": self.deal_id,
            "date": self.date,
            "event": self.event,
            "level": self.level,
            "amount": self.amount,
        }


@dataclass
class BacktestResult:
    """Captures the replay path and summary statistics for a completed run."""

    period: HistoricalPeriod
    rows: List[BacktestRow]
    deal_events: List[DealEvent]
    position_results: List[Result]
    metadata: Dict[str, Any]

    @property
    def final_pnl(self) -> float:
        return self.rows[-1].cumulative_pnl if self.rows else 0.0

    @property
    def worst_pnl(self) -> float:
        return min([0.0, *(row.cumulative_pnl for row in self.rows)])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "rows": [row.to_dict() for row in self.rows],
            "dealEvents": [event.to_dict() for event in self.deal_events],
            "positions": [result.to_dict() for result in self.position_results],
        }

    def save(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2))
        return target


def position_return(
    position: Position,
    move: MarketMove,
    reference: ReferenceMarketData,
) -> float:
    """Fractional one-day price move from the position's sensitivities."""

    factors = position.risk_factors
    spot_move = move.fx_return if position.instrument_type == "fx-forward" else move.equity_return
    equity_leg = factors.delta * spot_move + 0.5 * factors.gamma * spot_move * spot_move
    rates_leg = -factors.duration * move.rate_change + 0.5 * factors.convexity * move.rate_change**2
    vol_leg = factors.vega * move.vol_change * reference.vol_scale_for(position.asset)
    return equity_leg + rates_leg + vol_leg


def replay_portfolio(
    positions: Sequence[Position],
    moves: Sequence[MarketMove],
    reference: ReferenceMarketData,
) -> tuple[List[BacktestRow], Dict[str, float]]:
    prices = {position.id: position.price for position in positions}
    start_value = sum(position.market_value for position in positions)
    peak = start_value
    previous = start_value
    rows: List[BacktestRow] = []
    for move in moves:
        for position in positions:
            price = prices[position.id] * (1 + position_return(position, move, reference))
            if position.instrument_type == "option":
                price += position.risk_factors.theta * THETA_DAILY_DECAY
            prices[position.id] = max(price, 0.0)
        value = sum(prices[position.id] * position.quantity for position in positions)
        peak = max(peak, value)
        rows.append(
            BacktestRow(
                date=move.date.isoformat(),
                portfolio_value=value,
                daily_pnl=value - previous,
                cumulative_pnl=value - start_value,
                drawdown=(value / peak - 1) if peak > 0 else 0.0,
            )
        )
        previous = value
    return rows, prices


def evaluate_deals(deals: Sequence[Deal], moves: Sequence[MarketMove]) -> List[DealEvent]:
    """Walk each deal's barrier schedule along the replayed underlying level."""

    events: List[DealEvent] = []
    for deal in deals:
        level = 1.0
        knocked_in = False
        last_fixing = 0
        fixings = {fixing.offset: fixing for fixing in deal.fixings}
        for offset, move in enumerate(moves, start=1):
            step = move.fx_return if deal.underlying_factor == "fx" else move.equity_return
            level *= 1 + step
            stamp = move.date.isoformat()
            if not knocked_in and level <= deal.knock_in_level:
                knocked_in = True
                events.append(DealEvent(deal.deal_id, stamp, "knock-in", level))
            fixing = fixings.get(offset)
            if fixing is None:
                continue
            accrued = (
                deal.notional
                * deal.accrual.coupon_rate
                * (offset - last_fixing)
                / deal.accrual.day_count_basis
            )
            last_fixing = offset
            events.append(DealEvent(deal.deal_id, stamp, "accrual", level, amount=accrued))
            if level >= fixing.knock_out_level:
                events.append(DealEvent(deal.deal_id, stamp, "knock-out", level))
                break
    return events


class BacktestEngine:
    """Runs a staged replay, yielding to the event loop between stages."""

    STAGES = ("loading period", "replaying market moves", "evaluating deals", "summarising")

    def __init__(
        self,
        *,
        reference: ReferenceMarketData | None = None,
        step_delay: float = 0.2,
    ) -> None:
        self.reference = reference or default_reference_data()
        self.step_delay = step_delay

    async def run(
        self,
        params: BacktestParams,
        *,
        progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BacktestResult:
        token = cancel_token or CancellationToken()
        if not params.positions:
            raise ScenarioInputError("backtest needs at least one position")

        await self._checkpoint(0, token, progress)
        period = get_period(params.period)

        await self._checkpoint(1, token, progress)
        rows, final_prices = replay_portfolio(params.positions, period.moves, self.reference)

        await self._checkpoint(2, token, progress)
        deal_events = evaluate_deals(params.deals, period.moves)

        await self._checkpoint(3, token, progress)
        position_results = [
            _final_result(position, final_prices[position.id]) for position in params.positions
        ]
        metadata = {
            "period": period.key,
            "periodName": period.name,
            "startDate": period.start_date.isoformat(),
            "endDate": period.end_date.isoformat(),
            "tradingDays": len(period.moves),
            "finalPnl": rows[-1].cumulative_pnl if rows else 0.0,
            "maxDrawdown": min([0.0, *(row.drawdown for row in rows)]),
            "knockIns": sum(1 for event in deal_events if event.event == "knock-in"),
            "knockOuts": sum(1 for event in deal_events if event.event == "knock-out"),
            "totalAccrued": sum(event.amount for event in deal_events),
            "dealsEvaluated": len(params.deals),
        }
        if progress:
            progress(1.0, "complete")
        _LOGGER.info(
            "backtest %s finished: pnl=%.2f drawdown=%.4f",
            period.key,
            metadata["finalPnl"],
            metadata["maxDrawdown"],
        )
        return BacktestResult(
            period=period,
            rows=rows,
            deal_events=deal_events,
            position_results=position_results,
            metadata=metadata,
        )

    async def _checkpoint(
        self,
        stage: int,
        token: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        token.raise_if_cancelled()
        if progress:
            progress(stage / len(self.STAGES), self.STAGES[stage])
        await asyncio.sleep(self.step_delay)
        token.raise_if_cancelled()


def _final_result(position: Position, final_price: float) -> Result:
    move = final_price / position.price - 1 if position.price else 0.0
    return Result(
        asset=position.asset,
        quantity=position.quantity,
        shock=move,
        impact=(final_price - position.price) * position.quantity,
        original_value=position.market_value,
        shocked_value=final_price * position.quantity,
        original_price=position.price,
        new_price=final_price,
        is_edited_data=False,
        risk_metrics=position.risk_factors,
    )


__all__ = [
    "BacktestEngine",
    "BacktestParams",
    "BacktestResult",
    "BacktestRow",
    "CancellationToken",
    "DealEvent",
    "evaluate_deals",
    "position_return",
    "replay_portfolio",
]
