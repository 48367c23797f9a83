"""Canned historical market conditions replayed by the backtest engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from infra.errors import ScenarioInputError


@dataclass(frozen=True, slots=True)
class MarketMove:
    """One trading day of factor moves.

    ``rate_change`` is absolute (0.001 = 10bp); ``vol_change`` is relative to
    the prior level; equity and fx moves are simple returns.
    """

    date: date
    equity_return: float
    rate_change: float
    vol_change: float
    fx_return: float


@dataclass(frozen=True)
class HistoricalPeriod:
    key: str
    name: str
    description: str
    moves: Sequence[MarketMove]

    @property
    def start_date(self) -> date:
        return self.moves[0].date

    @property
    def end_date(self) -> date:
        return self.moves[-1].date


# (equity_return, rate_change, vol_change, fx_return)
_Row = Tuple[float, float, float, float]

_GFC_2008: List[_Row] = [
    (-0.0471, -0.0019, 0.31, -0.0082),
    (0.0175, 0.0006, -0.06, 0.0041),
    (-0.0471, -0.0025, 0.18, -0.0093),
    (0.0433, 0.0021, -0.12, 0.0057),
    (0.0403, 0.0014, -0.09, 0.0033),
    (-0.0382, -0.0011, 0.11, -0.0061),
    (-0.0157, -0.0008, 0.05, -0.0024),
    (0.0198, 0.0004, -0.04, 0.0018),
    (-0.0024, 0.0002, 0.02, -0.0007),
    (-0.0881, -0.0031, 0.34, -0.0139),
    (0.0542, 0.0018, -0.15, 0.0088),
    (-0.0401, -0.0012, 0.12, -0.0052),
    (-0.0133, -0.0009, 0.07, -0.0031),
    (-0.0572, -0.0021, 0.19, -0.0104),
    (-0.0526, -0.0017, 0.14, -0.0076),
    (-0.0114, -0.0005, 0.03, -0.0012),
    (-0.0762, -0.0026, 0.21, -0.0118),
    (-0.0119, 0.0003, -0.02, 0.0009),
    (0.1158, 0.0037, -0.27, 0.0164),
    (-0.0053, -0.0002, 0.01, -0.0006),
    (-0.0903, -0.0029, 0.23, -0.0121),
    (0.0425, 0.0012, -0.11, 0.0047),
]

_COVID_2020: List[_Row] = [
    (-0.0335, -0.0010, 0.45, -0.0021),
    (-0.0303, -0.0004, 0.12, -0.0015),
    (-0.0038, -0.0009, 0.08, 0.0006),
    (-0.0442, -0.0014, 0.25, -0.0032),
    (-0.0082, -0.0013, 0.04, 0.0019),
    (0.0460, 0.0002, -0.18, 0.0027),
    (-0.0281, -0.0016, 0.14, -0.0008),
    (0.0422, 0.0011, -0.10, 0.0021),
    (-0.0339, -0.0012, 0.13, -0.0024),
    (0.0171, -0.0004, -0.03, 0.0004),
    (-0.0760, -0.0024, 0.33, -0.0058),
    (0.0494, 0.0019, -0.14, 0.0036),
    (-0.0489, -0.0008, 0.16, -0.0049),
    (-0.0952, -0.0011, 0.40, -0.0091),
    (0.0929, 0.0027, -0.29, 0.0074),
    (-0.1198, -0.0021, 0.43, -0.0102),
    (0.0600, 0.0009, -0.20, 0.0042),
    (-0.0518, -0.0006, 0.09, -0.0033),
    (0.0047, 0.0003, -0.05, -0.0011),
    (-0.0434, -0.0018, 0.06, -0.0047),
    (-0.0293, -0.0009, 0.02, -0.0029),
    (0.0938, 0.0013, -0.22, 0.0061),
]

_RATES_2022: List[_Row] = [
    (-0.0075, 0.0009, 0.03, -0.0031),
    (-0.0038, 0.0006, 0.01, -0.0019),
    (0.0184, -0.0003, -0.05, 0.0012),
    (-0.0108, 0.0011, 0.04, -0.0026),
    (0.0095, -0.0002, -0.03, 0.0008),
    (-0.0238, 0.0014, 0.09, -0.0044),
    (-0.0291, 0.0018, 0.12, -0.0052),
    (-0.0388, 0.0021, 0.15, -0.0061),
    (-0.0038, 0.0012, 0.02, -0.0018),
    (-0.0033, -0.0006, 0.01, 0.0007),
    (0.0149, -0.0011, -0.07, 0.0022),
    (-0.0325, 0.0019, 0.11, -0.0049),
    (0.0048, -0.0004, -0.02, 0.0005),
    (0.0245, -0.0008, -0.09, 0.0031),
    (0.0295, -0.0012, -0.10, 0.0036),
    (-0.0013, 0.0005, 0.01, -0.0009),
    (-0.0201, 0.0010, 0.06, -0.0027),
    (0.0097, -0.0003, -0.04, 0.0011),
    (-0.0088, 0.0007, 0.03, -0.0015),
    (0.0106, -0.0002, -0.04, 0.0013),
    (-0.0163, 0.0008, 0.05, -0.0021),
    (0.0236, -0.0009, -0.08, 0.0028),
]


def _build(key: str, name: str, description: str, start: str, rows: Sequence[_Row]) -> HistoricalPeriod:
    dates = pd.bdate_range(start=start, periods=len(rows))
    moves = [
        MarketMove(
            date=stamp.date(),
            equity_return=row[0],
            rate_change=row[1],
            vol_change=row[2],
            fx_return=row[3],
        )
        for stamp, row in zip(dates, rows)
    ]
    return HistoricalPeriod(key=key, name=name, description=description, moves=moves)


HISTORICAL_PERIODS: Dict[str, HistoricalPeriod] = {
    period.key: period
    for period in (
        _build(
            "2008-crisis",
            "2008 Financial Crisis",
            "Lehman default through the October 2008 sell-off",
            "2008-09-15",
            _GFC_2008,
        ),
        _build(
            "covid-2020",
            "COVID-19 Crash",
            "Late February to late March 2020 pandemic drawdown",
            "2020-02-24",
            _COVID_2020,
        ),
        _build(
            "rates-2022",
            "2022 Rates Shock",
            "June 2022 inflation print and accelerated hiking cycle",
            "2022-06-01",
            _RATES_2022,
        ),
    )
}


def get_period(key: str) -> HistoricalPeriod:
    try:
        return HISTORICAL_PERIODS[key]
    except KeyError as exc:
        known = ", ".join(sorted(HISTORICAL_PERIODS))
        raise ScenarioInputError(f"unknown backtest period {key!r} (known: {known})") from exc


__all__ = ["HISTORICAL_PERIODS", "HistoricalPeriod", "MarketMove", "get_period"]
