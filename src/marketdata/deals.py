"""Deal lifecycle payload: barrier schedules, fixing dates, and accrual terms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

UNDERLYING_FACTORS = ("equity", "fx")


@dataclass(frozen=True, slots=True)
class FixingDate:
    """Observation ``offset`` trading days into a replay window."""

    offset: int
    knock_out_level: float


@dataclass(frozen=True, slots=True)
class AccrualTerms:
    coupon_rate: float
    day_count_basis: int = 252


@dataclass(frozen=True, slots=True)
class Deal:
    deal_id: str
    underlying: str
    underlying_factor: str
    notional: float
    knock_in_level: float
    fixings: Sequence[FixingDate]
    accrual: AccrualTerms


DEFAULT_DEAL_PAYLOAD: Dict[str, Any] = {
    "deals": [
        {
            "dealId": "PHX-SPX-01",
            "underlying": "SPX",
            "factor": "equity",
            "notional": 5_000_000,
            "barriers": {
                "knockIn": 0.70,
                "knockOut": [
                    {"offset": 5, "level": 1.00},
                    {"offset": 10, "level": 0.98},
                    {"offset": 15, "level": 0.96},
                    {"offset": 20, "level": 0.94},
                ],
            },
            "accrual": {"couponRate": 0.08, "dayCountBasis": 252},
        },
        {
            "dealId": "KOF-EURUSD-02",
            "underlying": "EURUSD",
            "factor": "fx",
            "notional": 2_000_000,
            "barriers": {
                "knockIn": 0.95,
                "knockOut": [
                    {"offset": 10, "level": 1.03},
                    {"offset": 20, "level": 1.03},
                ],
            },
            "accrual": {"couponRate": 0.03, "dayCountBasis": 360},
        },
    ]
}


def load_deals(payload: Mapping[str, Any] | None = None) -> List[Deal]:
    """Parse the nested deal payload; rows missing core fields are skipped."""

    source = payload if payload is not None else DEFAULT_DEAL_PAYLOAD
    deals: List[Deal] = []
    for row in source.get("deals") or []:
        if not isinstance(row, Mapping):
            continue
        barriers = row.get("barriers") or {}
        accrual = row.get("accrual") or {}
        factor = str(row.get("factor", "equity"))
        if factor not in UNDERLYING_FACTORS or "dealId" not in row:
            continue
        fixings = sorted(
            (
                FixingDate(offset=int(item["offset"]), knock_out_level=float(item["level"]))
                for item in barriers.get("knockOut") or []
                if isinstance(item, Mapping)
            ),
            key=lambda fixing: fixing.offset,
        )
        deals.append(
            Deal(
                deal_id=str(row["dealId"]),
                underlying=str(row.get("underlying", "")),
                underlying_factor=factor,
                notional=float(row.get("notional", 0.0)),
                knock_in_level=float(barriers.get("knockIn", 0.0)),
                fixings=fixings,
                accrual=AccrualTerms(
                    coupon_rate=float(accrual.get("couponRate", 0.0)),
                    day_count_basis=int(accrual.get("dayCountBasis", 252)),
                ),
            )
        )
    return deals


__all__ = ["AccrualTerms", "DEFAULT_DEAL_PAYLOAD", "Deal", "FixingDate", "load_deals"]
