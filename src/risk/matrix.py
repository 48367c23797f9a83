"""Price-versus-volatility P&L grid built from Greek approximations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import pandas as pd

from marketdata.reference import ReferenceMarketData, default_reference_data
from portfolio.store import Position

DEFAULT_PRICE_SHOCKS = (-10.0, -5.0, 0.0, 5.0, 10.0)
DEFAULT_VOL_SHOCKS = (-10.0, -5.0, 0.0, 5.0, 10.0)
FALLBACK_VOL_PCT = 20.0


@dataclass(frozen=True, slots=True)
class MatrixCell:
    price_shock: float
    vol_shock: float
    pnl: float
    new_price: float
    new_vol: float


def position_pnl(position: Position, price_shock: float, vol_shock: float) -> float:
    """P&L ~ delta*dS + 0.5*gamma*dS^2 + vega*dVol, scaled by quantity.

    ``price_shock`` is in percent of spot, ``vol_shock`` in vol points.
    """

    factors = position.risk_factors
    delta_s = position.price * price_shock / 100
    return position.quantity * (
        factors.delta * delta_s
        + 0.5 * factors.gamma * delta_s * delta_s
        + factors.vega * vol_shock
    )


def build_risk_matrix(
    positions: Sequence[Position],
    price_shocks: Sequence[float] = DEFAULT_PRICE_SHOCKS,
    vol_shocks: Sequence[float] = DEFAULT_VOL_SHOCKS,
    *,
    reference: ReferenceMarketData | None = None,
) -> List[List[MatrixCell]]:
    """One row per vol shock, one cell per price shock, summed over positions."""

    ref = reference or default_reference_data()
    vols: Dict[str, float] = {}
    for position in positions:
        atm = ref.atm_vol(position.asset)
        vols[position.id] = atm * 100 if atm is not None else FALLBACK_VOL_PCT
    count = len(positions)

    matrix: List[List[MatrixCell]] = []
    for vol_shock in vol_shocks:
        row: List[MatrixCell] = []
        for price_shock in price_shocks:
            pnl = sum(position_pnl(position, price_shock, vol_shock) for position in positions)
            if count:
                avg_price = sum(p.price * (1 + price_shock / 100) for p in positions) / count
                avg_vol = sum(vols[p.id] + vol_shock for p in positions) / count
            else:
                avg_price = avg_vol = 0.0
            row.append(
                MatrixCell(
                    price_shock=price_shock,
                    vol_shock=vol_shock,
                    pnl=pnl,
                    new_price=avg_price,
                    new_vol=avg_vol,
                )
            )
        matrix.append(row)
    return matrix


def summarise_matrix(
    matrix: Sequence[Sequence[MatrixCell]],
    positions: Sequence[Position],
) -> Dict[str, float]:
    pnls = [cell.pnl for row in matrix for cell in row]
    return {
        "max_gain": max([*pnls, 0.0]),
        "max_loss": min([*pnls, 0.0]),
        "total_exposure": sum(position.market_value for position in positions),
        "num_positions": float(len(positions)),
    }


def matrix_frame(matrix: Sequence[Sequence[MatrixCell]]) -> pd.DataFrame:
    """Pivot the grid into vol-shock rows and price-shock columns."""

    records = [
        {"vol_shock": cell.vol_shock, "price_shock": cell.price_shock, "pnl": cell.pnl}
        for row in matrix
        for cell in row
    ]
    if not records:
        return pd.DataFrame()
    frame = pd.DataFrame.from_records(records)
    return frame.pivot(index="vol_shock", columns="price_shock", values="pnl")


__all__ = [
    "DEFAULT_PRICE_SHOCKS",
    "DEFAULT_VOL_SHOCKS",
    "MatrixCell",
    "build_risk_matrix",
    "matrix_frame",
    "position_pnl",
    "summarise_matrix",
]
