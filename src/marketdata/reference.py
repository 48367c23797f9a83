"""Static market reference data: spot quotes, vol surfaces, and the yield curve."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

DEFAULT_BASE_RATE = 1.0
DEFAULT_VOL_SCALE = 0.01


@dataclass(frozen=True, slots=True)
class SpotQuote:
    spot: float
    bid: float
    ask: float

    def to_dict(self) -> Dict[str, float]:
        return {"spot": self.spot, "bid": self.bid, "ask": self.ask}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "SpotQuote":
        spot = float(payload["spot"])  # type: ignore[arg-type]
        return cls(
            spot=spot,
            bid=float(payload.get("bid", spot)),  # type: ignore[arg-type]
            ask=float(payload.get("ask", spot)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class VolSurface:
    """Implied vols (decimal) indexed ``values[strike][maturity]``.

    Strikes are quoted as percent of spot, so the middle row is at-the-money.
    """

    strikes: Sequence[float]
    maturities: Sequence[str]
    values: Sequence[Sequence[float]]

    def __post_init__(self) -> None:
        if len(self.values) != len(self.strikes):
            raise ValueError("vol surface needs one row per strike")
        for row in self.values:
            if len(row) != len(self.maturities):
                raise ValueError("vol surface rows must cover every maturity")

    def reference_point(self) -> float:
        """At-the-money, shortest-maturity vol."""
        return float(self.values[len(self.strikes) // 2][0])

    def to_dict(self) -> Dict[str, object]:
        return {
            "strikes": list(self.strikes),
            "maturities": list(self.maturities),
            "values": [list(row) for row in self.values],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "VolSurface":
        return cls(
            strikes=[float(x) for x in payload["strikes"]],  # type: ignore[union-attr]
            maturities=[str(x) for x in payload["maturities"]],  # type: ignore[union-attr]
            values=[[float(v) for v in row] for row in payload["values"]],  # type: ignore[union-attr]
        )


@dataclass(frozen=True, slots=True)
class CurvePoint:
    date: str
    rate: float
    tenor: str

    def to_dict(self) -> Dict[str, object]:
        return {"date": self.date, "rate": self.rate, "tenor": self.tenor}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "CurvePoint":
        return cls(
            date=str(payload.get("date", "")),
            rate=float(payload["rate"]),  # type: ignore[arg-type]
            tenor=str(payload.get("tenor", "")),
        )


@dataclass(frozen=True, slots=True)
class AssetMarketData:
    quote: SpotQuote | None = None
    surface: VolSurface | None = None


@dataclass(frozen=True)
class ReferenceMarketData:
    """Immutable lookup table loaded once at startup."""

    assets: Mapping[str, AssetMarketData] = field(default_factory=dict)
    yield_curve: Sequence[CurvePoint] = field(default_factory=list)

    def curve_rate(self, tenor: str) -> float | None:
        for point in self.yield_curve:
            if point.tenor.upper() == tenor.upper():
                return point.rate
        return None

    def base_rate_for(self, asset: str) -> float:
        """Curve rate for the tenor named in the asset label (3Y or 5Y)."""

        label = asset.upper()
        for tenor in ("3Y", "5Y"):
            if tenor in label:
                rate = self.curve_rate(tenor)
                if rate is not None:
                    return rate
        return DEFAULT_BASE_RATE

    def credit_base_rate(self) -> float:
        rate = self.curve_rate("1Y")
        return rate if rate is not None else DEFAULT_BASE_RATE

    def atm_vol(self, asset: str) -> float | None:
        data = self.assets.get(asset)
        if data is None or data.surface is None:
            return None
        return data.surface.reference_point()

    def vol_scale_for(self, asset: str) -> float:
        vol = self.atm_vol(asset)
        return vol if vol is not None else DEFAULT_VOL_SCALE

    def quote(self, asset: str) -> SpotQuote | None:
        data = self.assets.get(asset)
        return data.quote if data else None


_STRIKES: List[float] = [90.0, 95.0, 100.0, 105.0, 110.0]
_MATURITIES: List[str] = ["1M", "3M", "6M", "1Y"]


def _surface(atm: float, skew: float, term: float) -> VolSurface:
    rows: List[List[float]] = []
    for strike in _STRIKES:
        moneyness = (100.0 - strike) / 10.0
        rows.append(
            [
                round(atm + skew * moneyness + term * idx, 4)
                for idx in range(len(_MATURITIES))
            ]
        )
    return VolSurface(strikes=list(_STRIKES), maturities=list(_MATURITIES), values=rows)


def default_reference_data() -> ReferenceMarketData:
    return ReferenceMarketData(
        assets={
            "AAPL": AssetMarketData(
                quote=SpotQuote(spot=200.0, bid=199.95, ask=200.05),
                surface=_surface(atm=0.28, skew=0.02, term=0.005),
            ),
            "TSLA": AssetMarketData(
                quote=SpotQuote(spot=250.0, bid=249.8, ask=250.2),
                surface=_surface(atm=0.55, skew=0.04, term=-0.01),
            ),
            "SPX_OPTION": AssetMarketData(
                quote=SpotQuote(spot=15.0, bid=14.9, ask=15.1),
                surface=_surface(atm=0.18, skew=0.03, term=0.004),
            ),
            "USD_10Y_BOND": AssetMarketData(
                quote=SpotQuote(spot=100.0, bid=99.97, ask=100.03),
            ),
        },
        yield_curve=[
            CurvePoint(date="2025-01-15", rate=0.041245, tenor="1Y"),
            CurvePoint(date="2026-01-15", rate=0.036120, tenor="2Y"),
            CurvePoint(date="2027-01-15", rate=0.032856, tenor="3Y"),
            CurvePoint(date="2029-01-15", rate=0.035412, tenor="5Y"),
            CurvePoint(date="2034-01-15", rate=0.040517, tenor="10Y"),
        ],
    )


__all__ = [
    "AssetMarketData",
    "CurvePoint",
    "DEFAULT_BASE_RATE",
    "DEFAULT_VOL_SCALE",
    "ReferenceMarketData",
    "SpotQuote",
    "VolSurface",
    "default_reference_data",
]
