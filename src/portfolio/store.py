"""Session portfolio store with per-instrument risk-factor defaults."""

from __future__ import annotations

import itertools
import json
import logging
import math
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, MutableMapping

from infra.errors import PositionValidationError

INSTRUMENT_TYPES = ("equity", "bond", "option", "swap", "fx-forward")

_LOGGER = logging.getLogger("scenario_dashboard.portfolio")


@dataclass(frozen=True, slots=True)
class RiskFactors:
    delta: float = 0.0
    gamma: float = 0.0
    duration: float = 0.0
    convexity: float = 0.0
    vega: float = 0.0
    theta: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> "RiskFactors":
        payload = payload or {}
        values: Dict[str, float] = {}
        for item in fields(cls):
            raw = payload.get(item.name)
            if isinstance(raw, (int, float)):
                values[item.name] = float(raw)
        return cls(**values)

    def is_finite(self) -> bool:
        return all(math.isfinite(value) for value in self.as_dict().values())


DEFAULT_RISK_FACTORS: Dict[str, RiskFactors] = {
    "equity": RiskFactors(delta=1.0),
    "bond": RiskFactors(duration=4.0, convexity=20.0),
    "option": RiskFactors(delta=0.5, gamma=0.1, vega=10.0, theta=-0.02),
    "swap": RiskFactors(duration=3.0, convexity=15.0),
    "fx-forward": RiskFactors(delta=1.0, duration=0.5),
}


@dataclass(frozen=True, slots=True)
class Position:
    id: str
    asset: str
    quantity: float
    price: float
    instrument_type: str
    risk_factors: RiskFactors = field(default_factory=RiskFactors)

    @property
    def market_value(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "asset": self.asset,
            "quantity": self.quantity,
            "price": self.price,
            "instrumentType": self.instrument_type,
            "riskFactors": self.risk_factors.as_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Position":
        risk_payload = payload.get("riskFactors")
        return cls(
            id=str(payload["id"]),
            asset=str(payload["asset"]),
            quantity=float(payload["quantity"]),  # type: ignore[arg-type]
            price=float(payload["price"]),  # type: ignore[arg-type]
            instrument_type=str(payload.get("instrumentType", "equity")),
            risk_factors=RiskFactors.from_mapping(
                risk_payload if isinstance(risk_payload, Mapping) else None
            ),
        )


@dataclass(slots=True)
class PositionDraft:
    """User-entered fields for a new position; ``risk_factors`` may be partial."""

    asset: str
    quantity: float
    price: float
    instrument_type: str = "equity"
    risk_factors: Mapping[str, float] = field(default_factory=dict)


def default_risk_factors(instrument_type: str) -> RiskFactors:
    return DEFAULT_RISK_FACTORS.get(instrument_type, DEFAULT_RISK_FACTORS["equity"])


def seed_positions() -> List[PositionDraft]:
    """Starter book loaded when a session opens without saved positions."""

    return [
        PositionDraft(asset="AAPL", quantity=100_000, price=200.0, instrument_type="equity"),
        PositionDraft(asset="TSLA", quantity=50_000, price=250.0, instrument_type="equity"),
        PositionDraft(asset="USD_10Y_BOND", quantity=1_000_000, price=100.0, instrument_type="bond"),
        PositionDraft(asset="SPX_OPTION", quantity=1_000, price=15.0, instrument_type="option"),
    ]


class PositionStore:
    """Holds the portfolio for one session, optionally mirrored to a JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._positions: Dict[str, Position] = {}
        self._ids = itertools.count(1)
        self._load_from_disk()

    @classmethod
    def with_seed_data(cls, path: str | Path | None = None) -> "PositionStore":
        store = cls(path)
        if not store.list():
            store.bulk_add(seed_positions())
        return store

    def _load_from_disk(self) -> None:
        if self._path is None or not self._path.exists():
            return
        with self._lock:
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                _LOGGER.warning("position file %s is corrupt; starting empty", self._path)
                return
            payload = data.get("positions") if isinstance(data, Mapping) else None
            if not isinstance(payload, list):
                return
            highest = 0
            for row in payload:
                if not isinstance(row, Mapping):
                    continue
                try:
                    position = Position.from_dict(row)
                    _check_stored(position)
                except (KeyError, TypeError, ValueError):
                    _LOGGER.warning("skipping malformed position row: %s", row)
                    continue
                self._positions[position.id] = position
                highest = max(highest, _id_sequence(position.id))
            self._ids = itertools.count(highest + 1)

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.write_text(json.dumps(self.snapshot_dict(), indent=2), encoding="utf-8")

    def snapshot_dict(self) -> MutableMapping[str, object]:
        return {"positions": [position.to_dict() for position in self.list()]}

    def add(self, draft: PositionDraft) -> Position:
        """Validate ``draft`` and store it with instrument-type risk defaults."""

        asset = (draft.asset or "").strip()
        if not asset:
            raise PositionValidationError("asset is required")
        if not math.isfinite(draft.quantity) or draft.quantity <= 0:
            raise PositionValidationError("quantity must be positive")
        if not math.isfinite(draft.price) or draft.price <= 0:
            raise PositionValidationError("price must be positive")
        if draft.instrument_type not in INSTRUMENT_TYPES:
            raise PositionValidationError(
                f"instrument type must be one of {', '.join(INSTRUMENT_TYPES)}"
            )
        overrides = {
            key: float(value)
            for key, value in (draft.risk_factors or {}).items()
            if value is not None
        }
        unknown = set(overrides) - {item.name for item in fields(RiskFactors)}
        if unknown:
            raise PositionValidationError(f"unknown risk factors: {', '.join(sorted(unknown))}")
        factors = replace(default_risk_factors(draft.instrument_type), **overrides)
        if not factors.is_finite():
            raise PositionValidationError("risk factors must be finite")

        with self._lock:
            position = Position(
                id=f"pos-{next(self._ids)}",
                asset=asset,
                quantity=float(draft.quantity),
                price=float(draft.price),
                instrument_type=draft.instrument_type,
                risk_factors=factors,
            )
            self._positions[position.id] = position
            self._persist()
        _LOGGER.info("added position %s (%s)", position.id, position.asset)
        return position

    def bulk_add(self, drafts: Iterable[PositionDraft]) -> List[Position]:
        return [self.add(draft) for draft in drafts]

    def remove(self, position_id: str) -> bool:
        """Drop a position; unknown ids are ignored."""

        with self._lock:
            removed = self._positions.pop(position_id, None)
            if removed is not None:
                self._persist()
        return removed is not None

    def replace(self, position: Position) -> Position:
        if position.id not in self._positions:
            raise PositionValidationError(f"unknown position id {position.id}")
        _check_stored(position)
        with self._lock:
            self._positions[position.id] = position
            self._persist()
        return position

    def get(self, position_id: str) -> Position | None:
        with self._lock:
            return self._positions.get(position_id)

    def find_by_asset(self, asset: str) -> List[Position]:
        return [position for position in self.list() if position.asset == asset]

    def list(self) -> List[Position]:
        with self._lock:
            return list(self._positions.values())

    def total_value(self) -> float:
        return sum(position.market_value for position in self.list())


def _check_stored(position: Position) -> None:
    if not (math.isfinite(position.price) and position.price > 0):
        raise PositionValidationError("price must be positive")
    if not math.isfinite(position.quantity) or position.quantity == 0:
        raise PositionValidationError("quantity must be finite and non-zero")
    if not position.risk_factors.is_finite():
        raise PositionValidationError("risk factors must be finite")


def _id_sequence(position_id: str) -> int:
    _, _, suffix = position_id.rpartition("-")
    return int(suffix) if suffix.isdigit() else 0


__all__ = [
    "DEFAULT_RISK_FACTORS",
    "INSTRUMENT_TYPES",
    "Position",
    "PositionDraft",
    "PositionStore",
    "RiskFactors",
    "default_risk_factors",
    "seed_positions",
]
