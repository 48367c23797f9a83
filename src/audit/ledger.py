"""Bounded, newest-first ledger of executed scenario runs."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from infra.errors import ClearNotConfirmedError
from marketdata.overrides import MarketDataOverride
from scenarios.catalog import Scenario, ScenarioCatalog
from storage.state import StateHandler, StateStore, StateSubscription

from .records import BACKTEST_TYPE, HistoryFilter, ReplayState, ScenarioHistoryRecord

HISTORY_KEY = "scenarioHistory"
DEFAULT_CAPACITY = 100

CSV_COLUMNS = [
    "Timestamp",
    "Scenario Name",
    "Type",
    "Scope",
    "Asset",
    "Shock",
    "Total Impact",
    "Max Loss",
    "Assets Analyzed",
    "Backtest Start",
    "Backtest End",
    "Custom Scenario",
]

_LOGGER = logging.getLogger("scenario_dashboard.audit.ledger")


class ScenarioHistoryLedger:
    """Append-only audit trail persisted through a :class:`StateStore`.

    Newest records sit at index 0. Once ``capacity`` is exceeded the oldest
    insertions are dropped.
    """

    def __init__(self, state: StateStore, *, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._state = state
        self._capacity = capacity
        self._entries: List[ScenarioHistoryRecord] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[ScenarioHistoryRecord]:
        return list(self._entries)

    def get(self, record_id: str) -> ScenarioHistoryRecord | None:
        for entry in self._entries:
            if entry.id == record_id:
                return entry
        return None

    def load(self) -> List[ScenarioHistoryRecord]:
        """Restore persisted history; unreadable storage yields an empty ledger."""

        try:
            payload = self._state.restore(HISTORY_KEY)
        except (OSError, ValueError):
            _LOGGER.exception("failed to read scenario history; starting empty")
            payload = None
        entries: List[ScenarioHistoryRecord] = []
        if payload is not None and not isinstance(payload, list):
            _LOGGER.warning(
                "scenario history payload is %s, expected list; ignoring", type(payload).__name__
            )
        elif payload:
            for row in payload:
                if not isinstance(row, Mapping):
                    _LOGGER.warning("skipping non-object history row")
                    continue
                try:
                    entries.append(ScenarioHistoryRecord.from_dict(row))
                except (KeyError, TypeError, ValueError) as exc:
                    _LOGGER.warning("skipping corrupt history row: %s", exc)
        self._entries = entries[: self._capacity]
        self._state.set(HISTORY_KEY, self._serialise(), persist=False)
        _LOGGER.info("loaded %s scenario history records", len(self._entries))
        return self.entries()

    def record(self, entry: ScenarioHistoryRecord) -> ScenarioHistoryRecord:
        self._entries.insert(0, entry)
        if len(self._entries) > self._capacity:
            del self._entries[self._capacity :]
        self._persist()
        _LOGGER.info(
            "recorded %s run %r (impact=%.2f)", entry.scenario_type, entry.scenario_name, entry.total_impact
        )
        return entry

    def filter(
        self,
        criteria: HistoryFilter | None = None,
        *,
        entries: Sequence[ScenarioHistoryRecord] | None = None,
    ) -> List[ScenarioHistoryRecord]:
        active = criteria or HistoryFilter()
        source = self._entries if entries is None else entries
        return [entry for entry in source if active.matches(entry)]

    def export_csv(self, entries: Iterable[ScenarioHistoryRecord] | None = None) -> str:
        rows = [_csv_row(entry) for entry in (self._entries if entries is None else entries)]
        frame = pd.DataFrame(rows, columns=CSV_COLUMNS)
        return frame.to_csv(index=False, lineterminator="\n")

    def clear(self, *, confirm: bool = False) -> int:
        """Drop every record. Irreversible, so the caller must pass ``confirm=True``."""

        if not confirm:
            raise ClearNotConfirmedError("clearing history requires explicit confirmation")
        removed = len(self._entries)
        self._entries = []
        self._persist()
        _LOGGER.warning("scenario history cleared (%s records removed)", removed)
        return removed

    def replay(
        self,
        entry: ScenarioHistoryRecord,
        catalog: ScenarioCatalog | None = None,
    ) -> ReplayState:
        """Reconstruct scenario selection and override state; nothing is re-run."""

        override_payload = entry.metadata.get("override")
        override = (
            MarketDataOverride.from_dict(override_payload)
            if isinstance(override_payload, Mapping)
            else None
        )
        if entry.scenario_type == BACKTEST_TYPE:
            return ReplayState(
                record_id=entry.id,
                scope=entry.scenario_scope,
                selected_asset=entry.selected_asset,
                scenario=None,
                backtest_params=dict(entry.backtest_metadata or {}),
                scenario_type=entry.scenario_type,
            )

        scenario_payload = entry.metadata.get("scenario")
        scenario: Scenario | None = None
        if isinstance(scenario_payload, Mapping):
            scenario = Scenario.from_dict(scenario_payload)
        elif catalog is not None:
            scenario = catalog.find_by_name(entry.scenario_name)

        custom_name = None
        custom_shock_pct = None
        if entry.is_custom:
            custom_name = entry.scenario_name
            custom_shock_pct = (entry.shock_value or 0.0) * 100
        return ReplayState(
            record_id=entry.id,
            scope=entry.scenario_scope,
            selected_asset=entry.selected_asset,
            scenario=scenario,
            override=override,
            custom_name=custom_name,
            custom_shock_pct=custom_shock_pct,
            scenario_type=entry.scenario_type,
        )

    def weekly_count(self, now: datetime | None = None) -> int:
        current = now or datetime.now(timezone.utc)
        cutoff = current - timedelta(days=7)
        count = 0
        for entry in self._entries:
            stamp = _parse_timestamp(entry.timestamp)
            if stamp is not None and cutoff <= stamp <= current:
                count += 1
        return count

    def most_used_type(self) -> str | None:
        if not self._entries:
            return None
        counts = Counter(entry.scenario_type for entry in self._entries)
        return counts.most_common(1)[0][0]

    def average_absolute_impact(self) -> float:
        if not self._entries:
            return 0.0
        return sum(abs(entry.total_impact) for entry in self._entries) / len(self._entries)

    def summary(self, now: datetime | None = None) -> Dict[str, Any]:
        return {
            "total": len(self._entries),
            "weekly_count": self.weekly_count(now),
            "most_used_type": self.most_used_type(),
            "average_absolute_impact": self.average_absolute_impact(),
        }

    def subscribe(self, handler: StateHandler) -> StateSubscription:
        return self._state.subscribe(handler, keys=[HISTORY_KEY])

    def _serialise(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def _persist(self) -> None:
        self._state.set(HISTORY_KEY, self._serialise())


def _parse_timestamp(value: str) -> datetime | None:
    try:
        stamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


def _csv_row(entry: ScenarioHistoryRecord) -> Dict[str, Any]:
    backtest = entry.backtest_metadata or {}
    return {
        "Timestamp": entry.timestamp,
        "Scenario Name": entry.scenario_name,
        "Type": entry.scenario_type,
        "Scope": entry.scenario_scope,
        "Asset": entry.selected_asset or "All",
        "Shock": f"{entry.shock_value * 100:.2f}%" if entry.shock_value is not None else "N/A",
        "Total Impact": round(entry.total_impact, 2),
        "Max Loss": round(entry.max_loss, 2),
        "Assets Analyzed": entry.assets_analyzed,
        "Backtest Start": backtest.get("startDate", ""),
        "Backtest End": backtest.get("endDate", ""),
        "Custom Scenario": "Yes" if entry.is_custom else "No",
    }


__all__ = ["CSV_COLUMNS", "DEFAULT_CAPACITY", "HISTORY_KEY", "ScenarioHistoryLedger"]
