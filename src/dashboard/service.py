"""Dashboard facade wiring positions, scenarios, valuation, and the history ledger."""

from __future__ import annotations

import logging
import random
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence

from audit.ledger import ScenarioHistoryLedger
from audit.records import (
    BACKTEST_TYPE,
    MANUAL_EDIT_TYPE,
    SCOPES,
    HistoryFilter,
    ReplayState,
    ScenarioHistoryRecord,
)
from backtest.engine import (
    BacktestEngine,
    BacktestParams,
    BacktestResult,
    CancellationToken,
    ProgressCallback,
)
from infra.errors import BacktestCancelled, CustomScenarioNameError, ScenarioInputError
from marketdata.deals import Deal, load_deals
from marketdata.overrides import MarketDataOverride, MarketDataOverrideStore
from marketdata.reference import ReferenceMarketData, default_reference_data
from portfolio.store import Position, PositionStore
from risk.aggregation import PortfolioStats, aggregate
from risk.stress import StressProfileTable
from risk.valuation import Result, ValuationContext, value_portfolio
from scenarios.catalog import (
    CUSTOM_SCENARIO,
    Scenario,
    ScenarioCatalog,
    ScenarioCategory,
    build_custom_scenario,
)
from storage.ephemeral import EphemeralStore
from storage.kv import JsonFileKeyValueStore, KeyValueStore
from storage.state import StateStore

from .config import DashboardConfig

MetricSink = Callable[[str, float, Mapping[str, object] | None], None]


@dataclass(frozen=True)
class ScenarioRun:
    results: List[Result]
    stats: PortfolioStats
    history_record: ScenarioHistoryRecord


@dataclass(frozen=True)
class BacktestRun:
    result: BacktestResult
    history_record: ScenarioHistoryRecord


class ScenarioDashboard:
    """Single-session entry point used by the CLI and any other presentation layer."""

    def __init__(
        self,
        *,
        positions: PositionStore,
        ledger: ScenarioHistoryLedger,
        catalog: ScenarioCatalog | None = None,
        overrides: MarketDataOverrideStore | None = None,
        context: ValuationContext | None = None,
        backtest_engine: BacktestEngine | None = None,
        deals: Sequence[Deal] | None = None,
        session_id: str | None = None,
        user_agent: str = "scenario-dashboard",
        metric_sink: MetricSink | None = None,
    ) -> None:
        self.positions = positions
        self.ledger = ledger
        self.catalog = catalog or ScenarioCatalog()
        self.overrides = overrides or MarketDataOverrideStore()
        self.context = context or ValuationContext()
        self.backtest_engine = backtest_engine or BacktestEngine(reference=self.context.reference)
        self.deals = list(deals) if deals is not None else load_deals()
        self.session_id = session_id or uuid.uuid4().hex
        self.user_agent = user_agent
        self._metric_sink = metric_sink
        self._active_backtest: CancellationToken | None = None
        self.logger = logging.getLogger("scenario_dashboard.service")

    @classmethod
    def from_config(
        cls,
        config: DashboardConfig,
        *,
        backend: KeyValueStore | None = None,
        reference: ReferenceMarketData | None = None,
        session_id: str | None = None,
        metric_sink: MetricSink | None = None,
    ) -> "ScenarioDashboard":
        state = StateStore(backend or JsonFileKeyValueStore(Path(config.history_path)))
        ledger = ScenarioHistoryLedger(state, capacity=config.history_capacity)
        ledger.load()
        ref = reference or default_reference_data()
        context = ValuationContext(
            reference=ref,
            stress_profiles=StressProfileTable.vol_surface_assets(config.stress_vol_surface_assets),
            rng=random.Random(config.monte_carlo_seed),
        )
        return cls(
            positions=PositionStore.with_seed_data(config.positions_path),
            ledger=ledger,
            overrides=MarketDataOverrideStore(EphemeralStore(ttl_seconds=config.override_ttl_seconds)),
            context=context,
            backtest_engine=BacktestEngine(reference=ref, step_delay=config.backtest_step_delay),
            session_id=session_id,
            user_agent=config.user_agent,
            metric_sink=metric_sink,
        )

    def resolve_scenario(
        self,
        scenario: Scenario | str,
        *,
        custom_name: str | None = None,
        custom_shock_pct: float | None = None,
    ) -> Scenario:
        """Turn a catalog id or scenario into something runnable.

        Custom scenarios must carry a user-supplied name; the bare catalog
        placeholder is rejected.
        """

        if isinstance(scenario, str):
            return self.catalog.resolve(
                scenario, custom_name=custom_name, custom_shock_pct=custom_shock_pct
            )
        if not scenario.is_custom:
            return scenario
        if custom_name is not None or custom_shock_pct is not None:
            return build_custom_scenario(custom_name, custom_shock_pct or 0.0)
        if not scenario.name.strip() or scenario.name == CUSTOM_SCENARIO.name:
            raise CustomScenarioNameError("custom scenarios need a name before they can run")
        return scenario

    def run_scenario(
        self,
        scope: str,
        scenario: Scenario | str,
        positions: Sequence[Position] | None = None,
        selected_asset: str | None = None,
        override: MarketDataOverride | None = None,
        *,
        custom_name: str | None = None,
        custom_shock_pct: float | None = None,
    ) -> ScenarioRun:
        """Value the portfolio (or one asset) and append the run to history.

        Inputs are validated before anything is mutated.
        """

        if scope not in SCOPES:
            raise ScenarioInputError(f"scope must be one of {', '.join(SCOPES)}")
        resolved = self.resolve_scenario(
            scenario, custom_name=custom_name, custom_shock_pct=custom_shock_pct
        )
        book = list(positions) if positions is not None else self.positions.list()
        if scope == "single":
            if not selected_asset:
                raise ScenarioInputError("select an asset to run a single-asset scenario")
            book = [position for position in book if position.asset == selected_asset]
            if not book:
                raise ScenarioInputError(f"no position found for asset {selected_asset}")
        else:
            selected_asset = None
        active_override = override if override is not None else self.overrides.current()

        started = time.perf_counter()
        results = value_portfolio(book, resolved, active_override, context=self.context)
        stats = aggregate(results)
        elapsed = time.perf_counter() - started

        metadata: Dict[str, Any] = {
            "scenario": resolved.to_dict(),
            "impactPercentage": stats.impact_percentage,
            "var95": stats.var95,
        }
        if active_override is not None and any(result.is_edited_data for result in results):
            metadata["override"] = active_override.to_dict()
        record = self.ledger.record(
            ScenarioHistoryRecord(
                scenario_name=resolved.name,
                scenario_type=resolved.category_value,
                scenario_scope=scope,
                shock_value=resolved.shock,
                assets_analyzed=len(results),
                selected_asset=selected_asset,
                results=results,
                total_impact=stats.total_impact,
                max_loss=stats.max_loss,
                session_id=self.session_id,
                user_agent=self.user_agent,
                metadata=metadata,
            )
        )
        self._emit("scenario_run", 1.0, {"category": resolved.category_value, "scope": scope})
        self._emit("scenario_run_duration_seconds", elapsed, {"category": resolved.category_value})
        self._emit("history_size", float(len(self.ledger)), None)
        self.logger.info(
            "scenario %r (%s) on %s positions: impact=%.2f var95=%.2f",
            resolved.name,
            scope,
            len(results),
            stats.total_impact,
            stats.var95,
        )
        return ScenarioRun(results=results, stats=stats, history_record=record)

    def save_market_data_edit(self, override: MarketDataOverride) -> ScenarioRun:
        """Activate ``override`` and log the edit's standalone effect as a manual-edit run."""

        book = self.positions.find_by_asset(override.asset)
        if not book:
            raise ScenarioInputError(f"no position found for asset {override.asset}")
        self.overrides.set(override)
        edit = Scenario(
            id=MANUAL_EDIT_TYPE,
            name=override.scenario_name,
            category=ScenarioCategory.CUSTOM,
            shock=0.0,
            description=f"Edited market data for {override.asset}",
        )
        results = value_portfolio(book, edit, override, context=self.context)
        stats = aggregate(results)
        record = self.ledger.record(
            ScenarioHistoryRecord(
                scenario_name=override.scenario_name,
                scenario_type=MANUAL_EDIT_TYPE,
                scenario_scope="single",
                shock_value=0.0,
                assets_analyzed=len(results),
                selected_asset=override.asset,
                results=results,
                total_impact=stats.total_impact,
                max_loss=stats.max_loss,
                session_id=self.session_id,
                user_agent=self.user_agent,
                metadata={"scenario": edit.to_dict(), "override": override.to_dict()},
            )
        )
        self._emit("history_size", float(len(self.ledger)), None)
        return ScenarioRun(results=results, stats=stats, history_record=record)

    def exit_edit_mode(self) -> None:
        self.overrides.exit_edit_mode()

    async def run_backtest(
        self,
        period: str,
        *,
        positions: Sequence[Position] | None = None,
        deals: Sequence[Deal] | None = None,
        progress: ProgressCallback | None = None,
    ) -> BacktestRun:
        """Replay ``period``; starting a new backtest cancels any in-flight one."""

        if self._active_backtest is not None:
            self._active_backtest.cancel()
        token = CancellationToken()
        self._active_backtest = token
        params = BacktestParams(
            period=period,
            positions=list(positions) if positions is not None else self.positions.list(),
            deals=list(deals) if deals is not None else self.deals,
        )
        try:
            result = await self.backtest_engine.run(params, progress=progress, cancel_token=token)
        except BacktestCancelled:
            self._emit("backtest_run", 1.0, {"status": "cancelled"})
            self.logger.info("backtest %s cancelled", period)
            raise
        finally:
            if self._active_backtest is token:
                self._active_backtest = None

        record = self.ledger.record(
            ScenarioHistoryRecord(
                scenario_name=f"Backtest: {result.period.name}",
                scenario_type=BACKTEST_TYPE,
                scenario_scope="portfolio",
                shock_value=None,
                assets_analyzed=len(result.position_results),
                selected_asset=None,
                results=result.position_results,
                total_impact=result.final_pnl,
                max_loss=result.worst_pnl,
                session_id=self.session_id,
                user_agent=self.user_agent,
                backtest_metadata=result.metadata,
            )
        )
        self._emit("backtest_run", 1.0, {"status": "completed"})
        self._emit("history_size", float(len(self.ledger)), None)
        return BacktestRun(result=result, history_record=record)

    def cancel_backtest(self) -> bool:
        if self._active_backtest is None:
            return False
        self._active_backtest.cancel()
        return True

    def history(self, criteria: HistoryFilter | None = None) -> List[ScenarioHistoryRecord]:
        return self.ledger.filter(criteria)

    def export_history(self, criteria: HistoryFilter | None = None) -> str:
        return self.ledger.export_csv(self.ledger.filter(criteria))

    def clear_history(self, *, confirm: bool = False) -> int:
        removed = self.ledger.clear(confirm=confirm)
        self._emit("history_size", 0.0, None)
        return removed

    def replay(self, record_id: str) -> ReplayState:
        entry = self.ledger.get(record_id)
        if entry is None:
            raise ScenarioInputError(f"unknown history record {record_id}")
        return self.ledger.replay(entry, self.catalog)

    def run_replay(self, state: ReplayState) -> ScenarioRun:
        """Re-run the valuation described by ``state`` against current positions."""

        if state.scenario_type == MANUAL_EDIT_TYPE and state.override is not None:
            return self.save_market_data_edit(state.override)
        if state.scenario is None:
            raise ScenarioInputError("record cannot be replayed as a scenario run")
        run = self.run_scenario(
            state.scope,
            state.scenario,
            selected_asset=state.selected_asset,
            override=state.override,
        )
        if state.override is not None:
            self.overrides.set(state.override)
        return run

    def _emit(self, name: str, value: float, tags: Mapping[str, object] | None) -> None:
        if self._metric_sink is not None:
            self._metric_sink(name, value, tags)


__all__ = ["BacktestRun", "ScenarioDashboard", "ScenarioRun"]
