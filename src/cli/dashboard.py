"""CLI for running scenarios, managing positions, and browsing run history."""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
import typer
from dotenv import load_dotenv

from audit.records import HistoryFilter
from dashboard import DashboardConfig, ScenarioDashboard
from infra.errors import ScenarioDashboardError
from infra.logging import configure_logging
from infra.metrics import PrometheusMetricSink, ensure_metrics_server
from marketdata.overrides import MarketDataOverride, rate_curve_override, spot_override
from marketdata.reference import CurvePoint
from portfolio.store import PositionDraft
from risk.matrix import build_risk_matrix, matrix_frame, summarise_matrix

app = typer.Typer(help="Scenario and risk dashboard")
positions_app = typer.Typer(help="Manage portfolio positions")
history_app = typer.Typer(help="Browse and export scenario run history")
app.add_typer(positions_app, name="positions")
app.add_typer(history_app, name="history")


def _configure_environment() -> DashboardConfig:
    load_dotenv()
    session_id = os.environ.get("SESSION_ID")
    if not session_id:
        session_id = uuid.uuid4().hex
        os.environ["SESSION_ID"] = session_id
    config = DashboardConfig.from_env()
    configure_logging(
        session_id=session_id, environment=config.environment, level=config.log_level
    )
    if config.metrics_enabled:
        ensure_metrics_server(config.metrics_port)
    return config


def _build_dashboard(config: DashboardConfig) -> ScenarioDashboard:
    sink = PrometheusMetricSink() if config.metrics_enabled else None
    return ScenarioDashboard.from_config(
        config, session_id=os.environ.get("SESSION_ID"), metric_sink=sink
    )


def _fail(exc: ScenarioDashboardError) -> typer.Exit:
    typer.echo(f"Warning: {exc}", err=True)
    return typer.Exit(code=1)


def _split_pair(raw: str, option: str) -> Tuple[str, float]:
    asset, sep, value = raw.partition("=")
    if not sep or not asset.strip():
        raise typer.BadParameter(f"{option} expects ASSET=VALUE, got {raw!r}")
    try:
        return asset.strip(), float(value)
    except ValueError as exc:
        raise typer.BadParameter(f"{option} value must be numeric, got {value!r}") from exc


def _override_from_options(
    override_spot: str | None,
    override_rate: str | None,
) -> MarketDataOverride | None:
    if override_spot and override_rate:
        raise typer.BadParameter("use only one of --override-spot / --override-rate")
    if override_spot:
        asset, spot = _split_pair(override_spot, "--override-spot")
        return spot_override(asset, spot, scenario_name="CLI override")
    if override_rate:
        asset, rate = _split_pair(override_rate, "--override-rate")
        return rate_curve_override(
            asset, [CurvePoint(date="", rate=rate, tenor="1Y")], scenario_name="CLI override"
        )
    return None


@app.command()
def scenarios() -> None:
    """List the scenario catalog."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    frame = pd.DataFrame(
        [
            {
                "id": scenario.id,
                "name": scenario.name,
                "category": scenario.category_value,
                "shock": f"{scenario.shock * 100:.2f}%",
            }
            for scenario in dashboard.catalog.list()
        ]
    )
    typer.echo(frame.to_string(index=False))


@app.command()
def run(
    scenario_id: str = typer.Argument(..., help="Scenario id (see `scenarios`)"),
    asset: Optional[str] = typer.Option(None, "--asset", "-a", help="Run against a single asset"),
    name: Optional[str] = typer.Option(None, "--name", help="Custom scenario name"),
    shock_pct: Optional[float] = typer.Option(None, "--shock-pct", help="Custom shock in percent"),
    override_spot: Optional[str] = typer.Option(None, help="ASSET=SPOT market-data override"),
    override_rate: Optional[str] = typer.Option(None, help="ASSET=RATE curve override"),
) -> None:
    """Run a scenario against the portfolio and record it in history."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    try:
        override = _override_from_options(override_spot, override_rate)
        outcome = dashboard.run_scenario(
            "single" if asset else "portfolio",
            scenario_id,
            selected_asset=asset,
            override=override,
            custom_name=name,
            custom_shock_pct=shock_pct,
        )
    except ScenarioDashboardError as exc:
        raise _fail(exc) from exc
    frame = pd.DataFrame(
        [
            {
                "asset": result.asset,
                "original": round(result.original_value, 2),
                "shocked": round(result.shocked_value, 2),
                "new_price": round(result.new_price, 4),
                "impact": round(result.impact, 2),
                "edited": "yes" if result.is_edited_data else "",
            }
            for result in outcome.results
        ]
    )
    stats = outcome.stats
    typer.echo(frame.to_string(index=False))
    typer.echo(
        f"total_impact=${stats.total_impact:,.2f} ({stats.impact_percentage:.2f}%) "
        f"max_loss=${stats.max_loss:,.2f} var95=${stats.var95:,.2f}"
    )
    typer.echo(f"Recorded history entry {outcome.history_record.id}")


@app.command()
def matrix(
    price_shock: List[float] = typer.Option(
        [], "--price-shock", "-p", help="Price shock in percent (repeatable)"
    ),
    vol_shock: List[float] = typer.Option(
        [], "--vol-shock", "-v", help="Vol shock in points (repeatable)"
    ),
) -> None:
    """Print the price-versus-volatility P&L grid for the portfolio."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    positions = dashboard.positions.list()
    kwargs = {}
    if price_shock:
        kwargs["price_shocks"] = price_shock
    if vol_shock:
        kwargs["vol_shocks"] = vol_shock
    grid = build_risk_matrix(positions, reference=dashboard.context.reference, **kwargs)
    typer.echo(matrix_frame(grid).round(2).to_string())
    summary = summarise_matrix(grid, positions)
    typer.echo(
        f"max_gain=${summary['max_gain']:,.2f} max_loss=${summary['max_loss']:,.2f} "
        f"exposure=${summary['total_exposure']:,.2f}"
    )


@positions_app.command("list")
def positions_list() -> None:
    """Show the current portfolio."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    rows = [
        {
            "id": position.id,
            "asset": position.asset,
            "type": position.instrument_type,
            "quantity": position.quantity,
            "price": position.price,
            "value": position.market_value,
        }
        for position in dashboard.positions.list()
    ]
    if not rows:
        typer.echo("No positions")
        return
    typer.echo(pd.DataFrame(rows).to_string(index=False))


@positions_app.command("add")
def positions_add(
    asset: str = typer.Argument(...),
    quantity: float = typer.Option(..., "--quantity", "-q"),
    price: float = typer.Option(..., "--price"),
    instrument_type: str = typer.Option("equity", "--type", "-t"),
    factor: List[str] = typer.Option(
        [], "--factor", "-f", help="Risk factor override NAME=VALUE (repeatable)"
    ),
) -> None:
    """Add a position, filling risk factors from the instrument-type defaults."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    factors = dict(_split_pair(raw, "--factor") for raw in factor)
    try:
        position = dashboard.positions.add(
            PositionDraft(
                asset=asset,
                quantity=quantity,
                price=price,
                instrument_type=instrument_type,
                risk_factors=factors,
            )
        )
    except ScenarioDashboardError as exc:
        raise _fail(exc) from exc
    typer.echo(f"Added {position.id}: {position.asset} x {position.quantity:g} @ {position.price:g}")


@positions_app.command("remove")
def positions_remove(position_id: str = typer.Argument(...)) -> None:
    """Remove a position by id (unknown ids are ignored)."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    removed = dashboard.positions.remove(position_id)
    typer.echo(f"Removed {position_id}" if removed else f"No position {position_id}")


def _history_filter(search: str | None, scenario_type: str | None, scope: str | None) -> HistoryFilter:
    return HistoryFilter(search_term=search, scenario_type=scenario_type, scope=scope)


@history_app.command("list")
def history_list(
    search: Optional[str] = typer.Option(None, "--search", "-s"),
    scenario_type: Optional[str] = typer.Option(None, "--type", "-t"),
    scope: Optional[str] = typer.Option(None, "--scope"),
) -> None:
    """List recorded runs, newest first."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    entries = dashboard.history(_history_filter(search, scenario_type, scope))
    if not entries:
        typer.echo("No history entries")
        return
    frame = pd.DataFrame(
        [
            {
                "id": entry.id,
                "timestamp": entry.timestamp,
                "scenario": entry.scenario_name,
                "type": entry.scenario_type,
                "scope": entry.scenario_scope,
                "asset": entry.selected_asset or "All",
                "impact": round(entry.total_impact, 2),
            }
            for entry in entries
        ]
    )
    typer.echo(frame.to_string(index=False))


@history_app.command("export")
def history_export(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write CSV to file"),
    search: Optional[str] = typer.Option(None, "--search", "-s"),
    scenario_type: Optional[str] = typer.Option(None, "--type", "-t"),
    scope: Optional[str] = typer.Option(None, "--scope"),
) -> None:
    """Export (filtered) history as CSV."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    text = dashboard.export_history(_history_filter(search, scenario_type, scope))
    if output is None:
        typer.echo(text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(f"History exported to {output}")


@history_app.command("summary")
def history_summary() -> None:
    """Show weekly count, most used type, and average absolute impact."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    typer.echo(json.dumps(dashboard.ledger.summary(), indent=2))


@history_app.command("replay")
def history_replay(
    record_id: str = typer.Argument(...),
    execute: bool = typer.Option(False, "--execute", help="Re-run the reconstructed scenario"),
) -> None:
    """Reconstruct the inputs of a past run, optionally re-running it."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    try:
        state = dashboard.replay(record_id)
        payload = {
            "recordId": state.record_id,
            "scope": state.scope,
            "selectedAsset": state.selected_asset,
            "scenario": state.scenario.to_dict() if state.scenario else None,
            "override": state.override.to_dict() if state.override else None,
            "backtest": dict(state.backtest_params) if state.backtest_params else None,
        }
        typer.echo(json.dumps(payload, indent=2))
        if execute:
            outcome = dashboard.run_replay(state)
            typer.echo(
                f"Replayed as {outcome.history_record.id}: "
                f"total_impact=${outcome.stats.total_impact:,.2f}"
            )
    except ScenarioDashboardError as exc:
        raise _fail(exc) from exc


@history_app.command("clear")
def history_clear(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
) -> None:
    """Delete all history entries. This cannot be undone."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)
    confirmed = yes or typer.confirm("Clear all scenario history? This cannot be undone.")
    try:
        removed = dashboard.clear_history(confirm=confirmed)
    except ScenarioDashboardError as exc:
        raise _fail(exc) from exc
    typer.echo(f"Cleared {removed} history entries")


if __name__ == "__main__":
    app()
