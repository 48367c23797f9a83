"""CLI for replaying the portfolio through canned historical periods."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from backtest import HISTORICAL_PERIODS
from cli.dashboard import _build_dashboard, _configure_environment, _fail
from infra.errors import ScenarioDashboardError

app = typer.Typer(help="Historical backtesting for the scenario dashboard")


@app.command()
def periods() -> None:
    """List the available historical periods."""

    for period in HISTORICAL_PERIODS.values():
        typer.echo(
            f"{period.key:<12} {period.name} "
            f"({period.start_date.isoformat()} to {period.end_date.isoformat()}, "
            f"{len(period.moves)} days)"
        )


@app.command()
def run(
    period: str = typer.Argument(..., help="Period key (see `periods`)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON"),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress progress output"),
) -> None:
    """Replay the current portfolio and structured deals through ``period``."""

    config = _configure_environment()
    dashboard = _build_dashboard(config)

    def _progress(fraction: float, stage: str) -> None:
        if not quiet:
            typer.echo(f"[{fraction * 100:5.1f}%] {stage}")

    try:
        outcome = asyncio.run(dashboard.run_backtest(period, progress=_progress))
    except ScenarioDashboardError as exc:
        raise _fail(exc) from exc

    result = outcome.result
    meta = result.metadata
    typer.echo(
        f"[{meta['period']}] {meta['startDate']} to {meta['endDate']} "
        f"final_pnl=${result.final_pnl:,.2f} max_drawdown={meta['maxDrawdown'] * 100:.2f}% "
        f"knock_ins={meta['knockIns']} knock_outs={meta['knockOuts']} "
        f"accrued=${meta['totalAccrued']:,.2f}"
    )
    typer.echo(f"Recorded history entry {outcome.history_record.id}")
    if output is not None:
        saved = result.save(output)
        typer.echo(f"Result saved to {saved}")


if __name__ == "__main__":
    app()
