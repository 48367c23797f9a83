from __future__ import annotations

import random

from typer.testing import CliRunner

from audit.ledger import ScenarioHistoryLedger
from backtest.engine import BacktestEngine
from cli import backtest as backtest_cli
from cli import dashboard as dashboard_cli
from dashboard import DashboardConfig, ScenarioDashboard
from portfolio.store import PositionStore
from risk.valuation import ValuationContext
from storage.kv import InMemoryKeyValueStore
from storage.state import StateStore


def _patch(monkeypatch, module=dashboard_cli) -> ScenarioDashboard:
    dashboard = ScenarioDashboard(
        positions=PositionStore.with_seed_data(),
        ledger=ScenarioHistoryLedger(StateStore(InMemoryKeyValueStore())),
        context=ValuationContext(rng=random.Random(5)),
        backtest_engine=BacktestEngine(step_delay=0),
        session_id="cli-test",
    )
    monkeypatch.setattr(module, "_configure_environment", lambda: DashboardConfig())
    monkeypatch.setattr(module, "_build_dashboard", lambda config: dashboard)
    return dashboard


def test_run_records_history(monkeypatch) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)

    result = runner.invoke(dashboard_cli.app, ["run", "equity-down-5", "--asset", "AAPL"])

    assert result.exit_code == 0, result.stdout
    assert "AAPL" in result.stdout
    assert len(dashboard.ledger) == 1
    assert dashboard.ledger.entries()[0].selected_asset == "AAPL"


def test_run_with_spot_override_marks_edited_rows(monkeypatch) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)

    result = runner.invoke(dashboard_cli.app, ["run", "vol-up-25", "--override-spot", "TSLA=300"])

    assert result.exit_code == 0, result.stdout
    tsla = next(row for row in dashboard.ledger.entries()[0].results if row.asset == "TSLA")
    assert tsla.is_edited_data
    assert tsla.new_price == 300 * 1.25


def test_unnamed_custom_run_warns_and_exits(monkeypatch) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)

    result = runner.invoke(dashboard_cli.app, ["run", "custom", "--shock-pct", "-5"])

    assert result.exit_code == 1
    assert len(dashboard.ledger) == 0


def test_positions_add_and_remove(monkeypatch) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)

    added = runner.invoke(
        dashboard_cli.app,
        ["positions", "add", "NDX_CALL", "-q", "10", "--price", "12.5", "-t", "option", "-f", "vega=20"],
    )
    assert added.exit_code == 0, added.stdout
    position = dashboard.positions.find_by_asset("NDX_CALL")[0]
    assert position.risk_factors.vega == 20.0
    assert position.risk_factors.delta == 0.5

    rejected = runner.invoke(dashboard_cli.app, ["positions", "add", "BAD", "-q", "0", "--price", "1"])
    assert rejected.exit_code == 1

    removed = runner.invoke(dashboard_cli.app, ["positions", "remove", position.id])
    assert removed.exit_code == 0
    assert dashboard.positions.find_by_asset("NDX_CALL") == []


def test_history_export_and_clear(monkeypatch, tmp_path) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)
    dashboard.run_scenario("portfolio", "rates-up-50bps")
    target = tmp_path / "history.csv"

    exported = runner.invoke(dashboard_cli.app, ["history", "export", "--output", str(target)])
    assert exported.exit_code == 0, exported.stdout
    assert target.read_text().startswith("Timestamp,Scenario Name,Type")

    declined = runner.invoke(dashboard_cli.app, ["history", "clear"], input="n\n")
    assert declined.exit_code == 1
    assert len(dashboard.ledger) == 1

    cleared = runner.invoke(dashboard_cli.app, ["history", "clear", "--yes"])
    assert cleared.exit_code == 0
    assert len(dashboard.ledger) == 0


def test_history_replay_execute(monkeypatch) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch)
    original = dashboard.run_scenario("portfolio", "credit-ig-widen")

    result = runner.invoke(dashboard_cli.app, ["history", "replay", original.history_record.id, "--execute"])

    assert result.exit_code == 0, result.stdout
    assert "credit-ig-widen" in result.stdout
    assert len(dashboard.ledger) == 2


def test_backtest_run_saves_result(monkeypatch, tmp_path) -> None:
    runner = CliRunner()
    dashboard = _patch(monkeypatch, backtest_cli)
    output = tmp_path / "bt.json"

    result = runner.invoke(backtest_cli.app, ["run", "covid-2020", "--output", str(output), "--quiet"])

    assert result.exit_code == 0, result.stdout
    assert output.exists()
    assert dashboard.ledger.entries()[0].scenario_type == "backtesting"


def test_backtest_unknown_period_exits(monkeypatch) -> None:
    runner = CliRunner()
    _patch(monkeypatch, backtest_cli)

    result = runner.invoke(backtest_cli.app, ["run", "1929-crash"])

    assert result.exit_code == 1
