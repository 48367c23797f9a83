from __future__ import annotations

from prometheus_client import REGISTRY

from infra.metrics import PrometheusMetricSink


def _sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_sink_routes_names_to_prometheus_metrics() -> None:
    sink = PrometheusMetricSink()
    labels = {"category": "rates", "scope": "single"}
    before = _sample("scenario_runs_total", labels)

    sink("scenario_run", 1.0, labels)
    sink("scenario_run_duration_seconds", 0.25, {"category": "rates"})
    sink("backtest_run", 1.0, {"status": "cancelled"})
    sink("history_size", 7.0, None)
    sink("unknown_metric", 1.0, None)

    assert _sample("scenario_runs_total", labels) == before + 1.0
    assert _sample("scenario_run_duration_seconds_count", {"category": "rates"}) >= 1.0
    assert _sample("backtest_runs_total", {"status": "cancelled"}) >= 1.0
    assert _sample("scenario_history_size") == 7.0
