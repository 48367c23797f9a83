"""Prometheus metric sink helpers."""

from __future__ import annotations

from typing import Mapping

from prometheus_client import Counter, Gauge, Histogram, start_http_server

_SCENARIO_RUNS = Counter(
    "scenario_runs_total",
    "Number of completed scenario valuations",
    ["category", "scope"],
)
_SCENARIO_DURATION = Histogram(
    "scenario_run_duration_seconds",
    "Wall time spent valuing a scenario",
    ["category"],
)
_BACKTEST_RUNS = Counter(
    "backtest_runs_total",
    "Number of backtest runs by outcome",
    ["status"],
)
_HISTORY_SIZE = Gauge(
    "scenario_history_size",
    "Records currently held in the scenario history ledger",
)
_SERVER_STARTED = False


class PrometheusMetricSink:
    """Callable sink used by the dashboard service to forward run telemetry."""

    def __call__(self, name: str, value: float, tags: Mapping[str, object] | None = None) -> None:
        tags = tags or {}
        if name == "scenario_run":
            _SCENARIO_RUNS.labels(
                category=str(tags.get("category", "unknown")),
                scope=str(tags.get("scope", "portfolio")),
            ).inc(value)
            return
        if name == "scenario_run_duration_seconds":
            _SCENARIO_DURATION.labels(category=str(tags.get("category", "unknown"))).observe(value)
            return
        if name == "backtest_run":
            _BACKTEST_RUNS.labels(status=str(tags.get("status", "completed"))).inc(value)
            return
        if name == "history_size":
            _HISTORY_SIZE.set(value)


def ensure_metrics_server(port: int = 9464) -> None:
    """Start the Prometheus scrape endpoint if it is not already running."""

    global _SERVER_STARTED
    if _SERVER_STARTED:
        return
    start_http_server(port)
    _SERVER_STARTED = True


__all__ = ["PrometheusMetricSink", "ensure_metrics_server"]
