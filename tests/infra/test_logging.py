from __future__ import annotations

import json
import logging

from infra.logging import SessionJsonFormatter, build_logging_config


def test_json_formatter_adds_session_fields() -> None:
    formatter = SessionJsonFormatter(session_id="abc123", environment="test")
    record = logging.LogRecord(
        name="scenario_dashboard.audit.ledger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="recorded %s",
        args=("equity-down-5",),
        exc_info=None,
    )

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "recorded equity-down-5"
    assert payload["session_id"] == "abc123"
    assert payload["environment"] == "test"
    assert payload["level"] == "INFO"
    assert payload["area"] == "audit.ledger"
    assert "timestamp" in payload


def test_logging_config_scopes_level_to_dashboard_loggers(tmp_path) -> None:
    config = build_logging_config(
        session_id="s-1",
        environment=None,
        level="DEBUG",
        log_path=tmp_path / "dash.log",
        retention_days=3,
    )

    assert config["loggers"]["scenario_dashboard"]["level"] == "DEBUG"
    assert config["root"]["level"] == "WARNING"
    assert config["handlers"]["session_file"]["backupCount"] == 3
    assert config["formatters"]["session_json"]["session_id"] == "s-1"
