"""Structured logging for dashboard sessions.

Console output stays human readable; the log file gets one JSON object per
line stamped with the session id so runs from different sessions can be
separated after the fact.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

LOGGER_NAMESPACE = "scenario_dashboard"
LOG_FILENAME = "scenario-dashboard.log"

_CONFIGURED = False


class SessionJsonFormatter(jsonlogger.JsonFormatter):
    """Stamps each JSON line with the session, deployment, and dashboard area."""

    def __init__(self, session_id: str | None, environment: str | None) -> None:
        super().__init__(timestamp=True)
        self._session_id = session_id
        self._environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["session_id"] = self._session_id
        log_record.setdefault("environment", self._environment)
        log_record["logger"] = record.name
        log_record["level"] = record.levelname
        prefix = f"{LOGGER_NAMESPACE}."
        if record.name.startswith(prefix):
            log_record["area"] = record.name[len(prefix) :]


def build_logging_config(
    *,
    session_id: str | None,
    environment: str | None,
    level: str,
    log_path: Path,
    retention_days: int,
) -> Dict[str, Any]:
    """dictConfig payload; dashboard loggers honour ``level``, everything else WARNING."""

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "session_json": {
                "()": SessionJsonFormatter,
                "session_id": session_id,
                "environment": environment,
            },
            "console": {
                "format": "%(asctime)s %(levelname)-7s %(name)s | %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
            },
            "session_file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "when": "midnight",
                "backupCount": retention_days,
                "filename": str(log_path),
                "encoding": "utf-8",
                "formatter": "session_json",
            },
        },
        "loggers": {
            LOGGER_NAMESPACE: {"level": level},
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console", "session_file"],
        },
    }


def configure_logging(
    *,
    session_id: str | None = None,
    environment: str | None = None,
    level: str | None = None,
) -> Path | None:
    """Install session logging once per process; returns the JSON log path."""

    global _CONFIGURED
    if _CONFIGURED:
        return None

    log_dir = Path(os.environ.get("LOG_DIR", "storage/logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    logging.config.dictConfig(
        build_logging_config(
            session_id=session_id,
            environment=environment,
            level=(level or os.environ.get("LOG_LEVEL", "INFO")).upper(),
            log_path=log_path,
            retention_days=int(os.environ.get("LOG_RETENTION_DAYS", "7")),
        )
    )
    _CONFIGURED = True
    logging.getLogger(f"{LOGGER_NAMESPACE}.session").info(
        "session %s logging to %s", session_id, log_path
    )
    return log_path


__all__ = ["LOGGER_NAMESPACE", "SessionJsonFormatter", "build_logging_config", "configure_logging"]
