"""
Structured JSON Logging for the Zumi data-access layer.

Every notable event in this package (pool created, health check failed,
reconnected, migrations applied, ...) is emitted as a single-line JSON object.
Records go through the standard `logging` logger named ``zumi_db`` so that the
host application decides where they end up, while the payload itself stays
machine-readable for log aggregation.

Standard fields included in every record:
- `ts`: ISO 8601 timestamp in UTC.
- `service`: The component name ("zumi-db").
- `env`: The deployment environment from `ZUMI_ENV`.
- `version`: The installed package version.
- `level`: The normalized log severity.
- `msg`: A short, snake_case event name.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

from . import SERVICE_NAME, __version__

logger = logging.getLogger("zumi_db")

_ENV = os.getenv("ZUMI_ENV", "local")
_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _normalize_level(level: str) -> str:
    """Returns the upper-cased level, falling back to INFO for unknown values."""
    level_upper = level.upper()
    return level_upper if level_upper in _VALID_LEVELS else "INFO"


def log_event(level: str, msg: str, **fields: Any) -> None:
    """
    Emits a structured, single-line JSON log entry.

    Example:
    ```python
    log_event("ERROR", "db_unhealthy", reason="timeout", latency_ms=30001.2)
    ```

    Args:
        level: The severity level of the log (e.g., "INFO", "ERROR").
        msg: The event name.
        **fields: Extra key-value pairs added to the root of the JSON object.
            Values that are not JSON serializable are rendered with `str()`.
    """
    normalized = _normalize_level(level)
    if not logger.isEnabledFor(getattr(logging, normalized)):
        return
    record = {
        "ts": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
        "env": _ENV,
        "version": __version__,
        "level": normalized,
        "msg": msg,
    }
    record.update(fields)
    logger.log(
        getattr(logging, normalized),
        json.dumps(record, separators=(",", ":"), default=str),
    )
