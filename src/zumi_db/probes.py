"""
Database Liveness Probes.

This module answers one question: can the connection pool reach the database
right now? It is used in two places:

- The background health loop of `Database`, which reconnects when a probe fails.
- Readiness endpoints of the services using this package (`check_readiness`),
  which report the result to an orchestrator.

Each probe is a single attempt with its own timeout. Retrying is the job of
the caller (the health loop simply probes again on its next tick), so a probe
never blocks longer than the timeout it was given.

Results use the same `DepProbeResult` shape as the other dependency probes of
Zumi services, so they can be aggregated and logged uniformly.
"""

from __future__ import annotations

import time
from typing import Literal, TypedDict

from sqlalchemy import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .handle import apply_statement_timeout
from .logger import log_event


class DepProbeResult(TypedDict):
    """
    The result of a single dependency probe.

    Attributes:
        enabled: Whether this dependency is configured to be checked.
        skipped: True if the probe was not run because the dependency is disabled.
        ok: The result of the probe (None when skipped).
        latency_ms: Time taken by the probe attempt.
        attempts: Number of attempts made (0 or 1).
        reason: A short, machine-readable string indicating the cause of failure.
    """

    enabled: bool
    skipped: bool
    ok: bool | None
    latency_ms: float | None
    attempts: int
    reason: str | None


class ReadinessResult(TypedDict):
    """The readiness response of a service whose only checked dependency is Postgres."""

    service: str
    version: str
    ready: bool
    summary: Literal["ok", "down"]
    deps: dict[str, DepProbeResult]


def _classify(exc: Exception) -> str:
    """Maps a probe failure to a short reason code."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return "connection_invalidated"
    message = str(exc).lower()
    if "timeout" in message or "timed out" in message or "canceling statement" in message:
        return "timeout"
    if isinstance(exc, SQLAlchemyError):
        return "connection_error"
    return f"exception:{type(exc).__name__}"


def probe_database(engine: Engine, timeout_sec: float) -> DepProbeResult:
    """
    Runs ``SELECT 1`` through the pool once.

    Args:
        engine: The engine (pool) to probe.
        timeout_sec: Statement timeout for the probe query.

    Returns:
        DepProbeResult: `ok` is True when the query returned 1.
    """
    start = time.perf_counter()
    try:
        with engine.connect() as conn:
            with conn.begin():
                apply_statement_timeout(conn, timeout_sec)
                value = conn.exec_driver_sql("SELECT 1").scalar()
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        if value == 1:
            return {
                "enabled": True, "skipped": False, "ok": True,
                "latency_ms": latency_ms, "attempts": 1, "reason": None,
            }
        return {
            "enabled": True, "skipped": False, "ok": False,
            "latency_ms": latency_ms, "attempts": 1, "reason": "unexpected_result",
        }
    except Exception as exc:
        return {
            "enabled": True, "skipped": False, "ok": False,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "attempts": 1, "reason": _classify(exc),
        }


def check_readiness(
    engine: Engine | None, service: str, version: str, timeout_sec: float = 1.0
) -> ReadinessResult:
    """
    Summarizes database readiness for a readiness endpoint.

    Args:
        engine: The engine to probe; None when the service runs without a
            database, in which case the dependency is reported as skipped.
        service: The name of the service being checked.
        version: The version of the service.
        timeout_sec: Timeout of the probe query.

    Returns:
        ReadinessResult: A structure suitable for JSON serialization.
    """
    if engine is None:
        pg: DepProbeResult = {
            "enabled": False, "skipped": True, "ok": None,
            "latency_ms": None, "attempts": 0, "reason": "disabled",
        }
        ready = True
    else:
        pg = probe_database(engine, timeout_sec)
        ready = bool(pg["ok"])
    summary: Literal["ok", "down"] = "ok" if ready else "down"
    log_event(
        "INFO" if ready else "WARNING",
        "readiness_check",
        service=service,
        version=version,
        ready=ready,
        summary=summary,
        reason=pg["reason"],
    )
    return {"service": service, "version": version, "ready": ready, "summary": summary, "deps": {"pg": pg}}
