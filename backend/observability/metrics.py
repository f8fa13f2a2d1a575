"""
Metrics and timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as JSONL events via observability.logger
- Never aggregate: one metric = one log event

Design notes:
- Durations use monotonic time for correctness
- Event timestamps (ts_ms) use wall-clock time for human readability
- Prefer the `timed()` context manager to avoid leaked timers
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability import logger


def record_metric(
    name: str,
    value: float,
    *,
    session_id: str | None = None,
    state: str | None = None,
    tags: dict[str, str] | None = None,
) -> None:
    """Emit a single point-in-time metric value."""
    logger.log_event({
        "ts_ms": logger.now_ms(),
        "event_type": "METRIC",
        "metric": name,
        "value": value,
        "session_id": session_id,
        "state": state,
        "tags": tags or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once, even if the block raises
      or is cancelled
    - The yielded dict may be filled with outcome details inside the block

    Usage:
        with timed("remote_classification", session_id=sid) as info:
            verdict = await classifier.classify(text, timeout_s)
            info["verdict"] = verdict
    """
    info: dict[str, Any] = dict(details or {})
    start_ns = time.monotonic_ns()
    outcome = "ok"
    try:
        yield info
    except BaseException as exc:
        outcome = type(exc).__name__
        raise
    finally:
        logger.log_event({
            "ts_ms": logger.now_ms(),
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "session_id": session_id,
            "outcome": outcome,
            "details": info,
        })
