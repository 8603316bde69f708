"""
Timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit one METRIC_TIMER JSONL event per measurement via observability.logger
- Never aggregate

Durations use monotonic time; the event's ts_ms uses wall-clock time
for log correlation.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


def _emit_timer(
    name: str,
    start_ns: int,
    *,
    session_id: str | None,
    outcome: str,
    details: dict[str, Any] | None,
) -> int:
    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "session_id": session_id,
        "outcome": outcome,
        "details": details or {},
    })
    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once, even on exceptions or cancellation
    - Exceptions inside the block are re-raised unchanged
    - The outcome field records "ok", "error" or "cancelled"

    Usage:
        with timed("intent_latency", session_id=session_id):
            await client.chat.completions.create(...)
    """
    start_ns = time.monotonic_ns()
    outcome = "ok"
    try:
        yield
    except BaseException as exc:
        outcome = "cancelled" if isinstance(exc, asyncio.CancelledError) else "error"
        raise
    finally:
        _emit_timer(
            name,
            start_ns,
            session_id=session_id,
            outcome=outcome,
            details=details,
        )
