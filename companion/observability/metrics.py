"""
Duration metrics for calls and chat requests.

Each measurement becomes exactly one METRIC_TIMER event. Nothing is
aggregated in-process. Spans are measured on the monotonic clock; the
event's ts_ms is wall-clock.

Call timers (call_connect_ms, call_duration_ms) span several callbacks
and use start_timer/stop_timer with the final call status. Chat
requests sit inside a single await and use timed(), whose span outcome
is reported in the event's "status" field.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from observability.logger import log_event


SPAN_OK = "ok"
SPAN_ERROR = "error"
SPAN_CANCELLED = "cancelled"

# timer_id -> (metric_name, start_time_ns)
_active_timers: dict[str, tuple[str, int]] = {}


def start_timer(name: str) -> str:
    """Start a timer and return the id that stops or discards it."""
    timer_id = f"timer_{uuid.uuid4().hex[:12]}"
    _active_timers[timer_id] = (name, time.monotonic_ns())
    return timer_id


def stop_timer(
    timer_id: str,
    *,
    call_id: str | None = None,
    status: str | None = None,
    details: dict[str, Any] | None = None,
) -> int | None:
    """
    Stop a timer and emit its metric.

    Returns the duration in ms, or None for an unknown or already
    stopped timer (nothing is emitted then).
    """
    entry = _active_timers.pop(timer_id, None)
    if entry is None:
        return None

    name, start_ns = entry
    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "call_id": call_id,
        "status": status,
        "details": details or {},
    })

    return duration_ms


def discard_timer(timer_id: str) -> None:
    """Forget a timer without emitting a metric."""
    _active_timers.pop(timer_id, None)


@dataclass
class TimedSpan:
    """Outcome of a timed() block; the block may overwrite either field."""
    status: str = SPAN_OK
    details: dict[str, Any] = field(default_factory=dict)


@contextmanager
def timed(
    name: str,
    *,
    call_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[TimedSpan]:
    """
    Time one block and emit its metric once, raised or not.

    A raising block is reported as "error" ("cancelled" for task
    cancellation) with the exception type in details.
    """
    span = TimedSpan(details=dict(details or {}))
    timer_id = start_timer(name)
    try:
        yield span
    except asyncio.CancelledError:
        span.status = SPAN_CANCELLED
        raise
    except BaseException as e:
        span.status = SPAN_ERROR
        span.details["error_type"] = type(e).__name__
        raise
    finally:
        stop_timer(timer_id, call_id=call_id, status=span.status, details=span.details)
