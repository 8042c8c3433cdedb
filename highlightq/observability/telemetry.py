"""
In-process telemetry for the highlighting pipeline.

Nothing is shipped externally: counters and latencies live in module state so
the health endpoint can report them and tests can assert instrumentation.
Structured events go to the "highlightq.telemetry" logger as `event=<name>`.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("highlightq.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}


def _normalize_latency_name(metric_name: str) -> str:
    if metric_name.endswith("_ms"):
        return metric_name
    return f"{metric_name}_ms"


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Callers pass fingerprints, never raw page text.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and return its new value.

    counter(name, 0) reads a counter without changing it.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
        - Writes to logger (debug level)
    """
    value = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = value
    if increment:
        logger.debug("counter=%s value=%s", name, value)
    return value


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time the enclosed block in milliseconds.

    Works across awaits inside an async function since it only reads the
    monotonic clock on entry and exit.

    Side Effects:
        - Appends to _LATENCIES dict (in-memory state)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        normalized = _normalize_latency_name(metric_name)
        _LATENCIES.setdefault(normalized, []).append(elapsed_ms)
        logger.debug("timing=%s ms=%.3f", normalized, elapsed_ms)


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """Min/max/avg/p50/p95 for a metric, zeros when nothing was recorded."""
    samples = sorted(_LATENCIES.get(_normalize_latency_name(metric_name), []))
    if not samples:
        return {"count": 0, "min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p95": 0.0}

    count = len(samples)
    return {
        "count": count,
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / count,
        "p50": samples[int(count * 0.50)],
        "p95": samples[min(int(count * 0.95), count - 1)],
    }


def snapshot_counters() -> dict[str, int]:
    return dict(_COUNTERS)


def reset() -> None:
    """
    Clear counters and latencies (tests).

    Side Effects:
        - Clears _COUNTERS and _LATENCIES
    """
    _COUNTERS.clear()
    _LATENCIES.clear()
