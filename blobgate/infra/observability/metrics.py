from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: bucket and key never become label values.
STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Total gateway storage operations",
    ["operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Gateway storage operation latency in seconds",
    ["operation"],
)

logger = logging.getLogger("blobgate.storage")


class OperationTracker:
    """Mutable outcome holder yielded by ``track_operation``."""

    def __init__(self) -> None:
        self.outcome = "ok"


@contextmanager
def track_operation(
    operation: str,
    *,
    bucket: str,
    key: str | None = None,
    enabled: bool = True,
) -> Iterator[OperationTracker]:
    """Time, count and log one gateway operation.

    The body may set ``tracker.outcome`` (e.g. ``"skipped"``, ``"absent"``) to
    refine the recorded outcome; an escaping exception records ``"error"``.
    """
    tracker = OperationTracker()
    start = time.perf_counter()
    try:
        yield tracker
    except Exception as exc:
        elapsed = time.perf_counter() - start
        duration_ms = round(elapsed * 1000, 3)
        if enabled:
            STORAGE_OPERATIONS.labels(operation, "error").inc()
            STORAGE_LATENCY.labels(operation).observe(elapsed)
        logger.error(
            "storage_error operation=%s bucket=%s key=%s duration_ms=%.3f",
            operation,
            bucket or "-",
            key if key is not None else "-",
            duration_ms,
            extra={
                "extra": {
                    "operation": operation,
                    "bucket": bucket,
                    "key": key,
                    "outcome": "error",
                    "duration_ms": duration_ms,
                    "exception": repr(exc),
                }
            },
        )
        raise

    elapsed = time.perf_counter() - start
    duration_ms = round(elapsed * 1000, 3)
    if enabled:
        STORAGE_OPERATIONS.labels(operation, tracker.outcome).inc()
        STORAGE_LATENCY.labels(operation).observe(elapsed)
    logger.info(
        "storage operation=%s bucket=%s key=%s outcome=%s duration_ms=%.3f",
        operation,
        bucket or "-",
        key if key is not None else "-",
        tracker.outcome,
        duration_ms,
        extra={
            "extra": {
                "operation": operation,
                "bucket": bucket,
                "key": key,
                "outcome": tracker.outcome,
                "duration_ms": duration_ms,
            }
        },
    )
