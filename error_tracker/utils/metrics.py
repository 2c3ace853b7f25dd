"""
Metrics collection and emission for the capture pipeline.

This module provides in-process counters for:
- Captured, expected and persisted failures
- Store and notification failures
- Notifications sent and throttled
- Stage latency (persist, notify)
"""

import threading
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, Deque, Dict, Optional

from error_tracker.utils.logging import get_logger

logger = get_logger(__name__)

COUNTERS = (
    "captured",
    "expected",
    "persisted",
    "store_failures",
    "notified",
    "throttled",
    "notification_failures",
)

# Latency samples kept per stage; older samples are discarded
LATENCY_SAMPLES = 1000


class PipelineMetrics:
    """
    Counts what happened to each capture.

    Counters are process-local and reset on restart; they back the status
    endpoint and are emitted as log metrics.
    """

    def __init__(self, latency_samples: int = LATENCY_SAMPLES):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in COUNTERS}
        self._latency_samples = latency_samples
        self._latencies: Dict[str, Deque[float]] = {}

    def increment(self, counter: str, amount: int = 1) -> None:
        """
        Increment a counter.

        Args:
            counter: Counter name, one of ``COUNTERS``
            amount: Amount to add
        """
        if counter not in self._counters:
            raise KeyError(f"Unknown counter: {counter}")
        with self._lock:
            self._counters[counter] += amount

    def record_latency(self, stage: str, duration_ms: float) -> None:
        """Record how long a pipeline stage took; only the latest samples are kept."""
        with self._lock:
            samples = self._latencies.get(stage)
            if samples is None:
                samples = deque(maxlen=self._latency_samples)
                self._latencies[stage] = samples
            samples.append(duration_ms)

    def get(self, counter: str) -> int:
        with self._lock:
            return self._counters[counter]

    def snapshot(self) -> Dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return dict(self._counters)

    def latency_summary(self) -> Dict[str, Dict[str, float]]:
        """
        Get latency statistics per stage over the retained samples.

        Returns:
            Mapping of stage to count/min/max/avg in milliseconds
        """
        with self._lock:
            stats = {}
            for stage, latencies in self._latencies.items():
                if latencies:
                    stats[stage] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            return stats


@asynccontextmanager
async def track_stage(metrics: Optional[PipelineMetrics], stage: str):
    """
    Context manager to time a pipeline stage.

    Usage:
        async with track_stage(metrics, "persist"):
            await store.record_error(...)

    Args:
        metrics: Metrics collector (optional)
        stage: Stage name
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        if metrics:
            metrics.record_latency(stage, (time.perf_counter() - start_time) * 1000)


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log line.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
