"""Latency and counter metrics for the matching engines."""

import bisect
import json
import math
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger


@dataclass
class LatencyHistogram:
    """
    Latency distribution over fixed microsecond buckets.

    Samples above the last bucket go to a separate overflow count (the
    ``+Inf`` bucket), so percentiles that land there report ``inf`` rather
    than the last finite bound. ``max_us`` keeps the worst sample seen.
    """
    name: str
    buckets: List[float] = field(default_factory=lambda: [
        50, 100, 250, 500, 1000, 2500, 5000, 10000, 50000
    ])
    counts: Dict[float, int] = field(default_factory=dict)
    overflow: int = 0
    total_count: int = 0
    sum_us: float = 0
    max_us: float = 0

    def __post_init__(self):
        self.buckets = sorted(self.buckets)
        self.counts = {bucket: 0 for bucket in self.buckets}

    def record(self, latency_us: float) -> None:
        self.total_count += 1
        self.sum_us += latency_us
        self.max_us = max(self.max_us, latency_us)

        index = bisect.bisect_left(self.buckets, latency_us)
        if index < len(self.buckets):
            self.counts[self.buckets[index]] += 1
        else:
            self.overflow += 1

    def get_percentile(self, percentile: float) -> float:
        """Upper bound of the bucket holding the percentile; inf in the overflow bucket."""
        if self.total_count == 0:
            return 0

        target_count = self.total_count * (percentile / 100)
        cumulative = 0

        for bucket in self.buckets:
            cumulative += self.counts[bucket]
            if cumulative >= target_count:
                return bucket

        return math.inf

    def get_mean(self) -> float:
        if self.total_count == 0:
            return 0
        return self.sum_us / self.total_count

    def reset(self) -> None:
        self.counts = {bucket: 0 for bucket in self.buckets}
        self.overflow = 0
        self.total_count = 0
        self.sum_us = 0
        self.max_us = 0

    def to_dict(self) -> Dict[str, Any]:
        """Export histogram as a JSON-safe dictionary; the overflow bound is ``"+Inf"``."""
        if self.total_count == 0:
            return {"name": self.name, "count": 0, "mean": 0, "max": 0, "p50": 0, "p95": 0, "p99": 0}

        def bound(value: float) -> Any:
            return "+Inf" if math.isinf(value) else value

        buckets = {f"le_{bucket}": self.counts[bucket] for bucket in self.buckets}
        buckets["le_+Inf"] = self.overflow
        return {
            "name": self.name,
            "count": self.total_count,
            "mean": round(self.get_mean(), 1),
            "max": round(self.max_us, 1),
            "p50": bound(self.get_percentile(50)),
            "p95": bound(self.get_percentile(95)),
            "p99": bound(self.get_percentile(99)),
            "buckets": buckets,
        }


class MetricsCollector:
    """Process-wide latency histograms and counters."""

    HISTOGRAMS = ("search", "trigger.find")

    def __init__(self):
        self.histograms = {name: LatencyHistogram(name) for name in self.HISTOGRAMS}
        self.counters = defaultdict(int)

    def record_latency(self, metric_name: str, latency_us: float) -> None:
        if metric_name in self.histograms:
            self.histograms[metric_name].record(latency_us)
        else:
            logger.warning(f"Unknown metric: {metric_name}")

    def increment_counter(self, counter_name: str, amount: int = 1) -> None:
        self.counters[counter_name] += amount

    def snapshot(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "latencies_us": {
                name: hist.to_dict() for name, hist in self.histograms.items()
            },
            "counters": dict(self.counters),
        }

    def export_metrics(self) -> str:
        """Export all metrics as JSON."""
        return json.dumps(self.snapshot(), indent=2, default=str)

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        for hist in self.histograms.values():
            hist.reset()
        self.counters.clear()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


class LatencyTimer:
    """Context manager for timing operations."""

    def __init__(self, metric_name: str, metrics: Optional[MetricsCollector] = None):
        self.metric_name = metric_name
        self.start_time = None
        self.elapsed_us = 0.0
        self.metrics = metrics or get_metrics()

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.elapsed_us = (time.perf_counter() - self.start_time) * 1_000_000
            self.metrics.record_latency(self.metric_name, self.elapsed_us)
        return False
