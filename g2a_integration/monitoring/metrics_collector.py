# g2a_integration/monitoring/metrics_collector.py
"""
Metrics collection for the integration client.
Each client owns its collector; nothing here is process-global state.
"""

import time
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any, Union
from collections import deque
import json
import statistics
from contextlib import contextmanager, asynccontextmanager

from g2a_integration.monitoring.prometheus_exporter import render_prometheus


class Counter:
    """Monotonic count, e.g. request attempts or rejected webhooks."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None,
                 enabled: bool = True):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self.enabled = enabled
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, amount: Union[int, float] = 1):
        if not self.enabled:
            return
        with self._lock:
            self._value += amount

    def get_value(self) -> Union[int, float]:
        with self._lock:
            return self._value

    def reset(self):
        with self._lock:
            self._value = 0


class Gauge:
    """Point-in-time value that may move in either direction."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None,
                 enabled: bool = True):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self.enabled = enabled
        self._value = 0
        self._lock = threading.Lock()

    def set(self, value: Union[int, float]):
        if not self.enabled:
            return
        with self._lock:
            self._value = value

    def increment(self, amount: Union[int, float] = 1):
        if not self.enabled:
            return
        with self._lock:
            self._value += amount

    def decrement(self, amount: Union[int, float] = 1):
        self.increment(-amount)

    def get_value(self) -> Union[int, float]:
        with self._lock:
            return self._value

    def reset(self):
        with self._lock:
            self._value = 0


class Histogram:
    """Bounded sample of observations with summary statistics."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None,
                 enabled: bool = True, max_samples: int = 10000):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self.enabled = enabled
        self._values = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    def observe(self, value: Union[int, float]):
        if not self.enabled:
            return
        with self._lock:
            self._values.append(value)

    def get_statistics(self) -> Dict[str, float]:
        """count, sum, min, max, mean, median, stddev and p50/p95/p99 over the retained samples."""
        with self._lock:
            values = list(self._values)

        if not values:
            return {"count": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": statistics.mean(values),
            "median": statistics.median(values),
            "p50": self._percentile(values, 0.50),
            "p95": self._percentile(values, 0.95),
            "p99": self._percentile(values, 0.99),
            "stddev": statistics.stdev(values) if len(values) > 1 else 0
        }

    def _percentile(self, values: List[float], percentile: float) -> float:
        if not values:
            return 0

        sorted_values = sorted(values)
        index = int(len(sorted_values) * percentile)
        return sorted_values[min(index, len(sorted_values) - 1)]

    def reset(self):
        with self._lock:
            self._values.clear()


class Timer:
    """A timer metric for measuring durations in milliseconds."""

    def __init__(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None,
                 enabled: bool = True):
        self.name = name
        self.description = description
        self.tags = tags or {}
        self.histogram = Histogram(name, description, tags=tags, enabled=enabled)

    @contextmanager
    def time(self):
        """Record the wall time of the enclosed block."""
        start_time = time.monotonic()
        try:
            yield
        finally:
            self.record((time.monotonic() - start_time) * 1000)

    @asynccontextmanager
    async def time_async(self):
        start_time = time.monotonic()
        try:
            yield
        finally:
            self.record((time.monotonic() - start_time) * 1000)

    def record(self, duration_ms: float):
        self.histogram.observe(duration_ms)

    def get_statistics(self) -> Dict[str, float]:
        return self.histogram.get_statistics()

    def reset(self):
        self.histogram.reset()


class MetricsCollector:
    """Metrics registry owned by a single integration client."""

    def __init__(self, enabled: bool = True, namespace: str = "g2a"):
        self.enabled = enabled
        self.namespace = namespace
        self.counters: Dict[str, Counter] = {}
        self.gauges: Dict[str, Gauge] = {}
        self.timers: Dict[str, Timer] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(name: str, tags: Optional[Dict[str, str]]) -> str:
        return f"{name}:{json.dumps(tags or {}, sort_keys=True)}"

    def counter(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Counter:
        """Return the counter for (name, tags), creating it on first use."""
        key = self._key(name, tags)
        with self._lock:
            if key not in self.counters:
                self.counters[key] = Counter(name, description, tags, enabled=self.enabled)
            return self.counters[key]

    def gauge(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Gauge:
        key = self._key(name, tags)
        with self._lock:
            if key not in self.gauges:
                self.gauges[key] = Gauge(name, description, tags, enabled=self.enabled)
            return self.gauges[key]

    def timer(self, name: str, description: str = "", tags: Optional[Dict[str, str]] = None) -> Timer:
        key = self._key(name, tags)
        with self._lock:
            if key not in self.timers:
                self.timers[key] = Timer(name, description, tags, enabled=self.enabled)
            return self.timers[key]

    def snapshot(self) -> Dict[str, Any]:
        """Current values of every metric, keyed by name (tags appended when present)."""
        def label(metric) -> str:
            if not metric.tags:
                return metric.name
            tag_str = ",".join(f"{k}={v}" for k, v in sorted(metric.tags.items()))
            return f"{metric.name}{{{tag_str}}}"

        with self._lock:
            counters = list(self.counters.values())
            gauges = list(self.gauges.values())
            timers = list(self.timers.values())

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {label(c): c.get_value() for c in counters},
            "gauges": {label(g): g.get_value() for g in gauges},
            "histograms": {label(t): t.get_statistics() for t in timers},
        }

    def reset(self):
        with self._lock:
            metrics = [*self.counters.values(), *self.gauges.values(), *self.timers.values()]
        for metric in metrics:
            metric.reset()

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        return render_prometheus(self)


class G2AMetrics:
    """Predefined metrics for partner API traffic and webhooks."""

    def __init__(self, collector: Optional[MetricsCollector] = None, enabled: bool = True):
        self.collector = collector or MetricsCollector(enabled=enabled)

        self.requests_total = self.collector.counter(
            "requests_total",
            "Total number of partner API request attempts"
        )
        self.requests_success = self.collector.counter(
            "requests_success",
            "Partner API requests that succeeded"
        )
        self.requests_error = self.collector.counter(
            "requests_error",
            "Partner API requests that failed terminally"
        )
        self.requests_retry = self.collector.counter(
            "requests_retry",
            "Retries scheduled after a failed attempt"
        )
        self.request_duration = self.collector.timer(
            "request_duration_ms",
            "Partner API request latency in milliseconds"
        )
        self.circuit_breaker_opened = self.collector.counter(
            "circuit_breaker_opened",
            "Number of times a circuit breaker opened"
        )
        self.rate_limit_denied = self.collector.counter(
            "rate_limit_denied",
            "Requests denied by the local rate limiter"
        )
        self.webhook_total = self.collector.counter(
            "webhook_total",
            "Inbound webhooks received"
        )
        self.webhook_valid = self.collector.counter(
            "webhook_valid",
            "Inbound webhooks with a valid signature"
        )
        self.webhook_invalid = self.collector.counter(
            "webhook_invalid",
            "Inbound webhooks rejected for an invalid signature"
        )

    def snapshot(self) -> Dict[str, Any]:
        return self.collector.snapshot()

    def latency_percentiles(self) -> Dict[str, float]:
        return self.request_duration.get_statistics()

    def export_prometheus(self) -> str:
        return self.collector.export_prometheus()

    def reset(self):
        self.collector.reset()
