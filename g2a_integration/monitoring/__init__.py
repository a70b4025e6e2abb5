from .metrics_collector import (
    MetricsCollector,
    G2AMetrics,
    Counter,
    Gauge,
    Histogram,
    Timer,
)
from .prometheus_exporter import render_prometheus

__all__ = [
    "MetricsCollector",
    "G2AMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "Timer",
    "render_prometheus",
]
