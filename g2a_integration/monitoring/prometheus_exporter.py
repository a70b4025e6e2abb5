# g2a_integration/monitoring/prometheus_exporter.py
"""
Bridges a client's in-process metrics to the Prometheus exposition format.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, SummaryMetricFamily

QUANTILES = (("0.5", "p50"), ("0.95", "p95"), ("0.99", "p99"))


def _group_by_name(metrics: Iterable[Any]) -> Dict[str, List[Any]]:
    grouped = defaultdict(list)
    for metric in metrics:
        grouped[metric.name].append(metric)
    return grouped


def _label_names(metrics: List[Any]) -> List[str]:
    names = set()
    for metric in metrics:
        names.update(metric.tags.keys())
    return sorted(names)


class ClientMetricsCollector:
    """prometheus_client collector reading from a ``MetricsCollector``."""

    def __init__(self, metrics_collector):
        self.metrics_collector = metrics_collector
        self.namespace = metrics_collector.namespace

    def collect(self):
        source = self.metrics_collector

        for name, counters in _group_by_name(list(source.counters.values())).items():
            labels = _label_names(counters)
            family = CounterMetricFamily(f"{self.namespace}_{name}", counters[0].description, labels=labels)
            for counter in counters:
                family.add_metric([counter.tags.get(label, "") for label in labels], counter.get_value())
            yield family

        for name, gauges in _group_by_name(list(source.gauges.values())).items():
            labels = _label_names(gauges)
            family = GaugeMetricFamily(f"{self.namespace}_{name}", gauges[0].description, labels=labels)
            for gauge in gauges:
                family.add_metric([gauge.tags.get(label, "") for label in labels], gauge.get_value())
            yield family

        for name, timers in _group_by_name(list(source.timers.values())).items():
            labels = _label_names(timers)
            summary = SummaryMetricFamily(f"{self.namespace}_{name}", timers[0].description, labels=labels)
            quantiles = GaugeMetricFamily(
                f"{self.namespace}_{name}_quantile",
                f"{timers[0].description} (quantiles)",
                labels=labels + ["quantile"],
            )
            for timer in timers:
                stats = timer.get_statistics()
                label_values = [timer.tags.get(label, "") for label in labels]
                summary.add_metric(label_values, count_value=stats.get("count", 0), sum_value=stats.get("sum", 0))
                for quantile, key in QUANTILES:
                    if key in stats:
                        quantiles.add_metric(label_values + [quantile], stats[key])
            yield summary
            yield quantiles


def render_prometheus(metrics_collector) -> str:
    """Render the collector's current values in Prometheus text format."""
    registry = CollectorRegistry()
    registry.register(ClientMetricsCollector(metrics_collector))
    return generate_latest(registry).decode("utf-8")
