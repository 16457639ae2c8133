"""
Metrics and observability components.

Internal metrics collection and Prometheus exposition.
"""

from broadcast_relay.components.metrics.collector import (
    MetricsCollector,
    ConnectionMetrics,
    MessageMetrics,
    RoutingMetrics,
    LivenessMetrics,
)
from broadcast_relay.components.metrics.prometheus import (
    MetricDefinition,
    PrometheusFormatter,
    generate_prometheus_metrics,
)

__all__ = [
    # Metrics collector
    "MetricsCollector",
    "ConnectionMetrics",
    "MessageMetrics",
    "RoutingMetrics",
    "LivenessMetrics",
    # Prometheus
    "MetricDefinition",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
]
