"""
Prometheus Metrics Export for the Broadcast Relay.

Formats internal metrics in Prometheus exposition format.
No external dependencies required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from broadcast_relay.connection_manager import ConnectionManager


PREFIX = "broadcast_relay"


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    """
    One exported sample.

    `source` is a dotted path into the combined stats document, e.g.
    "routing.send_failures" or "stats.viewer_count".
    """

    name: str
    source: str
    help_text: str
    metric_type: MetricType


METRIC_DEFINITIONS: list[MetricDefinition] = [
    # Current state
    MetricDefinition("connections_open", "stats.open_connections",
                     "Current number of open WebSocket connections", MetricType.GAUGE),
    MetricDefinition("viewers", "stats.viewer_count",
                     "Number of registered viewers", MetricType.GAUGE),
    MetricDefinition("broadcaster_active", "stats.broadcaster_active",
                     "Whether a broadcaster is registered (1) or not (0)", MetricType.GAUGE),
    # Connections
    MetricDefinition("connections_accepted_total", "connections.accepted",
                     "Total accepted WebSocket connections", MetricType.COUNTER),
    MetricDefinition("connections_closed_total", "connections.closed",
                     "Total released WebSocket connections", MetricType.COUNTER),
    MetricDefinition("connections_rejected_total", "connections.rejected_shutdown",
                     "Connections rejected while shutting down", MetricType.COUNTER),
    # Messages
    MetricDefinition("messages_malformed_total", "messages.decode_errors",
                     "Inbound frames that could not be decoded", MetricType.COUNTER),
    MetricDefinition("messages_unknown_total", "messages.unknown_type",
                     "Inbound messages with an unknown type", MetricType.COUNTER),
    MetricDefinition("handler_errors_total", "messages.handler_errors",
                     "Unexpected errors while handling a message", MetricType.COUNTER),
    # Routing
    MetricDefinition("send_failures_total", "routing.send_failures",
                     "Outbound frames that could not be delivered", MetricType.COUNTER),
    MetricDefinition("broadcaster_conflicts_total", "routing.broadcaster_conflicts",
                     "Rejected broadcaster registrations", MetricType.COUNTER),
    MetricDefinition("viewer_lookup_misses_total", "routing.lookup_misses",
                     "Messages addressed to an unknown viewer", MetricType.COUNTER),
    MetricDefinition("dropped_no_broadcaster_total", "routing.dropped_no_broadcaster",
                     "Messages for the broadcaster dropped because none is registered",
                     MetricType.COUNTER),
    # Liveness
    MetricDefinition("liveness_sweeps_total", "liveness.sweeps",
                     "Liveness sweeps run", MetricType.COUNTER),
    MetricDefinition("liveness_probes_total", "liveness.probes_sent",
                     "Liveness probes run", MetricType.COUNTER),
    MetricDefinition("liveness_evictions_total", "liveness.evictions",
                     "Connections evicted for not answering a probe", MetricType.COUNTER),
]


def _lookup(document: dict[str, Any], path: str) -> int | float:
    value: Any = document
    for key in path.split("."):
        value = value.get(key, 0) if isinstance(value, dict) else 0
    if isinstance(value, bool):
        return int(value)
    return value if isinstance(value, (int, float)) else 0


class PrometheusFormatter:
    """
    Formats relay stats and counters in Prometheus exposition format.

    Output example:
        # HELP broadcast_relay_viewers Number of registered viewers
        # TYPE broadcast_relay_viewers gauge
        broadcast_relay_viewers 3
    """

    def __init__(self, definitions: list[MetricDefinition] | None = None) -> None:
        self._definitions = definitions if definitions is not None else METRIC_DEFINITIONS

    @staticmethod
    def header(name: str, help_text: str, metric_type: MetricType) -> list[str]:
        return [f"# HELP {name} {help_text}", f"# TYPE {name} {metric_type.value}"]

    def format_all_metrics(self, stats: dict[str, Any], snapshot: dict[str, Any]) -> str:
        """
        Format all metrics.

        Args:
            stats: ConnectionManager.get_stats() output.
            snapshot: MetricsCollector.get_snapshot() output.
        """
        document = {"stats": stats, **snapshot}
        lines: list[str] = []

        for definition in self._definitions:
            name = f"{PREFIX}_{definition.name}"
            lines.extend(self.header(name, definition.help_text, definition.metric_type))
            lines.append(f"{name} {_lookup(document, definition.source)}")

        # Per-type message counts carry a label
        name = f"{PREFIX}_messages_received_total"
        lines.extend(self.header(name, "Inbound messages by type", MetricType.COUNTER))
        by_type = snapshot.get("messages", {}).get("by_type", {})
        for message_type in sorted(by_type):
            lines.append(f'{name}{{type="{message_type}"}} {by_type[message_type]}')

        name = f"{PREFIX}_scrape_timestamp"
        lines.extend(self.header(name, "Timestamp of metrics scrape", MetricType.GAUGE))
        lines.append(f"{name} {int(time.time())}")

        return "\n".join(lines) + "\n"


_formatter: PrometheusFormatter | None = None


def get_prometheus_formatter() -> PrometheusFormatter:
    """Get singleton Prometheus formatter."""
    global _formatter
    if _formatter is None:
        _formatter = PrometheusFormatter()
    return _formatter


def generate_prometheus_metrics(manager: "ConnectionManager") -> str:
    """Generate Prometheus exposition text for the given manager."""
    formatter = get_prometheus_formatter()
    return formatter.format_all_metrics(manager.get_stats(), manager.metrics.get_snapshot())
