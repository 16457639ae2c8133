"""
Metrics Collector for the Broadcast Relay.

Centralizes counters for observability. Increments are plain sync calls
guarded by a threading.Lock so they can be made from any context,
including the sync health endpoint.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class ConnectionMetrics:
    """Connection lifecycle counters."""
    accepted: int = 0
    closed: int = 0
    rejected_shutdown: int = 0


@dataclass
class MessageMetrics:
    """Inbound message counters."""
    received: int = 0
    decode_errors: int = 0
    handler_errors: int = 0
    unknown_type: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass
class RoutingMetrics:
    """Routing outcome counters."""
    send_failures: int = 0
    broadcaster_conflicts: int = 0
    lookup_misses: int = 0
    dropped_no_broadcaster: int = 0


@dataclass
class LivenessMetrics:
    """Liveness monitor counters."""
    sweeps: int = 0
    probes_sent: int = 0
    evictions: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_messages_received("offer")
        snapshot = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._message = MessageMetrics()
        self._routing = RoutingMetrics()
        self._liveness = LivenessMetrics()

    # ==========================================================================
    # Connections
    # ==========================================================================

    def increment_connections_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_connections_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def increment_rejected_shutdown(self) -> None:
        with self._lock:
            self._connection.rejected_shutdown += 1

    # ==========================================================================
    # Messages
    # ==========================================================================

    def increment_messages_received(self, message_type: str) -> None:
        """Count one inbound message of the given (known) type."""
        with self._lock:
            self._message.received += 1
            by_type = self._message.by_type
            by_type[message_type] = by_type.get(message_type, 0) + 1

    def increment_decode_errors(self) -> None:
        with self._lock:
            self._message.received += 1
            self._message.decode_errors += 1

    def increment_unknown_type(self) -> None:
        with self._lock:
            self._message.received += 1
            self._message.unknown_type += 1

    def increment_handler_errors(self) -> None:
        with self._lock:
            self._message.handler_errors += 1

    # ==========================================================================
    # Routing
    # ==========================================================================

    def increment_send_failures(self) -> None:
        with self._lock:
            self._routing.send_failures += 1

    def increment_broadcaster_conflicts(self) -> None:
        with self._lock:
            self._routing.broadcaster_conflicts += 1

    def increment_lookup_misses(self) -> None:
        with self._lock:
            self._routing.lookup_misses += 1

    def increment_dropped_no_broadcaster(self) -> None:
        with self._lock:
            self._routing.dropped_no_broadcaster += 1

    # ==========================================================================
    # Liveness
    # ==========================================================================

    def increment_sweeps(self) -> None:
        with self._lock:
            self._liveness.sweeps += 1

    def increment_probes_sent(self, count: int = 1) -> None:
        with self._lock:
            self._liveness.probes_sent += count

    def increment_evictions(self) -> None:
        with self._lock:
            self._liveness.evictions += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """Return a deep copy of all counters, grouped by area."""
        with self._lock:
            return {
                "connections": asdict(self._connection),
                "messages": asdict(self._message),
                "routing": asdict(self._routing),
                "liveness": asdict(self._liveness),
            }
