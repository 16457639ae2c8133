"""
Connection lifecycle components.

Connection wrapper, broadcaster/viewer registry and liveness monitor.
"""

from broadcast_relay.components.connection.connection import (
    Connection,
    ConnectionRole,
    is_ws_connected,
)
from broadcast_relay.components.connection.heartbeat import (
    LivenessMonitor,
    handle_heartbeat,
)
from broadcast_relay.components.connection.registry import (
    ConnectionRegistry,
    default_viewer_id_factory,
)

__all__ = [
    "Connection",
    "ConnectionRole",
    "is_ws_connected",
    "LivenessMonitor",
    "handle_heartbeat",
    "ConnectionRegistry",
    "default_viewer_id_factory",
]
