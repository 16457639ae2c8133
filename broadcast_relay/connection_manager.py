"""
Relay Connection Manager.

Thin orchestrator that composes the relay components:
- ConnectionRegistry: broadcaster slot and viewer table
- MessageRouter: inbound message dispatch
- LivenessMonitor: periodic probe and eviction
- MetricsCollector: counters for health and metrics endpoints

It also tracks every open connection (including ones that never
registered) and owns the one cleanup routine every kind of disconnect
goes through.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from shared.config.logging import get_logger
from shared.config.settings import settings
from broadcast_relay.components.connection.connection import Connection
from broadcast_relay.components.connection.heartbeat import LivenessMonitor
from broadcast_relay.components.connection.registry import ConnectionRegistry
from broadcast_relay.components.core.constants import WSCloseCode
from broadcast_relay.components.events import outbound
from broadcast_relay.components.events.router import MessageRouter, RoutingResult
from broadcast_relay.components.metrics.collector import MetricsCollector

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages relay connections from accept to release.

    Configuration from settings:
    - ws_liveness_interval: Seconds between liveness sweeps (default: 30)
    - ws_send_timeout: Upper bound for one outbound frame (default: 5)
    - ws_close_timeout: Upper bound for a forced close (default: 2)
    """

    def __init__(
        self,
        registry: ConnectionRegistry | None = None,
        liveness_interval: float | None = None,
        send_timeout: float | None = None,
        close_timeout: float | None = None,
    ) -> None:
        self._send_timeout = send_timeout if send_timeout is not None else settings.ws_send_timeout
        self._close_timeout = close_timeout if close_timeout is not None else settings.ws_close_timeout

        self._metrics = MetricsCollector()
        self._registry = registry or ConnectionRegistry()
        self._router = MessageRouter(self._registry, self._metrics)
        self._monitor = LivenessMonitor(
            get_connections=lambda: list(self._connections.values()),
            terminate=self.terminate,
            interval=liveness_interval if liveness_interval is not None else settings.ws_liveness_interval,
            metrics=self._metrics,
        )

        self._connections: dict[str, Connection] = {}
        self._shutdown = False

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def router(self) -> MessageRouter:
        return self._router

    @property
    def monitor(self) -> LivenessMonitor:
        return self._monitor

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def total_connections(self) -> int:
        """Number of open connections, registered or not."""
        return len(self._connections)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start background tasks. Call from the application lifespan."""
        self._shutdown = False
        self._monitor.start()

    async def shutdown(self) -> None:
        """Stop the liveness monitor and close every open connection."""
        self._shutdown = True
        await self._monitor.stop()

        open_connections = self.connections()
        for conn in open_connections:
            await conn.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down")
            await self.disconnect(conn)
        if open_connections:
            logger.info("Closed connections on shutdown", count=len(open_connections))

    async def connect(self, websocket: "WebSocket") -> Connection | None:
        """
        Accept a WebSocket and send it the current broadcast status.

        Returns:
            The new Connection, or None if the relay is shutting down.
        """
        if self._shutdown:
            self._metrics.increment_rejected_shutdown()
            await websocket.close(code=WSCloseCode.TRY_AGAIN_LATER, reason="Server shutting down")
            return None

        await websocket.accept()
        conn = Connection(
            websocket,
            send_timeout=self._send_timeout,
            close_timeout=self._close_timeout,
            metrics=self._metrics,
        )
        self._connections[conn.connection_id] = conn
        self._metrics.increment_connections_accepted()

        await conn.send(
            outbound.broadcast_status(self._registry.broadcast_active, self._registry.viewer_count)
        )
        return conn

    async def route(self, conn: Connection, data: str | bytes) -> RoutingResult:
        """Dispatch one inbound frame from conn."""
        return await self._router.route(conn, data)

    async def disconnect(self, conn: Connection) -> None:
        """
        Release a connection: forget it and drop its registry entries.

        Shared by graceful close, transport errors, shutdown and liveness
        eviction. Idempotent, so peers are notified at most once.
        """
        if conn.released:
            return
        conn.released = True
        self._connections.pop(conn.connection_id, None)
        self._metrics.increment_connections_closed()

        await self._registry.remove_connection(conn)
        logger.debug(
            "Connection released",
            target=conn.connection_id,
            role=conn.role.value,
            open_connections=len(self._connections),
        )

    async def terminate(self, conn: Connection, reason: str = "Liveness timeout") -> None:
        """Force-close the transport, then run the shared cleanup."""
        await conn.close(code=WSCloseCode.GOING_AWAY, reason=reason)
        await self.disconnect(conn)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Snapshot for health and metrics endpoints."""
        return {
            "open_connections": self.total_connections,
            "broadcaster_active": self._registry.broadcast_active,
            "viewer_count": self._registry.viewer_count,
            "liveness_interval": self._monitor.interval,
            "liveness_monitor_running": self._monitor.is_running,
        }
