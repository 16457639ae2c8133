"""
Relay-side view of one WebSocket peer.

Wraps the transport socket with a role tag, a liveness flag and, for
viewers, the registry-assigned id. Sends are best-effort: they never raise,
never outlive the send timeout, and are serialized per connection so that
frames from concurrent routing tasks cannot interleave.
"""

from __future__ import annotations

import asyncio
import json
import secrets
from enum import Enum
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocketDisconnect, WebSocketState

from broadcast_relay.components.core.constants import RelayConstants, WSCloseCode
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from broadcast_relay.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionRole(str, Enum):
    """Role a connection has been promoted to by its registration message."""

    UNASSIGNED = "unassigned"
    BROADCASTER = "broadcaster"
    VIEWER = "viewer"


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if a WebSocket is still connected in both directions.

    Starlette only exposes CONNECTING / CONNECTED / DISCONNECTED, so a socket
    may look connected for a moment after the peer went away.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class Connection:
    """
    One accepted WebSocket peer.

    Attributes:
        websocket: The underlying transport socket.
        connection_id: Short random handle used in logs.
        role: Current ConnectionRole.
        viewer_id: Registry-assigned id, set only for viewers.
        alive: Liveness flag; cleared by probes and failed sends,
            set again by probe acknowledgements and inbound frames.
        released: True once the shared cleanup routine has run.
    """

    def __init__(
        self,
        websocket: "WebSocket",
        send_timeout: float = RelayConstants.SEND_TIMEOUT,
        close_timeout: float = RelayConstants.CLOSE_TIMEOUT,
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self.websocket = websocket
        self.connection_id = secrets.token_hex(4)
        self.role = ConnectionRole.UNASSIGNED
        self.viewer_id: str | None = None
        self.alive = True
        self.released = False

        self._send_timeout = send_timeout
        self._close_timeout = close_timeout
        self._metrics = metrics
        self._send_lock = asyncio.Lock()
        self._closing = False

    def __repr__(self) -> str:
        return (
            f"Connection(id={self.connection_id!r}, role={self.role.value!r}, "
            f"viewer_id={self.viewer_id!r}, alive={self.alive})"
        )

    @property
    def is_open(self) -> bool:
        """Whether frames can still be written to this connection."""
        return not self._closing and not self.released and is_ws_connected(self.websocket)

    @property
    def metrics(self) -> "MetricsCollector | None":
        return self._metrics

    @property
    def is_broadcaster(self) -> bool:
        return self.role == ConnectionRole.BROADCASTER

    @property
    def is_viewer(self) -> bool:
        return self.role == ConnectionRole.VIEWER

    # =========================================================================
    # Liveness
    # =========================================================================

    def mark_alive(self) -> None:
        """Record a probe acknowledgement."""
        self.alive = True

    def mark_suspect(self) -> None:
        """Record that a probe is outstanding."""
        self.alive = False

    def probe(self) -> bool:
        """
        Transport-level liveness probe.

        Ping/pong frames are exchanged by the ASGI server itself
        (ws_ping_interval / ws_ping_timeout), which closes the socket once
        a peer stops answering. The probe is acknowledged while the socket
        is still open in both directions.
        """
        return self.is_open

    # =========================================================================
    # Transport
    # =========================================================================

    async def send(self, message: dict[str, Any]) -> bool:
        """
        Serialize and send a message, best-effort.

        A closed socket is a silent no-op. Any transport failure or timeout
        is logged and clears the liveness flag so the next liveness sweep
        reaps the connection.

        Returns:
            True if the frame was handed to the transport.
        """
        if not self.is_open:
            logger.debug(
                "Skipping send to closed connection",
                target=self.connection_id,
                message_type=message.get("type"),
            )
            return False

        payload = json.dumps(message)
        try:
            await asyncio.wait_for(self._send_locked(payload), timeout=self._send_timeout)
            return True
        except asyncio.TimeoutError:
            reason = "timeout"
        except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError) as e:
            reason = f"{type(e).__name__}: {e}"

        self.alive = False
        if self._metrics is not None:
            self._metrics.increment_send_failures()
        logger.warning(
            "Failed to send message",
            target=self.connection_id,
            message_type=message.get("type"),
            reason=reason,
        )
        return False

    async def _send_locked(self, payload: str) -> None:
        async with self._send_lock:
            await self.websocket.send_text(payload)

    async def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        """
        Close the transport, best-effort and bounded by the close timeout.

        Idempotent; failures are logged at DEBUG since the peer is usually
        already gone when a forced close is needed.
        """
        if self._closing:
            return
        self._closing = True
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await asyncio.wait_for(
                self.websocket.close(code=code, reason=reason),
                timeout=self._close_timeout,
            )
        except asyncio.TimeoutError:
            logger.debug("Timed out closing connection", target=self.connection_id)
        except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError) as e:
            logger.debug(
                "Failed to close connection",
                target=self.connection_id,
                error=str(e),
            )
