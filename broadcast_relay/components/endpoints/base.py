"""
Signaling WebSocket Endpoint.

Drives one client connection through its whole lifecycle:

1. Accept (or reject while shutting down) via the ConnectionManager
2. Message loop: proof of life, size check, plain-text heartbeat, then routing
3. Shared cleanup on disconnect, whatever the cause

Usage:
    endpoint = SignalingEndpoint(websocket, manager, "/")
    await endpoint.run()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from broadcast_relay.components.connection.connection import Connection
from broadcast_relay.components.connection.heartbeat import handle_heartbeat
from broadcast_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.correlation import bind_connection_id

if TYPE_CHECKING:
    from broadcast_relay.connection_manager import ConnectionManager

logger = get_logger(__name__)


class SignalingEndpoint(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
):
    """
    WebSocket endpoint shared by broadcasters and viewers.

    Every client connects to the same path; its role is decided later by
    the registration message it sends.
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        max_message_size: int | None = None,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Name for logging (the mounted path).
            max_message_size: Largest accepted frame in bytes.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.max_message_size = (
            max_message_size if max_message_size is not None else settings.ws_max_message_size
        )

        self.connection: Connection | None = None
        self._is_running = False

    async def run(self) -> None:
        """Main entry point - serve the WebSocket until it goes away."""
        self.connection = await self.manager.connect(self.websocket)
        if self.connection is None:
            self.log_connect_rejected("server_shutting_down")
            return

        with bind_connection_id(self.connection.connection_id):
            self.log_connect()
            reason = "client_disconnect"
            self._is_running = True
            try:
                await self._message_loop()
            except WebSocketDisconnect:
                pass
            except RuntimeError as e:
                # Starlette raises RuntimeError when receiving on a socket
                # that was closed from our side (liveness eviction, shutdown)
                reason = "closed_by_server"
                logger.debug("Receive on closed socket", error=str(e))
            finally:
                self._is_running = False
                await self.manager.disconnect(self.connection)
                self.log_disconnect(reason)

    async def _message_loop(self) -> None:
        while self._is_running:
            data = await self._receive()
            self.connection.mark_alive()

            if not await self.validate_message_size(data):
                continue

            if await handle_heartbeat(self.connection, data):
                continue

            await self.manager.route(self.connection, data)

    async def _receive(self) -> str | bytes:
        """
        Receive the next text or binary frame.

        Raises:
            WebSocketDisconnect: The peer closed the connection.
        """
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""
