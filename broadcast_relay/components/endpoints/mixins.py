"""
Signaling Endpoint Mixins.

Each mixin handles a single concern for the signaling endpoint.

Mixins:
    MessageValidationMixin: Inbound frame size check
    ConnectionLifecycleMixin: Connect / disconnect logging

Usage:
    class MyEndpoint(MessageValidationMixin, ConnectionLifecycleMixin):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from broadcast_relay.components.core.constants import ErrorMessages
from broadcast_relay.components.events import outbound
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from broadcast_relay.components.connection.connection import Connection

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasConnection(Protocol):
    """Protocol for classes serving one relay connection."""

    websocket: WebSocket
    endpoint_name: str
    connection: "Connection | None"
    max_message_size: int


def frame_size(data: str | bytes) -> int:
    """Size of a frame in bytes as it travelled on the wire."""
    if isinstance(data, str):
        return len(data.encode("utf-8"))
    return len(data)


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound frame validation.

    Oversized frames are answered with the generic error message and
    discarded; the connection stays open, the same as for malformed JSON.

    Requires:
        - self.endpoint_name: str
        - self.connection: Connection | None
        - self.max_message_size: int
    """

    async def validate_message_size(self: HasConnection, data: str | bytes) -> bool:
        """
        Validate frame size against the configured limit.

        Returns:
            True if the frame may be processed, False if it was rejected.
        """
        size = frame_size(data)
        if size <= self.max_message_size:
            return True

        logger.warning(
            "Message size exceeded limit",
            endpoint=self.endpoint_name,
            size=size,
            max_size=self.max_message_size,
        )
        if self.connection is not None:
            if self.connection.metrics:
                self.connection.metrics.increment_decode_errors()
            await self.connection.send(outbound.error(ErrorMessages.INTERNAL_ERROR))
        return False


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.endpoint_name: str
        - self.connection: Connection | None
    """

    def log_connect(self: HasConnection) -> None:
        logger.info(
            "Client connected",
            endpoint=self.endpoint_name,
            client=_client_address(self.websocket),
        )

    def log_disconnect(self: HasConnection, reason: str = "client_disconnect") -> None:
        role = self.connection.role.value if self.connection else "unknown"
        logger.info(
            "Client disconnected",
            endpoint=self.endpoint_name,
            role=role,
            reason=reason,
        )

    def log_connect_rejected(self: HasConnection, reason: str) -> None:
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            client=_client_address(self.websocket),
            reason=reason,
        )


def _client_address(websocket: WebSocket) -> str:
    client = websocket.client
    if client is None:
        return "unknown"
    return f"{client.host}:{client.port}"


__all__ = [
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
    "HasConnection",
    "frame_size",
]
