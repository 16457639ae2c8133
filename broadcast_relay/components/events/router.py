"""
Message Router - dispatches inbound signaling messages.

Each decoded message is handed to the handler registered for its variant.
Handlers act on the ConnectionRegistry and forward opaque negotiation
payloads to the right peer.

Usage:
    router = MessageRouter(registry, metrics)
    result = await router.route(conn, raw_frame)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from broadcast_relay.components.core.constants import ErrorMessages
from broadcast_relay.components.core.errors import AlreadyBroadcastingError, MessageDecodeError
from broadcast_relay.components.core.sanitize import sanitize_log_data
from broadcast_relay.components.events import outbound
from broadcast_relay.components.events.types import (
    Answer,
    IceCandidate,
    IceTarget,
    InboundMessage,
    Offer,
    Ping,
    Pong,
    RegisterBroadcaster,
    RegisterViewer,
    StartBroadcast,
    StopBroadcast,
    UnknownMessage,
    parse_message,
)
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from broadcast_relay.components.connection.connection import Connection
    from broadcast_relay.components.connection.registry import ConnectionRegistry
    from broadcast_relay.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


@dataclass
class RoutingResult:
    """Outcome of routing one inbound frame."""

    message_type: str | None = None
    delivered: int = 0
    error: str | None = None
    dropped: bool = False

    @property
    def success(self) -> bool:
        """Whether the message was handled without an error reply."""
        return self.error is None


Handler = Callable[["Connection", InboundMessage], Awaitable[RoutingResult]]


class MessageRouter:
    """
    Routes signaling messages between the broadcaster and its viewers.

    Routing rules:
    - register-broadcaster: claim the slot, reply registered / error
    - start-broadcast: broadcast-started to viewers, viewer-connected per
      viewer to the broadcaster
    - register-viewer: assign an id, reply registered, tell the broadcaster
    - offer: broadcaster -> one viewer (error to sender if unknown)
    - answer: viewer -> broadcaster (dropped if none)
    - ice-candidate: either direction per `target`
    - stop-broadcast: broadcast-stopped to viewers (slot is kept)
    - ping / pong: keep-alive
    - anything else: logged, never answered
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._handlers: dict[type, Handler] = {
            RegisterBroadcaster: self._on_register_broadcaster,
            StartBroadcast: self._on_start_broadcast,
            RegisterViewer: self._on_register_viewer,
            Offer: self._on_offer,
            Answer: self._on_answer,
            IceCandidate: self._on_ice_candidate,
            StopBroadcast: self._on_stop_broadcast,
            Ping: self._on_ping,
            Pong: self._on_pong,
            UnknownMessage: self._on_unknown,
        }

    async def route(self, src: "Connection", raw: str | bytes) -> RoutingResult:
        """
        Decode one frame from src and dispatch it.

        Never raises: decode failures and unexpected handler errors are
        logged and answered with a generic internal-error message, and the
        connection stays usable.
        """
        try:
            message = parse_message(raw)
        except Exception as e:
            if isinstance(e, MessageDecodeError):
                logger.warning(
                    "Malformed message received",
                    error=str(e),
                    message=sanitize_log_data(raw),
                )
            else:
                logger.error("Unexpected error decoding message", error=str(e), exc_info=True)
            if self._metrics:
                self._metrics.increment_decode_errors()
            await src.send(outbound.error(ErrorMessages.INTERNAL_ERROR))
            return RoutingResult(error=ErrorMessages.INTERNAL_ERROR)

        message_type = getattr(message, "type", None)
        if message_type is not None:
            logger.debug("Message received", message_type=message_type.value)
            if self._metrics:
                self._metrics.increment_messages_received(message_type.value)

        handler = self._handlers[type(message)]
        try:
            return await handler(src, message)
        except Exception as e:
            logger.error(
                "Error processing message",
                message_type=message_type.value if message_type else None,
                error=str(e),
                exc_info=True,
            )
            if self._metrics:
                self._metrics.increment_handler_errors()
            await src.send(outbound.error(ErrorMessages.INTERNAL_ERROR))
            return RoutingResult(
                message_type=message_type.value if message_type else None,
                error=ErrorMessages.INTERNAL_ERROR,
            )

    # =========================================================================
    # Registration
    # =========================================================================

    async def _on_register_broadcaster(
        self, src: "Connection", message: RegisterBroadcaster
    ) -> RoutingResult:
        result = RoutingResult(message_type=message.type.value)
        try:
            await self._registry.register_broadcaster(src)
        except AlreadyBroadcastingError:
            logger.warning("Second broadcaster registration rejected")
            if self._metrics:
                self._metrics.increment_broadcaster_conflicts()
            await src.send(outbound.error(ErrorMessages.ALREADY_BROADCASTING))
            result.error = ErrorMessages.ALREADY_BROADCASTING
            return result

        if await src.send(outbound.registered_broadcaster(self._registry.viewer_count)):
            result.delivered = 1
        return result

    async def _on_register_viewer(
        self, src: "Connection", message: RegisterViewer
    ) -> RoutingResult:
        result = RoutingResult(message_type=message.type.value)
        viewer_id = await self._registry.register_viewer(src)

        reply = outbound.registered_viewer(
            viewer_id,
            broadcast_active=self._registry.broadcast_active,
            viewer_count=self._registry.viewer_count,
        )
        if await src.send(reply):
            result.delivered += 1
        if await self._registry.announce_viewer(viewer_id):
            result.delivered += 1
        return result

    # =========================================================================
    # Broadcast lifecycle
    # =========================================================================

    async def _on_start_broadcast(
        self, src: "Connection", message: StartBroadcast
    ) -> RoutingResult:
        # Accepted from any connection; only the sender identity is checked for logging
        broadcaster = self._registry.current_broadcaster
        if src is not broadcaster:
            logger.warning("start-broadcast received from a connection that is not the broadcaster")
        else:
            logger.info("Broadcast started by broadcaster")

        result = RoutingResult(message_type=message.type.value)
        result.delivered = await self._registry.notify_viewers(
            lambda: outbound.broadcast_started(self._registry.viewer_count)
        )

        broadcaster = self._registry.current_broadcaster
        if broadcaster is not None:
            for viewer_id in self._registry.viewer_ids():
                sent = await broadcaster.send(
                    outbound.viewer_connected(viewer_id, self._registry.viewer_count)
                )
                if sent:
                    result.delivered += 1
        return result

    async def _on_stop_broadcast(
        self, src: "Connection", message: StopBroadcast
    ) -> RoutingResult:
        # The broadcaster slot is kept: the same connection may start again
        logger.info("Broadcast stopped on request", viewer_count=self._registry.viewer_count)
        delivered = await self._registry.notify_viewers(outbound.broadcast_stopped)
        return RoutingResult(message_type=message.type.value, delivered=delivered)

    # =========================================================================
    # Negotiation forwarding
    # =========================================================================

    async def _on_offer(self, src: "Connection", message: Offer) -> RoutingResult:
        result = RoutingResult(message_type=message.type.value)
        target = self._registry.lookup_viewer(message.viewer_id)
        if target is None:
            logger.warning(
                "Offer target viewer not found",
                viewer_id=sanitize_log_data(message.viewer_id),
            )
            if self._metrics:
                self._metrics.increment_lookup_misses()
            await src.send(outbound.error(ErrorMessages.VIEWER_NOT_FOUND))
            result.error = ErrorMessages.VIEWER_NOT_FOUND
            return result

        logger.debug("Forwarding offer to viewer", viewer_id=message.viewer_id)
        if await target.send(outbound.offer(message.offer)):
            result.delivered = 1
        return result

    async def _on_answer(self, src: "Connection", message: Answer) -> RoutingResult:
        result = RoutingResult(message_type=message.type.value)
        broadcaster = self._registry.current_broadcaster
        if broadcaster is None:
            logger.debug("Answer dropped, no broadcaster registered")
            if self._metrics:
                self._metrics.increment_dropped_no_broadcaster()
            result.dropped = True
            return result

        logger.debug("Forwarding answer to broadcaster", viewer_id=sanitize_log_data(message.viewer_id))
        if await broadcaster.send(outbound.answer(message.answer, message.viewer_id)):
            result.delivered = 1
        return result

    async def _on_ice_candidate(
        self, src: "Connection", message: IceCandidate
    ) -> RoutingResult:
        result = RoutingResult(message_type=message.type.value)

        if message.target == IceTarget.BROADCASTER:
            broadcaster = self._registry.current_broadcaster
            if broadcaster is None:
                logger.debug("ICE candidate dropped, no broadcaster registered")
                if self._metrics:
                    self._metrics.increment_dropped_no_broadcaster()
                result.dropped = True
                return result
            if await broadcaster.send(
                outbound.ice_candidate_for_broadcaster(message.candidate, message.viewer_id)
            ):
                result.delivered = 1
            return result

        if message.target == IceTarget.VIEWER and message.viewer_id:
            target = self._registry.lookup_viewer(message.viewer_id)
            if target is None:
                logger.warning(
                    "ICE candidate target viewer not found",
                    viewer_id=sanitize_log_data(message.viewer_id),
                )
                if self._metrics:
                    self._metrics.increment_lookup_misses()
                await src.send(outbound.error(ErrorMessages.VIEWER_NOT_FOUND_FOR_ICE))
                result.error = ErrorMessages.VIEWER_NOT_FOUND_FOR_ICE
                return result
            if await target.send(outbound.ice_candidate_for_viewer(message.candidate)):
                result.delivered = 1
            return result

        logger.debug(
            "ICE candidate without a usable target ignored",
            target=sanitize_log_data(message.target),
        )
        result.dropped = True
        return result

    # =========================================================================
    # Keep-alive and unknown
    # =========================================================================

    async def _on_ping(self, src: "Connection", message: Ping) -> RoutingResult:
        src.mark_alive()
        delivered = 1 if await src.send(outbound.pong()) else 0
        return RoutingResult(message_type=message.type.value, delivered=delivered)

    async def _on_pong(self, src: "Connection", message: Pong) -> RoutingResult:
        src.mark_alive()
        return RoutingResult(message_type=message.type.value)

    async def _on_unknown(self, src: "Connection", message: UnknownMessage) -> RoutingResult:
        logger.warning(
            "Unknown message type",
            message_type=sanitize_log_data(message.raw_type),
        )
        if self._metrics:
            self._metrics.increment_unknown_type()
        return RoutingResult(dropped=True)
