"""
Signaling message components.

Inbound message types, outbound message builders and the router.
"""

from broadcast_relay.components.events.types import (
    MessageType,
    IceTarget,
    InboundMessage,
    UnknownMessage,
    parse_message,
)
from broadcast_relay.components.events import outbound
from broadcast_relay.components.events.router import MessageRouter, RoutingResult

__all__ = [
    "MessageType",
    "IceTarget",
    "InboundMessage",
    "UnknownMessage",
    "parse_message",
    "outbound",
    "MessageRouter",
    "RoutingResult",
]
