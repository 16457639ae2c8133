"""
WebSocket endpoint components.
"""

from broadcast_relay.components.endpoints.base import SignalingEndpoint
from broadcast_relay.components.endpoints.mixins import (
    MessageValidationMixin,
    ConnectionLifecycleMixin,
)

__all__ = [
    "SignalingEndpoint",
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
]
