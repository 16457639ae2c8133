"""
Core relay components.

Constants, error types and log sanitizing.
"""

from broadcast_relay.components.core.constants import (
    WSCloseCode,
    RelayConstants,
    ErrorMessages,
    UNKNOWN_VIEWER_ID,
    MSG_PING_PLAIN,
    MSG_PONG_PLAIN,
)
from broadcast_relay.components.core.errors import (
    RelayError,
    AlreadyBroadcastingError,
    MessageDecodeError,
)
from broadcast_relay.components.core.sanitize import sanitize_log_data

__all__ = [
    # Constants
    "WSCloseCode",
    "RelayConstants",
    "ErrorMessages",
    "UNKNOWN_VIEWER_ID",
    "MSG_PING_PLAIN",
    "MSG_PONG_PLAIN",
    # Errors
    "RelayError",
    "AlreadyBroadcastingError",
    "MessageDecodeError",
    # Logging helpers
    "sanitize_log_data",
]
