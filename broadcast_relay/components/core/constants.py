"""
Broadcast Relay Constants.

Centralized constants with documentation for each value.
Values marked as configurable are the defaults behind shared settings.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "RelayConstants",
    "ErrorMessages",
    "UNKNOWN_VIEWER_ID",
    "MSG_PING_PLAIN",
    "MSG_PONG_PLAIN",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the relay (RFC 6455).
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or peer evicted
    SERVER_ERROR = 1011  # Unexpected server error
    TRY_AGAIN_LATER = 1013  # Relay is shutting down, client should retry


class RelayConstants:
    """
    Relay operational constants.

    Configurable via settings.py:
    - LIVENESS_INTERVAL -> settings.ws_liveness_interval
    - SEND_TIMEOUT -> settings.ws_send_timeout
    - CLOSE_TIMEOUT -> settings.ws_close_timeout
    - MAX_MESSAGE_SIZE -> settings.ws_max_message_size
    """

    # LIVENESS_INTERVAL: 30 seconds
    # A peer that stops answering probes is evicted on the second sweep,
    # so a dead broadcaster holds the slot for at most 60 seconds.
    LIVENESS_INTERVAL: Final[float] = 30.0

    # SEND_TIMEOUT: 5 seconds
    # Upper bound for writing one frame. A stalled peer must never hold up
    # routing for the other connections.
    SEND_TIMEOUT: Final[float] = 5.0

    # CLOSE_TIMEOUT: 2 seconds
    # Forced closes of unresponsive peers do not wait for the close handshake.
    CLOSE_TIMEOUT: Final[float] = 2.0

    # MAX_MESSAGE_SIZE: 64 KB
    # Session descriptions are a few KB; anything far larger is garbage.
    MAX_MESSAGE_SIZE: Final[int] = 64 * 1024

    # VIEWER_ID_SUFFIX_LENGTH: 9 base-36 characters of randomness
    VIEWER_ID_SUFFIX_LENGTH: Final[int] = 9

    # VIEWER_ID_MAX_ATTEMPTS: retries before id generation is declared broken
    VIEWER_ID_MAX_ATTEMPTS: Final[int] = 16

    # LOG_PREVIEW_LENGTH: characters of client input echoed into logs
    LOG_PREVIEW_LENGTH: Final[int] = 100


class ErrorMessages:
    """Human-readable error texts sent to clients in `error` messages."""

    ALREADY_BROADCASTING: Final[str] = "Já existe um transmissor ativo"
    VIEWER_NOT_FOUND: Final[str] = "Espectador não encontrado"
    VIEWER_NOT_FOUND_FOR_ICE: Final[str] = "Espectador não encontrado para ICE candidate"
    INTERNAL_ERROR: Final[str] = "Erro interno do servidor"


# Viewer id reported to the broadcaster when an answer arrives without one
UNKNOWN_VIEWER_ID: Final[str] = "unknown"

# Plain-text keep-alive frames (JSON ping/pong go through the router)
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PONG_PLAIN: Final[str] = "pong"
