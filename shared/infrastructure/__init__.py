"""
Infrastructure helpers shared by the relay.
"""

from shared.infrastructure.correlation import (
    ConnectionIdFilter,
    bind_connection_id,
    get_connection_id,
)

__all__ = [
    "ConnectionIdFilter",
    "bind_connection_id",
    "get_connection_id",
]
