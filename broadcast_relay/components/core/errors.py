"""
Relay error taxonomy.

Every error here is handled where it is detected and answered (or not) per
message; none of them closes a connection or stops the relay.
"""


class RelayError(Exception):
    """Base class for errors raised while handling a peer's message."""


class AlreadyBroadcastingError(RelayError):
    """A broadcaster is already registered."""


class MessageDecodeError(RelayError, ValueError):
    """An inbound frame is not UTF-8 JSON describing an object."""
