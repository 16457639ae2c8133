"""
Connection correlation for logs.

Each WebSocket connection is served by its own task, so a ContextVar set at
the top of that task tags every record emitted while handling its messages.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

# Context variable for the connection being served (task-local)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the connection id bound to the current task, if any."""
    return connection_id_var.get()


@contextmanager
def bind_connection_id(connection_id: str) -> Iterator[None]:
    """
    Bind a connection id for the duration of a block.

    Usage:
        with bind_connection_id(conn.connection_id):
            await serve(conn)
    """
    token = connection_id_var.set(connection_id)
    try:
        yield
    finally:
        connection_id_var.reset(token)


class ConnectionIdFilter(logging.Filter):
    """
    Logging filter that adds connection_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
