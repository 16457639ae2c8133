"""
Pytest configuration and fixtures for relay tests.
"""

import asyncio
import itertools
import json

import pytest
from starlette.websockets import WebSocketState

from broadcast_relay.components.connection.connection import Connection
from broadcast_relay.components.connection.registry import ConnectionRegistry
from broadcast_relay.components.events.router import MessageRouter
from broadcast_relay.components.metrics.collector import MetricsCollector


class FakeWebSocket:
    """
    In-memory stand-in for a Starlette WebSocket.

    Records every text frame sent to it and can be told to fail or stall
    on send to exercise the relay's best-effort delivery.
    """

    def __init__(self, fail_send: bool = False, send_delay: float = 0.0):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.client = None
        self.sent: list[str] = []
        self.accepted = False
        self.close_calls: list[tuple[int, str | None]] = []
        self.fail_send = fail_send
        self.send_delay = send_delay

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_send:
            raise RuntimeError("Cannot call 'send' once a close message has been sent")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.close_calls.append((code, reason))
        self.application_state = WebSocketState.DISCONNECTED
        self.client_state = WebSocketState.DISCONNECTED

    def drop(self):
        """Simulate the peer vanishing without a close handshake."""
        self.client_state = WebSocketState.DISCONNECTED

    @property
    def messages(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    def of_type(self, message_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == message_type]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry():
    """Registry with predictable viewer ids: v1, v2, ..."""
    counter = itertools.count(1)
    return ConnectionRegistry(id_factory=lambda: f"v{next(counter)}")


@pytest.fixture
def router(registry, metrics):
    return MessageRouter(registry, metrics)


@pytest.fixture
def make_conn(metrics):
    """Factory for Connections backed by a FakeWebSocket."""

    def _make(**ws_kwargs) -> Connection:
        return Connection(
            FakeWebSocket(**ws_kwargs),
            send_timeout=0.2,
            close_timeout=0.2,
            metrics=metrics,
        )

    return _make


def frame(**fields) -> str:
    """Encode an inbound message the way a browser client would."""
    return json.dumps(fields)
