"""
Signaling Message Value Objects.

Inbound frames decode into a closed set of immutable variants, one per
message type. Session descriptions and connectivity candidates are opaque:
they are kept as the exact objects decoded from the frame and forwarded
untouched.

Unknown or missing type tags decode into UnknownMessage rather than
failing, so the router can log them without replying.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from broadcast_relay.components.core.constants import UNKNOWN_VIEWER_ID
from broadcast_relay.components.core.errors import MessageDecodeError


class MessageType(str, Enum):
    """Type tags of every message the relay sends or receives."""

    # Client -> relay
    REGISTER_BROADCASTER = "register-broadcaster"
    START_BROADCAST = "start-broadcast"
    REGISTER_VIEWER = "register-viewer"
    STOP_BROADCAST = "stop-broadcast"

    # Both directions
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    PING = "ping"
    PONG = "pong"

    # Relay -> client
    BROADCAST_STATUS = "broadcast-status"
    REGISTERED = "registered"
    BROADCAST_STARTED = "broadcast-started"
    BROADCAST_STOPPED = "broadcast-stopped"
    VIEWER_CONNECTED = "viewer-connected"
    VIEWER_DISCONNECTED = "viewer-disconnected"
    ERROR = "error"


class IceTarget(str, Enum):
    """Direction of an ice-candidate message."""

    BROADCASTER = "broadcaster"
    VIEWER = "viewer"


@dataclass(frozen=True, slots=True)
class RegisterBroadcaster:
    type = MessageType.REGISTER_BROADCASTER


@dataclass(frozen=True, slots=True)
class StartBroadcast:
    type = MessageType.START_BROADCAST


@dataclass(frozen=True, slots=True)
class RegisterViewer:
    type = MessageType.REGISTER_VIEWER


@dataclass(frozen=True, slots=True)
class StopBroadcast:
    type = MessageType.STOP_BROADCAST


@dataclass(frozen=True, slots=True)
class Offer:
    """Broadcaster's session description addressed to one viewer."""

    type = MessageType.OFFER

    viewer_id: Any
    offer: Any


@dataclass(frozen=True, slots=True)
class Answer:
    """
    Viewer's session description for the broadcaster.

    viewer_id falls back to UNKNOWN_VIEWER_ID when the client omits it (or
    sends an empty value), so the broadcaster always gets a string.
    """

    type = MessageType.ANSWER

    answer: Any
    viewer_id: Any = UNKNOWN_VIEWER_ID


@dataclass(frozen=True, slots=True)
class IceCandidate:
    """Connectivity candidate travelling towards `target`."""

    type = MessageType.ICE_CANDIDATE

    target: Any
    candidate: Any
    viewer_id: Any = None


@dataclass(frozen=True, slots=True)
class Ping:
    type = MessageType.PING


@dataclass(frozen=True, slots=True)
class Pong:
    type = MessageType.PONG


@dataclass(frozen=True, slots=True)
class UnknownMessage:
    """Anything with a missing or unrecognized type tag."""

    raw_type: Any


InboundMessage = Union[
    RegisterBroadcaster,
    StartBroadcast,
    RegisterViewer,
    StopBroadcast,
    Offer,
    Answer,
    IceCandidate,
    Ping,
    Pong,
    UnknownMessage,
]


def _from_dict(data: dict[str, Any]) -> InboundMessage:
    raw_type = data.get("type")

    if raw_type == MessageType.REGISTER_BROADCASTER:
        return RegisterBroadcaster()
    if raw_type == MessageType.START_BROADCAST:
        return StartBroadcast()
    if raw_type == MessageType.REGISTER_VIEWER:
        return RegisterViewer()
    if raw_type == MessageType.STOP_BROADCAST:
        return StopBroadcast()
    if raw_type == MessageType.OFFER:
        return Offer(viewer_id=data.get("viewerId"), offer=data.get("offer"))
    if raw_type == MessageType.ANSWER:
        return Answer(
            answer=data.get("answer"),
            viewer_id=data.get("viewerId") or UNKNOWN_VIEWER_ID,
        )
    if raw_type == MessageType.ICE_CANDIDATE:
        return IceCandidate(
            target=data.get("target"),
            candidate=data.get("candidate"),
            viewer_id=data.get("viewerId"),
        )
    if raw_type == MessageType.PING:
        return Ping()
    if raw_type == MessageType.PONG:
        return Pong()
    return UnknownMessage(raw_type=raw_type)


def parse_message(raw: str | bytes) -> InboundMessage:
    """
    Decode one inbound frame.

    Args:
        raw: Text frame, or binary frame holding UTF-8 JSON.

    Returns:
        The matching InboundMessage variant. A JSON value other than an
        object carries no type tag and decodes to UnknownMessage.

    Raises:
        MessageDecodeError: Frame is not UTF-8, not decodable JSON, or null.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Frame is not valid UTF-8: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Frame is not valid JSON: {e.msg}") from e
    except (ValueError, RecursionError) as e:
        # Oversized integer literals and very deep nesting
        raise MessageDecodeError(f"Frame could not be decoded: {type(e).__name__}") from e

    if data is None:
        raise MessageDecodeError("Message must not be null")
    if not isinstance(data, dict):
        return UnknownMessage(raw_type=None)

    return _from_dict(data)
