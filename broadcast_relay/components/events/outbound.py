"""
Builders for relay -> client messages.

Each builder returns the wire dict for one message type. Payloads are
inserted as-is.
"""

from __future__ import annotations

from typing import Any

from broadcast_relay.components.connection.connection import ConnectionRole
from broadcast_relay.components.events.types import MessageType


def broadcast_status(is_active: bool, viewer_count: int) -> dict[str, Any]:
    """Unsolicited snapshot sent to every newly accepted connection."""
    return {
        "type": MessageType.BROADCAST_STATUS.value,
        "isActive": is_active,
        "viewerCount": viewer_count,
    }


def registered_broadcaster(viewer_count: int) -> dict[str, Any]:
    return {
        "type": MessageType.REGISTERED.value,
        "role": ConnectionRole.BROADCASTER.value,
        "viewerCount": viewer_count,
    }


def registered_viewer(viewer_id: str, broadcast_active: bool, viewer_count: int) -> dict[str, Any]:
    return {
        "type": MessageType.REGISTERED.value,
        "role": ConnectionRole.VIEWER.value,
        "viewerId": viewer_id,
        "broadcastActive": broadcast_active,
        "viewerCount": viewer_count,
    }


def broadcast_started(viewer_count: int) -> dict[str, Any]:
    return {"type": MessageType.BROADCAST_STARTED.value, "viewerCount": viewer_count}


def broadcast_stopped() -> dict[str, Any]:
    return {"type": MessageType.BROADCAST_STOPPED.value}


def viewer_connected(viewer_id: str, viewer_count: int) -> dict[str, Any]:
    return {
        "type": MessageType.VIEWER_CONNECTED.value,
        "viewerId": viewer_id,
        "viewerCount": viewer_count,
    }


def viewer_disconnected(viewer_id: str, viewer_count: int) -> dict[str, Any]:
    return {
        "type": MessageType.VIEWER_DISCONNECTED.value,
        "viewerId": viewer_id,
        "viewerCount": viewer_count,
    }


def offer(payload: Any) -> dict[str, Any]:
    """Offer as delivered to the viewer (no viewer id, it is implied)."""
    return {"type": MessageType.OFFER.value, "offer": payload}


def answer(payload: Any, viewer_id: Any) -> dict[str, Any]:
    """Answer as delivered to the broadcaster, tagged with its viewer."""
    return {"type": MessageType.ANSWER.value, "answer": payload, "viewerId": viewer_id}


def ice_candidate_for_broadcaster(candidate: Any, viewer_id: Any) -> dict[str, Any]:
    message = {"type": MessageType.ICE_CANDIDATE.value, "candidate": candidate}
    # Omitted rather than null when the viewer did not say who it is
    if viewer_id is not None:
        message["viewerId"] = viewer_id
    return message


def ice_candidate_for_viewer(candidate: Any) -> dict[str, Any]:
    return {"type": MessageType.ICE_CANDIDATE.value, "candidate": candidate}


def pong() -> dict[str, Any]:
    return {"type": MessageType.PONG.value}


def error(message: str) -> dict[str, Any]:
    return {"type": MessageType.ERROR.value, "message": message}
