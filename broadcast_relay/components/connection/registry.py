"""
Connection Registry - owns the broadcaster slot and the viewer table.

Invariants:
- At most one broadcaster. A second registration while the slot is taken
  fails without touching any state.
- Viewer ids are generated here, never by clients, and are unique for the
  registry's lifetime.
- Every viewerCount sent to a peer is read from the live table when the
  message is built.

All mutations run under a single asyncio.Lock. Peer notifications are sent
after the lock is released; a slow peer never holds up other registrations.
"""

from __future__ import annotations

import asyncio
import itertools
import secrets
import string
import time
from typing import Any, Callable, Iterator

from broadcast_relay.components.connection.connection import Connection, ConnectionRole
from broadcast_relay.components.core.constants import RelayConstants
from broadcast_relay.components.core.errors import AlreadyBroadcastingError
from broadcast_relay.components.events import outbound
from shared.config.logging import get_logger

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def default_viewer_id_factory() -> Callable[[], str]:
    """
    Build the default viewer id generator.

    Ids look like "<epoch millis>_<sequence>_<9 random base-36 chars>". The
    per-generator sequence makes them unique for the generator's lifetime
    even if the clock stalls or goes backwards.
    """
    sequence = itertools.count(1)

    def generate() -> str:
        millis = int(time.time() * 1000)
        suffix = "".join(
            secrets.choice(_BASE36) for _ in range(RelayConstants.VIEWER_ID_SUFFIX_LENGTH)
        )
        return f"{millis}_{next(sequence)}_{suffix}"

    return generate


class ConnectionRegistry:
    """
    Broadcaster slot plus viewerId -> Connection mapping.

    Holds non-owning references: connections are created and destroyed by
    the endpoint that accepted them and must be handed back through
    remove_connection() when they go away.
    """

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._broadcaster: Connection | None = None
        self._viewers: dict[str, Connection] = {}
        self._lock = asyncio.Lock()
        self._id_factory = id_factory or default_viewer_id_factory()

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def current_broadcaster(self) -> Connection | None:
        return self._broadcaster

    @property
    def broadcast_active(self) -> bool:
        return self._broadcaster is not None

    @property
    def viewer_count(self) -> int:
        return len(self._viewers)

    def lookup_viewer(self, viewer_id: Any) -> Connection | None:
        """Find a viewer by id. Ids that are not strings never match."""
        if not isinstance(viewer_id, str):
            return None
        return self._viewers.get(viewer_id)

    def viewer_ids(self) -> list[str]:
        return list(self._viewers)

    def viewer_connections(self) -> list[Connection]:
        return list(self._viewers.values())

    def __iter__(self) -> Iterator[tuple[str, Connection]]:
        return iter(list(self._viewers.items()))

    # =========================================================================
    # Notifications
    # =========================================================================

    async def notify_viewers(self, build: Callable[[], dict[str, Any]]) -> int:
        """
        Send a message to every current viewer, concurrently and best-effort.

        Args:
            build: Message builder, called at send time so counts are current.

        Returns:
            Number of viewers the message was delivered to.
        """
        viewers = self.viewer_connections()
        if not viewers:
            return 0
        message = build()
        results = await asyncio.gather(*(viewer.send(message) for viewer in viewers))
        return sum(1 for delivered in results if delivered)

    async def _notify_broadcaster(self, message: dict[str, Any]) -> bool:
        broadcaster = self._broadcaster
        if broadcaster is None:
            return False
        return await broadcaster.send(message)

    # =========================================================================
    # Broadcaster slot
    # =========================================================================

    async def register_broadcaster(self, conn: Connection) -> int:
        """
        Claim the broadcaster slot and tell every viewer the broadcast started.

        Returns:
            Current viewer count.

        Raises:
            AlreadyBroadcastingError: The slot is taken (by anyone, including conn).
        """
        async with self._lock:
            if self._broadcaster is not None:
                raise AlreadyBroadcastingError("A broadcaster is already registered")
            self._broadcaster = conn
            conn.role = ConnectionRole.BROADCASTER

        logger.info("Broadcaster registered", viewer_count=self.viewer_count)
        await self.notify_viewers(lambda: outbound.broadcast_started(self.viewer_count))
        return self.viewer_count

    async def unregister_broadcaster(self, conn: Connection) -> bool:
        """
        Release the broadcaster slot if conn holds it; viewers get broadcast-stopped.

        Returns:
            True if conn was the broadcaster.
        """
        async with self._lock:
            if self._broadcaster is not conn:
                return False
            self._broadcaster = None

        logger.info("Broadcaster disconnected", viewer_count=self.viewer_count)
        await self.notify_viewers(outbound.broadcast_stopped)
        return True

    # =========================================================================
    # Viewers
    # =========================================================================

    def _generate_viewer_id(self) -> str:
        """Must be called with the registry lock held."""
        for _ in range(RelayConstants.VIEWER_ID_MAX_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in self._viewers:
                return candidate
        raise RuntimeError("Viewer id generator keeps producing ids already in use")

    async def register_viewer(self, conn: Connection) -> str:
        """
        Assign a fresh viewer id to conn and add it to the viewer table.

        A connection that registers again gives up its previous id first, so
        the table never holds two entries for one socket.

        The broadcaster is told about the new viewer by announce_viewer(),
        which the caller issues once the viewer has its own acknowledgement.

        Returns:
            The new viewer id.
        """
        previous = conn.viewer_id
        if previous is not None and self._viewers.get(previous) is conn:
            await self.unregister_viewer(previous)

        async with self._lock:
            viewer_id = self._generate_viewer_id()
            self._viewers[viewer_id] = conn
            conn.viewer_id = viewer_id
            if conn.role == ConnectionRole.UNASSIGNED:
                conn.role = ConnectionRole.VIEWER

        logger.info("Viewer registered", viewer_id=viewer_id, viewer_count=self.viewer_count)
        return viewer_id

    async def announce_viewer(self, viewer_id: str) -> bool:
        """
        Tell the broadcaster (if any) that a viewer joined.

        Returns:
            True if a viewer-connected event was delivered.
        """
        if viewer_id not in self._viewers:
            return False
        return await self._notify_broadcaster(
            outbound.viewer_connected(viewer_id, self.viewer_count)
        )

    async def unregister_viewer(self, viewer_id: str) -> bool:
        """
        Remove a viewer; the broadcaster (if any) gets viewer-disconnected.

        Removing an id that is not present is a no-op.

        Returns:
            True if the viewer was present.
        """
        async with self._lock:
            if self._viewers.pop(viewer_id, None) is None:
                return False

        logger.info("Viewer disconnected", viewer_id=viewer_id, viewer_count=self.viewer_count)
        await self._notify_broadcaster(
            outbound.viewer_disconnected(viewer_id, self.viewer_count)
        )
        return True

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def remove_connection(self, conn: Connection) -> None:
        """
        Drop every registry entry held by conn and notify the affected peers.

        The one cleanup path for graceful close, transport error and forced
        liveness eviction.
        """
        await self.unregister_broadcaster(conn)
        if conn.viewer_id is not None and self._viewers.get(conn.viewer_id) is conn:
            await self.unregister_viewer(conn.viewer_id)

    def get_stats(self) -> dict[str, Any]:
        return {
            "broadcaster_active": self.broadcast_active,
            "viewer_count": self.viewer_count,
        }
