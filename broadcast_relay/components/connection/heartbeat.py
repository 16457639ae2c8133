"""
Liveness Monitor for the Broadcast Relay.

Periodically probes every open connection and evicts the ones that did not
answer. Each connection cycles between two states:

    alive   --(sweep probes)------------------->  suspect
    suspect --(probe acknowledged / frame in)--->  alive
    suspect --(next sweep)---------------------->  evicted

so a peer that stops answering is gone within two sweep intervals.

Probes run at the transport level: the ASGI server exchanges WebSocket
ping/pong frames and closes sockets whose peer stops answering, and
Connection.probe() reports the result. Clients never have to send anything
beyond ordinary signaling messages to stay connected.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable

from broadcast_relay.components.core.constants import (
    MSG_PING_PLAIN,
    MSG_PONG_PLAIN,
    RelayConstants,
)
from broadcast_relay.components.events import outbound
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from broadcast_relay.components.connection.connection import Connection
    from broadcast_relay.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


async def handle_heartbeat(conn: "Connection", data: str | bytes) -> bool:
    """
    Handle plain-text keep-alive frames sent by clients.

    "ping" is answered with a JSON pong; "pong" needs no reply. Both prove
    the peer is alive. JSON ping/pong frames go through the router.

    Returns:
        True if the frame was a plain-text heartbeat and has been handled.
    """
    if data == MSG_PONG_PLAIN:
        conn.mark_alive()
        return True
    if data == MSG_PING_PLAIN:
        conn.mark_alive()
        await conn.send(outbound.pong())
        return True
    return False


class LivenessMonitor:
    """
    Recurring liveness sweep over all open connections.

    Owned by the ConnectionManager; started from the application lifespan
    and cancelled on shutdown.

    Args:
        get_connections: Returns the currently open connections.
        terminate: Force-closes a connection and runs the shared cleanup.
        interval: Seconds between sweeps.
        metrics: Optional metrics collector.
    """

    def __init__(
        self,
        get_connections: Callable[[], Iterable["Connection"]],
        terminate: Callable[["Connection"], Awaitable[None]],
        interval: float = RelayConstants.LIVENESS_INTERVAL,
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self._get_connections = get_connections
        self._terminate = terminate
        self._interval = interval
        self._metrics = metrics
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop. Calling it again while running is a no-op."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="liveness_monitor")
        logger.info("Liveness monitor started", interval=self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Liveness monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                evicted = await self.sweep()
                if evicted:
                    logger.info("Evicted unresponsive connections", count=evicted)
            except Exception as e:
                logger.error("Error in liveness sweep", error=str(e), exc_info=True)

    async def sweep(self) -> int:
        """
        Run one monitor cycle.

        1. Terminate every connection still suspect from the previous cycle
           (a failed send also leaves a connection suspect).
        2. Mark every survivor suspect and probe it; an acknowledged probe
           sets it alive again, an unanswered one terminates it right away.

        Evictions run concurrently so one slow close cannot stall the sweep.

        Returns:
            Number of connections evicted.
        """
        if self._metrics:
            self._metrics.increment_sweeps()

        doomed: list[Connection] = []
        survivors: list[Connection] = []
        for conn in list(self._get_connections()):
            if conn.alive:
                survivors.append(conn)
                continue
            logger.info(
                "Connection did not answer liveness probe",
                target=conn.connection_id,
                role=conn.role.value,
            )
            doomed.append(conn)

        for conn in survivors:
            conn.mark_suspect()
            if conn.probe():
                conn.mark_alive()
                continue
            logger.info(
                "Liveness probe failed",
                target=conn.connection_id,
                role=conn.role.value,
            )
            doomed.append(conn)

        if self._metrics and survivors:
            self._metrics.increment_probes_sent(len(survivors))

        if doomed:
            await asyncio.gather(*(self._evict(conn) for conn in doomed))
        return len(doomed)

    async def _evict(self, conn: "Connection") -> None:
        if self._metrics:
            self._metrics.increment_evictions()
        try:
            await self._terminate(conn)
        except Exception as e:
            logger.warning(
                "Failed to terminate connection",
                target=conn.connection_id,
                error=str(e),
            )
