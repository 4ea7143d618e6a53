"""
Uplink Session - ordered, at-least-once delivery of fixes over changing paths.

The session owns the transport, the retry buffer and the reconnect schedule.
``send()`` either writes a fix directly or parks it in the buffer; a single
background recovery task reconnects (with jittered exponential backoff) and
drains the buffer oldest first before direct sends resume, so fixes reach the
endpoint in capture order.

A fix whose write fails or times out goes back into the buffer and the
connection is aborted, so the endpoint never sees the tail of a half-written
record continue on the same stream.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Set

from ..core.asyncio_utils import cancel_and_wait, create_logged_task
from ..core.event_logger import EventLogger
from ..core.logging_utils import get_module_logger
from ..fix.types import Fix
from ..paths.monitor import PathMonitor
from ..paths.types import NetworkPath, PathState
from .backoff import ExponentialBackoff
from .record import DEFAULT_PRECISION, encode_record
from .retry_buffer import BufferedFix, RetryBuffer
from .stats import SendResult, UplinkStats
from .transport import BaseUplinkTransport

logger = get_module_logger("UplinkSession")

DEFAULT_SEND_TIMEOUT = 2.0


class UplinkSession:
    """
    Delivers fixes to the endpoint through whichever paths are alive.

    Usage:
        session = UplinkSession(transport, monitor, RetryBuffer(1000))
        await session.start()
        result = await session.send(fix)
        ...
        discarded = await session.flush(timeout=5.0)
        await session.close()

    ``send()`` expects a single producer; the supervisor is the only caller.
    """

    def __init__(
        self,
        transport: BaseUplinkTransport,
        monitor: PathMonitor,
        buffer: RetryBuffer,
        *,
        backoff: Optional[ExponentialBackoff] = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        precision: int = DEFAULT_PRECISION,
        event_logger: Optional[EventLogger] = None,
    ):
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")

        self.transport = transport
        self.monitor = monitor
        self.buffer = buffer
        self.backoff = backoff or ExponentialBackoff()
        self.send_timeout = send_timeout
        self.precision = precision
        self.event_logger = event_logger
        self.stats = UplinkStats()

        self._draining = False
        self._flushing = False
        self._writing = False
        self._closed = False
        self._started = False
        self._recovery_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def state(self) -> str:
        if self._closed:
            return "closed"
        if self._draining:
            return "draining"
        if self.transport.is_connected:
            return "connected"
        return "buffering"

    async def start(self) -> None:
        """Register for path and connection events and make the first connect attempt."""
        if self._started:
            return
        self._started = True
        self.monitor.add_listener(self._on_path_change)
        self.transport.set_connection_lost_callback(self._on_connection_lost)
        self._ensure_recovery(immediate=True)
        logger.info(
            "Uplink session started (buffer=%d, send_timeout=%.1fs)",
            self.buffer.capacity,
            self.send_timeout,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.monitor.remove_listener(self._on_path_change)
        self.transport.set_connection_lost_callback(None)
        await cancel_and_wait(self._recovery_task)
        self._recovery_task = None
        await self.transport.disconnect()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        logger.info("Uplink session closed (%s)", self.stats.to_dict())

    # ------------------------------------------------------------------
    # Sending

    async def send(self, fix: Fix) -> SendResult:
        """Transmit ``fix`` now or buffer it. Returns within roughly ``send_timeout``."""
        if not self._can_send_directly():
            return self._buffer_fix(fix)

        if await self._transmit(encode_record(fix, self.precision)):
            self.stats.sent += 1
            return SendResult.SENT
        return self._buffer_fix(fix)

    def _can_send_directly(self) -> bool:
        # Anything already buffered is older than ``fix`` and must go first
        return (
            not self._closed
            and self.transport.is_connected
            and not self._draining
            and not self.buffer
            and not self.monitor.all_down
        )

    def _buffer_fix(self, fix: Fix) -> SendResult:
        evicted = self.buffer.enqueue(fix)
        self.stats.queued += 1
        if not self._closed:
            self._ensure_recovery()
        if evicted is not None:
            self._record_drop()
            return SendResult.DROPPED
        return SendResult.QUEUED

    def _record_drop(self) -> None:
        self.stats.dropped += 1
        if self.stats.dropped == 1 or self.stats.dropped % 100 == 0:
            logger.warning("Retry buffer full; dropped oldest fix (%d dropped so far)", self.stats.dropped)
        self._log_event("log_fix_dropped", self.stats.dropped)

    async def _transmit(self, data: bytes) -> bool:
        """Write one record. On any failure abort the connection and schedule recovery."""
        self._writing = True
        try:
            await asyncio.wait_for(self.transport.write_record(data), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            self.stats.send_timeouts += 1
            logger.warning("Send timed out after %.1fs", self.send_timeout)
        except (ConnectionError, OSError) as exc:
            self.stats.send_failures += 1
            logger.warning("Send failed: %s", exc)
        except asyncio.CancelledError:
            # The record may be partly on the wire; it must not be continued
            self.transport.abort()
            raise
        finally:
            self._writing = False

        self.transport.abort()
        self._ensure_recovery()
        return False

    # ------------------------------------------------------------------
    # Recovery: reconnect, then drain in order

    def _ensure_recovery(self, immediate: bool = False) -> None:
        if self._closed or self._flushing or not self._started:
            return
        if self._recovery_task is not None and not self._recovery_task.done():
            return
        if self.transport.is_connected and not self.buffer:
            return
        self._recovery_task = create_logged_task(
            self._recover(immediate),
            logger=logger,
            name="uplink-recovery",
        )

    async def _recover(self, immediate: bool) -> None:
        first_attempt = immediate
        while not self._closed and not self._flushing:
            if not self.transport.is_connected:
                if not await self._reconnect_once(delay=not first_attempt):
                    first_attempt = False
                    continue
            first_attempt = False
            if await self._drain_buffer(yield_to_flush=True):
                return

    async def _reconnect_once(self, delay: bool) -> bool:
        if self.monitor.all_down:
            logger.info("All paths down; holding %d fixes until a path returns", len(self.buffer))
            await self.monitor.wait_until_usable()

        if delay:
            wait = self.backoff.next_delay()
            logger.info("Reconnecting in %.1fs (attempt %d)", wait, self.backoff.attempt)
            await asyncio.sleep(wait)

        path = self.monitor.best_path()
        if path is None:
            return False

        if not await self.transport.connect(path):
            self.stats.connect_failures += 1
            return False

        self.backoff.reset()
        self.stats.reconnects += 1
        self._log_event("log_connected", getattr(self.transport, "remote", "endpoint"), self.transport.path_id)
        return True

    async def _drain_buffer(self, yield_to_flush: bool = False) -> bool:
        """Replay buffered fixes oldest first. False if the connection failed midway.

        With ``yield_to_flush`` the replay stops between records once a flush
        has started, leaving the rest to ``flush()``.
        """
        if not self.buffer:
            return True

        self._draining = True
        drained = 0
        try:
            while True:
                if yield_to_flush and self._flushing:
                    return False
                entry = self.buffer.pop_oldest()
                if entry is None:
                    break
                if not await self._transmit_entry(entry):
                    logger.info("Drain interrupted after %d fixes; %d still buffered", drained, len(self.buffer))
                    return False
                self.stats.sent += 1
                drained += 1
        finally:
            self._draining = False

        logger.info("Drained %d buffered fixes", drained)
        return True

    async def _transmit_entry(self, entry: BufferedFix) -> bool:
        try:
            sent = await self._transmit(encode_record(entry.fix, self.precision))
        except asyncio.CancelledError:
            self._requeue(entry)
            raise
        if not sent:
            self._requeue(entry)
        return sent

    def _requeue(self, entry: BufferedFix) -> None:
        if self.buffer.requeue_front(entry) is not None:
            self._record_drop()

    # ------------------------------------------------------------------
    # Event callbacks

    def _on_path_change(self, path: NetworkPath, old_state: PathState) -> None:
        if self._closed:
            return

        if self.monitor.all_down and old_state.usable:
            self.stats.connectivity_losses += 1
            logger.warning("Connectivity lost on all paths; buffering fixes")
            self._log_event("log_connectivity_lost", len(self.buffer))
            if self.transport.is_connected:
                self.transport.abort()
            self._ensure_recovery()
            return

        if (
            path.state is PathState.DOWN
            and self.transport.pinned
            and self.transport.path_id == path.id
        ):
            self.stats.failovers += 1
            logger.warning("Pinned path %s went down; failing over", path.id)
            self.transport.abort()
            self._ensure_recovery(immediate=True)

    def _on_connection_lost(self, reason: str) -> None:
        if self._closed:
            return
        self.stats.connection_drops += 1
        logger.info("Connection lost (%s); scheduling reconnect", reason)
        self._ensure_recovery()

    # ------------------------------------------------------------------
    # Shutdown drain

    async def flush(self, timeout: float) -> int:
        """Try to deliver everything buffered within ``timeout``; discard the rest.

        Returns the number of fixes discarded.
        """
        self._flushing = True
        try:
            if self.buffer:
                logger.info("Flushing %d buffered fixes (timeout %.1fs)", len(self.buffer), timeout)
                await asyncio.wait_for(self._flush_until_empty(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Flush timed out with %d fixes still buffered", len(self.buffer))
        finally:
            self._flushing = False
            await cancel_and_wait(self._recovery_task)
            self._recovery_task = None

        discarded = self.buffer.clear()
        if discarded:
            self.stats.discarded += discarded
            logger.warning("Discarded %d undelivered fixes", discarded)
        return discarded

    async def _flush_until_empty(self) -> None:
        # A record already on its way is allowed to finish; a backoff sleep or
        # connect attempt is cut short so the flush can reconnect right away
        task = self._recovery_task
        if task is not None and not task.done():
            if self._writing:
                await asyncio.wait({task})
            else:
                await cancel_and_wait(task)

        retry = False
        while self.buffer:
            if not self.transport.is_connected:
                connected = await self._reconnect_once(delay=retry)
                retry = True
                if not connected:
                    continue
            if not await self._drain_buffer():
                retry = True

    # ------------------------------------------------------------------
    # Introspection

    def snapshot(self) -> dict:
        oldest_age = self.buffer.oldest_age()
        return {
            "state": self.state,
            "connected": self.transport.is_connected,
            "path_id": self.transport.path_id,
            "mptcp": bool(getattr(self.transport, "mptcp_active", False)),
            "buffered": len(self.buffer),
            "buffer_capacity": self.buffer.capacity,
            "oldest_buffered_age_s": round(oldest_age, 3) if oldest_age is not None else None,
            "backoff_attempt": self.backoff.attempt,
            "stats": self.stats.to_dict(),
        }

    def _log_event(self, method: str, *args: Any) -> None:
        if self.event_logger is None or not self.event_logger.enabled:
            return
        create_logged_task(
            getattr(self.event_logger, method)(*args),
            logger=logger,
            name=f"event:{method}",
            pending=self._pending,
        )


__all__ = ["DEFAULT_SEND_TIMEOUT", "SendResult", "UplinkSession", "UplinkStats"]
