"""Stream transports carrying records to the ingestion endpoint.

The default transport opens one MPTCP connection and lets the kernel's path
manager spread it over every interface. When MPTCP is disabled or the kernel
does not support it, the connection is pinned to a single path chosen by the
session.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..core.asyncio_utils import create_logged_task
from ..core.logging_utils import get_module_logger
from ..paths.sockets import connect_socket
from ..paths.types import NetworkPath

logger = get_module_logger("UplinkTransport")

# Called with a reason string when the connection is lost underneath us
ConnectionLostCallback = Callable[[str], None]


class BaseUplinkTransport(ABC):
    """Bidirectional byte stream to the endpoint, written one record at a time."""

    def __init__(self) -> None:
        self._connected = False
        self._on_lost: Optional[ConnectionLostCallback] = None
        self.path_id: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def pinned(self) -> bool:
        """True when the connection is bound to ``path_id`` rather than multipath."""
        return self.path_id is not None

    def set_connection_lost_callback(self, callback: Optional[ConnectionLostCallback]) -> None:
        self._on_lost = callback

    def _notify_lost(self, reason: str) -> None:
        if self._on_lost is not None:
            self._on_lost(reason)

    @abstractmethod
    async def connect(self, path: Optional[NetworkPath] = None) -> bool:
        """Open the connection, optionally pinned to ``path``. False on failure."""
        ...

    @abstractmethod
    async def write_record(self, data: bytes) -> None:
        """Write one complete record. Raises ``ConnectionError``/``OSError`` on failure."""
        ...

    @abstractmethod
    def abort(self) -> None:
        """Drop the connection immediately, discarding anything unsent."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection gracefully, flushing what was written."""
        ...


class StreamUplinkTransport(BaseUplinkTransport):
    """TCP/MPTCP transport built on asyncio streams."""

    def __init__(
        self,
        host: str,
        port: int,
        mptcp: bool = True,
        connect_timeout: float = 5.0,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.mptcp = mptcp
        self.connect_timeout = connect_timeout
        self.mptcp_active = False

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._watch_task: Optional[asyncio.Task] = None
        self._last_error: Optional[str] = None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def remote(self) -> str:
        return f"{self.host}:{self.port}"

    async def connect(self, path: Optional[NetworkPath] = None) -> bool:
        if self.is_connected:
            return True

        try:
            sock, is_mptcp = await asyncio.wait_for(self._open_socket(path), timeout=self.connect_timeout)
            self._reader, self._writer = await asyncio.open_connection(sock=sock)
        except asyncio.CancelledError:
            raise
        except (OSError, asyncio.TimeoutError) as exc:
            self._last_error = str(exc) or exc.__class__.__name__
            logger.warning("Connect to %s failed: %s", self.remote, self._last_error)
            return False

        self.mptcp_active = is_mptcp
        self.path_id = None if is_mptcp or path is None else path.id
        self._connected = True
        self._last_error = None
        self._watch_task = create_logged_task(
            self._watch_connection(self._reader),
            logger=logger,
            name="uplink-watch",
        )
        logger.info(
            "Connected to %s (%s)",
            self.remote,
            "mptcp" if is_mptcp else f"tcp via {self.path_id or 'default route'}",
        )
        return True

    async def _open_socket(self, path: Optional[NetworkPath]):
        if self.mptcp:
            sock, is_mptcp = await connect_socket(self.host, self.port, mptcp=True)
            if is_mptcp or path is None:
                return sock, is_mptcp
            # Kernel lacks MPTCP: stop asking and pin to the chosen path instead
            sock.close()
            self.mptcp = False
        interface = path.local_interface if path is not None else None
        return await connect_socket(self.host, self.port, local_interface=interface)

    async def _watch_connection(self, reader: asyncio.StreamReader) -> None:
        """Detect EOF or reset while idle; the endpoint sends nothing we need."""
        try:
            while True:
                chunk = await reader.read(4096)
                if not chunk:
                    reason = "closed by endpoint"
                    break
        except (OSError, asyncio.IncompleteReadError) as exc:
            reason = f"connection error: {exc}"

        if self._reader is reader and self._connected:
            logger.warning("Connection to %s lost: %s", self.remote, reason)
            self._last_error = reason
            self.abort()
            self._notify_lost(reason)

    async def write_record(self, data: bytes) -> None:
        async with self._write_lock:
            writer = self._writer
            if not self._connected or writer is None or writer.is_closing():
                raise ConnectionError("uplink not connected")
            # One write() per record keeps records contiguous on the stream
            writer.write(data)
            await writer.drain()

    def abort(self) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        self._connected = False
        self.path_id = None
        if self._watch_task is not None and self._watch_task is not asyncio.current_task():
            self._watch_task.cancel()
        self._watch_task = None
        if writer is not None:
            # abort() rather than close(): a half-written record must not be flushed
            writer.transport.abort()

    async def disconnect(self) -> None:
        writer = self._writer
        if writer is None:
            self._connected = False
            return

        watch_task = self._watch_task
        self._writer = None
        self._reader = None
        self._watch_task = None
        self._connected = False
        self.path_id = None
        if watch_task is not None:
            watch_task.cancel()

        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        except (asyncio.TimeoutError, OSError):
            logger.debug("Timeout or error waiting for close of %s", self.remote)
        logger.info("Disconnected from %s", self.remote)


__all__ = ["BaseUplinkTransport", "ConnectionLostCallback", "StreamUplinkTransport"]
