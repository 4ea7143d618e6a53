"""Path probes: measure whether a path can reach the endpoint, and how fast."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from .sockets import connect_socket
from .types import PathConfig

# A probe returns the measured latency in seconds or raises on failure.
PathProbe = Callable[[PathConfig], Awaitable[float]]


class TcpConnectProbe:
    """Probe a path by opening (and immediately closing) a TCP connection.

    The connection is pinned to the path's local interface so each path is
    tested independently of the routing table's default route.
    """

    def __init__(self, host: str, port: int, timeout: float = 2.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    async def __call__(self, path: PathConfig) -> float:
        started = time.perf_counter()
        sock, _ = await asyncio.wait_for(
            connect_socket(self.host, self.port, local_interface=path.local_interface),
            timeout=self.timeout,
        )
        elapsed = time.perf_counter() - started
        sock.close()
        return elapsed

    def __repr__(self) -> str:
        return f"TcpConnectProbe({self.host}:{self.port}, timeout={self.timeout})"


__all__ = ["PathProbe", "TcpConnectProbe"]
