"""Socket helpers for leaving by a specific path and for MPTCP.

Interface names are pinned with ``SO_BINDTODEVICE`` (needs CAP_NET_RAW on
Linux); IP literals are pinned by binding the source address.
"""

from __future__ import annotations

import asyncio
import errno
import ipaddress
import socket
from typing import Optional, Tuple

from ..core.logging_utils import get_module_logger

logger = get_module_logger("PathSockets")

# Absent from the socket module before Python 3.10 and on non-Linux builds
IPPROTO_MPTCP = getattr(socket, "IPPROTO_MPTCP", 262)

_MPTCP_UNSUPPORTED = {errno.EPROTONOSUPPORT, errno.ENOPROTOOPT, errno.EINVAL, errno.EAFNOSUPPORT}


def is_ip_literal(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _new_socket(family: int, mptcp: bool) -> Tuple[socket.socket, bool]:
    if mptcp:
        try:
            return socket.socket(family, socket.SOCK_STREAM, IPPROTO_MPTCP), True
        except OSError as exc:
            if exc.errno not in _MPTCP_UNSUPPORTED:
                raise
            logger.warning("Kernel rejected MPTCP (%s); falling back to TCP", exc)
    return socket.socket(family, socket.SOCK_STREAM), False


def bind_to_path(sock: socket.socket, local_interface: Optional[str]) -> None:
    """Pin ``sock`` to a local interface name or source address."""
    if not local_interface:
        return
    if is_ip_literal(local_interface):
        sock.bind((local_interface, 0))
        return
    if not hasattr(socket, "SO_BINDTODEVICE"):
        raise OSError(errno.ENOTSUP, f"Cannot bind to interface {local_interface} on this platform")
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BINDTODEVICE, local_interface.encode())


async def connect_socket(
    host: str,
    port: int,
    *,
    local_interface: Optional[str] = None,
    mptcp: bool = False,
) -> Tuple[socket.socket, bool]:
    """Open a connected non-blocking stream socket.

    Returns the socket and whether it is an MPTCP socket. The caller owns the
    socket and is expected to bound this call with a timeout.
    """
    loop = asyncio.get_running_loop()
    family = 0
    if local_interface and is_ip_literal(local_interface):
        family = socket.AF_INET6 if ipaddress.ip_address(local_interface).version == 6 else socket.AF_INET

    infos = await loop.getaddrinfo(host, port, family=family, type=socket.SOCK_STREAM)
    if not infos:
        raise OSError(errno.EHOSTUNREACH, f"No address for {host}:{port}")

    last_exc: Optional[OSError] = None
    for addr_family, _type, _proto, _canon, address in infos:
        sock, is_mptcp = _new_socket(addr_family, mptcp)
        try:
            sock.setblocking(False)
            bind_to_path(sock, local_interface)
            await loop.sock_connect(sock, address)
            return sock, is_mptcp
        except OSError as exc:
            sock.close()
            last_exc = exc
        except BaseException:
            sock.close()
            raise

    assert last_exc is not None
    raise last_exc


__all__ = ["IPPROTO_MPTCP", "bind_to_path", "connect_socket", "is_ip_literal"]
