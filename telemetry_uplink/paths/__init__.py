"""Network path health tracking."""

from .monitor import PathMonitor, PathStateListener
from .probe import PathProbe, TcpConnectProbe
from .types import NetworkPath, PathConfig, PathState

__all__ = [
    "NetworkPath",
    "PathConfig",
    "PathMonitor",
    "PathProbe",
    "PathState",
    "PathStateListener",
    "TcpConnectProbe",
]
