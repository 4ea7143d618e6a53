"""Network path data types."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class PathState(Enum):
    """Health of a network path."""
    UP = "up"
    DEGRADED = "degraded"  # Recent probe failures, still usable
    DOWN = "down"          # Excluded from usable paths

    @property
    def usable(self) -> bool:
        return self is not PathState.DOWN


@dataclass(frozen=True, slots=True)
class PathConfig:
    """One configured path: an identifier and the local interface it leaves by.

    ``local_interface`` is either an interface name (``wwan0``) or a local IP
    address to bind to.
    """
    id: str
    local_interface: str


@dataclass(slots=True)
class NetworkPath:
    """Runtime state of one path, owned and mutated by the PathMonitor."""
    id: str
    local_interface: str
    state: PathState = PathState.DOWN
    last_probe_at: Optional[float] = None
    consecutive_failures: int = 0
    latency_s: Optional[float] = None
    last_error: Optional[str] = None
    probes_sent: int = 0
    probes_failed: int = 0

    def snapshot(self) -> "NetworkPath":
        """Copy handed to callers so they never see later mutations."""
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "local_interface": self.local_interface,
            "state": self.state.value,
            "last_probe_at": self.last_probe_at,
            "consecutive_failures": self.consecutive_failures,
            "latency_ms": round(self.latency_s * 1000, 1) if self.latency_s is not None else None,
            "last_error": self.last_error,
            "probes_sent": self.probes_sent,
            "probes_failed": self.probes_failed,
        }


__all__ = ["NetworkPath", "PathConfig", "PathState"]
