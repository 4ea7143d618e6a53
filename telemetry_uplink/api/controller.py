"""
Status Controller - read-only view over the running uplink for the API.

Handlers only ever talk to this controller, never to the components
directly, so the HTTP layer stays free of uplink internals.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..config import UplinkConfig
    from ..paths.monitor import PathMonitor
    from ..supervisor import Supervisor
    from ..uplink.session import UplinkSession


class StatusController:

    def __init__(
        self,
        monitor: "PathMonitor",
        session: "UplinkSession",
        supervisor: Optional["Supervisor"] = None,
        config: Optional["UplinkConfig"] = None,
    ):
        self.monitor = monitor
        self.session = session
        self.supervisor = supervisor
        self.config = config
        self._started_at = time.monotonic()

    def get_status(self) -> Dict[str, Any]:
        usable = self.monitor.usable_paths()
        status: Dict[str, Any] = {
            "uptime_s": round(time.monotonic() - self._started_at, 1),
            "uplink": self.session.snapshot(),
            "usable_paths": [p.id for p in usable],
            "all_paths_down": self.monitor.all_down,
        }
        if self.supervisor is not None:
            status["supervisor"] = self.supervisor.snapshot()
        if self.config is not None:
            status["endpoint"] = f"{self.config.endpoint_host}:{self.config.endpoint_port}"
        return status

    def get_paths(self) -> Dict[str, Any]:
        usable = [p.id for p in self.monitor.usable_paths()]
        return {
            "paths": [p.to_dict() for p in self.monitor.paths()],
            "usable": usable,
            "best": usable[0] if usable else None,
        }

    def get_path(self, path_id: str) -> Optional[Dict[str, Any]]:
        path = self.monitor.get_path(path_id)
        return path.to_dict() if path is not None else None

    def get_buffer(self) -> Dict[str, Any]:
        buffer = self.session.buffer
        oldest_age = buffer.oldest_age()
        stats = self.session.stats
        return {
            "depth": len(buffer),
            "capacity": buffer.capacity,
            "oldest_age_s": round(oldest_age, 3) if oldest_age is not None else None,
            "dropped": stats.dropped,
            "discarded": stats.discarded,
            "draining": self.session.is_draining,
        }


__all__ = ["StatusController"]
