"""
Path Monitor - Per-path health tracking.

Probes every configured network path on its own schedule and keeps a small
state machine per path:

    UP --probe fails--> DEGRADED --N further failures--> DOWN --probe ok--> UP
    DEGRADED --probe ok--> UP

Paths start DOWN until their first successful probe. ``usable_paths()``
returns UP and DEGRADED paths ordered by smoothed latency; an empty result is
a transient "all paths down" condition, distinct from having no paths
configured at all (``NoPathsConfigured``, raised at construction).
"""

from __future__ import annotations

import asyncio
import math
import time
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..core.asyncio_utils import cancel_and_wait, create_logged_task
from ..core.exceptions import ConfigurationError, NoPathsConfigured
from ..core.logging_utils import get_module_logger
from .probe import PathProbe
from .types import NetworkPath, PathConfig, PathState

logger = get_module_logger("PathMonitor")

DEFAULT_PROBE_INTERVAL = 5.0
DEFAULT_DOWN_AFTER = 3
DEFAULT_LATENCY_SMOOTHING = 0.3

# Listener signature: (snapshot of the path after the change, previous state)
PathStateListener = Callable[[NetworkPath, PathState], None]


class PathMonitor:
    """
    Tracks liveness and latency of each configured path.

    Usage:
        monitor = PathMonitor(
            [PathConfig("lte", "wwan0"), PathConfig("wifi", "wlan0")],
            probe=TcpConnectProbe("ingest.example.net", 5000),
        )
        monitor.add_listener(on_path_change)
        await monitor.start()

        best = monitor.usable_paths()
    """

    def __init__(
        self,
        paths: Sequence[PathConfig],
        probe: PathProbe,
        interval: float = DEFAULT_PROBE_INTERVAL,
        down_after: int = DEFAULT_DOWN_AFTER,
        latency_smoothing: float = DEFAULT_LATENCY_SMOOTHING,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            paths: Configured paths; must not be empty
            probe: Async callable returning latency (s) or raising on failure
            interval: Seconds between probes of the same path
            down_after: Further consecutive failures, after the one that
                degraded the path, before it is marked DOWN
            latency_smoothing: Weight of the newest sample in the latency EWMA
            clock: Monotonic clock, injectable for tests
        """
        if not paths:
            raise NoPathsConfigured()
        if down_after < 1:
            raise ConfigurationError("down_after must be at least 1")

        self.probe = probe
        self.interval = interval
        self.down_after = down_after
        self.latency_smoothing = latency_smoothing
        self._clock = clock

        self._configs: Dict[str, PathConfig] = {}
        self._paths: Dict[str, NetworkPath] = {}
        for config in paths:
            if config.id in self._paths:
                raise ConfigurationError(f"Duplicate path id '{config.id}'")
            self._configs[config.id] = config
            self._paths[config.id] = NetworkPath(id=config.id, local_interface=config.local_interface)

        self._listeners: List[PathStateListener] = []
        self._usable_event = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run one probe round on every path, then keep probing in the background."""
        if self._running:
            logger.warning("Path monitor already running")
            return

        self._running = True
        await self.probe_all()
        for path_id in self._configs:
            create_logged_task(
                self._probe_loop(path_id),
                logger=logger,
                name=f"probe:{path_id}",
                pending=self._tasks,
            )
        logger.info(
            "Path monitor started (%d paths, interval=%.1fs, usable=%s)",
            len(self._configs),
            self.interval,
            [p.id for p in self.usable_paths()] or "none",
        )

    async def stop(self) -> None:
        self._running = False
        for task in list(self._tasks):
            await cancel_and_wait(task)
        self._tasks.clear()
        logger.info("Path monitor stopped")

    # ------------------------------------------------------------------
    # Queries

    def usable_paths(self) -> List[NetworkPath]:
        """UP and DEGRADED paths, fastest first; DOWN paths are never included."""
        order = {path_id: index for index, path_id in enumerate(self._configs)}
        usable = [p for p in self._paths.values() if p.state.usable]
        usable.sort(key=lambda p: (
            p.latency_s if p.latency_s is not None else math.inf,
            order[p.id],
        ))
        return [p.snapshot() for p in usable]

    def best_path(self) -> Optional[NetworkPath]:
        usable = self.usable_paths()
        return usable[0] if usable else None

    def paths(self) -> List[NetworkPath]:
        """Snapshots of every configured path in configuration order."""
        return [self._paths[path_id].snapshot() for path_id in self._configs]

    def get_path(self, path_id: str) -> Optional[NetworkPath]:
        path = self._paths.get(path_id)
        return path.snapshot() if path else None

    @property
    def all_down(self) -> bool:
        return not any(p.state.usable for p in self._paths.values())

    async def wait_until_usable(self, timeout: Optional[float] = None) -> bool:
        """Wait until at least one path is usable. Returns False on timeout."""
        if not self.all_down:
            return True
        try:
            await asyncio.wait_for(self._usable_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Listeners

    def add_listener(self, listener: PathStateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PathStateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Probing

    async def probe_all(self) -> None:
        await asyncio.gather(*(self._probe_once(path_id) for path_id in self._configs))

    async def _probe_loop(self, path_id: str) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                await self._probe_once(path_id)
            except asyncio.CancelledError:
                break

    async def _probe_once(self, path_id: str) -> None:
        config = self._configs[path_id]
        try:
            latency = await self.probe(config)
        except asyncio.CancelledError:
            raise
        except (OSError, asyncio.TimeoutError) as exc:
            self.record_failure(path_id, str(exc) or exc.__class__.__name__)
        except Exception as exc:
            logger.warning("Probe for %s raised unexpectedly: %s", path_id, exc)
            self.record_failure(path_id, str(exc) or exc.__class__.__name__)
        else:
            self.record_success(path_id, latency)

    # ------------------------------------------------------------------
    # State transitions

    def record_success(self, path_id: str, latency_s: float) -> None:
        path = self._paths[path_id]
        path.last_probe_at = self._clock()
        path.probes_sent += 1
        path.consecutive_failures = 0
        path.last_error = None
        if path.latency_s is None:
            path.latency_s = latency_s
        else:
            alpha = self.latency_smoothing
            path.latency_s = alpha * latency_s + (1 - alpha) * path.latency_s
        self._transition(path, PathState.UP)

    def record_failure(self, path_id: str, error: str = "") -> None:
        path = self._paths[path_id]
        path.last_probe_at = self._clock()
        path.probes_sent += 1
        path.probes_failed += 1
        path.consecutive_failures += 1
        path.last_error = error or None

        if path.state is PathState.UP:
            new_state = PathState.DEGRADED
        elif path.state is PathState.DEGRADED and path.consecutive_failures > self.down_after:
            new_state = PathState.DOWN
        else:
            new_state = path.state

        if new_state is not path.state:
            logger.warning(
                "Path %s probe failed (%d consecutive): %s",
                path_id, path.consecutive_failures, error or "unknown error",
            )
        else:
            logger.debug("Path %s probe failed (%d consecutive)", path_id, path.consecutive_failures)
        self._transition(path, new_state)

    def _transition(self, path: NetworkPath, new_state: PathState) -> None:
        old_state = path.state
        if new_state is old_state:
            return

        path.state = new_state
        logger.info("Path %s: %s -> %s", path.id, old_state.value, new_state.value)

        if self.all_down:
            self._usable_event.clear()
        else:
            self._usable_event.set()

        snapshot = path.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot, old_state)
            except Exception as exc:
                logger.error("Path state listener failed: %s", exc, exc_info=True)


__all__ = [
    "DEFAULT_DOWN_AFTER",
    "DEFAULT_PROBE_INTERVAL",
    "PathMonitor",
    "PathStateListener",
]
