"""Base Fix Source

Abstract base class for everything that produces position fixes. A source
owns one device session and walks an explicit lifecycle:

    IDLE --next()--> STREAMING --session ends--> STOPPED --restart()--> STREAMING

``next()`` returns either a :class:`Fix` or a :class:`SourceStopped` value;
once stopped, every further ``next()`` keeps returning ``SourceStopped`` until
``restart()`` re-establishes the session. Fixes cannot be replayed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from ..core.logging_utils import get_module_logger
from .types import Fix, FixQuality, FixResult, SourceStopped

logger = get_module_logger("FixSource")


class SourceState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    STOPPED = "stopped"


class BaseFixSource(ABC):
    """Lazy, single-consumer stream of fixes from a GPS device or daemon.

    Subclasses implement :meth:`_open`, :meth:`_close` and :meth:`_read_fix`.
    ``_read_fix`` returns ``None`` when the underlying session has ended.
    """

    def __init__(self, name: str, min_quality: FixQuality = FixQuality.FIX_2D):
        self.name = name
        self.min_quality = min_quality
        self._state = SourceState.IDLE
        self._stop_reason: Optional[str] = None
        self._in_flight = False
        self.fixes_produced = 0
        self.fixes_filtered = 0

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def stop_reason(self) -> Optional[str]:
        return self._stop_reason

    async def next(self) -> FixResult:
        """Return the next usable fix, or ``SourceStopped`` when the session ended."""
        if self._in_flight:
            raise RuntimeError(f"{self.name}: concurrent next() calls are not allowed")

        if self._state is SourceState.STOPPED:
            return SourceStopped(self._stop_reason or "source stopped")

        self._in_flight = True
        try:
            if self._state is SourceState.IDLE:
                if not await self._open():
                    return self._stop("failed to open device session")
                self._state = SourceState.STREAMING
                logger.info("%s streaming", self.name)

            while True:
                fix = await self._read_fix()
                if fix is None:
                    return self._stop("device session ended")
                if fix.quality < self.min_quality:
                    self.fixes_filtered += 1
                    continue
                self.fixes_produced += 1
                return fix
        finally:
            self._in_flight = False

    async def restart(self) -> None:
        """Tear down the current device session so the next ``next()`` reopens it."""
        logger.info("%s restarting (was %s)", self.name, self._state.value)
        await self._close()
        self._state = SourceState.IDLE
        self._stop_reason = None

    async def close(self) -> None:
        """Release the device session; the source stays stopped."""
        await self._close()
        if self._state is not SourceState.STOPPED:
            self._state = SourceState.STOPPED
            self._stop_reason = "closed"

    def _stop(self, reason: str) -> SourceStopped:
        self._state = SourceState.STOPPED
        self._stop_reason = reason
        logger.warning("%s stopped: %s", self.name, reason)
        return SourceStopped(reason)

    @abstractmethod
    async def _open(self) -> bool:
        """Establish the device session. Return False on failure."""
        ...

    @abstractmethod
    async def _close(self) -> None:
        """Release the device session. Must be safe to call repeatedly."""
        ...

    @abstractmethod
    async def _read_fix(self) -> Optional[Fix]:
        """Block until the next fix is available; ``None`` once the session ends."""
        ...


__all__ = ["BaseFixSource", "SourceState"]
