"""
Supervisor - the fix -> uplink main loop.

    RUNNING --SourceStopped / shutdown request--> DRAINING --flush done--> TERMINATED

Shutdown is cooperative: it is checked between (next, send) pairs. A pending
``next()`` is abandoned when shutdown is requested, but an in-progress
``send()`` always runs to completion so no record is cut short.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .core.asyncio_utils import cancel_and_wait
from .core.event_logger import EventLogger
from .core.logging_utils import get_module_logger
from .fix.base_source import BaseFixSource
from .fix.types import SourceStopped
from .uplink.session import UplinkSession
from .uplink.stats import SendResult

logger = get_module_logger("Supervisor")

DEFAULT_DRAIN_TIMEOUT = 5.0


class SupervisorState(Enum):
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class ExitReason(Enum):
    SOURCE_STOPPED = "source_stopped"
    SHUTDOWN_REQUESTED = "shutdown_requested"


@dataclass(slots=True)
class SupervisorReport:
    reason: ExitReason
    detail: str = ""
    fixes_received: int = 0
    results: Dict[str, int] = field(default_factory=lambda: {r.value: 0 for r in SendResult})
    discarded: int = 0

    def to_dict(self) -> dict:
        return {
            "reason": self.reason.value,
            "detail": self.detail,
            "fixes_received": self.fixes_received,
            "results": dict(self.results),
            "discarded": self.discarded,
        }


class Supervisor:

    def __init__(
        self,
        source: BaseFixSource,
        session: UplinkSession,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        event_logger: Optional[EventLogger] = None,
    ):
        self.source = source
        self.session = session
        self.drain_timeout = drain_timeout
        self.event_logger = event_logger
        self.shutdown_event = asyncio.Event()
        self._state = SupervisorState.RUNNING
        self._fixes_received = 0
        self._results = {r.value: 0 for r in SendResult}

    @property
    def state(self) -> SupervisorState:
        return self._state

    def request_shutdown(self, reason: str = "requested") -> None:
        if not self.shutdown_event.is_set():
            logger.info("Shutdown requested (%s)", reason)
            self.shutdown_event.set()

    def snapshot(self) -> dict:
        return {
            "state": self._state.value,
            "fixes_received": self._fixes_received,
            "results": dict(self._results),
            "source": {
                "name": self.source.name,
                "state": self.source.state.value,
                "stop_reason": self.source.stop_reason,
            },
        }

    async def run(self) -> SupervisorReport:
        if self._state is not SupervisorState.RUNNING:
            raise RuntimeError(f"Supervisor already {self._state.value}")

        logger.info("Supervisor running (source=%s)", self.source.name)
        reason, detail = await self._run_loop()

        self._state = SupervisorState.DRAINING
        logger.info("Draining (%s, timeout %.1fs)", reason.value, self.drain_timeout)
        discarded = await self.session.flush(self.drain_timeout)

        self._state = SupervisorState.TERMINATED
        if self.event_logger is not None:
            await self.event_logger.log_shutdown(reason.value, discarded)

        report = SupervisorReport(
            reason=reason,
            detail=detail,
            fixes_received=self._fixes_received,
            results=dict(self._results),
            discarded=discarded,
        )
        logger.info("Supervisor terminated: %s", report.to_dict())
        return report

    async def _run_loop(self) -> tuple[ExitReason, str]:
        shutdown_wait = asyncio.ensure_future(self.shutdown_event.wait())
        try:
            while True:
                if self.shutdown_event.is_set():
                    return ExitReason.SHUTDOWN_REQUESTED, "shutdown requested"

                next_fix = asyncio.ensure_future(self.source.next())
                await asyncio.wait({next_fix, shutdown_wait}, return_when=asyncio.FIRST_COMPLETED)
                if not next_fix.done():
                    await cancel_and_wait(next_fix)
                    return ExitReason.SHUTDOWN_REQUESTED, "shutdown requested"

                result = next_fix.result()
                if isinstance(result, SourceStopped):
                    return ExitReason.SOURCE_STOPPED, result.reason

                self._fixes_received += 1
                send_result = await self.session.send(result)
                self._results[send_result.value] += 1
        finally:
            await cancel_and_wait(shutdown_wait)


__all__ = [
    "DEFAULT_DRAIN_TIMEOUT",
    "ExitReason",
    "Supervisor",
    "SupervisorReport",
    "SupervisorState",
]
