"""CSV audit trail of connectivity events."""

import asyncio
import csv
import datetime
import io
from pathlib import Path
from typing import Optional

import aiofiles

from .logging_utils import get_module_logger

logger = get_module_logger("EventLogger")

EVENT_LOG_HEADER = "timestamp,event_type,details\n"


class EventLogger:

    def __init__(self, event_log_path: Optional[Path]):
        self.event_log_path = event_log_path
        self.initialized = False
        self._write_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.event_log_path is not None

    async def initialize(self) -> None:
        if self.event_log_path is None:
            return

        await asyncio.to_thread(self.event_log_path.parent.mkdir, parents=True, exist_ok=True)

        # Append across restarts; write the header only for a fresh file
        exists = await asyncio.to_thread(self.event_log_path.exists)
        if not exists:
            async with aiofiles.open(self.event_log_path, "w", newline="") as f:
                await f.write(EVENT_LOG_HEADER)

        self.initialized = True
        logger.info("Event logger initialized: %s", self.event_log_path)

    async def log_event(self, event_type: str, details: str = "") -> None:
        if not self.initialized:
            return

        timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        buffer = io.StringIO()
        csv.writer(buffer).writerow([timestamp, event_type, details])

        async with self._write_lock:
            try:
                async with aiofiles.open(self.event_log_path, "a", newline="") as f:
                    await f.write(buffer.getvalue())
            except OSError as exc:
                logger.warning("Failed to append event %s: %s", event_type, exc)
                return

        logger.debug("Logged event: %s - %s", event_type, details)

    async def log_path_state(self, path_id: str, old_state: str, new_state: str) -> None:
        await self.log_event("path_state", f"path={path_id}, from={old_state}, to={new_state}")

    async def log_connectivity_lost(self, buffered: int) -> None:
        await self.log_event("connectivity_lost", f"buffered={buffered}")

    async def log_connected(self, remote: str, path_id: Optional[str]) -> None:
        details = f"remote={remote}"
        if path_id:
            details += f", path={path_id}"
        await self.log_event("connected", details)

    async def log_fix_dropped(self, total_dropped: int) -> None:
        await self.log_event("fix_dropped", f"total={total_dropped}")

    async def log_shutdown(self, reason: str, discarded: int) -> None:
        await self.log_event("shutdown", f"reason={reason}, discarded={discarded}")


__all__ = ["EventLogger", "EVENT_LOG_HEADER"]
