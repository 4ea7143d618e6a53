"""Fix source streaming TPV reports from a local gpsd daemon."""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import json
from typing import Any, Dict, Optional

from ..core.logging_utils import get_module_logger
from .base_source import BaseFixSource
from .types import Fix, FixQuality

logger = get_module_logger("GpsdFixSource")

DEFAULT_GPSD_HOST = "127.0.0.1"
DEFAULT_GPSD_PORT = 2947
WATCH_COMMAND = b'?WATCH={"enable":true,"json":true};\n'


def parse_gpsd_time(value: Optional[str]) -> Optional[dt.datetime]:
    """Parse gpsd's ISO8601 ``time`` field (``...Z``) into an aware datetime."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def fix_from_tpv(report: Dict[str, Any]) -> Optional[Fix]:
    """Build a fix from a gpsd TPV report; ``None`` when it carries no position."""
    if report.get("class") != "TPV":
        return None
    lat = report.get("lat")
    lon = report.get("lon")
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return None
    captured_at = parse_gpsd_time(report.get("time")) or dt.datetime.now(dt.timezone.utc)
    try:
        return Fix(captured_at, float(lat), float(lon), FixQuality.from_mode(report.get("mode")))
    except ValueError:
        return None


class GpsdFixSource(BaseFixSource):
    """Streams fixes from gpsd's JSON watcher protocol over TCP."""

    def __init__(
        self,
        host: str = DEFAULT_GPSD_HOST,
        port: int = DEFAULT_GPSD_PORT,
        connect_timeout: float = 5.0,
        silence_timeout: float = 10.0,
        min_quality: FixQuality = FixQuality.FIX_2D,
    ):
        super().__init__(f"gpsd:{host}:{port}", min_quality=min_quality)
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.silence_timeout = silence_timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self.last_device: Optional[str] = None

    async def _open(self) -> bool:
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
            self._writer.write(WATCH_COMMAND)
            await self._writer.drain()
        except (OSError, asyncio.TimeoutError) as exc:
            logger.warning("Cannot reach gpsd at %s:%d: %s", self.host, self.port, exc)
            await self._close()
            return False

        logger.info("Watching gpsd at %s:%d", self.host, self.port)
        return True

    async def _close(self) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is None:
            return
        writer.close()
        with contextlib.suppress(OSError, asyncio.TimeoutError):
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)

    async def _read_fix(self) -> Optional[Fix]:
        while self._reader is not None:
            try:
                line = await asyncio.wait_for(self._reader.readline(), timeout=self.silence_timeout)
            except asyncio.TimeoutError:
                logger.warning("gpsd silent for %.1fs", self.silence_timeout)
                return None
            except OSError as exc:
                logger.warning("gpsd read failed: %s", exc)
                return None

            if not line:
                return None

            try:
                report = json.loads(line)
            except ValueError:
                logger.debug("Ignoring malformed gpsd line: %r", line[:80])
                continue
            if not isinstance(report, dict):
                continue

            if report.get("class") == "DEVICES":
                devices = report.get("devices") or []
                self.last_device = devices[0].get("path") if devices else None
                logger.debug("gpsd devices: %s", [d.get("path") for d in devices])
                continue

            fix = fix_from_tpv(report)
            if fix is not None:
                return fix
        return None


__all__ = [
    "DEFAULT_GPSD_HOST",
    "DEFAULT_GPSD_PORT",
    "GpsdFixSource",
    "fix_from_tpv",
    "parse_gpsd_time",
]
