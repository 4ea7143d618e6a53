"""Serial UART fix source for NMEA GPS receivers.

Uses serial_asyncio for non-blocking reads from UART receivers such as the
BerryGPS or a u-blox module on ``/dev/serial0``.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import serial
import serial_asyncio

from ..core.logging_utils import get_module_logger
from .base_source import BaseFixSource
from .nmea import NMEAFixParser
from .types import Fix, FixQuality

logger = get_module_logger("SerialFixSource")

DEFAULT_BAUD_RATE = 9600


class SerialFixSource(BaseFixSource):
    """Fix source reading NMEA sentences from a serial port.

    The session ends on EOF, on a read error, or when no sentence arrives
    within ``silence_timeout`` seconds (receiver unplugged or powered down).
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD_RATE,
        silence_timeout: float = 10.0,
        min_quality: FixQuality = FixQuality.FIX_2D,
    ):
        super().__init__(f"serial:{port}", min_quality=min_quality)
        self.port = port
        self.baudrate = baudrate
        self.silence_timeout = silence_timeout
        self._parser = NMEAFixParser()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._last_error: Optional[str] = None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    async def _open(self) -> bool:
        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
            )
        except asyncio.CancelledError:
            raise
        except (OSError, serial.SerialException) as exc:
            self._last_error = str(exc)
            logger.warning("Failed to open %s at %d baud: %s", self.port, self.baudrate, exc)
            return False

        self._parser.reset()
        self._last_error = None
        logger.info("Connected to GPS on %s at %d baud", self.port, self.baudrate)
        return True

    async def _close(self) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is None:
            return

        with contextlib.suppress(Exception):
            writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        except (asyncio.TimeoutError, OSError, serial.SerialException):
            logger.debug("Timeout or error waiting for serial close on %s", self.port)

        logger.info("Disconnected from GPS on %s", self.port)

    async def _read_fix(self) -> Optional[Fix]:
        while self._reader is not None:
            try:
                line = await asyncio.wait_for(self._reader.readline(), timeout=self.silence_timeout)
            except asyncio.TimeoutError:
                self._last_error = f"No data for {self.silence_timeout:.1f}s"
                return None
            except (OSError, serial.SerialException) as exc:
                self._last_error = str(exc)
                logger.warning("Read error on %s: %s", self.port, exc)
                return None

            if not line:
                self._last_error = "Stream ended (EOF)"
                return None

            fix = self._parser.feed(line.decode("ascii", errors="ignore"))
            if fix is not None:
                return fix
        return None


__all__ = ["SerialFixSource", "DEFAULT_BAUD_RATE"]
