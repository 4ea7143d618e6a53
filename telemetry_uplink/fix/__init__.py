"""Fix sources: lazy streams of GPS position samples."""

from .base_source import BaseFixSource, SourceState
from .gpsd_source import GpsdFixSource
from .nmea import NMEAFixParser
from .serial_source import SerialFixSource
from .types import Fix, FixQuality, FixResult, SourceStopped

__all__ = [
    "BaseFixSource",
    "Fix",
    "FixQuality",
    "FixResult",
    "GpsdFixSource",
    "NMEAFixParser",
    "SerialFixSource",
    "SourceState",
    "SourceStopped",
]
