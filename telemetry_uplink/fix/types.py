"""Position fix data types."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union


class FixQuality(IntEnum):
    """Dimensionality of a position fix, ordered so comparisons work."""

    NO_FIX = 1
    FIX_2D = 2
    FIX_3D = 3

    @classmethod
    def from_mode(cls, mode: Optional[int]) -> "FixQuality":
        """Map a gpsd ``mode`` / NMEA GSA fix type (1, 2, 3) to a quality."""
        try:
            return cls(int(mode or 1))
        except ValueError:
            return cls.NO_FIX

    @classmethod
    def parse(cls, value: Union[str, int, "FixQuality"]) -> "FixQuality":
        """Parse a config value such as ``"2d"``, ``"FIX_3D"`` or ``3``."""
        if isinstance(value, FixQuality):
            return value
        if isinstance(value, int):
            return cls.from_mode(value)
        text = value.strip().upper().replace("-", "_")
        aliases = {"NONE": "NO_FIX", "NOFIX": "NO_FIX", "2D": "FIX_2D", "3D": "FIX_3D"}
        text = aliases.get(text, text)
        try:
            return cls[text]
        except KeyError:
            raise ValueError(f"Unknown fix quality '{value}'") from None


@dataclass(frozen=True, slots=True)
class Fix:
    """One GPS position sample."""

    captured_at: dt.datetime
    latitude: float
    longitude: float
    quality: FixQuality = FixQuality.FIX_3D

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True, slots=True)
class SourceStopped:
    """Terminal result of ``FixSource.next()`` until ``restart()`` is called."""

    reason: str = "source stopped"


FixResult = Union[Fix, SourceStopped]


__all__ = ["Fix", "FixQuality", "FixResult", "SourceStopped"]
