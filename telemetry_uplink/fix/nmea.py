"""NMEA sentence parsing for serial GPS receivers.

The parser is stateful: the date only arrives in RMC sentences and the 2D/3D
fix mode only in GSA sentences, so both are remembered and merged into the
fixes produced from position-bearing sentences (GGA, RMC, GLL).
"""

from __future__ import annotations

import datetime as dt
from typing import Callable, Dict, List, Optional

from .types import Fix, FixQuality


def validate_checksum(sentence: str) -> bool:
    """Check the ``*HH`` XOR checksum of an NMEA sentence."""
    if not sentence.startswith("$") or "*" not in sentence:
        return False
    body, _, checksum = sentence[1:].partition("*")
    try:
        expected = int(checksum[:2], 16)
    except ValueError:
        return False
    calculated = 0
    for char in body:
        calculated ^= ord(char)
    return calculated == expected


def parse_coordinate(value: str, hemisphere: str, *, degree_digits: int) -> Optional[float]:
    """Convert ``DDMM.MMMM`` / ``DDDMM.MMMM`` plus hemisphere to signed degrees."""
    if not value or not hemisphere or len(value) < degree_digits:
        return None
    try:
        degrees = int(value[:degree_digits])
        minutes = float(value[degree_digits:])
    except ValueError:
        return None
    decimal = degrees + minutes / 60.0
    return -decimal if hemisphere.upper() in ("S", "W") else decimal


def parse_utc_time(value: str) -> Optional[dt.time]:
    """Convert ``HHMMSS[.sss]`` to an aware UTC time."""
    whole, _, fraction = value.strip().partition(".")
    if not whole:
        return None
    whole = whole.rjust(6, "0")
    try:
        return dt.time(
            int(whole[0:2]),
            int(whole[2:4]),
            int(whole[4:6]),
            int(fraction[:6].ljust(6, "0") or 0),
            tzinfo=dt.timezone.utc,
        )
    except ValueError:
        return None


def parse_date(value: str) -> Optional[dt.date]:
    """Convert ``DDMMYY`` to a date in the 2000s."""
    if len(value) != 6:
        return None
    try:
        return dt.date(2000 + int(value[4:6]), int(value[2:4]), int(value[0:2]))
    except ValueError:
        return None


class NMEAFixParser:
    """Turns a stream of NMEA sentences into :class:`Fix` values.

    At most one fix is produced per receiver epoch: when GGA and RMC report
    the same UTC time, only the first of them yields a fix.
    """

    def __init__(
        self,
        validate_checksums: bool = True,
        clock: Callable[[], dt.datetime] = lambda: dt.datetime.now(dt.timezone.utc),
    ):
        self._validate_checksums = validate_checksums
        self._clock = clock
        self._last_date: Optional[dt.date] = None
        self._gsa_quality: Optional[FixQuality] = None
        self._last_epoch: Optional[dt.datetime] = None
        self._handlers: Dict[str, Callable[[List[str]], Optional[Fix]]] = {
            "GGA": self._parse_gga,
            "RMC": self._parse_rmc,
            "GLL": self._parse_gll,
            "GSA": self._parse_gsa,
        }
        self.rejected = 0

    def reset(self) -> None:
        self._last_date = None
        self._gsa_quality = None
        self._last_epoch = None

    def feed(self, sentence: str) -> Optional[Fix]:
        """Parse one sentence; return a fix if it completed a new position."""
        sentence = sentence.strip()
        if not sentence.startswith("$"):
            return None
        if self._validate_checksums and not validate_checksum(sentence):
            self.rejected += 1
            return None

        fields = sentence[1:].split("*", 1)[0].split(",")
        handler = self._handlers.get(fields[0][-3:].upper())
        if handler is None:
            return None
        return handler(fields[1:])

    def _timestamp(self, time_field: str) -> dt.datetime:
        time_of_day = parse_utc_time(time_field) if time_field else None
        if time_of_day is None:
            return self._clock()
        date = self._last_date or self._clock().date()
        return dt.datetime.combine(date, time_of_day)

    def _emit(self, time_field: str, lat: Optional[float], lon: Optional[float],
              default_quality: FixQuality) -> Optional[Fix]:
        if lat is None or lon is None:
            return None
        captured_at = self._timestamp(time_field)
        if captured_at == self._last_epoch:
            return None
        self._last_epoch = captured_at
        quality = self._gsa_quality or default_quality
        try:
            return Fix(captured_at, lat, lon, quality)
        except ValueError:
            self.rejected += 1
            return None

    def _parse_gga(self, fields: List[str]) -> Optional[Fix]:
        # time, lat, N/S, lon, E/W, quality, satellites, hdop, altitude, ...
        if len(fields) < 9:
            return None
        if fields[5] in ("", "0"):
            return None
        lat = parse_coordinate(fields[1], fields[2], degree_digits=2)
        lon = parse_coordinate(fields[3], fields[4], degree_digits=3)
        return self._emit(fields[0], lat, lon, FixQuality.FIX_3D if fields[8] else FixQuality.FIX_2D)

    def _parse_rmc(self, fields: List[str]) -> Optional[Fix]:
        # time, status, lat, N/S, lon, E/W, speed, course, date, ...
        if len(fields) < 9:
            return None
        date = parse_date(fields[8])
        if date:
            self._last_date = date
        if fields[1].upper() != "A":
            return None
        lat = parse_coordinate(fields[2], fields[3], degree_digits=2)
        lon = parse_coordinate(fields[4], fields[5], degree_digits=3)
        return self._emit(fields[0], lat, lon, FixQuality.FIX_2D)

    def _parse_gll(self, fields: List[str]) -> Optional[Fix]:
        # lat, N/S, lon, E/W, time, status
        if len(fields) < 6 or fields[5].upper() != "A":
            return None
        lat = parse_coordinate(fields[0], fields[1], degree_digits=2)
        lon = parse_coordinate(fields[2], fields[3], degree_digits=3)
        return self._emit(fields[4], lat, lon, FixQuality.FIX_2D)

    def _parse_gsa(self, fields: List[str]) -> Optional[Fix]:
        # mode (A/M), fix type (1-3), ...
        if len(fields) < 2 or not fields[1]:
            return None
        self._gsa_quality = FixQuality.from_mode(int(fields[1])) if fields[1].isdigit() else None
        return None


__all__ = [
    "NMEAFixParser",
    "parse_coordinate",
    "parse_date",
    "parse_utc_time",
    "validate_checksum",
]
