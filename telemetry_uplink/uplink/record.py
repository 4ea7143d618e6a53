"""Wire framing: one ``<lat>,<lon>\\n`` ASCII line per fix."""

from __future__ import annotations

from ..fix.types import Fix

DEFAULT_PRECISION = 7  # ~1 cm at the equator
MAX_PRECISION = 12


def encode_record(fix: Fix, precision: int = DEFAULT_PRECISION) -> bytes:
    """Serialize ``fix`` to exactly one newline-terminated ASCII line.

    Fields are fixed-point decimals so values near zero never fall back to
    exponent notation.
    """
    if not 0 <= precision <= MAX_PRECISION:
        raise ValueError(f"precision must be between 0 and {MAX_PRECISION}")
    return f"{fix.latitude:.{precision}f},{fix.longitude:.{precision}f}\n".encode("ascii")


def decode_record(line: bytes) -> tuple[float, float]:
    """Parse a record line back into ``(latitude, longitude)``."""
    text = line.decode("ascii").rstrip("\n")
    lat, lon = text.split(",")
    return float(lat), float(lon)


__all__ = ["DEFAULT_PRECISION", "decode_record", "encode_record"]
