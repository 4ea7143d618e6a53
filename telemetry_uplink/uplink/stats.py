"""Delivery counters for the uplink session."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class SendResult(Enum):
    """Outcome of ``UplinkSession.send``."""
    SENT = "sent"        # Written to the connection
    QUEUED = "queued"    # Held in the retry buffer for later delivery
    DROPPED = "dropped"  # Buffered, but only by evicting the oldest buffered fix


@dataclass
class UplinkStats:
    sent: int = 0
    queued: int = 0
    dropped: int = 0
    discarded: int = 0
    send_failures: int = 0
    send_timeouts: int = 0
    reconnects: int = 0
    connect_failures: int = 0
    connection_drops: int = 0
    connectivity_losses: int = 0
    failovers: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


__all__ = ["SendResult", "UplinkStats"]
