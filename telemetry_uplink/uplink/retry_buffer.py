"""Bounded drop-oldest FIFO of fixes waiting to be transmitted."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterator, List, Optional

from ..fix.types import Fix


@dataclass(frozen=True, slots=True)
class BufferedFix:
    fix: Fix
    enqueued_at: float


class RetryBuffer:
    """FIFO with capacity ``C``; a full buffer evicts its oldest entry.

    Every operation takes the lock only for the in-memory update, so the
    buffer can be shared between the send path and a drain running in a
    different task or thread without ever holding the lock across I/O.
    """

    def __init__(self, capacity: int, clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("RetryBuffer capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: Deque[BufferedFix] = deque()
        self._lock = threading.Lock()
        self.evicted = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def is_full(self) -> bool:
        return len(self) >= self.capacity

    def enqueue(self, fix: Fix) -> Optional[Fix]:
        """Append ``fix``; return the evicted oldest fix if the buffer was full."""
        entry = BufferedFix(fix, self._clock())
        with self._lock:
            evicted = None
            if len(self._entries) >= self.capacity:
                evicted = self._entries.popleft().fix
                self.evicted += 1
            self._entries.append(entry)
        return evicted

    def pop_oldest(self) -> Optional[BufferedFix]:
        with self._lock:
            return self._entries.popleft() if self._entries else None

    def requeue_front(self, entry: BufferedFix) -> Optional[Fix]:
        """Put back an entry whose transmission failed, keeping its position.

        The returned entry is the oldest one by definition, so when the buffer
        has filled up in the meantime it is the one dropped.
        """
        with self._lock:
            if len(self._entries) >= self.capacity:
                self.evicted += 1
                return entry.fix
            self._entries.appendleft(entry)
        return None

    def drain(self) -> Iterator[Fix]:
        """Yield and remove the fixes buffered when the drain starts, oldest first.

        Entries enqueued while the drain is in progress wait for the next one.
        Entries not yet pulled stay in the buffer if the consumer stops early.
        """
        for _ in range(len(self)):
            entry = self.pop_oldest()
            if entry is None:
                return
            yield entry.fix

    def clear(self) -> int:
        """Discard everything; return how many fixes were discarded."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def snapshot(self) -> List[Fix]:
        with self._lock:
            return [entry.fix for entry in self._entries]

    def oldest_age(self) -> Optional[float]:
        with self._lock:
            if not self._entries:
                return None
            return self._clock() - self._entries[0].enqueued_at


__all__ = ["BufferedFix", "RetryBuffer"]
