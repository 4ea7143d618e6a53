"""
Reconnect backoff - exponential delays with symmetric jitter.

Many vehicles lose coverage at the same moment (a tunnel, a cell outage), so
reconnect attempts are spread with +/- jitter to keep them from arriving at
the endpoint in lockstep.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class BackoffConfig:
    """Configuration for reconnect backoff."""
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: float = 0.2  # 0.2 = +/-20%

    def __post_init__(self) -> None:
        if self.base_delay <= 0 or self.max_delay < self.base_delay:
            raise ValueError("backoff requires 0 < base_delay <= max_delay")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1")
        if not 0.0 <= self.jitter < 1.0:
            raise ValueError("jitter must be in [0, 1)")


class ExponentialBackoff:
    """
    Stateful delay generator for consecutive reconnect failures.

    Usage:
        backoff = ExponentialBackoff(BackoffConfig())
        while not await connect():
            await asyncio.sleep(backoff.next_delay())
        backoff.reset()

    The n-th consecutive delay is ``base * factor ** (n - 1)`` capped at
    ``max_delay``, then scaled by a uniform factor in ``[1 - jitter, 1 + jitter]``.
    """

    def __init__(
        self,
        config: Optional[BackoffConfig] = None,
        rng: Optional[Callable[[float, float], float]] = None,
    ):
        self.config = config or BackoffConfig()
        self._uniform = rng or random.uniform
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt

    def get_delay(self, attempt: int) -> float:
        """Delay before the given (1-based) attempt, jitter applied."""
        if attempt < 1:
            return 0.0
        config = self.config
        delay = min(
            # Exponent clamped so long outages cannot overflow the float
            config.base_delay * (config.backoff_factor ** min(attempt - 1, 64)),
            config.max_delay,
        )
        if config.jitter > 0:
            delay *= self._uniform(1.0 - config.jitter, 1.0 + config.jitter)
        return max(0.0, delay)

    def next_delay(self) -> float:
        self._attempt += 1
        return self.get_delay(self._attempt)

    def reset(self) -> None:
        self._attempt = 0


__all__ = ["BackoffConfig", "ExponentialBackoff"]
