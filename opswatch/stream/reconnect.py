"""Reconnection policy for the event channel.

Exponential back-off: the delay starts at ``initial_delay`` and doubles after
every failed attempt up to ``max_delay``.  A successful connection resets it.
``enabled=False`` means a dropped channel is never reopened.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from opswatch.models.config import ReconnectConfig


@dataclass
class ReconnectPolicy:
    enabled: bool = True
    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 0  # 0 = unbounded
    multiplier: float = 2.0
    jitter: float = 0.1

    _attempts: int = field(default=0, init=False, repr=False)
    _delay: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        self._delay = self.initial_delay

    @classmethod
    def from_config(cls, config: ReconnectConfig) -> ReconnectPolicy:
        return cls(
            enabled=config.enabled,
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            max_attempts=config.max_attempts,
        )

    @property
    def attempts(self) -> int:
        return self._attempts

    def next_delay(self) -> float | None:
        """Return the seconds to wait before the next attempt, or None to give up."""
        if not self.enabled:
            return None
        if self.max_attempts and self._attempts >= self.max_attempts:
            return None
        delay = self._delay
        self._attempts += 1
        self._delay = min(self._delay * self.multiplier, self.max_delay)
        if self.jitter:
            delay += random.uniform(0, delay * self.jitter)
        return min(delay, self.max_delay)

    def reset(self) -> None:
        self._attempts = 0
        self._delay = self.initial_delay
