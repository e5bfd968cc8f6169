"""Exponential backoff schedule for retrying rate-limited or timed-out provider calls."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from random import Random, SystemRandom


@dataclass(frozen=True)
class BackoffSchedule:
    max_attempts: int = 3
    base_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 8.0
    jitter: float = 0.25

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.factor < 1:
            raise ValueError("factor must be >= 1")
        if self.max_delay <= 0:
            raise ValueError("max_delay must be > 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")

    def attempts(self, rng: Random | None = None) -> Iterator[tuple[int, float]]:
        """Yield `(attempt, delay_seconds)`; the delay is what to sleep after that attempt fails."""
        rng = rng or SystemRandom()
        delay = self.base_delay
        for attempt in range(1, self.max_attempts + 1):
            spread = rng.uniform(0, delay * self.jitter) if self.jitter > 0 else 0.0
            yield attempt, min(delay + spread, self.max_delay)
            delay = min(delay * self.factor, self.max_delay)


def exponential_backoff(
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    factor: float = 2.0,
    max_delay: float = 8.0,
    jitter: float = 0.25,
    rng: Random | None = None,
) -> Iterator[tuple[int, float]]:
    schedule = BackoffSchedule(
        max_attempts=max_attempts,
        base_delay=base_delay,
        factor=factor,
        max_delay=max_delay,
        jitter=jitter,
    )
    return schedule.attempts(rng)
