"""Reconnect delay policy."""

from __future__ import annotations

import random
import time
from typing import Callable

from ..errors import StreamFatal
from ..settings import BackoffSettings


class Backoff:
    """Capped exponential backoff with jitter and a give-up ceiling.

    Jitter only ever shortens a delay, so ``max_delay`` is a hard cap.
    """

    def __init__(
        self,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        factor: float = 2.0,
        jitter: float = 0.2,
        max_attempts: int | None = 10,
        max_elapsed: float | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("need 0 < base_delay <= max_delay")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self.max_attempts = max_attempts
        self.max_elapsed = max_elapsed
        self._rng = rng or random.Random()
        self._clock = clock
        self._attempts = 0
        self._started: float | None = None

    @classmethod
    def from_settings(cls, settings: BackoffSettings, **kwargs) -> "Backoff":
        return cls(
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            factor=settings.factor,
            jitter=settings.jitter,
            max_attempts=settings.max_attempts,
            max_elapsed=settings.max_elapsed,
            **kwargs,
        )

    @property
    def attempts(self) -> int:
        return self._attempts

    def next_delay(self) -> float:
        """Delay before the next attempt. Raises ``StreamFatal`` when exhausted."""
        now = self._clock()
        if self._started is None:
            self._started = now
        if self.max_attempts is not None and self._attempts >= self.max_attempts:
            raise StreamFatal(
                f"giving up after {self._attempts} reconnect attempts",
                attempts=self._attempts,
            )
        if self.max_elapsed is not None and now - self._started >= self.max_elapsed:
            raise StreamFatal(
                f"giving up after {now - self._started:.1f}s of reconnecting",
                attempts=self._attempts,
            )

        delay = min(self.max_delay, self.base_delay * self.factor**self._attempts)
        if self.jitter:
            delay *= 1 - self.jitter * self._rng.random()
        self._attempts += 1
        return delay

    def reset(self) -> None:
        self._attempts = 0
        self._started = None
