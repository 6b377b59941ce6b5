"""Process-wide nonce allocation."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .encoding import MAX_NONCE

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class NonceManager:
    """Hands out strictly increasing nonces to concurrent callers.

    The counter starts at the current wall-clock time in milliseconds, or just
    above ``high_water_mark`` if that is later, so a restarted process never
    reuses a nonce the exchange has already seen. Successive calls return
    consecutive integers; if the counter falls more than ``max_lag_ms`` behind
    the clock it jumps forward to the clock, since the exchange refuses
    nonces that are too old.

    One instance should be shared by everything that signs with the same key.
    """

    def __init__(
        self,
        high_water_mark: int | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        max_lag_ms: int = 300_000,
        max_lead_ms: int = 1_000,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._max_lag_ms = max_lag_ms
        self._max_lead_ms = max_lead_ms

        start = clock()
        if high_water_mark is not None and high_water_mark >= start:
            start = high_water_mark + 1
        self._next = start

    @property
    def high_water_mark(self) -> int:
        """Largest nonce handed out so far (or the seed minus one)."""
        with self._lock:
            return self._next - 1

    def next(self) -> int:
        now = self._clock()
        with self._lock:
            if self._next + self._max_lag_ms < now:
                logger.info("nonce counter lagged the clock, jumping from %d to %d", self._next, now)
                self._next = now
            nonce = self._next
            if nonce > MAX_NONCE:
                raise OverflowError("nonce space exhausted")
            self._next = nonce + 1

        if nonce > now + self._max_lead_ms:
            logger.warning("nonce %d is %d ms ahead of the clock", nonce, nonce - now)
        return nonce
