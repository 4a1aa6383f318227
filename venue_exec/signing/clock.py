"""Strictly increasing millisecond clock for request timestamps and nonces."""

from __future__ import annotations

import threading
import time
from typing import Callable


class MonotonicMillis:
    """Wall-clock milliseconds that never repeat or go backwards.

    Shared by every execution routed through one adapter so two signed
    calls can never carry the same timestamp/nonce, even when issued in the
    same millisecond or after a host clock step.
    """

    def __init__(self, time_fn: Callable[[], float] = time.time) -> None:
        self._time_fn = time_fn
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = int(self._time_fn() * 1000)
            value = now if now > self._last else self._last + 1
            self._last = value
            return value

    @property
    def last(self) -> int:
        return self._last
