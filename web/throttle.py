"""
Request Throttle - Sliding-Window Rate Limiting for /api/ Routes

In-process and per client address; each worker keeps its own window.
Identifiers whose window has fully expired are swept at most once per window.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class SlidingWindowThrottle:
    """At most `limit` requests per `window_seconds` for each identifier."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._requests: dict[str, list[float]] = {}
        self._last_sweep = self._clock()
        self._lock = threading.Lock()

    def allow(self, identifier: str) -> bool:
        """Record one request; False when the identifier is over its limit."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            recent = [
                t for t in self._requests.get(identifier, ())
                if now - t < self.window_seconds
            ]
            if len(recent) >= self.limit:
                self._requests[identifier] = recent
                return False
            recent.append(now)
            self._requests[identifier] = recent
            return True

    def tracked(self) -> int:
        """Number of identifiers currently holding request timestamps."""
        with self._lock:
            return len(self._requests)

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()

    def _sweep(self, now: float) -> None:
        # Timestamps are appended in order, so the last one is the newest
        stale = [
            key for key, stamps in self._requests.items()
            if not stamps or now - stamps[-1] >= self.window_seconds
        ]
        for key in stale:
            del self._requests[key]
        self._last_sweep = now
