"""Fixed-window rate limiter injected into the application state"""

import threading
import time
from typing import Callable, Dict, Tuple

PRUNE_EVERY = 256


class RateLimiter:
    """
    Allow ``max_requests`` per key inside each window of ``window_seconds``.

    One instance lives for the lifetime of the app; the clock is injectable
    so tests can advance time without sleeping. Expired windows are dropped
    every ``prune_every`` calls, so the map only holds keys seen within the
    last window.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = PRUNE_EVERY,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if prune_every < 1:
            raise ValueError("prune_every must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prune_every = prune_every
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._calls = 0
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Count a request for ``key``; False once the window is exhausted"""
        now = self._clock()
        with self._lock:
            self._calls += 1
            if self._calls % self.prune_every == 0:
                self._prune(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_requests:
                self._windows[key] = (started, count)
                return False
            self._windows[key] = (started, count + 1)
            return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until ``key``'s window resets"""
        with self._lock:
            started, _ = self._windows.get(key, (self._clock(), 0))
        remaining = self.window_seconds - (self._clock() - started)
        return max(0, int(remaining + 0.999))

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._calls = 0

    def _prune(self, now: float) -> None:
        # caller holds the lock
        expired = [
            key for key, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
