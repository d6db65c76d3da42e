"""
In-process sliding-window rate limiter

Keeps recent attempt timestamps per key. State lives in this process only and
is lost on restart; one instance is shared through the container. Keys whose
attempts have all left the window are swept out at most once per window.
"""

import threading
from collections import deque
from datetime import datetime
from typing import Deque, Dict, Optional

from profileapi.utils.timezone_utils import Clock, ensure_aware, utc_now


class SlidingWindowRateLimiter:
    """At most ``max_requests`` attempts per key within ``window_seconds``."""

    def __init__(self, window_seconds: int, max_requests: int, clock: Clock = utc_now):
        if window_seconds <= 0 or max_requests <= 0:
            raise ValueError("window_seconds and max_requests must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.clock = clock
        self._lock = threading.Lock()
        self._attempts: Dict[str, Deque[datetime]] = {}
        self._last_sweep: Optional[datetime] = None

    def __len__(self) -> int:
        """Number of keys currently tracked"""
        with self._lock:
            return len(self._attempts)

    def _prune(self, attempts: Deque[datetime], now: datetime) -> None:
        while attempts and (now - attempts[0]).total_seconds() >= self.window_seconds:
            attempts.popleft()

    def _sweep(self, now: datetime) -> None:
        if (
            self._last_sweep is not None
            and (now - self._last_sweep).total_seconds() < self.window_seconds
        ):
            return
        self._last_sweep = now
        for key in list(self._attempts):
            attempts = self._attempts[key]
            self._prune(attempts, now)
            if not attempts:
                del self._attempts[key]

    def is_allowed(self, key: str) -> bool:
        """Record an attempt for ``key`` and report whether it fits the window.

        Rejected attempts are not recorded.
        """
        now = ensure_aware(self.clock())
        with self._lock:
            self._sweep(now)
            attempts = self._attempts.setdefault(key, deque())
            self._prune(attempts, now)

            if len(attempts) >= self.max_requests:
                return False

            attempts.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest attempt for ``key`` leaves the window."""
        now = ensure_aware(self.clock())
        with self._lock:
            attempts = self._attempts.get(key)
            if not attempts or len(attempts) < self.max_requests:
                return 0
            remaining = self.window_seconds - (now - attempts[0]).total_seconds()
        return max(int(remaining + 0.999), 0)

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()
            self._last_sweep = None
