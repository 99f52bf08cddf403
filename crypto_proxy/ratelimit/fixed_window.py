from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass
class RateWindow:
    window_start: float
    count: int
    limit: int
    window_seconds: int

    def reset_at(self) -> float:
        return self.window_start + self.window_seconds

    def is_open(self, now: float) -> bool:
        return now < self.reset_at()


@dataclass
class RateDecision:
    admitted: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after_seconds(self, now: float) -> int:
        return max(int(self.reset_at - now + 0.999), 0)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at * 1000)),
        }


class FixedWindowRateLimiter:
    """Per-identity fixed window quota. A window opens on the first request after the previous one elapsed.

    Closed windows are swept at most once per window duration, so the map only
    holds identities seen during roughly the last two windows.
    """

    def __init__(self, limit: int = 100, window_seconds: int = 900, clock: Callable[[], float] = time.time):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self._windows: dict[str, RateWindow] = {}
        self._clock = clock
        self._next_sweep_at = clock() + window_seconds
        self._lock = Lock()

    def now(self) -> float:
        return self._clock()

    def _current(self, identity: str, now: float) -> RateWindow:
        window = self._windows.get(identity)
        if window is None or not window.is_open(now):
            window = RateWindow(window_start=now, count=0, limit=self.limit, window_seconds=self.window_seconds)
            self._windows[identity] = window
        return window

    def _drop_closed(self, now: float):
        closed = [identity for identity, window in self._windows.items() if not window.is_open(now)]
        for identity in closed:
            del self._windows[identity]
        self._next_sweep_at = now + self.window_seconds

    def allow(self, identity: str) -> RateDecision:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep_at:
                self._drop_closed(now)
            window = self._current(identity, now)
            if window.count >= window.limit:
                return RateDecision(admitted=False, limit=window.limit, remaining=0, reset_at=window.reset_at())
            window.count += 1
            return RateDecision(
                admitted=True,
                limit=window.limit,
                remaining=window.limit - window.count,
                reset_at=window.reset_at(),
            )

    def status(self, identity: str) -> RateDecision:
        """Current quota for an identity without consuming a request."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None or not window.is_open(now):
                return RateDecision(admitted=True, limit=self.limit, remaining=self.limit, reset_at=now + self.window_seconds)
            return RateDecision(
                admitted=window.count < window.limit,
                limit=window.limit,
                remaining=max(window.limit - window.count, 0),
                reset_at=window.reset_at(),
            )

    def snapshot(self) -> dict[str, int]:
        now = self._clock()
        with self._lock:
            open_windows = [window for window in self._windows.values() if window.is_open(now)]
            return {
                "limit": self.limit,
                "window_seconds": self.window_seconds,
                "tracked_clients": len(self._windows),
                "active_clients": len(open_windows),
                "limited_clients": sum(1 for window in open_windows if window.count >= window.limit),
            }
