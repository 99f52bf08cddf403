from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Iterable
from urllib.parse import urlencode


@dataclass
class CacheEntry:
    key: str
    body: Any
    stored_at: float
    ttl_seconds: int
    status_code: int = 200

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds


def make_cache_key(path: str, query: Iterable[tuple[str, str]]) -> str:
    """Build the cache key from the normalized path and the sorted query string."""
    normalized_path = "/" + path.strip("/")
    query_string = urlencode(sorted(query))
    if not query_string:
        return normalized_path
    return f"{normalized_path}?{query_string}"


class ResponseCache:
    """Unbounded in-memory TTL cache for proxied upstream responses.

    Expired entries are dropped on read, and swept in bulk from ``put`` at most
    once per ``sweep_interval_seconds``.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval_seconds: int = 900):
        self._store: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._purged = 0
        self._clock = clock
        self._sweep_interval_seconds = sweep_interval_seconds
        self._next_sweep_at = clock() + sweep_interval_seconds
        self._lock = Lock()

    def get(self, key: str) -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if not entry:
                self._misses += 1
                return None
            if entry.is_expired(now):
                self._store.pop(key, None)
                self._purged += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def put(self, key: str, body: Any, ttl_seconds: int, status_code: int = 200):
        now = self._clock()
        entry = CacheEntry(key=key, body=body, stored_at=now, ttl_seconds=ttl_seconds, status_code=status_code)
        with self._lock:
            if now >= self._next_sweep_at:
                self._drop_expired(now)
            self._store[key] = entry

    def _drop_expired(self, now: float):
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        self._purged += len(expired)
        self._next_sweep_at = now + self._sweep_interval_seconds

    def metrics(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._store), "purged": self._purged}
