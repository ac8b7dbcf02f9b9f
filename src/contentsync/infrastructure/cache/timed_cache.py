"""
Time-bounded cache micro-component.

Holds (key -> value, timestamp) pairs and evicts entries older than the
window. Owned by the caller (per session / per request) rather than a
module-level singleton, with an injectable clock so boundary behaviour
can be tested deterministically.

Used for:
- Audit log deduplication (2 second window)
- Missing schema field comparisons (TTL with force refresh)
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

V = TypeVar("V")

_MISSING = object()


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TimedCache(Generic[V]):
    """
    Thread-safe cache whose entries expire after `window_seconds`.

    Usage:
        cache = TimedCache(window_seconds=2.0)
        if not cache.add_if_absent(fingerprint, True):
            return  # duplicate
    """

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds < 0:
            raise ValueError("window_seconds must be >= 0")
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, _Entry[V]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def get(self, key: str, default: Any = None) -> V | Any:
        """Return the live value for key, or default if absent/expired."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            entry = self._entries.get(key)
            return default if entry is None else entry.value

    def put(self, key: str, value: V) -> None:
        """Store value under key, stamped with the current time."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            self._entries[key] = _Entry(value=value, stored_at=now)

    def add_if_absent(self, key: str, value: V) -> bool:
        """
        Store value only if key has no live entry.

        Returns True if this call stored it. Check and store happen under
        one lock, so concurrent callers with the same key get one True.
        """
        with self._lock:
            now = self._clock()
            self._evict(now)
            if key in self._entries:
                return False
            self._entries[key] = _Entry(value=value, stored_at=now)
            return True

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def age(self, key: str) -> float | None:
        """Seconds since key was stored, None if absent/expired."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            entry = self._entries.get(key)
            return None if entry is None else now - entry.stored_at

    def _evict(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.stored_at >= self.window_seconds
        ]
        for key in expired:
            del self._entries[key]
