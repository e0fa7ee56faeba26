from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class _Entry:
    value: bytes
    expires_at: float


class CacheStore:
    """In-process key -> bytes store with per-entry TTL.

    Expired entries read as absent and are dropped on access; ``sweep`` removes
    the rest so memory does not grow with one-off keys. Single-key get/set are
    atomic; concurrent sets on one key are last-write-wins.
    """

    def __init__(
        self,
        default_ttl: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = float(default_ttl)
        self.name = name
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: bytes, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else float(ttl)
        entry = _Entry(value=value, expires_at=self._clock() + max(0.0, ttl))
        with self._lock:
            self._entries[key] = entry

    def sweep(self) -> int:
        """Delete expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
