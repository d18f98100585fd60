"""
Small thread-safe TTL cache used for configuration reads.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):
    """key → value with per-entry expiry and a size bound (oldest evicted first)."""

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max = max_entries
        self._clock = clock
        self._data: Dict[Hashable, Tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Optional[V]:
        with self._lock:
            entry = self._data.get(key, _MISSING)
            if entry is _MISSING:
                return default
            expires, value = entry
            if expires <= self._clock():
                del self._data[key]
                return default
            return value

    def set(self, key: Hashable, value: V) -> None:
        if self._ttl <= 0:
            return
        with self._lock:
            self._data.pop(key, None)
            while len(self._data) >= self._max:
                del self._data[next(iter(self._data))]
            self._data[key] = (self._clock() + self._ttl, value)

    def evict(self, key: Hashable) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
