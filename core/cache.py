"""
In-process cache abstraction.

Variant configurations and the resolved store context are cached for the
lifetime of the process. Services take a cache instance in their constructor
so tests can hand each case a fresh MemoryCache instead of sharing
module-level state.

A cached value of None is a real entry: use `key in cache` (or pass a
default to get()) to tell "cached absence" apart from "never fetched".

Usage:
    cache = MemoryCache()
    if key in cache:
        config = cache.get(key)
    else:
        config = fetch()
        cache.set(key, config)
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional


class MemoryCache:
    """
    Append-only key/value store with no TTL.

    Thread Safety:
        - Uses threading.Lock for all operations
        - Concurrent misses on the same key may both fetch upstream; the
          later set() simply overwrites with an equivalent value
    """

    def __init__(self, name: str = "cache"):
        self.name = name
        self._entries: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return the cached value for key, or default if absent."""
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store value under key (None is a valid value)."""
        with self._lock:
            self._entries[key] = value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count
