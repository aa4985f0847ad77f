"""A thread-safe string-to-string cache."""

from __future__ import annotations

import threading


class LocalCache:
    """A dictionary of strings guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[str, str] = {}

    def add(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        with self._lock:
            self._items[key] = value

    def get(self, key: str) -> str:
        """Return the value for ``key``, or an empty string if absent."""
        with self._lock:
            return self._items.get(key, "")

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)