"""In-process cache with optional TTL.

Backs the discriminator label cache and the column validation cache. State
is process-wide per instance and only goes away through delete()/clear().
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)


class MemoryCache:
    """Dict-backed cache implementing CacheProtocol.

    Entries without a TTL live until deleted or cleared. Expired entries are
    dropped lazily on get().
    """

    def __init__(self, name: str = "memory", default_ttl: int | None = None) -> None:
        """Initialize an empty cache.

        Args:
            name: Label used in log messages.
            default_ttl: TTL in seconds applied when set() gets none; None means no expiry.
        """
        self.name = name
        self.default_ttl = default_ttl
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return True

    def get(self, key: str) -> Any:
        """Return cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self.default_ttl
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug("Cleared %s cache (%d entries)", self.name, count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
