"""
In-memory record cache with TTL expiration and LRU eviction.

Used by the SoundCloud client so the profile and tracks shared by several
playlists are only fetched once per run.
"""

import time
from collections import OrderedDict
from typing import Any, Dict, Hashable, Iterable, Optional


class TTLCache:
    """Simple in-memory cache with TTL expiration and LRU eviction."""

    def __init__(self, max_size: int = 1000, ttl_seconds: int = 3600):
        """
        Initialize cache.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            ttl_seconds: Time-to-live in seconds (entries expire after this time)
        """
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[Hashable, tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float) -> bool:
        return time.monotonic() - stored_at > self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        """Get value from cache if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if self._expired(stored_at):
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return value

    def get_many(self, keys: Iterable[Hashable]) -> Dict[Hashable, Any]:
        """Return the cached subset of ``keys`` as a dict."""
        hits = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                hits[key] = value
        return hits

    def set(self, key: Hashable, value: Any) -> None:
        """Store value, evicting the least recently used entry when full."""
        if self.max_size <= 0:
            return
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (time.monotonic(), value)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._entries.clear()

    def cleanup_expired(self) -> None:
        """Remove all expired entries."""
        expired = [
            key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at)
        ]
        for key in expired:
            del self._entries[key]
