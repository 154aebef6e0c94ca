"""
Time-bound memory cache for successful tool results.

One cache per client session: it is created with the session and cleared
when the session is cleaned up. Expired entries are removed lazily on
lookup; nothing sweeps in the background.

Performance Impact:
    - Cache hit: dictionary lookup, no worker round trip
    - Cache miss: one JSON dump + sha256 for the key
"""

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

DEFAULT_TTL = 300.0  # seconds


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry time."""
    value: Any
    expires_at: float


class ResultCache:
    """
    Key/value store whose entries expire ``ttl`` seconds after insertion.

    Thread safety: NOT thread-safe. Owned by a single asyncio session.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl: Default lifetime of an entry in seconds
            clock: Monotonic time source (overridable for tests)
        """
        if ttl <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def make_key(tool: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Derive the canonical key for a tool invocation.

        Parameter order never affects the key: mappings are serialized with
        sorted keys at every nesting level.

        Example:
            >>> ResultCache.make_key("get-forecast", {"latitude": 1, "longitude": 2}) == \\
            ...     ResultCache.make_key("get-forecast", {"longitude": 2, "latitude": 1})
            True
        """
        key_string = json.dumps(
            {"tool": tool, "params": params or {}},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(key_string.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key``, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default: cache TTL)."""
        ttl = self.ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl}")
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttl": self.ttl,
        }
