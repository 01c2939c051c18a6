"""
Short-lived in-memory cache for resolved searches.
Stores results per exact query with TTL expiration.
Pure optimization: a miss recomputes exactly what a hit would return.
"""
import time
from typing import Any, Callable, Hashable, Optional

DEFAULT_TTL_SECONDS = 30.0


class SearchCache:
    """TTL cache keyed by (query, categories)."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def store(self, key: Hashable, data: Any) -> None:
        """Store data under key until the TTL elapses."""
        if not self.enabled:
            return
        expires_at = self._clock() + self.ttl_seconds
        self._entries[key] = (expires_at, data)
        self._cleanup_expired()

    def retrieve(self, key: Hashable) -> Optional[Any]:
        """Retrieve data by key. Returns None if expired/not found."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, data = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return data

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _cleanup_expired(self) -> None:
        """Remove all expired entries."""
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
