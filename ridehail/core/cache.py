"""
In-process read-through caches with a fixed time-to-live.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from ridehail.core.config import settings


class TTLCache:
    """Maps keys to values that expire `ttl_seconds` after they were stored."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when no key is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        value = self.get(key)
        if value is None:
            value = await loader()
            self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._entries)


category_cache = TTLCache(settings.CATEGORY_CACHE_TTL_SECONDS)
ride_history_cache = TTLCache(settings.RIDE_HISTORY_CACHE_TTL_SECONDS)
