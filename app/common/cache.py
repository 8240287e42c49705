"""
In-process TTL cache for read-heavy endpoints (course list, leaderboards,
content settings). Entries expire after their TTL and the oldest insert is
evicted once the cache reaches max_size.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60
DEFAULT_MAX_SIZE = 100


class TTLCache:
    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, ttl_seconds: int = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # dicts keep insertion order, so the first key is the oldest insert
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None):
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str):
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self):
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry, returns how many were removed"""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


cache = TTLCache()


async def with_cache(key: str, factory: Callable[[], Awaitable[Any]],
                     ttl_seconds: Optional[int] = None, store: TTLCache = None) -> Any:
    if store is None:
        store = cache
    cached = store.get(key)
    if cached is not None:
        return cached

    value = await factory()
    store.set(key, value, ttl_seconds)
    logger.debug("Cached %s", key)
    return value
