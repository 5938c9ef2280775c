# logguard/core/cache.py
"""
Client-side cache for server-owned resources

Populate on first read, invalidate on write, lazily refetch on next read.
Keys are tuples such as ("/api/anomalies",) or ("/api/anomalies", "a1");
invalidating a key invalidates every key that starts with it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, ...]

# Well-known resource keys
ANOMALIES: CacheKey = ("/api/anomalies",)
LOG_FILES: CacheKey = ("/api/log-files",)
STATS: CacheKey = ("/api/stats",)
PROCESSING_JOBS: CacheKey = ("/api/processing-jobs",)
API_KEY_STATUS: CacheKey = ("/api/user-api-keys/status",)
AI_PROVIDERS: CacheKey = ("/api/ai-providers",)
WEBHOOKS: CacheKey = ("/api/webhooks",)
METRICS: CacheKey = ("/api/metrics",)


def anomaly_key(anomaly_id: str) -> CacheKey:
    return ANOMALIES + (anomaly_id,)


def metrics_key(time_range: str) -> CacheKey:
    return METRICS + (str(time_range),)


@dataclass
class _Entry:
    value: Any
    stale: bool = False


class QueryCache:
    """
    Explicit cache service injected into the workflow services

    Usage:
        cache = QueryCache()
        anomalies = await cache.get(ANOMALIES, client.list_anomalies)
        cache.invalidate(ANOMALIES)  # next get() refetches
    """

    def __init__(self):
        self._entries: Dict[CacheKey, _Entry] = {}
        self._generations: Dict[CacheKey, int] = {}
        self._subscribers: List[Tuple[CacheKey, Callable[[CacheKey], None]]] = []

    @staticmethod
    def _matches(key: CacheKey, prefix: CacheKey) -> bool:
        return key[:len(prefix)] == prefix

    def _generation(self, key: CacheKey) -> int:
        return self._generations.get(key, 0)

    async def get(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for key, loading it when missing or stale

        A load that was overtaken by an invalidation still returns its value
        to the caller but is not written back to the cache.
        """
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.value

        generation = self._generations.setdefault(key, 0)
        value = await loader()

        if self._generation(key) == generation:
            self._entries[key] = _Entry(value)
        else:
            logger.debug(f"Discarding late response for {key}")
        return value

    def peek(self, key: CacheKey) -> Optional[Any]:
        """Cached value without loading (stale values included)"""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def is_fresh(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.stale

    def set(self, key: CacheKey, value: Any):
        self._entries[key] = _Entry(value)

    def invalidate(self, prefix: CacheKey) -> int:
        """
        Mark every entry under prefix stale and notify subscribers

        Returns:
            Number of cached entries marked stale
        """
        count = 0
        for key, entry in self._entries.items():
            if self._matches(key, prefix):
                entry.stale = True
                count += 1

        # Bump generations so in-flight loads under the prefix are not stored
        for key in set(self._entries) | set(self._generations):
            if self._matches(key, prefix):
                self._generations[key] = self._generation(key) + 1
        self._generations[prefix] = self._generation(prefix) + 1

        logger.debug(f"Invalidated {count} entries under {prefix}")

        for sub_key, callback in list(self._subscribers):
            if self._matches(sub_key, prefix) or self._matches(prefix, sub_key):
                try:
                    callback(prefix)
                except Exception as e:
                    logger.error(f"Cache subscriber for {sub_key} failed: {e}", exc_info=True)
        return count

    def subscribe(self, key: CacheKey, callback: Callable[[CacheKey], None]) -> Callable[[], None]:
        """
        Call callback(prefix) whenever key (or a parent/child of it) is invalidated

        Returns:
            Function that removes the subscription
        """
        item = (key, callback)
        self._subscribers.append(item)

        def unsubscribe():
            if item in self._subscribers:
                self._subscribers.remove(item)

        return unsubscribe

    def clear(self):
        self._entries.clear()
        self._generations.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<QueryCache(entries={len(self._entries)})>"
