"""Result Cache - bounded storage for resolved metric datasets

This module keeps successful metric fetches keyed by (metric, query key) so
that switching the filters back to a previously seen combination renders
instantly without a new fetch.

Design:
- One LRU per metric, bounded to ``max_keys`` query keys
- TTL so long sessions do not serve hour-old analytics
- Only successful results are cached; errors are always re-fetched
- Tracks hit/miss/eviction counts for monitoring
- Owned by a single orchestrator on the event-loop thread, so no locking
"""

import time
from collections import OrderedDict
from typing import Any

import structlog

from lifecycle_attribution.foundation.query_key import QueryKey

logger = structlog.get_logger(__name__)


class ResultCache:
    """Per-metric LRU cache of successful fetch results with TTL support.

    Eviction policy:
    - At most ``max_keys`` query keys are retained per metric; inserting a
      new key evicts the least recently used one for that metric
    - Entries older than ``ttl_seconds`` are dropped on access
    - :meth:`clear` drops everything (used on filter reset and session close)
    """

    def __init__(self, max_keys: int = 8, ttl_seconds: int = 900):
        """Initialize result cache.

        Args:
            max_keys: Maximum number of query keys cached per metric (default: 8)
            ttl_seconds: Time-to-live for cache entries in seconds (default: 900 = 15 minutes)
        """
        self._entries: dict[str, OrderedDict[QueryKey, dict[str, Any]]] = {}
        self.max_keys = max_keys
        self.ttl_seconds = ttl_seconds

        self._hits = 0
        self._misses = 0
        self._evictions = 0

        logger.info(
            "result_cache_initialized",
            max_keys=max_keys,
            ttl_seconds=ttl_seconds,
        )

    def get(self, metric: str, key: QueryKey) -> Any | None:
        """Get the cached dataset for ``metric`` at ``key``.

        Returns:
            Cached dataset or None if not found/expired
        """
        bucket = self._entries.get(metric)
        if bucket is None or key not in bucket:
            self._misses += 1
            logger.debug("cache_miss", metric=metric, query_key=key.short)
            return None

        entry = bucket[key]
        age = time.monotonic() - entry["timestamp"]
        if age > self.ttl_seconds:
            del bucket[key]
            self._misses += 1
            logger.debug(
                "cache_expired",
                metric=metric,
                query_key=key.short,
                age_seconds=int(age),
            )
            return None

        bucket.move_to_end(key)
        self._hits += 1
        logger.debug(
            "cache_hit",
            metric=metric,
            query_key=key.short,
            age_seconds=int(age),
            hit_rate=self.get_hit_rate(),
        )
        return entry["data"]

    def set(self, metric: str, key: QueryKey, data: Any) -> None:
        """Store a successful dataset for ``metric`` at ``key``."""
        bucket = self._entries.setdefault(metric, OrderedDict())
        bucket[key] = {"data": data, "timestamp": time.monotonic()}
        bucket.move_to_end(key)

        while len(bucket) > self.max_keys:
            oldest_key, _ = bucket.popitem(last=False)
            self._evictions += 1
            logger.debug(
                "cache_eviction",
                metric=metric,
                query_key=oldest_key.short,
                total_evictions=self._evictions,
            )

    def invalidate(self, metric: str, key: QueryKey) -> None:
        """Drop a single entry (used by manual refresh)."""
        bucket = self._entries.get(metric)
        if bucket is not None:
            bucket.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        entries_cleared = sum(len(bucket) for bucket in self._entries.values())
        self._entries.clear()
        logger.info("result_cache_cleared", entries_cleared=entries_cleared)

    def size(self, metric: str | None = None) -> int:
        if metric is not None:
            return len(self._entries.get(metric, ()))
        return sum(len(bucket) for bucket in self._entries.values())

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate, size, evictions
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self.get_hit_rate(),
            "size": self.size(),
            "max_keys_per_metric": self.max_keys,
            "evictions": self._evictions,
            "ttl_seconds": self.ttl_seconds,
        }

    def get_hit_rate(self) -> float:
        """Get cache hit rate (0.0 to 1.0)."""
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0
