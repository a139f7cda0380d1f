"""
In-process result cache for provider reports.

Features:
- SHA256 hash-based keys over provider, account and the full request
- TTL per entry (default: 5 minutes)
- Lazy eviction on read plus a periodic sweep task
- Hit/miss tracking

Usage:
    cache = ResultCache(ttl_seconds=300)
    key = cache.make_key("search_console", site_url, request.canonical_payload())
    records = cache.get(key)
    if records is None:
        records = await fetch()
        cache.set(key, records)
"""

import asyncio
import copy
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from ...models.metrics import MetricRecord

logger = logging.getLogger(__name__)


class CacheMetrics(BaseModel):
    """Cache performance metrics."""

    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.cache_hits / self.total_requests


@dataclass
class CacheEntry:
    """Cached records and their expiry (monotonic seconds)."""

    data: List[MetricRecord]
    expires_at: float


class ResultCache:
    """
    TTL-bounded store keyed by canonicalized request.

    Entries are deep-copied on the way in and out so callers can mutate
    returned records without corrupting the cache.
    """

    CACHE_KEY_PREFIX = "metrics:cache:"
    DEFAULT_TTL = 300  # 5 minutes

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self.metrics = CacheMetrics()

    @classmethod
    def make_key(cls, provider: str, account_id: str, payload: Dict[str, Any]) -> str:
        """
        Build a deterministic cache key.

        Args:
            provider: Provider name
            account_id: Site URL or property id
            payload: JSON-safe request representation

        Returns:
            Cache key string
        """
        param_str = json.dumps(payload, sort_keys=True, default=str)
        param_hash = hashlib.sha256(param_str.encode()).hexdigest()
        return f"{cls.CACHE_KEY_PREFIX}{provider}:{account_id}:{param_hash}"

    def get(self, key: str) -> Optional[List[MetricRecord]]:
        """Return unexpired records for ``key`` or None."""
        self.metrics.total_requests += 1
        entry = self._entries.get(key)

        if entry is None:
            self.metrics.cache_misses += 1
            return None

        if entry.expires_at <= self._clock():
            del self._entries[key]
            self.metrics.cache_misses += 1
            self.metrics.evictions += 1
            logger.debug(f"Cache entry expired: key={key}")
            return None

        self.metrics.cache_hits += 1
        logger.debug(f"Cache HIT: key={key}")
        return copy.deepcopy(entry.data)

    def set(self, key: str, data: List[MetricRecord], ttl: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        self._entries[key] = CacheEntry(
            data=copy.deepcopy(data),
            expires_at=self._clock() + ttl,
        )
        logger.debug(f"Cached {len(data)} records: key={key}, ttl={ttl}s")

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """
        Evict every expired entry.

        Returns:
            Number of entries evicted
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

        if expired:
            self.metrics.evictions += len(expired)
            logger.info(f"Cache sweep evicted {len(expired)} entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Periodic sweep
    # ------------------------------------------------------------------

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval_seconds: float) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeper_running:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))
        logger.debug(f"Cache sweeper started (interval={interval_seconds}s)")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.debug("Cache sweeper stopped")

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}", exc_info=True)
