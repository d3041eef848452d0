"""
facility_cache.py — In-memory TTL cache for live hospital lookups.

Entries are keyed by the query position rounded to 3 decimals (~110 m)
plus the search radius, so repeated lookups from roughly the same spot
reuse the provider answer for `ttl_seconds` (default 5 minutes).

The cache is bounded: once `max_size` keys are held, the entry closest to
expiry is evicted first. All access goes through an asyncio.Lock so
concurrent requests on one event loop see a consistent store.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from civicwatch.models.facility import Facility

logger = logging.getLogger(__name__)


def cache_key(lat: float, lon: float, radius_km: float) -> str:
    return f"{lat:.3f}_{lon:.3f}_{radius_km:g}"


class FacilityCache:
    """Bounded per-key TTL cache of facility lists."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._store: dict[str, tuple[list[Facility], float]] = {}
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._store)

    async def get(self, lat: float, lon: float, radius_km: float) -> Optional[list[Facility]]:
        key = cache_key(lat, lon, radius_km)
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            facilities, expires_at = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return None
            logger.debug("Facility cache hit: %s", key)
            return list(facilities)

    async def set(self, lat: float, lon: float, radius_km: float, facilities: list[Facility]) -> None:
        key = cache_key(lat, lon, radius_km)
        async with self._lock:
            now = self._clock()
            if key not in self._store and len(self._store) >= self._max_size:
                self._evict_expired(now)
                while len(self._store) >= self._max_size:
                    oldest = min(self._store, key=lambda k: self._store[k][1])
                    del self._store[oldest]
            self._store[key] = (list(facilities), now + self._ttl)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._store.items() if now >= exp]
        for k in expired:
            del self._store[k]
