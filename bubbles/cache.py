import asyncio
import time
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Simple in-memory TTL cache.

    Instances are injected into whatever needs them (tool executor, handlers);
    there is no module-level cache. ``clock`` is swappable so expiry can be
    driven deterministically in tests.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock or time.monotonic
        self._cache: Dict[str, CacheEntry] = {}
        self._access_order: list = []
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            now = self._clock()

            if key not in self._cache:
                return None

            entry = self._cache[key]
            if now >= entry.expires_at:
                del self._cache[key]
                if key in self._access_order:
                    self._access_order.remove(key)
                return None

            # Update access order for LRU
            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        # Last write wins; concurrent writers to one key are not coordinated.
        async with self._lock:
            ttl = ttl or self.default_ttl
            expires_at = self._clock() + ttl

            self._cache[key] = CacheEntry(value=value, expires_at=expires_at)

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            # Evict oldest if over max size
            while len(self._cache) > self.max_size:
                oldest_key = self._access_order.pop(0)
                if oldest_key in self._cache:
                    del self._cache[oldest_key]

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value for ``key`` or await ``loader()`` and cache it.

        Loader exceptions propagate and nothing is cached.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()

    def size(self) -> int:
        return len(self._cache)
