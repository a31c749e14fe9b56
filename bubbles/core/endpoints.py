"""
Endpoint Selector

Finds a JSON-RPC endpoint that answers a liveness probe and remembers it for
a fixed TTL. The cache is lazy: an expired entry is only replaced when the
next caller asks, by re-probing the candidates in order.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .recovery.errors import EndpointUnavailableError
from .recovery.strategies import BackoffPolicy

logger = logging.getLogger(__name__)

Probe = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class EndpointCacheEntry:
    url: str
    verified_at: float


class EndpointSelector:
    def __init__(
        self,
        candidates: Sequence[str],
        probe: Probe,
        ttl_seconds: float = 300,
        probe_timeout_seconds: float = 5.0,
        clock: Optional[Callable[[], float]] = None,
        probe_policy: Optional[BackoffPolicy] = None,
    ):
        self.candidates: List[str] = [c for c in candidates if c]
        self.ttl_seconds = ttl_seconds
        self._probe = probe
        self._clock = clock or time.time
        self._policy = probe_policy or BackoffPolicy.single_attempt(probe_timeout_seconds)
        self._entry: Optional[EndpointCacheEntry] = None
        self._lock = asyncio.Lock()

    def _fresh_entry(self) -> Optional[EndpointCacheEntry]:
        entry = self._entry
        if entry is not None and self._clock() - entry.verified_at < self.ttl_seconds:
            return entry
        return None

    @property
    def cached(self) -> Optional[EndpointCacheEntry]:
        return self._fresh_entry()

    async def resolve(self) -> str:
        """Return a verified endpoint URL or raise EndpointUnavailableError."""
        entry = self._fresh_entry()
        if entry:
            return entry.url

        async with self._lock:
            # Another caller may have probed while we waited.
            entry = self._fresh_entry()
            if entry:
                return entry.url
            return await self._probe_candidates()

    async def _probe_candidates(self) -> str:
        for url in self.candidates:
            try:
                await self._policy.run(lambda: self._probe(url), description=f"probe {url}")
            except Exception as e:
                logger.warning("RPC endpoint %s failed liveness probe: %s", url, e)
                continue

            self._entry = EndpointCacheEntry(url=url, verified_at=self._clock())
            logger.info("Selected RPC endpoint %s", url)
            return url

        raise EndpointUnavailableError(candidates=self.candidates)

    async def status(self) -> Dict[str, Any]:
        entry = self._fresh_entry()
        if entry:
            return {"status": "healthy", "url": entry.url, "verified_at": entry.verified_at, "cached": True}
        try:
            url = await self.resolve()
        except EndpointUnavailableError as e:
            return {"status": "unavailable", "reason": e.message, "candidates": self.candidates}
        return {"status": "healthy", "url": url, "verified_at": self._entry.verified_at, "cached": False}
