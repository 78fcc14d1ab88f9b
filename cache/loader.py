"""
Cache-through loading for tool and resource handlers.

The cache itself never performs I/O; this helper owns the
lookup -> fetch -> store sequence. A fetch that raises is never cached, so
an upstream outage cannot be pinned as if it were data.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from cache.keys import key_for
from cache.policy import CacheTier
from cache.tiered_cache import TieredCache

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]

_MISSING = object()


class CacheLoader:
    """
    Lookup-or-fetch wrapper around a TieredCache.

    With ``coalesce=True`` concurrent misses on the same key share one
    in-flight fetch. Without it every miss fetches independently and the
    last write wins.
    """

    def __init__(self, cache: TieredCache, coalesce: bool = True):
        self.cache = cache
        self.coalesce = coalesce
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def load(
        self,
        tier: "CacheTier | str",
        params: Mapping[str, Any],
        fetch: Fetcher,
        ttl: Optional[float] = None,
    ) -> Tuple[Any, bool]:
        """
        Return ``(value, cached)`` for a request.

        Args:
            tier: Cache tier the request belongs to
            params: Request parameters; normalized into the cache key
            fetch: Coroutine factory called on a miss
            ttl: Optional per-entry TTL override

        Returns:
            The value and whether it was served from cache
        """
        return await self.load_key(tier, key_for(tier, params), fetch, ttl)

    async def load_key(
        self,
        tier: "CacheTier | str",
        key: str,
        fetch: Fetcher,
        ttl: Optional[float] = None,
    ) -> Tuple[Any, bool]:
        """Same as ``load`` for a key already built by one of the cache.keys builders."""
        value = self.cache.get(tier, key, _MISSING)
        if value is not _MISSING:
            logger.debug(f"[cache] Hit {key[:80]}", extra={"tier": key.split(":", 1)[0]})
            return value, True

        if not self.coalesce:
            value = await fetch()
            self.cache.set(tier, key, value, ttl)
            return value, False

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_and_store(tier, key, fetch, ttl))
            self._inflight[key] = pending
            pending.add_done_callback(self._forget(key))
        else:
            logger.debug(f"[cache] Joined in-flight fetch for {key[:80]}")

        value = await asyncio.shield(pending)
        return value, False

    def _forget(self, key: str) -> Callable[["asyncio.Future[Any]"], None]:
        def done(fut: "asyncio.Future[Any]") -> None:
            self._inflight.pop(key, None)
            # every waiter may have been cancelled; mark the failure as retrieved
            if not fut.cancelled():
                fut.exception()

        return done

    async def _fetch_and_store(
        self,
        tier: "CacheTier | str",
        key: str,
        fetch: Fetcher,
        ttl: Optional[float],
    ) -> Any:
        value = await fetch()
        self.cache.set(tier, key, value, ttl)
        return value
