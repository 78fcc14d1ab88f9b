"""
Tiered Cache - per-resource-category LRU caches with TTL support.

One TieredCache is built per process and injected into whatever needs it.
Every tier is an independent LRU with its own capacity and default TTL.
Expiration is lazy: entries are checked (and purged) when read. All
operations are synchronous and meant to run on a single event loop thread,
so no locking is done.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from cache.keys import key_for
from cache.policy import (
    CacheTier,
    TierPolicy,
    default_policies,
    policies_from_settings,
    resolve_tier,
)
from common.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload plus its insertion time and TTL."""
    key: str
    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class _Tier:
    """Single LRU partition."""

    def __init__(self, name: CacheTier, policy: TierPolicy):
        self.name = name
        self.policy = policy
        self.entries: OrderedDict[str, CacheEntry] = OrderedDict()

        # Stats
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def stats(self) -> Dict[str, Any]:
        total_requests = self.hits + self.misses
        return {
            "size": len(self.entries),
            "capacity": self.policy.capacity,
            "default_ttl": self.policy.default_ttl,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hit_rate": round(self.hits / max(total_requests, 1), 3),
        }


class TieredCache:
    """
    In-memory cache partitioned into tiers.

    Features:
    - Per-tier capacity with LRU eviction at insertion time
    - Per-tier default TTL, overridable per entry
    - Reads promote entries (a hit counts as use)
    - Expired entries are never returned and are dropped on access
    """

    def __init__(
        self,
        policies: Optional[Mapping[CacheTier, TierPolicy]] = None,
        clock: Clock = time.monotonic,
    ):
        self._clock = clock
        resolved = dict(policies or default_policies())
        self._tiers: Dict[CacheTier, _Tier] = {
            resolve_tier(name): _Tier(resolve_tier(name), policy)
            for name, policy in resolved.items()
        }

    def _tier(self, tier: "CacheTier | str") -> _Tier:
        name = resolve_tier(tier)
        try:
            return self._tiers[name]
        except KeyError:
            raise ValueError(f"cache tier not configured: {name.value}") from None

    def policy(self, tier: "CacheTier | str") -> TierPolicy:
        return self._tier(tier).policy

    @property
    def tiers(self) -> Iterator[CacheTier]:
        return iter(self._tiers)

    def get(self, tier: "CacheTier | str", key: str, default: Any = None) -> Any:
        """
        Get a cached value.

        Returns:
            The cached value if present and not expired, ``default`` otherwise
        """
        part = self._tier(tier)
        entry = part.entries.get(key)
        if entry is None:
            part.misses += 1
            return default

        if entry.is_expired(self._clock()):
            del part.entries[key]
            part.expirations += 1
            part.misses += 1
            logger.debug(f"[cache] Expired {key[:80]}")
            return default

        part.entries.move_to_end(key)
        part.hits += 1
        return entry.value

    def contains(self, tier: "CacheTier | str", key: str) -> bool:
        """Presence check that neither promotes nor counts toward stats."""
        part = self._tier(tier)
        entry = part.entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def set(self, tier: "CacheTier | str", key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or overwrite an entry, evicting the LRU entry when over capacity."""
        part = self._tier(tier)
        effective_ttl = part.policy.default_ttl if ttl is None else float(ttl)
        if effective_ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")

        if key in part.entries:
            del part.entries[key]
        part.entries[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            ttl=effective_ttl,
        )

        while len(part.entries) > part.policy.capacity:
            evicted_key, _ = part.entries.popitem(last=False)
            part.evictions += 1
            logger.debug(f"[cache] Evicted {evicted_key[:80]} from tier={part.name.value}")

    def delete(self, tier: "CacheTier | str", key: str) -> bool:
        return self._tier(tier).entries.pop(key, None) is not None

    # Params-keyed facade used by tool and resource handlers

    def lookup(self, tier: "CacheTier | str", params: Mapping[str, Any], default: Any = None) -> Any:
        return self.get(tier, key_for(tier, params), default)

    def store(
        self,
        tier: "CacheTier | str",
        params: Mapping[str, Any],
        value: Any,
        ttl: Optional[float] = None,
    ) -> str:
        key = key_for(tier, params)
        self.set(tier, key, value, ttl)
        return key

    # Maintenance

    def purge_expired(self, tier: "CacheTier | str | None" = None) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        parts = [self._tier(tier)] if tier is not None else list(self._tiers.values())
        removed = 0
        for part in parts:
            expired_keys = [k for k, v in part.entries.items() if v.is_expired(now)]
            for k in expired_keys:
                del part.entries[k]
            part.expirations += len(expired_keys)
            removed += len(expired_keys)
        return removed

    def clear(self, tier: "CacheTier | str | None" = None) -> None:
        """Clear entries and stats for one tier, or for all tiers."""
        parts = [self._tier(tier)] if tier is not None else list(self._tiers.values())
        for part in parts:
            part.entries.clear()
            part.hits = part.misses = part.evictions = part.expirations = 0

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {name.value: part.stats() for name, part in self._tiers.items()}

    def __len__(self) -> int:
        return sum(len(part.entries) for part in self._tiers.values())


def build_cache(settings: Optional[Settings] = None, clock: Clock = time.monotonic) -> TieredCache:
    """Construct the process cache from settings (defaults to the global settings)."""
    settings = settings or default_settings

    cache = TieredCache(policies_from_settings(settings), clock=clock)
    logger.info(
        f"[cache] Initialized {len(list(cache.tiers))} tiers, "
        f"default capacity={settings.cache_max_entries}"
    )
    return cache
