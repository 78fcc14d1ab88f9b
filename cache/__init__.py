from .keys import key_for, normalize_params
from .loader import CacheLoader
from .policy import CacheTier, TierPolicy, build_policies, default_policies
from .tiered_cache import CacheEntry, TieredCache, build_cache

__all__ = [
    "CacheEntry",
    "CacheLoader",
    "CacheTier",
    "TieredCache",
    "TierPolicy",
    "build_cache",
    "build_policies",
    "default_policies",
    "key_for",
    "normalize_params",
]
