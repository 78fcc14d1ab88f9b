"""
Cache tiers and their TTL/capacity policy.

Each resource category gets its own partition so volatile data (search
results) can expire quickly while encyclopedic content stays longer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Mapping, Optional

if TYPE_CHECKING:
    from common.config import Settings

MINUTE = 60
HOUR = 60 * MINUTE


class CacheTier(str, Enum):
    """Independently configured cache partitions, one per resource category."""

    WEB_SEARCH = "web_search"
    SEARCH = "search"
    PAGE = "page"
    PAGE_BY_ID = "page_by_id"
    METADATA = "metadata"
    CATEGORY = "category"
    LANGUAGE = "language"
    RELATED = "related"
    SUMMARY = "summary"
    SENTIMENT = "sentiment"
    KEYWORDS = "keywords"
    EXTRACTED_CONTENT = "extracted_content"
    URL_METADATA = "url_metadata"
    ARCHIVE = "archive"


DEFAULT_TIER_TTLS: Dict[CacheTier, float] = {
    CacheTier.WEB_SEARCH: 15 * MINUTE,
    CacheTier.SEARCH: 15 * MINUTE,
    CacheTier.PAGE: 60 * MINUTE,
    CacheTier.PAGE_BY_ID: 60 * MINUTE,
    CacheTier.METADATA: 45 * MINUTE,
    CacheTier.CATEGORY: 60 * MINUTE,
    CacheTier.LANGUAGE: 6 * HOUR,
    CacheTier.RELATED: 60 * MINUTE,
    CacheTier.SUMMARY: 60 * MINUTE,
    CacheTier.SENTIMENT: 60 * MINUTE,
    CacheTier.KEYWORDS: 60 * MINUTE,
    CacheTier.EXTRACTED_CONTENT: 30 * MINUTE,
    CacheTier.URL_METADATA: 30 * MINUTE,
    CacheTier.ARCHIVE: 6 * HOUR,
}

DEFAULT_CAPACITY = 500


@dataclass(frozen=True)
class TierPolicy:
    """Capacity bound and default TTL (seconds) for one tier."""

    capacity: int = DEFAULT_CAPACITY
    default_ttl: float = 15 * MINUTE

    def __post_init__(self) -> None:
        if int(self.capacity) < 1:
            raise ValueError(f"tier capacity must be >= 1, got {self.capacity}")
        if float(self.default_ttl) <= 0:
            raise ValueError(f"tier ttl must be > 0, got {self.default_ttl}")


def resolve_tier(tier: "CacheTier | str") -> CacheTier:
    """Accept either a CacheTier or its string value."""
    if isinstance(tier, CacheTier):
        return tier
    try:
        return CacheTier(str(tier).strip().lower())
    except ValueError:
        raise ValueError(f"unknown cache tier: {tier!r}") from None


def default_policies(capacity: int = DEFAULT_CAPACITY) -> Dict[CacheTier, TierPolicy]:
    return {
        tier: TierPolicy(capacity=capacity, default_ttl=ttl)
        for tier, ttl in DEFAULT_TIER_TTLS.items()
    }


def build_policies(
    capacity: int = DEFAULT_CAPACITY,
    ttls: Optional[Mapping[str, float]] = None,
    capacity_overrides: Optional[Mapping[str, int]] = None,
) -> Dict[CacheTier, TierPolicy]:
    """
    Build the policy table, applying per-tier TTL and capacity overrides.

    Unknown tier names in the override maps raise ValueError so typos in
    configuration surface at startup.
    """
    policies = default_policies(capacity)

    for name, ttl in (ttls or {}).items():
        tier = resolve_tier(name)
        policies[tier] = TierPolicy(capacity=policies[tier].capacity, default_ttl=ttl)

    for name, cap in (capacity_overrides or {}).items():
        tier = resolve_tier(name)
        policies[tier] = TierPolicy(capacity=cap, default_ttl=policies[tier].default_ttl)

    return policies


def policies_from_settings(settings: "Settings") -> Dict[CacheTier, TierPolicy]:
    return build_policies(
        capacity=settings.cache_max_entries,
        ttls=settings.tier_ttls,
        capacity_overrides=settings.cache_capacity_overrides_map,
    )
