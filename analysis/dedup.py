"""
Content deduplication by token-set (Jaccard) similarity.

Greedy and order-preserving: each candidate is compared only against the
items already kept, so the first item of a near-duplicate cluster wins.
"""

from __future__ import annotations

import logging
import re
from typing import Any, FrozenSet, Iterable, List, Mapping, Tuple

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _item_text(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        title = item.get("title") or ""
        text = item.get("text") or ""
        return f"{title} {text}"
    return ""


def tokenize(item: Any) -> FrozenSet[str]:
    """Lower-cased word tokens from an item's combined title and text."""
    return frozenset(token.lower() for token in TOKEN_RE.findall(_item_text(item)))


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def similarity(a: Any, b: Any) -> float:
    """
    Jaccard similarity between two items, in [0, 1].

    Items with no usable text score 0 against everything, including each other.
    """
    return jaccard(tokenize(a), tokenize(b))


def validate_threshold(threshold: float) -> float:
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        raise ValueError(f"similarity threshold must be a number, got {threshold!r}") from None
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"similarity threshold must be within [0, 1], got {value}")
    return value


def _is_duplicate(score: float, threshold: float) -> bool:
    # An exact token-set match is a duplicate even at threshold 1.
    return score > threshold or score >= 1.0


def partition_duplicates(items: Iterable[Any], threshold: float) -> Tuple[List[Any], List[Any]]:
    """
    Split items into (unique, duplicates), preserving input order in both.

    Raises:
        ValueError: threshold outside [0, 1]
    """
    threshold = validate_threshold(threshold)

    unique: List[Any] = []
    kept_tokens: List[FrozenSet[str]] = []
    duplicates: List[Any] = []

    for item in items:
        tokens = tokenize(item)
        if any(_is_duplicate(jaccard(tokens, seen), threshold) for seen in kept_tokens):
            duplicates.append(item)
            continue
        unique.append(item)
        kept_tokens.append(tokens)

    return unique, duplicates


def deduplicate(items: Iterable[Any], threshold: float) -> List[Any]:
    """Return the items that are not near-duplicates of an earlier kept item."""
    unique, _ = partition_duplicates(items, threshold)
    return unique


class ContentDeduplicator:
    """
    Deduplicates content items before they are returned to a caller.

    Usage:
        dedup = ContentDeduplicator(similarity_threshold=0.8)
        unique, duplicates = dedup.deduplicate(items)
    """

    def __init__(self, similarity_threshold: float = 0.8):
        self.similarity_threshold = validate_threshold(similarity_threshold)

    def deduplicate(self, items: Iterable[Any]) -> Tuple[List[Any], List[Any]]:
        unique, duplicates = partition_duplicates(items, self.similarity_threshold)
        if duplicates:
            logger.info(
                f"[dedup] Removed {len(duplicates)} duplicate items "
                f"(threshold={self.similarity_threshold})"
            )
        return unique, duplicates
