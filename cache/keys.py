"""
Deterministic cache key derivation.

Keys look like ``page:lang=en&title=tokyo``. Parameter names are sorted,
strings are whitespace-collapsed and lower-cased (URLs only get their
scheme and host lower-cased), and every component is percent-encoded so
separator characters inside values cannot make two different requests
collide.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from cache.policy import CacheTier, resolve_tier


def _quote(text: str) -> str:
    return quote(text, safe="")


class Verbatim(str):
    """A string parameter whose case is significant, such as a URL path."""


def normalize_url(url: str) -> Verbatim:
    """Lower-case scheme and host; path, query and fragment keep their case."""
    url = (url or "").strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return Verbatim(url)
    return Verbatim(
        urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment))
    )


def normalize_value(value: Any) -> str:
    """Stringify a parameter value in canonical form."""
    if isinstance(value, Verbatim):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return " ".join(value.split()).lower()
    if isinstance(value, Mapping):
        return "{" + normalize_params(value) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_quote(normalize_value(v)) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "[" + ",".join(sorted(_quote(normalize_value(v)) for v in value)) + "]"
    return " ".join(str(value).split()).lower()


def normalize_params(params: Optional[Mapping[str, Any]]) -> str:
    """Render params as ``name=value`` pairs sorted by name; None values are dropped."""
    pairs = []
    for name, value in (params or {}).items():
        if value is None:
            continue
        pairs.append((str(name).strip().lower(), normalize_value(value)))
    pairs.sort()
    return "&".join(f"{_quote(name)}={_quote(value)}" for name, value in pairs)


def key_for(tier: "CacheTier | str", params: Optional[Mapping[str, Any]] = None) -> str:
    """Build the cache key for a tier and its request parameters."""
    tier = resolve_tier(tier)
    return f"{tier.value}:{normalize_params(params)}"


# Per-tier key builders

def web_search_key(query: str, **options: Any) -> str:
    return key_for(CacheTier.WEB_SEARCH, {"q": query, **options})


def search_key(query: str, lang: str, limit: int, offset: int = 0) -> str:
    return key_for(CacheTier.SEARCH, {"query": query, "lang": lang, "limit": limit, "offset": offset})


def nearby_key(lat: float, lon: float, radius: int, lang: str, limit: int) -> str:
    return key_for(
        CacheTier.SEARCH,
        {"geo": [lat, lon], "radius": radius, "lang": lang, "limit": limit},
    )


def page_key(title: str, lang: str) -> str:
    return key_for(CacheTier.PAGE, {"title": title, "lang": lang})


def page_id_key(page_id: int, lang: str) -> str:
    return key_for(CacheTier.PAGE_BY_ID, {"pageid": page_id, "lang": lang})


def summary_key(title: str, lang: str) -> str:
    return key_for(CacheTier.SUMMARY, {"title": title, "lang": lang})


def language_key(title: str, lang: str) -> str:
    return key_for(CacheTier.LANGUAGE, {"title": title, "lang": lang})


def category_key(category: str, lang: str, limit: int, member_type: str) -> str:
    return key_for(
        CacheTier.CATEGORY,
        {"category": category, "lang": lang, "limit": limit, "type": member_type},
    )


def page_categories_key(title: str, lang: str) -> str:
    return key_for(CacheTier.CATEGORY, {"page": title, "lang": lang})


def metadata_key(title: str, lang: str) -> str:
    return key_for(CacheTier.METADATA, {"title": title, "lang": lang})


def related_key(title: str, lang: str) -> str:
    return key_for(CacheTier.RELATED, {"title": title, "lang": lang})


def sentiment_key(text: str) -> str:
    return key_for(CacheTier.SENTIMENT, {"text": text})


def keywords_key(text: str, max_keywords: int) -> str:
    return key_for(CacheTier.KEYWORDS, {"text": text, "max": max_keywords})


def extracted_content_key(url: str) -> str:
    return key_for(CacheTier.EXTRACTED_CONTENT, {"url": normalize_url(url)})


def url_metadata_key(url: str) -> str:
    return key_for(CacheTier.URL_METADATA, {"url": normalize_url(url)})


def archive_key(url: str, year: Optional[int] = None, limit: Optional[int] = None) -> str:
    return key_for(CacheTier.ARCHIVE, {"url": normalize_url(url), "year": year, "limit": limit})
