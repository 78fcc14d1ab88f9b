"""
Aggregations over normalized web search items.

Items are the dicts produced by ``tools.search.google.normalize_response``:
``{"title", "link", "snippet", "display_link"}``.
"""

import re
from collections import Counter
from typing import Any, Dict, List, Sequence
from urllib.parse import urlsplit

from analysis.text import truncate

# "12 March 2024" style dates Google leaves at the start of news snippets
SNIPPET_DATE_RE = re.compile(r"\b\d{1,2} \w+ \d{4}\b")


def item_domain(item: Dict[str, Any]) -> str:
    domain = (item.get("display_link") or "").strip().lower()
    if domain:
        return domain
    try:
        host = urlsplit(item.get("link") or "").hostname
    except ValueError:
        host = None
    return host or "unknown"


def top_domains(items: Sequence[Dict[str, Any]], limit: int = 5) -> List[str]:
    """Domains by number of results, ties in first-seen order."""
    counts = Counter(item_domain(item) for item in items)
    return [domain for domain, _ in counts.most_common(limit)]


def snippet_date(snippet: str, default: str = "Recent") -> str:
    match = SNIPPET_DATE_RE.search(snippet or "")
    return match.group(0) if match else default


def trend_sources(items: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {
            "title": item.get("title", ""),
            "source": item_domain(item),
            "date": snippet_date(item.get("snippet", "")),
        }
        for item in items
    ]


def summarize_content(content: str, max_length: int) -> str:
    """Whitespace-collapsed prefix of page content."""
    return truncate(" ".join((content or "").split()), max_length)
