"""
Google Custom Search client.

Wraps the Custom Search JSON API and reduces responses to the fields the
tools render: title, link, snippet and display link. A response without an
``items`` array means zero results, not an error.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from tools.search.reliability import RetryPolicy, UpstreamError, get_json

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

ACADEMIC_SITES = ("arxiv.org", "scholar.google.com", "researchgate.net", "semanticscholar.org")
NEWS_SITES = ("bbc.com", "cnn.com", "reuters.com", "apnews.com", "nytimes.com")

# analytics time ranges and trend timeframes -> dateRestrict
TIME_RANGES = {"week": "w1", "month": "m1", "year": "y1"}
TREND_TIMEFRAMES = {"1M": "m1", "3M": "m3", "6M": "m6", "1Y": "y1"}

RESEARCH_TYPES = ("academic", "news", "factual", "comprehensive")
RESEARCH_DEPTHS = {"quick": 2, "standard": 3, "deep": 5}

# Optional request parameters, python name -> API name
_OPTIONAL_PARAMS = {
    "file_type": "fileType",
    "site_search": "siteSearch",
    "date_restrict": "dateRestrict",
    "safe": "safe",
    "exact_terms": "exactTerms",
    "exclude_terms": "excludeTerms",
    "sort": "sort",
    "gl": "gl",
    "hl": "hl",
    "start": "start",
}


class GoogleNotConfiguredError(UpstreamError):
    """Raised when search is attempted without an API key and engine id."""


def site_query(query: str, sites: Sequence[str]) -> str:
    """Restrict a query to a list of sites with ``site:a OR site:b``."""
    sites = [s.strip() for s in sites if s and s.strip()]
    if not sites:
        return query
    return f"{query} " + " OR ".join(f"site:{s}" for s in sites)


def trend_query(topic: str) -> str:
    return f"{topic} trend OR trending"


def fact_check_query(claim: str) -> str:
    return f"{claim} fact check OR verification OR debunk"


def research_queries(topic: str, depth: str = "standard") -> List[str]:
    """Angles searched by the research assistant; deeper research covers more of them."""
    if depth not in RESEARCH_DEPTHS:
        raise ValueError(f"depth must be one of {', '.join(RESEARCH_DEPTHS)}")
    angles = [topic, f"{topic} overview", f"{topic} key facts", f"{topic} recent developments", f"{topic} analysis"]
    return angles[: RESEARCH_DEPTHS[depth]]


def normalize_response(query: str, data: Dict[str, Any]) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = []
    for item in data.get("items") or []:
        if not isinstance(item, dict):
            continue
        items.append(
            {
                "title": item.get("title", "") or "",
                "link": item.get("link", "") or "",
                "snippet": item.get("snippet", "") or "",
                "display_link": item.get("displayLink", "") or "",
            }
        )

    info = data.get("searchInformation") or {}
    try:
        total = int(info.get("totalResults") or len(items))
    except (TypeError, ValueError):
        total = len(items)

    return {
        "query": query,
        "items": items,
        "total_results": total,
        "search_time": info.get("searchTime"),
    }


class GoogleSearchClient:
    """Google Custom Search API client."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str = "",
        cse_id: str = "",
        policy: Optional[RetryPolicy] = None,
        base_url: str = GOOGLE_SEARCH_URL,
    ):
        self._http = http
        self._api_key = (api_key or "").strip()
        self._cse_id = (cse_id or "").strip()
        self._policy = policy or RetryPolicy()
        self._base_url = base_url

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._cse_id)

    async def search(
        self,
        query: str,
        num: int = 5,
        *,
        file_type: Optional[str] = None,
        site_search: Optional[str] = None,
        date_restrict: Optional[str] = None,
        safe: Optional[str] = None,
        exact_terms: Optional[str] = None,
        exclude_terms: Optional[str] = None,
        sort: Optional[str] = None,
        gl: Optional[str] = None,
        hl: Optional[str] = None,
        start: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run a Custom Search query.

        Returns:
            {"query", "items": [{title, link, snippet, display_link}], "total_results", "search_time"}

        Raises:
            GoogleNotConfiguredError: credentials missing
            UpstreamError: request failed
        """
        if not self.is_configured:
            raise GoogleNotConfiguredError(
                "Google Search not configured. Set GOOGLE_API_KEY and GOOGLE_CSE_ID environment variables."
            )

        options = {
            "file_type": file_type,
            "site_search": site_search,
            "date_restrict": date_restrict,
            "safe": safe,
            "exact_terms": exact_terms,
            "exclude_terms": exclude_terms,
            "sort": sort,
            "gl": gl,
            "hl": hl,
            "start": start,
        }
        params: Dict[str, Any] = {
            "key": self._api_key,
            "cx": self._cse_id,
            "q": query,
            "num": max(1, min(int(num or 5), 10)),
        }
        for name, value in options.items():
            if value:
                params[_OPTIONAL_PARAMS[name]] = value

        data = await get_json(self._http, self._base_url, params=params, policy=self._policy, provider="google")
        result = normalize_response(query, data if isinstance(data, dict) else {})
        logger.info(f"[google] '{query[:60]}' returned {len(result['items'])} results")
        return result

    async def search_academic(
        self,
        query: str,
        file_type: Optional[str] = "pdf",
        date_range: Optional[str] = None,
        sites: Optional[Sequence[str]] = None,
        max_results: int = 5,
    ) -> Dict[str, Any]:
        """Search academic/research sites, PDFs by default."""
        return await self.search(
            site_query(query, sites or ACADEMIC_SITES),
            num=max_results,
            file_type=file_type,
            date_restrict=date_range,
        )

    async def search_news(
        self,
        topic: str,
        sources: Optional[Sequence[str]] = None,
        language: str = "en",
        country: str = "us",
        max_results: int = 5,
        date_restrict: str = "d7",
    ) -> Dict[str, Any]:
        """Search news sites; defaults to the last 7 days."""
        return await self.search(
            site_query(topic, sources or NEWS_SITES),
            num=max_results,
            date_restrict=date_restrict,
            hl=language,
            gl=country,
        )

    async def search_multiple_sites(
        self,
        query: str,
        sites: Sequence[str],
        max_results: int = 3,
        file_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.search(site_query(query, sites), num=max_results, file_type=file_type)
