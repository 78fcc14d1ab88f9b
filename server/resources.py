"""
Resource readers.

Each reader returns a JSON-serializable dict annotated with ``cached`` and
``timestamp``. Failures come back as ``{"error": ...}`` and are not cached.
Stored cache values are never mutated; annotations go on a copy.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from analysis.text import analyze_sentiment, extract_keywords
from analysis.trends import top_domains, trend_sources
from cache.keys import (
    keywords_key,
    language_key,
    metadata_key,
    page_categories_key,
    page_key,
    related_key,
    search_key,
    sentiment_key,
    summary_key,
)
from cache.loader import CacheLoader
from cache.policy import CacheTier
from server.lookups import ARCHIVE_LIMIT, load_archive, load_extracted, load_google, load_url_metadata
from server.sessions import ResearchSessionStore
from tools.crawl.extractor import ContentExtractor
from tools.search.archive import ArchiveClient
from tools.search.google import TIME_RANGES, TREND_TIMEFRAMES, GoogleSearchClient, trend_query
from tools.search.reliability import UpstreamError
from tools.search.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

RESOURCE_SEARCH_LIMIT = 5
RESOURCE_GOOGLE_NUM = 5
RELATED_LIMIT = 20
RESOURCE_KEYWORDS = 10
RESOURCE_ANALYTICS_NUM = 3
RESOURCE_TIME_RANGE = "month"
RESOURCE_TREND_NUM = 3
RESOURCE_TIMEFRAME = "6M"

_MISSING = object()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def annotate(value: Any, cached: bool) -> Dict[str, Any]:
    body = dict(value) if isinstance(value, dict) else {"data": value}
    body["cached"] = cached
    body["timestamp"] = _now()
    return body


def error_payload(message: str) -> Dict[str, Any]:
    return {"error": message, "cached": False, "timestamp": _now()}


def resource_url(url: str) -> str:
    """URLs arrive percent-encoded inside resource URIs; decode once."""
    url = (url or "").strip()
    return url if "://" in url else unquote(url)


class ResourceReaders:
    """Backs the google://, wikipedia://, analysis://, archive:// and research:// resources."""

    def __init__(
        self,
        loader: CacheLoader,
        google: GoogleSearchClient,
        wikipedia: WikipediaClient,
        sessions: ResearchSessionStore,
        extractor: Optional[ContentExtractor] = None,
        archive: Optional[ArchiveClient] = None,
    ):
        self.loader = loader
        self.google = google
        self.wikipedia = wikipedia
        self.sessions = sessions
        self.extractor = extractor
        self.archive = archive

    async def google_search(self, query: str) -> Dict[str, Any]:
        if not self.google.is_configured:
            return error_payload("Google Search not configured")
        try:
            data, cached = await load_google(self.loader, self.google, query, RESOURCE_GOOGLE_NUM)
        except UpstreamError as e:
            return error_payload(f"Failed to search Google: {e}")
        return annotate(data, cached)

    async def search_analytics(self, query: str) -> Dict[str, Any]:
        if not self.google.is_configured:
            return error_payload("Google Search not configured")
        try:
            data, cached = await load_google(
                self.loader,
                self.google,
                query,
                RESOURCE_ANALYTICS_NUM,
                date_restrict=TIME_RANGES[RESOURCE_TIME_RANGE],
            )
        except UpstreamError as e:
            return error_payload(f"Failed to analyze search: {e}")
        return annotate(
            {
                "query": query,
                "time_range": RESOURCE_TIME_RANGE,
                "results_count": len(data["items"]),
                "total_results": data.get("total_results", 0),
                "top_domains": top_domains(data["items"]),
            },
            cached,
        )

    async def search_trends(self, topic: str) -> Dict[str, Any]:
        if not self.google.is_configured:
            return error_payload("Google Search not configured")
        try:
            data, cached = await load_google(
                self.loader,
                self.google,
                trend_query(topic),
                RESOURCE_TREND_NUM,
                date_restrict=TREND_TIMEFRAMES[RESOURCE_TIMEFRAME],
            )
        except UpstreamError as e:
            return error_payload(f"Failed to analyze search trends: {e}")
        return annotate(
            {
                "topic": topic,
                "timeframe": RESOURCE_TIMEFRAME,
                "recent_activity": len(data["items"]),
                "top_sources": trend_sources(data["items"]),
            },
            cached,
        )

    async def extracted_content(self, url: str) -> Dict[str, Any]:
        if self.extractor is None:
            return error_payload("Content extraction not available")
        try:
            page, cached = await load_extracted(self.loader, self.extractor, resource_url(url))
        except (UpstreamError, ValueError) as e:
            return error_payload(f"Failed to extract content: {e}")
        return annotate(page, cached)

    async def url_metadata(self, url: str) -> Dict[str, Any]:
        if self.extractor is None:
            return error_payload("URL metadata extraction not available")
        try:
            meta, cached = await load_url_metadata(self.loader, self.extractor, resource_url(url))
        except (UpstreamError, ValueError) as e:
            return error_payload(f"Failed to extract URL metadata: {e}")
        return annotate(meta, cached)

    async def archive_snapshots(self, url: str) -> Dict[str, Any]:
        if self.archive is None:
            return error_payload("Archive.org lookup not available")
        try:
            data, cached = await load_archive(self.loader, self.archive, resource_url(url), None, ARCHIVE_LIMIT)
        except (UpstreamError, ValueError) as e:
            return error_payload(f"Failed to search Archive.org: {e}")
        return annotate(data, cached)

    def cached_wikipedia_search(self, query: str) -> Dict[str, Any]:
        """Serve search results only if a wikipedia_search call already cached them."""
        key = search_key(query, self.wikipedia.default_language, RESOURCE_SEARCH_LIMIT, 0)
        data = self.loader.cache.get(CacheTier.SEARCH, key, _MISSING)
        if data is _MISSING:
            return error_payload("Search results not cached. Use the wikipedia_search tool first.")
        return annotate(data, True)

    async def article(self, title: str, lang: str) -> Dict[str, Any]:
        try:
            lang = self.wikipedia.language(lang)
            page, cached = await self.loader.load_key(
                CacheTier.PAGE, page_key(title, lang), lambda: self.wikipedia.get_page(title, lang)
            )
        except (UpstreamError, ValueError) as e:
            return error_payload(f"Failed to get Wikipedia page: {e}")
        return annotate(page, cached)

    async def _summary(self, title: str, lang: str):
        return await self.loader.load_key(
            CacheTier.SUMMARY, summary_key(title, lang), lambda: self.wikipedia.get_summary(title, lang)
        )

    async def _categories(self, title: str, lang: str):
        return await self.loader.load_key(
            CacheTier.CATEGORY,
            page_categories_key(title, lang),
            lambda: self.wikipedia.get_categories(title, lang),
        )

    async def _links(self, title: str, lang: str):
        return await self.loader.load_key(
            CacheTier.RELATED, related_key(title, lang), lambda: self.wikipedia.get_links(title, lang)
        )

    async def _fetch_metadata(self, title: str, lang: str) -> Dict[str, Any]:
        # branches land in their own tiers; a failed branch leaves the others cached
        (summary, _), (categories, _), (links, _) = await asyncio.gather(
            self._summary(title, lang),
            self._categories(title, lang),
            self._links(title, lang),
        )
        return {
            "title": summary.get("title", title),
            "lang": lang,
            "found": summary["found"],
            "pageid": summary.get("pageid"),
            "url": summary.get("url"),
            "last_modified": summary.get("last_modified"),
            "length": summary.get("length"),
            "categories": categories,
            "category_count": len(categories),
            "link_count": len(links),
        }

    async def metadata(self, title: str) -> Dict[str, Any]:
        lang = self.wikipedia.default_language
        try:
            data, cached = await self.loader.load_key(
                CacheTier.METADATA, metadata_key(title, lang), lambda: self._fetch_metadata(title, lang)
            )
        except UpstreamError as e:
            return error_payload(f"Failed to get Wikipedia metadata: {e}")
        return annotate(data, cached)

    async def categories(self, title: str) -> Dict[str, Any]:
        lang = self.wikipedia.default_language
        try:
            categories, cached = await self._categories(title, lang)
        except UpstreamError as e:
            return error_payload(f"Failed to get Wikipedia categories: {e}")
        return annotate({"title": title, "lang": lang, "categories": categories}, cached)

    async def languages(self, title: str) -> Dict[str, Any]:
        lang = self.wikipedia.default_language
        try:
            data, cached = await self.loader.load_key(
                CacheTier.LANGUAGE, language_key(title, lang), lambda: self.wikipedia.get_languages(title, lang)
            )
        except UpstreamError as e:
            return error_payload(f"Failed to get Wikipedia languages: {e}")
        return annotate(data, cached)

    async def related(self, title: str) -> Dict[str, Any]:
        lang = self.wikipedia.default_language
        try:
            links, cached = await self._links(title, lang)
        except UpstreamError as e:
            return error_payload(f"Failed to get related Wikipedia pages: {e}")
        return annotate(
            {"title": title, "lang": lang, "related": links[:RELATED_LIMIT], "total_links": len(links)},
            cached,
        )

    async def summary(self, title: str) -> Dict[str, Any]:
        lang = self.wikipedia.default_language
        try:
            data, cached = await self._summary(title, lang)
        except UpstreamError as e:
            return error_payload(f"Failed to get Wikipedia summary: {e}")
        return annotate(data, cached)

    async def sentiment(self, text: str) -> Dict[str, Any]:
        async def compute() -> Dict[str, Any]:
            return analyze_sentiment(text)

        data, cached = await self.loader.load_key(CacheTier.SENTIMENT, sentiment_key(text), compute)
        return annotate(data, cached)

    async def keywords(self, text: str) -> Dict[str, Any]:
        async def compute() -> List[Dict[str, Any]]:
            return extract_keywords(text, RESOURCE_KEYWORDS)

        keywords, cached = await self.loader.load_key(
            CacheTier.KEYWORDS, keywords_key(text, RESOURCE_KEYWORDS), compute
        )
        return annotate({"keywords": keywords}, cached)

    def session(self, name: str) -> Dict[str, Any]:
        session = self.sessions.get(name)
        if session is None:
            return error_payload(f'Research session "{name}" not found.')
        return annotate(session.to_dict(), False)
