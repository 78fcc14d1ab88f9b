"""
Research tool handlers.

Every public tool is an async method on ResearchTools decorated with
@tool_schema. Handlers go through the CacheLoader for cacheable upstream
calls and always return a ToolResult; upstream failures and bad input become
``fail_response`` payloads, which are never cached.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from analysis.citations import format_citation
from analysis.dedup import ContentDeduplicator
from analysis.export import EXPORT_FORMATS, export_data
from analysis.text import analyze_sentiment, extract_keywords, truncate
from analysis.trends import summarize_content, top_domains, trend_sources
from cache.keys import (
    category_key,
    keywords_key,
    language_key,
    nearby_key,
    page_id_key,
    page_key,
    search_key,
    sentiment_key,
    summary_key,
    web_search_key,
)
from cache.loader import CacheLoader
from cache.policy import CacheTier
from server.lookups import ARCHIVE_LIMIT, load_archive, load_extracted, load_google
from server.sessions import SESSION_ACTIONS, ResearchSessionStore, SessionNotFoundError
from tools.core.base import ResearchTool, ToolResult, tool_schema
from tools.crawl.extractor import ContentExtractor
from tools.search.archive import ArchiveClient
from tools.search.google import (
    ACADEMIC_SITES,
    NEWS_SITES,
    RESEARCH_TYPES,
    TIME_RANGES,
    TREND_TIMEFRAMES,
    GoogleSearchClient,
    fact_check_query,
    research_queries,
    site_query,
    trend_query,
)
from tools.search.reliability import UpstreamError
from tools.search.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

MAX_BATCH = 10
MAX_ANALYTICS_QUERIES = 5
MAX_TREND_TOPICS = 5
MAX_SUMMARY_URLS = 5
SUMMARY_LENGTH_RANGE = (50, 500)
ANALYTICS_MAX_RESULTS = 3
TREND_RESULTS = 3
FACT_CHECK_RESULTS = 5
RESEARCH_RESULTS = 2
PAGE_PREVIEW_CHARS = 2000
BATCH_PREVIEW_CHARS = 500
EXTRACT_PREVIEW_CHARS = 3000
CATEGORY_MEMBER_TYPES = ("page", "subcat", "file")

GOOGLE_NOT_CONFIGURED = (
    "Google Search not configured. Set GOOGLE_API_KEY and GOOGLE_CSE_ID environment variables."
)

HandlerErrors = (UpstreamError, ValueError)


def _compute(func: Callable[..., Any], *args: Any) -> Callable[[], Awaitable[Any]]:
    """Wrap a pure function as a loader fetch."""
    async def fetch() -> Any:
        return func(*args)

    return fetch


def _format_web_items(items: List[Dict[str, Any]], label: Optional[str] = None) -> str:
    lines = []
    for index, item in enumerate(items, 1):
        entry = f"{index}. **{item['title']}**\n   {item['snippet']}\n   {item['link']}"
        if label:
            entry += f"\n   {label}: {item['display_link']}"
        lines.append(entry)
    return "\n\n".join(lines)


class ResearchTools(ResearchTool):
    """Search, Wikipedia and analysis tools exposed over MCP."""

    def __init__(
        self,
        loader: CacheLoader,
        google: GoogleSearchClient,
        wikipedia: WikipediaClient,
        extractor: ContentExtractor,
        archive: Optional[ArchiveClient] = None,
        sessions: Optional[ResearchSessionStore] = None,
        dedup_threshold: float = 0.8,
    ):
        self.loader = loader
        self.google = google
        self.wikipedia = wikipedia
        self.extractor = extractor
        self.archive = archive
        self.sessions = sessions if sessions is not None else ResearchSessionStore()
        self.dedup_threshold = dedup_threshold
        super().__init__()

    def _failure(self, prefix: str, error: Exception) -> ToolResult:
        logger.warning(f"[tools] {prefix}: {error}")
        return self.fail_response(f"{prefix}: {error}", {"error_type": type(error).__name__})

    # ------------------------------------------------------------------
    # Web search
    # ------------------------------------------------------------------

    @tool_schema(name="google_search", description="Search the web using Google Custom Search")
    async def google_search(
        self,
        q: str,
        num: int = 5,
        file_type: Optional[str] = None,
        site_search: Optional[str] = None,
        date_restrict: Optional[str] = None,
        safe: Optional[str] = None,
        sort: Optional[str] = None,
        gl: Optional[str] = None,
        hl: Optional[str] = None,
        start: Optional[int] = None,
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)

        options = {
            "file_type": file_type,
            "site_search": site_search,
            "date_restrict": date_restrict,
            "safe": safe,
            "sort": sort,
            "gl": gl,
            "hl": hl,
            "start": start,
        }
        try:
            data, cached = await load_google(self.loader, self.google, q, num, **options)
        except HandlerErrors as e:
            return self._failure("Google search failed", e)

        items = data["items"]
        output = f'Found {len(items)} results for "{q}":\n\n{_format_web_items(items)}'
        return self.success_response(output, {"cached": cached, "count": len(items)})

    @tool_schema(name="academic_search", description="Search academic papers and research content")
    async def academic_search(
        self,
        query: str,
        file_type: Optional[str] = "pdf",
        date_range: Optional[str] = None,
        sites: Optional[List[str]] = None,
        max_results: int = 5,
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)

        sites = list(sites or ACADEMIC_SITES)
        try:
            data, cached = await self.loader.load_key(
                CacheTier.WEB_SEARCH,
                web_search_key(
                    query,
                    kind="academic",
                    file_type=file_type,
                    date_range=date_range,
                    sites=sites,
                    num=max_results,
                ),
                lambda: self.google.search_academic(query, file_type, date_range, sites, max_results),
            )
        except HandlerErrors as e:
            return self._failure("Academic search failed", e)

        items = data["items"]
        output = f'Found {len(items)} academic results for "{query}":\n\n{_format_web_items(items)}'
        return self.success_response(output, {"cached": cached, "count": len(items)})

    @tool_schema(name="news_monitor", description="Monitor recent news articles on a topic")
    async def news_monitor(
        self,
        topic: str,
        sources: Optional[List[str]] = None,
        language: str = "en",
        country: str = "us",
        max_results: int = 5,
        date_restrict: str = "d7",
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)

        try:
            data, cached = await self.loader.load_key(
                CacheTier.WEB_SEARCH,
                web_search_key(
                    topic,
                    kind="news",
                    sources=sources,
                    language=language,
                    country=country,
                    num=max_results,
                    date_restrict=date_restrict,
                ),
                lambda: self.google.search_news(
                    topic, sources, language, country, max_results, date_restrict
                ),
            )
        except HandlerErrors as e:
            return self._failure("News monitoring failed", e)

        items = data["items"]
        output = (
            f'Found {len(items)} news articles about "{topic}":\n\n'
            f"{_format_web_items(items, label='Source')}"
        )
        return self.success_response(output, {"cached": cached, "count": len(items)})

    @tool_schema(name="multi_site_search", description="Search across multiple specific websites")
    async def multi_site_search(
        self,
        query: str,
        sites: List[str],
        max_results: int = 3,
        file_type: Optional[str] = None,
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)
        if not sites:
            return self.fail_response("At least one site is required")

        try:
            data, cached = await self.loader.load_key(
                CacheTier.WEB_SEARCH,
                web_search_key(query, kind="multi_site", sites=sites, num=max_results, file_type=file_type),
                lambda: self.google.search_multiple_sites(query, sites, max_results, file_type),
            )
        except HandlerErrors as e:
            return self._failure("Multi-site search failed", e)

        items = data["items"]
        output = (
            f'Multi-site search results for "{query}" across {", ".join(sites)}:\n\n'
            f"{_format_web_items(items, label='Site')}"
        )
        return self.success_response(output, {"cached": cached, "count": len(items)})

    @tool_schema(name="extract_content", description="Extract and analyze content from a web page")
    async def extract_content(self, url: str) -> ToolResult:
        try:
            page, cached = await load_extracted(self.loader, self.extractor, url)
        except HandlerErrors as e:
            return self._failure("Content extraction failed", e)

        output = (
            f"**{page['title'] or 'No title found'}**\n\n"
            f"{truncate(page['content'], EXTRACT_PREVIEW_CHARS)}\n\n"
            f"Word count: {page['word_count']}\n"
            f"Readability: {page['readability']}\n"
            f"Sentiment: {page['sentiment']['label']}\n"
            f"Links found: {len(page['links'])}, images found: {len(page['images'])}"
        )
        return self.success_response(output, {"cached": cached, "url": page["url"]})

    @tool_schema(name="url_metadata_extractor", description="Extract metadata (title, description, keywords) from a URL")
    async def url_metadata_extractor(self, url: str) -> ToolResult:
        try:
            meta = await self.extractor.url_metadata(url)
        except HandlerErrors as e:
            return self._failure("URL metadata extraction failed", e)

        output = (
            f"URL Metadata for: {url}\n\n"
            f"Title: {meta['title'] or 'Not found'}\n"
            f"Description: {meta['description'] or 'Not found'}\n"
            f"Keywords: {meta['keywords'] or 'Not found'}\n"
            f"Content-Type: {meta['content_type'] or 'Not found'}\n"
            f"Status: {meta['status_code']}"
        )
        return self.success_response(output, {"cached": False})

    # ------------------------------------------------------------------
    # Research workflows
    # ------------------------------------------------------------------

    @tool_schema(name="search_analytics", description="Compare result counts and top domains for several queries")
    async def search_analytics(
        self,
        queries: List[str],
        time_range: str = "month",
        max_results: int = ANALYTICS_MAX_RESULTS,
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)
        time_range = (time_range or "month").strip().lower()
        if time_range not in TIME_RANGES:
            return self.fail_response(f"Search analytics failed: time_range must be one of {', '.join(TIME_RANGES)}")
        if not queries:
            return self.fail_response("Search analytics failed: at least one query is required")

        num = max(1, min(int(max_results), 5))
        blocks = []
        failures = 0
        for index, query in enumerate(queries[:MAX_ANALYTICS_QUERIES], 1):
            try:
                data, _ = await load_google(
                    self.loader, self.google, query, num, date_restrict=TIME_RANGES[time_range]
                )
            except UpstreamError as e:
                failures += 1
                blocks.append(f'{index}. "{query}": [FAIL] {e}')
                continue
            domains = top_domains(data["items"]) or ["none"]
            blocks.append(
                f'{index}. "{query}": {len(data["items"])} results\n'
                f"   Top domains: {', '.join(domains)}"
            )

        output = f"Search Analytics for {len(blocks)} queries ({time_range}):\n\n" + "\n\n".join(blocks)
        metadata = {"processed": len(blocks), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} queries failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="search_trends", description="Gauge recent search activity and sources for topics")
    async def search_trends(self, topics: List[str], timeframe: str = "6M") -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)
        timeframe = (timeframe or "6M").strip().upper()
        if timeframe not in TREND_TIMEFRAMES:
            return self.fail_response(f"Search trends failed: timeframe must be one of {', '.join(TREND_TIMEFRAMES)}")
        if not topics:
            return self.fail_response("Search trends failed: at least one topic is required")

        blocks = []
        failures = 0
        for topic in topics[:MAX_TREND_TOPICS]:
            try:
                data, _ = await load_google(
                    self.loader,
                    self.google,
                    trend_query(topic),
                    TREND_RESULTS,
                    date_restrict=TREND_TIMEFRAMES[timeframe],
                )
            except UpstreamError as e:
                failures += 1
                blocks.append(f"**{topic}**\n[FAIL] {e}")
                continue
            sources = "\n".join(
                f"• {s['title']} ({s['source']}) - {s['date']}" for s in trend_sources(data["items"])
            )
            blocks.append(
                f"**{topic}**\nRecent activity: {len(data['items'])} mentions\n"
                f"Top sources:\n{sources or '• none'}"
            )

        output = f"Search Trends Analysis ({timeframe}):\n\n" + "\n\n".join(blocks)
        metadata = {"processed": len(blocks), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} topics failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="content_summarizer", description="Summarize the main content of several web pages")
    async def content_summarizer(self, urls: List[str], max_length: int = 200) -> ToolResult:
        low, high = SUMMARY_LENGTH_RANGE
        if not low <= max_length <= high:
            return self.fail_response(f"Content summarization failed: max_length must be within [{low}, {high}]")
        if not urls:
            return self.fail_response("Content summarization failed: at least one URL is required")

        blocks = []
        failures = 0
        for index, url in enumerate(urls[:MAX_SUMMARY_URLS], 1):
            try:
                page, _ = await load_extracted(self.loader, self.extractor, url)
            except HandlerErrors as e:
                failures += 1
                logger.info(f"[tools] summary skipped {url[:80]}: {e}")
                blocks.append(f"{index}. {url}: Failed to extract content")
                continue
            blocks.append(
                f"{index}. **{page['title'] or 'No title'}**\n"
                f"   {summarize_content(page['content'], max_length)}"
            )

        output = f"Content summaries for {len(blocks)} URLs:\n\n" + "\n\n".join(blocks)
        metadata = {"processed": len(blocks), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} URLs failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="fact_checker", description="Find fact-check and verification sources for a claim")
    async def fact_checker(self, claim: str) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)
        if not (claim or "").strip():
            return self.fail_response("Fact checking failed: claim is required")

        try:
            data, cached = await load_google(
                self.loader, self.google, fact_check_query(claim), FACT_CHECK_RESULTS
            )
        except HandlerErrors as e:
            return self._failure("Fact checking failed", e)

        items = data["items"]
        sources = "\n\n".join(
            f"{i}. **{item['title']}**\n   Source: {item['display_link']}\n   {item['snippet']}\n   {item['link']}"
            for i, item in enumerate(items, 1)
        )
        output = f'Fact-check analysis for: "{claim}"\n\nFound {len(items)} relevant sources:\n\n{sources}'
        return self.success_response(output.rstrip(), {"cached": cached, "count": len(items)})

    @tool_schema(name="research_assistant", description="Run a multi-angle web research pass on a topic")
    async def research_assistant(
        self,
        research_topic: str,
        research_type: str = "comprehensive",
        depth: str = "standard",
    ) -> ToolResult:
        if not self.google.is_configured:
            return self.fail_response(GOOGLE_NOT_CONFIGURED)
        research_type = (research_type or "comprehensive").strip().lower()
        depth = (depth or "standard").strip().lower()
        if research_type not in RESEARCH_TYPES:
            return self.fail_response(
                f"Research assistant failed: research_type must be one of {', '.join(RESEARCH_TYPES)}"
            )
        try:
            queries = research_queries(research_topic, depth)
        except ValueError as e:
            return self._failure("Research assistant failed", e)

        options: Dict[str, Any] = {}
        sites: tuple = ()
        if research_type == "academic":
            sites = ACADEMIC_SITES
        elif research_type == "news":
            sites = NEWS_SITES
            options["date_restrict"] = "m1"

        sections = []
        failures = 0
        for query in queries:
            try:
                data, _ = await load_google(
                    self.loader, self.google, site_query(query, sites), RESEARCH_RESULTS, **options
                )
            except UpstreamError as e:
                failures += 1
                sections.append(f"**{query}**\n[FAIL] {e}")
                continue
            lines = "\n".join(f"• {item['title']} ({item['display_link']})" for item in data["items"])
            sections.append(f"**{query}**\n{lines or '• No results'}")

        output = (
            f"Research Assistant - {research_topic} ({research_type}, {depth} depth)\n\n"
            + "\n\n".join(sections)
        )
        metadata = {"queries": len(queries), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} queries failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="archive_org_search", description="List Wayback Machine snapshots of a URL")
    async def archive_org_search(self, url: str, year: Optional[int] = None) -> ToolResult:
        if self.archive is None:
            return self.fail_response("Archive.org search failed: archive client not available")
        try:
            data, cached = await load_archive(self.loader, self.archive, url, year, ARCHIVE_LIMIT)
        except HandlerErrors as e:
            return self._failure("Archive.org search failed", e)

        snapshots = data["snapshots"]
        if not snapshots:
            output = f"Archive.org search results for: {url}\n\nNo archived versions found."
        else:
            lines = "\n".join(f"{i}. {s['timestamp']} - {s['url']}" for i, s in enumerate(snapshots, 1))
            output = (
                f"Archive.org search results for: {url}\n\n"
                f"Found {len(snapshots)} archived versions:\n\n{lines}"
            )
        return self.success_response(output, {"cached": cached, "count": len(snapshots)})

    # ------------------------------------------------------------------
    # Wikipedia
    # ------------------------------------------------------------------

    async def _search(self, query: str, lang: str, limit: int, offset: int = 0):
        return await self.loader.load_key(
            CacheTier.SEARCH,
            search_key(query, lang, limit, offset),
            lambda: self.wikipedia.search(query, lang, limit, offset),
        )

    async def _page(self, title: str, lang: str):
        return await self.loader.load_key(
            CacheTier.PAGE,
            page_key(title, lang),
            lambda: self.wikipedia.get_page(title, lang),
        )

    @tool_schema(name="wikipedia_search", description="Search Wikipedia articles")
    async def wikipedia_search(
        self,
        query: str,
        limit: int = 5,
        lang: Optional[str] = None,
        offset: int = 0,
    ) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            data, cached = await self._search(query, lang, limit, offset)
        except HandlerErrors as e:
            return self._failure("Wikipedia search failed", e)

        results = data["results"]
        lines = "\n".join(
            f"- **{r['title']}**: {r['snippet'] or 'No snippet available'}" for r in results
        )
        output = f'Found {len(results)} Wikipedia results for "{query}":\n\n{lines}'
        return self.success_response(
            output, {"cached": cached, "count": len(results), "total_hits": data["total_hits"]}
        )

    @tool_schema(name="wikipedia_get_page", description="Get the content of a Wikipedia page by title")
    async def wikipedia_get_page(self, title: str, lang: Optional[str] = None) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            page, cached = await self._page(title, lang)
        except HandlerErrors as e:
            return self._failure("Failed to get Wikipedia page", e)

        if not page["found"]:
            return self.success_response(f'Wikipedia page "{title}" not found.', {"cached": cached, "found": False})

        output = f"**{page['title']}**\n\n{truncate(page['text'], PAGE_PREVIEW_CHARS)}"
        if page["sections"]:
            output += f"\n\nSections: {', '.join(page['sections'][:15])}"
        output += f"\n\n{page['url']}"
        return self.success_response(output, {"cached": cached, "found": True, "pageid": page["pageid"]})

    @tool_schema(name="wikipedia_get_page_by_id", description="Get a Wikipedia page by its page ID")
    async def wikipedia_get_page_by_id(self, page_id: int, lang: Optional[str] = None) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            page, cached = await self.loader.load_key(
                CacheTier.PAGE_BY_ID,
                page_id_key(page_id, lang),
                lambda: self.wikipedia.get_page_by_id(page_id, lang),
            )
        except HandlerErrors as e:
            return self._failure("Failed to get Wikipedia page by ID", e)

        if not page["found"]:
            return self.success_response(
                f"Wikipedia page with ID {page_id} not found.", {"cached": cached, "found": False}
            )
        output = f"**{page['title']}**\n\n{truncate(page['text'], PAGE_PREVIEW_CHARS) or 'No content available'}"
        return self.success_response(output, {"cached": cached, "found": True})

    @tool_schema(name="wikipedia_get_summary", description="Get a short summary of a Wikipedia page")
    async def wikipedia_get_summary(self, title: str, lang: Optional[str] = None) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            summary, cached = await self.loader.load_key(
                CacheTier.SUMMARY,
                summary_key(title, lang),
                lambda: self.wikipedia.get_summary(title, lang),
            )
        except HandlerErrors as e:
            return self._failure("Failed to get Wikipedia summary", e)

        if not summary["found"]:
            return self.success_response(
                f'Summary for Wikipedia page "{title}" not found.', {"cached": cached, "found": False}
            )
        output = f'Summary for "{summary["title"]}":\n\n{summary["summary"] or "No summary available"}'
        return self.success_response(output, {"cached": cached, "found": True})

    @tool_schema(name="wikipedia_random", description="Get a random Wikipedia article")
    async def wikipedia_random(self, lang: Optional[str] = None) -> ToolResult:
        try:
            page = await self.wikipedia.get_random(lang)
        except HandlerErrors as e:
            return self._failure("Failed to get random Wikipedia page", e)

        if not page["found"]:
            return self.success_response("No random Wikipedia page found.", {"cached": False, "found": False})
        return self.success_response(
            f"Random Wikipedia page: {page['title']} (ID: {page['pageid']})",
            {"cached": False, "found": True},
        )

    @tool_schema(name="wikipedia_page_languages", description="List the languages a Wikipedia page is available in")
    async def wikipedia_page_languages(self, title: str, lang: Optional[str] = None) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            data, cached = await self.loader.load_key(
                CacheTier.LANGUAGE,
                language_key(title, lang),
                lambda: self.wikipedia.get_languages(title, lang),
            )
        except HandlerErrors as e:
            return self._failure("Failed to get Wikipedia page languages", e)

        if not data["found"]:
            return self.success_response(
                f'No language information found for Wikipedia page "{title}".',
                {"cached": cached, "found": False},
            )
        lines = "\n".join(f"- {item['lang']}: {item['title'] or 'Unknown'}" for item in data["languages"])
        output = f'Languages available for "{data["title"]}" ({data["language_count"]}):\n\n{lines}'
        return self.success_response(output, {"cached": cached, "found": True})

    @tool_schema(name="wikipedia_batch_search", description="Search Wikipedia for several queries at once (max 10)")
    async def wikipedia_batch_search(
        self,
        queries: List[str],
        lang: Optional[str] = None,
        limit: int = 5,
    ) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
        except ValueError as e:
            return self._failure("Batch Wikipedia search failed", e)

        lines = []
        failures = 0
        for query in queries[:MAX_BATCH]:
            try:
                data, _ = await self._search(query, lang, limit)
                lines.append(f'[OK] "{query}": {len(data["results"])} results')
            except UpstreamError as e:
                failures += 1
                lines.append(f'[FAIL] "{query}": {e}')

        output = f"Batch Wikipedia search results for {len(lines)} queries:\n\n" + "\n".join(lines)
        metadata = {"processed": len(lines), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} queries failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="wikipedia_batch_get_pages", description="Get several Wikipedia pages at once (max 10)")
    async def wikipedia_batch_get_pages(self, titles: List[str], lang: Optional[str] = None) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
        except ValueError as e:
            return self._failure("Batch Wikipedia page retrieval failed", e)

        blocks = []
        failures = 0
        for title in titles[:MAX_BATCH]:
            try:
                page, _ = await self._page(title, lang)
            except UpstreamError as e:
                failures += 1
                blocks.append(f"[FAIL] **{title}**: {e}")
                continue
            if page["found"]:
                blocks.append(f"[OK] **{page['title']}**\n   {truncate(page['text'], BATCH_PREVIEW_CHARS)}")
            else:
                failures += 1
                blocks.append(f"[FAIL] **{title}**: Page not found")

        output = f"Batch Wikipedia page results for {len(blocks)} pages:\n\n" + "\n\n".join(blocks)
        metadata = {"processed": len(blocks), "failed": failures}
        if failures:
            return self.partial_response(output, f"{failures} pages failed", metadata)
        return self.success_response(output, metadata)

    @tool_schema(name="wikipedia_search_nearby", description="Find Wikipedia articles near geographic coordinates")
    async def wikipedia_search_nearby(
        self,
        lat: float,
        lon: float,
        radius: int = 1000,
        lang: Optional[str] = None,
        limit: int = 10,
    ) -> ToolResult:
        try:
            lang = self.wikipedia.language(lang)
            data, cached = await self.loader.load_key(
                CacheTier.SEARCH,
                nearby_key(lat, lon, radius, lang, limit),
                lambda: self.wikipedia.search_nearby(lat, lon, radius, lang, limit),
            )
        except HandlerErrors as e:
            return self._failure("Wikipedia nearby search failed", e)

        places = data["places"]
        if not places:
            return self.success_response(
                f"No Wikipedia articles found near coordinates ({lat}, {lon}) within {radius}m radius.",
                {"cached": cached, "count": 0},
            )
        lines = "\n\n".join(
            f"{i}. {p['title']}\n   Distance: {p['dist']}m\n   Coordinates: {p['lat']}, {p['lon']}"
            for i, p in enumerate(places, 1)
        )
        output = f"Found {len(places)} Wikipedia articles near ({lat}, {lon}) within {radius}m:\n\n{lines}"
        return self.success_response(output, {"cached": cached, "count": len(places)})

    @tool_schema(name="wikipedia_get_pages_in_category", description="List pages in a Wikipedia category")
    async def wikipedia_get_pages_in_category(
        self,
        category: str,
        lang: Optional[str] = None,
        limit: int = 20,
        member_type: str = "page",
    ) -> ToolResult:
        if member_type not in CATEGORY_MEMBER_TYPES:
            return self.fail_response(
                f"member_type must be one of {', '.join(CATEGORY_MEMBER_TYPES)}, got {member_type!r}"
            )
        try:
            lang = self.wikipedia.language(lang)
            data, cached = await self.loader.load_key(
                CacheTier.CATEGORY,
                category_key(category, lang, limit, member_type),
                lambda: self.wikipedia.get_category_members(category, lang, limit, member_type),
            )
        except HandlerErrors as e:
            return self._failure("Failed to get Wikipedia category pages", e)

        members = data["members"]
        if not members:
            return self.success_response(
                f'No pages found in Wikipedia category "{category}".', {"cached": cached, "count": 0}
            )
        lines = "\n".join(f"{i}. {m['title']} (ID: {m['pageid']})" for i, m in enumerate(members, 1))
        output = f'Found {len(members)} {member_type}s in category "{category}":\n\n{lines}'
        return self.success_response(output, {"cached": cached, "count": len(members)})

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @tool_schema(name="content_sentiment_analysis", description="Analyze the sentiment of a text")
    async def content_sentiment_analysis(self, text: str) -> ToolResult:
        result, cached = await self.loader.load_key(
            CacheTier.SENTIMENT, sentiment_key(text), _compute(analyze_sentiment, text)
        )
        output = (
            "Sentiment Analysis for text:\n\n"
            f"Score: {result['score']}\n"
            f"Comparative: {result['comparative']:.4f}\n"
            f"Positive words: {', '.join(result['positive'])}\n"
            f"Negative words: {', '.join(result['negative'])}\n\n"
            f"Overall: {result['label']}"
        )
        return self.success_response(output, {"cached": cached, "label": result["label"]})

    @tool_schema(name="keyword_extraction", description="Extract the most frequent keywords from a text")
    async def keyword_extraction(self, text: str, max_keywords: int = 10) -> ToolResult:
        try:
            keywords, cached = await self.loader.load_key(
                CacheTier.KEYWORDS,
                keywords_key(text, max_keywords),
                _compute(extract_keywords, text, max_keywords),
            )
        except ValueError as e:
            return self._failure("Keyword extraction failed", e)

        lines = "\n".join(
            f"{i}. {k['word']} ({k['frequency']} occurrences)" for i, k in enumerate(keywords, 1)
        )
        return self.success_response(f"Extracted {len(keywords)} keywords:\n\n{lines}", {"cached": cached})

    @tool_schema(
        name="content_deduplication",
        description="Remove near-duplicate items from a list of content (Jaccard similarity on words)",
    )
    async def content_deduplication(
        self,
        content: List[Union[Dict[str, Any], str]],
        similarity_threshold: Optional[float] = None,
    ) -> ToolResult:
        threshold = self.dedup_threshold if similarity_threshold is None else similarity_threshold
        try:
            unique, duplicates = ContentDeduplicator(threshold).deduplicate(content)
        except ValueError as e:
            return self._failure("Content deduplication failed", e)

        def label(item: Any) -> str:
            if isinstance(item, str):
                return item or "Untitled"
            return item.get("title") or item.get("text") or "Untitled"

        lines = "\n".join(f"{i}. {label(item)}" for i, item in enumerate(unique, 1))
        output = (
            "Deduplication Results:\n\n"
            f"Original items: {len(content)}\n"
            f"Unique items: {len(unique)}\n"
            f"Duplicates removed: {len(duplicates)}\n\n"
            f"Unique Content:\n{lines}"
        )
        return self.success_response(
            output, {"unique": unique, "removed": len(duplicates), "threshold": threshold}
        )

    @tool_schema(name="citation_formatter", description="Format a citation in APA, MLA or Chicago style")
    async def citation_formatter(
        self,
        title: str,
        authors: Optional[List[str]] = None,
        year: Optional[int] = None,
        source: str = "",
        url: Optional[str] = None,
        style: str = "APA",
    ) -> ToolResult:
        citation = format_citation(title, authors or [], year, source, url, style)
        return self.success_response(f"{style} Citation:\n\n{citation}")

    @tool_schema(name="data_export", description="Export research data as JSON, CSV, Markdown or text")
    async def data_export(
        self,
        data: Any,
        output_format: str = "json",
        filename: Optional[str] = None,
    ) -> ToolResult:
        fmt = (output_format or "json").strip().lower()
        try:
            exported = export_data(data, fmt)
        except ValueError as e:
            return self._failure(f"Data export failed (supported: {', '.join(EXPORT_FORMATS)})", e)

        extension = "md" if fmt == "markdown" else fmt
        output = (
            f"Data exported as {fmt.upper()}:\n\n{exported}\n\n"
            f"Suggested filename: {filename or f'export.{extension}'}"
        )
        return self.success_response(output, {"format": fmt})

    @tool_schema(name="research_session_manager", description="Save, load, list or delete research session notes")
    async def research_session_manager(
        self,
        action: str,
        session_name: Optional[str] = None,
        content: Optional[str] = None,
    ) -> ToolResult:
        action = (action or "").strip().lower()
        if action not in SESSION_ACTIONS:
            return self.fail_response(f"Unknown action: {action}")

        try:
            if action == "save":
                session = self.sessions.save(session_name or "", content or "")
                return self.success_response(f'Research session "{session.name}" saved successfully.')
            if action == "load":
                session = self.sessions.load(session_name or "")
                return self.success_response(f'Research session "{session.name}" loaded:\n\n{session.content}')
            if action == "list":
                names = self.sessions.list()
                body = "\n".join(f"- {name}" for name in names) if names else "No sessions found."
                return self.success_response(f"Available research sessions:\n{body}")
            self.sessions.delete(session_name or "")
            return self.success_response(f'Research session "{session_name}" deleted successfully.')
        except (ValueError, SessionNotFoundError) as e:
            return self._failure("Session management failed", e)

    @tool_schema(name="cache_stats", description="Show response cache statistics per tier")
    async def cache_stats(self) -> ToolResult:
        cache = self.loader.cache
        data = {
            "total_entries": len(cache),
            "inflight_fetches": self.loader.inflight_count,
            "tiers": cache.stats(),
        }
        return self.success_response(data)
