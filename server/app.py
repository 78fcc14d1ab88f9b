"""
MCP server assembly.

``build_server`` wires the cache loader, upstream clients and handlers into a
FastMCP instance. Tool handlers keep their ToolResult return type; the
wrapper registered with FastMCP hands the client the ``output`` text.
"""

import functools
import inspect
import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from cache.loader import CacheLoader
from cache.tiered_cache import TieredCache, build_cache
from common.config import Settings, settings as default_settings
from server.resources import ResourceReaders
from server.sessions import ResearchSessionStore
from server.tools import ResearchTools
from tools.crawl.extractor import ContentExtractor
from tools.search.archive import ArchiveClient
from tools.search.google import GoogleSearchClient
from tools.search.reliability import RetryPolicy
from tools.search.wikipedia import WikipediaClient

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Research tools backed by Google Custom Search, Wikipedia and the Wayback Machine. "
    "Responses are cached per resource type; results carry a cached flag."
)


def _mcp_tool(name: str, method: Callable[..., Any]) -> Callable[..., Any]:
    """Adapt a ToolResult-returning handler to a str-returning MCP tool."""

    @functools.wraps(method)
    async def run(**kwargs: Any) -> str:
        request_id = str(uuid.uuid4())[:8]
        extra = {"tool": name, "request_id": request_id}
        start_time = time.time()
        logger.info(f"Tool started | {name} | ID: {request_id}", extra=extra)
        try:
            result = await method(**kwargs)
        except Exception as e:
            logger.error(
                f"Tool failed | {name} | ID: {request_id} | "
                f"Duration: {time.time() - start_time:.3f}s | Error: {e}",
                exc_info=True,
                extra=extra,
            )
            raise
        logger.info(
            f"Tool completed | {name} | ID: {request_id} | "
            f"Success: {result.success} | Cached: {result.cached} | "
            f"Duration: {time.time() - start_time:.3f}s",
            extra=extra,
        )
        return result.output

    signature = inspect.signature(method)
    run.__signature__ = signature.replace(return_annotation=str)  # type: ignore[attr-defined]
    run.__annotations__ = {**getattr(method, "__annotations__", {}), "return": str}
    return run


def register_tools(server: FastMCP, tools: ResearchTools) -> None:
    for schema, method in tools.iter_tools():
        server.add_tool(
            _mcp_tool(schema["name"], method),
            name=schema["name"],
            description=schema.get("description"),
        )


def register_resources(server: FastMCP, readers: ResourceReaders) -> None:
    def dump(payload: Dict[str, Any]) -> str:
        return json.dumps(payload, ensure_ascii=False)

    @server.resource(
        "google://search/{query}",
        name="google_search_results",
        description="Google Custom Search results for a query",
        mime_type="application/json",
    )
    async def google_search(query: str) -> str:
        return dump(await readers.google_search(query))

    @server.resource(
        "google://search-analytics/{query}",
        name="google_search_analytics",
        description="Result count and top domains for a query over the last month",
        mime_type="application/json",
    )
    async def google_search_analytics(query: str) -> str:
        return dump(await readers.search_analytics(query))

    @server.resource(
        "google://search-trends/{topic}",
        name="google_search_trends",
        description="Recent search activity and sources for a topic",
        mime_type="application/json",
    )
    async def google_search_trends(topic: str) -> str:
        return dump(await readers.search_trends(topic))

    @server.resource(
        "google://extracted-content/{url}",
        name="extracted_content",
        description="Main content extracted from a web page (percent-encoded URL)",
        mime_type="application/json",
    )
    async def extracted_content(url: str) -> str:
        return dump(await readers.extracted_content(url))

    @server.resource(
        "wikipedia://search/cache/{query}",
        name="wikipedia_cached_search",
        description="Wikipedia search results previously cached by the wikipedia_search tool",
        mime_type="application/json",
    )
    def wikipedia_cached_search(query: str) -> str:
        return dump(readers.cached_wikipedia_search(query))

    @server.resource(
        "wikipedia://article/{title}/{lang}",
        name="wikipedia_article",
        description="Full Wikipedia article with sections, categories and links",
        mime_type="application/json",
    )
    async def wikipedia_article(title: str, lang: str) -> str:
        return dump(await readers.article(title, lang))

    @server.resource(
        "wikipedia://metadata/{title}",
        name="wikipedia_metadata",
        description="Page info, categories and link counts for a Wikipedia article",
        mime_type="application/json",
    )
    async def wikipedia_metadata(title: str) -> str:
        return dump(await readers.metadata(title))

    @server.resource(
        "wikipedia://categories/{title}",
        name="wikipedia_categories",
        description="Categories a Wikipedia article belongs to",
        mime_type="application/json",
    )
    async def wikipedia_categories(title: str) -> str:
        return dump(await readers.categories(title))

    @server.resource(
        "wikipedia://languages/{title}",
        name="wikipedia_languages",
        description="Language editions available for a Wikipedia article",
        mime_type="application/json",
    )
    async def wikipedia_languages(title: str) -> str:
        return dump(await readers.languages(title))

    @server.resource(
        "wikipedia://related/{title}",
        name="wikipedia_related",
        description="Articles linked from a Wikipedia article",
        mime_type="application/json",
    )
    async def wikipedia_related(title: str) -> str:
        return dump(await readers.related(title))

    @server.resource(
        "wikipedia://summary/{title}",
        name="wikipedia_summary",
        description="Short summary of a Wikipedia article",
        mime_type="application/json",
    )
    async def wikipedia_summary(title: str) -> str:
        return dump(await readers.summary(title))

    @server.resource(
        "analysis://sentiment/{text}",
        name="sentiment_analysis",
        description="Lexicon-based sentiment of a text",
        mime_type="application/json",
    )
    async def sentiment(text: str) -> str:
        return dump(await readers.sentiment(text))

    @server.resource(
        "analysis://keywords/{text}",
        name="keyword_analysis",
        description="Most frequent keywords of a text",
        mime_type="application/json",
    )
    async def keywords(text: str) -> str:
        return dump(await readers.keywords(text))

    @server.resource(
        "analysis://url-metadata/{url}",
        name="url_metadata",
        description="Title, description and keywords of a web page (percent-encoded URL)",
        mime_type="application/json",
    )
    async def url_metadata(url: str) -> str:
        return dump(await readers.url_metadata(url))

    @server.resource(
        "archive://snapshots/{url}",
        name="archive_snapshots",
        description="Wayback Machine snapshots of a web page (percent-encoded URL)",
        mime_type="application/json",
    )
    async def archive_snapshots(url: str) -> str:
        return dump(await readers.archive_snapshots(url))

    @server.resource(
        "research://sessions/{name}",
        name="research_session",
        description="Saved research session notes",
        mime_type="application/json",
    )
    def research_session(name: str) -> str:
        return dump(readers.session(name))


def build_server(
    http: httpx.AsyncClient,
    settings: Optional[Settings] = None,
    cache: Optional[TieredCache] = None,
    sessions: Optional[ResearchSessionStore] = None,
) -> FastMCP:
    """
    Build the FastMCP server and everything behind it.

    Args:
        http: Shared async HTTP client (owned by the caller)
        settings: Settings to use (defaults to the global settings)
        cache: Pre-built cache, mainly for tests
        sessions: Session store, mainly for tests

    Returns:
        A FastMCP server with all tools and resources registered
    """
    settings = settings or default_settings
    cache = cache if cache is not None else build_cache(settings)
    sessions = sessions if sessions is not None else ResearchSessionStore()
    loader = CacheLoader(cache, coalesce=settings.enable_request_coalescing)
    policy = RetryPolicy.from_settings(settings)

    google = GoogleSearchClient(
        http,
        api_key=settings.google_api_key,
        cse_id=settings.google_cse_id,
        policy=policy,
        base_url=settings.google_search_url,
    )
    wikipedia = WikipediaClient(
        http,
        default_language=settings.default_language,
        user_agent=settings.user_agent,
        policy=policy,
    )
    extractor = ContentExtractor(http, user_agent=settings.user_agent, policy=policy)
    archive = ArchiveClient(http, policy=policy, base_url=settings.archive_cdx_url)

    tools = ResearchTools(
        loader,
        google,
        wikipedia,
        extractor,
        archive=archive,
        sessions=sessions,
        dedup_threshold=settings.dedup_similarity_threshold,
    )
    readers = ResourceReaders(loader, google, wikipedia, sessions, extractor=extractor, archive=archive)

    server = FastMCP(settings.server_name, instructions=INSTRUCTIONS)
    register_tools(server, tools)
    register_resources(server, readers)

    logger.info(
        f"[server] {settings.server_name} v{settings.server_version} ready | "
        f"tools={len(tools.list_methods())} | "
        f"google={'enabled' if google.is_configured else 'disabled'} | "
        f"wikipedia lang={wikipedia.default_language}"
    )
    return server
