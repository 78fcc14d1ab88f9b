"""
Cache-through lookups shared by tool handlers and resource readers.

A tool call and a resource read asking for the same upstream data build the
same cache key here, so either one warms the cache for the other.
"""

from typing import Any, Dict, Optional, Tuple

from cache.keys import archive_key, extracted_content_key, url_metadata_key, web_search_key
from cache.loader import CacheLoader
from cache.policy import CacheTier
from tools.crawl.extractor import ContentExtractor
from tools.search.archive import ArchiveClient
from tools.search.google import GoogleSearchClient

Loaded = Tuple[Dict[str, Any], bool]

ARCHIVE_LIMIT = 10


async def load_google(
    loader: CacheLoader,
    google: GoogleSearchClient,
    query: str,
    num: int,
    **options: Any,
) -> Loaded:
    """Plain Custom Search query; ``options`` are GoogleSearchClient.search keywords."""
    return await loader.load_key(
        CacheTier.WEB_SEARCH,
        web_search_key(query, kind="google", num=num, **options),
        lambda: google.search(query, num, **options),
    )


async def load_extracted(loader: CacheLoader, extractor: ContentExtractor, url: str) -> Loaded:
    return await loader.load_key(
        CacheTier.EXTRACTED_CONTENT, extracted_content_key(url), lambda: extractor.extract(url)
    )


async def load_url_metadata(loader: CacheLoader, extractor: ContentExtractor, url: str) -> Loaded:
    return await loader.load_key(
        CacheTier.URL_METADATA, url_metadata_key(url), lambda: extractor.url_metadata(url)
    )


async def load_archive(
    loader: CacheLoader,
    archive: ArchiveClient,
    url: str,
    year: Optional[int] = None,
    limit: int = ARCHIVE_LIMIT,
) -> Loaded:
    return await loader.load_key(
        CacheTier.ARCHIVE, archive_key(url, year, limit), lambda: archive.snapshots(url, year, limit)
    )
