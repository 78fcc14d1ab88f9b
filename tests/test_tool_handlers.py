import json

import httpx
import pytest

from cache.loader import CacheLoader
from cache.policy import default_policies
from cache.tiered_cache import TieredCache
from server.sessions import ResearchSessionStore
from server.tools import GOOGLE_NOT_CONFIGURED, MAX_BATCH, ResearchTools
from tools.crawl.extractor import ContentExtractor
from tools.search.archive import ArchiveClient
from tools.search.reliability import RetryPolicy, UpstreamError
from tools.search.wikipedia import normalize_language


class FakeWikipedia:
    default_language = "en"

    def __init__(self, fail_queries=()):
        self.calls = {}
        self.fail_queries = set(fail_queries)

    def language(self, lang):
        return normalize_language(lang, self.default_language)

    def _count(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1

    async def search(self, query, lang=None, limit=10, offset=0):
        self._count("search")
        if query in self.fail_queries:
            raise UpstreamError("wikipedia unavailable")
        return {
            "query": query,
            "lang": lang,
            "results": [{"title": "Tokyo", "pageid": 1, "snippet": "capital of Japan", "timestamp": None}],
            "total_hits": 1,
        }

    async def get_page(self, title, lang=None):
        self._count("get_page")
        if title in self.fail_queries:
            raise UpstreamError("wikipedia unavailable")
        if title == "Missing":
            return {"found": False, "title": title, "lang": lang}
        return {
            "found": True,
            "title": title,
            "pageid": 1,
            "revid": 2,
            "lang": lang,
            "url": f"https://{lang}.wikipedia.org/wiki/{title}",
            "text": "Tokyo is the capital of Japan.",
            "sections": ["History"],
            "categories": [],
            "links": [],
            "langlinks": [],
        }

    async def get_page_by_id(self, page_id, lang=None):
        self._count("get_page_by_id")
        return {"found": False, "pageid": page_id, "lang": lang}

    async def get_summary(self, title, lang=None):
        self._count("get_summary")
        return {"found": True, "title": title, "summary": "Short summary.", "pageid": 1}

    async def get_random(self, lang=None):
        self._count("get_random")
        return {"found": True, "title": "Random", "pageid": 7, "lang": "en"}

    async def get_languages(self, title, lang=None):
        self._count("get_languages")
        return {
            "found": True,
            "title": title,
            "lang": lang,
            "language_count": 1,
            "languages": [{"lang": "fr", "title": "Tokyo", "url": "https://fr.wikipedia.org/wiki/Tokyo"}],
        }

    async def search_nearby(self, lat, lon, radius=1000, lang=None, limit=10):
        self._count("search_nearby")
        if not -90 <= lat <= 90:
            raise ValueError("coordinates out of range")
        return {"places": [{"title": "Shibuya", "pageid": 3, "lat": lat, "lon": lon, "dist": 10.0}]}

    async def get_category_members(self, category, lang=None, limit=20, member_type="page"):
        self._count("get_category_members")
        return {"category": f"Category:{category}", "members": []}


class FakeGoogle:
    def __init__(self, configured=True):
        self.is_configured = configured
        self.calls = 0
        self.queries = []
        self.fail_queries = set()
        self.snippet = "a snippet"

    async def search(self, query, num=5, **options):
        self.calls += 1
        self.queries.append((query, num, options))
        if query in self.fail_queries:
            raise UpstreamError("google unavailable")
        return {
            "query": query,
            "items": [
                {
                    "title": "Result",
                    "link": "https://example.test/r",
                    "snippet": self.snippet,
                    "display_link": "example.test",
                }
            ],
            "total_results": 1,
        }

    async def search_academic(self, query, file_type="pdf", date_range=None, sites=None, max_results=5):
        return await self.search(query, max_results)

    async def search_news(self, topic, sources=None, language="en", country="us", max_results=5, date_restrict="d7"):
        return await self.search(topic, max_results)

    async def search_multiple_sites(self, query, sites, max_results=3, file_type=None):
        return await self.search(query, max_results)


class FakeExtractor:
    def __init__(self):
        self.calls = 0

    async def extract(self, url):
        self.calls += 1
        if "broken" in url:
            raise UpstreamError("fetch failed")
        return {
            "url": url,
            "title": "Page",
            "content": f"Content body  of {url}",
            "word_count": 2,
            "readability": 1.0,
            "sentiment": {"label": "Neutral"},
            "links": [],
            "images": [],
        }

    async def url_metadata(self, url):
        return {
            "url": url,
            "status_code": 200,
            "content_type": "text/html",
            "title": "Page",
            "description": "",
            "keywords": "",
        }


class FakeArchive:
    def __init__(self):
        self.calls = []

    async def snapshots(self, url, year=None, limit=10):
        self.calls.append((url, year, limit))
        if year == 1999:
            return {"url": url, "year": year, "snapshots": []}
        return {
            "url": url,
            "year": year,
            "snapshots": [
                {"timestamp": "20200101000000", "url": f"https://web.archive.org/web/20200101000000/{url}"},
            ],
        }


@pytest.fixture
def wiki():
    return FakeWikipedia(fail_queries={"broken"})


@pytest.fixture
def google():
    return FakeGoogle()


@pytest.fixture
def tools(clock, wiki, google):
    loader = CacheLoader(TieredCache(default_policies(), clock=clock))
    return ResearchTools(
        loader, google, wiki, FakeExtractor(), archive=FakeArchive(), sessions=ResearchSessionStore()
    )


def test_all_tools_are_registered(tools):
    names = set(tools.list_methods())
    assert {
        "google_search",
        "academic_search",
        "news_monitor",
        "multi_site_search",
        "extract_content",
        "url_metadata_extractor",
        "search_analytics",
        "search_trends",
        "content_summarizer",
        "fact_checker",
        "research_assistant",
        "archive_org_search",
        "wikipedia_search",
        "wikipedia_get_page",
        "wikipedia_get_page_by_id",
        "wikipedia_get_summary",
        "wikipedia_random",
        "wikipedia_page_languages",
        "wikipedia_batch_search",
        "wikipedia_batch_get_pages",
        "wikipedia_search_nearby",
        "wikipedia_get_pages_in_category",
        "content_sentiment_analysis",
        "keyword_extraction",
        "content_deduplication",
        "citation_formatter",
        "data_export",
        "research_session_manager",
        "cache_stats",
    } == names


@pytest.mark.asyncio
async def test_wikipedia_search_is_cached(tools, wiki):
    first = await tools.wikipedia_search("Tokyo")
    second = await tools.wikipedia_search("  tokyo ")

    assert first.success is True
    assert first.metadata["cached"] is False
    assert second.metadata["cached"] is True
    assert wiki.calls["search"] == 1
    assert 'Found 1 Wikipedia results for "Tokyo"' in first.output
    assert "- **Tokyo**: capital of Japan" in first.output


@pytest.mark.asyncio
async def test_language_is_part_of_the_cache_key(tools, wiki):
    await tools.wikipedia_search("Tokyo", lang="en")
    await tools.wikipedia_search("Tokyo", lang="fr")
    assert wiki.calls["search"] == 2


@pytest.mark.asyncio
async def test_upstream_failure_is_reported_and_not_cached(tools, wiki):
    first = await tools.wikipedia_search("broken")
    second = await tools.wikipedia_search("broken")

    assert first.success is False
    assert first.output.startswith("Error: Wikipedia search failed")
    assert second.success is False
    assert wiki.calls["search"] == 2


@pytest.mark.asyncio
async def test_invalid_language_fails_before_any_request(tools, wiki):
    result = await tools.wikipedia_get_page("Tokyo", lang="not a lang")

    assert result.success is False
    assert "get_page" not in wiki.calls


@pytest.mark.asyncio
async def test_not_found_page_is_a_cacheable_success(tools, wiki):
    first = await tools.wikipedia_get_page("Missing")
    second = await tools.wikipedia_get_page("Missing")

    assert first.success is True
    assert first.output == 'Wikipedia page "Missing" not found.'
    assert first.metadata["found"] is False
    assert second.metadata["cached"] is True
    assert wiki.calls["get_page"] == 1


@pytest.mark.asyncio
async def test_get_page_output(tools):
    result = await tools.wikipedia_get_page("Tokyo")
    assert result.output.startswith("**Tokyo**\n\nTokyo is the capital of Japan.")
    assert "Sections: History" in result.output


@pytest.mark.asyncio
async def test_page_by_id_summary_random_and_languages(tools, wiki):
    by_id = await tools.wikipedia_get_page_by_id(404)
    summary = await tools.wikipedia_get_summary("Tokyo")
    random_page = await tools.wikipedia_random()
    await tools.wikipedia_random()
    languages = await tools.wikipedia_page_languages("Tokyo")

    assert by_id.output == "Wikipedia page with ID 404 not found."
    assert summary.output == 'Summary for "Tokyo":\n\nShort summary.'
    assert random_page.output == "Random Wikipedia page: Random (ID: 7)"
    assert wiki.calls["get_random"] == 2
    assert "- fr: Tokyo" in languages.output


@pytest.mark.asyncio
async def test_batch_search_reports_per_query_and_caps_batch(tools, wiki):
    queries = ["broken"] + [f"q{i}" for i in range(MAX_BATCH + 2)]
    result = await tools.wikipedia_batch_search(queries)

    assert result.success is True
    assert result.metadata["processed"] == MAX_BATCH
    assert result.metadata["failed"] == 1
    assert "warning" in result.metadata
    assert '[FAIL] "broken": wikipedia unavailable' in result.output
    assert '[OK] "q0": 1 results' in result.output
    assert wiki.calls["search"] == MAX_BATCH


@pytest.mark.asyncio
async def test_batch_get_pages_counts_missing_pages_as_failures(tools):
    result = await tools.wikipedia_batch_get_pages(["Tokyo", "Missing"])

    assert result.metadata == {"processed": 2, "failed": 1, "warning": "1 pages failed"}
    assert "[OK] **Tokyo**" in result.output
    assert "[FAIL] **Missing**: Page not found" in result.output


@pytest.mark.asyncio
async def test_search_nearby(tools):
    ok = await tools.wikipedia_search_nearby(35.6, 139.7)
    bad = await tools.wikipedia_search_nearby(120.0, 0.0)

    assert "1. Shibuya" in ok.output
    assert bad.success is False


@pytest.mark.asyncio
async def test_category_rejects_unknown_member_type(tools, wiki):
    result = await tools.wikipedia_get_pages_in_category("Cities", member_type="video")
    assert result.success is False
    assert "get_category_members" not in wiki.calls

    empty = await tools.wikipedia_get_pages_in_category("Cities")
    assert empty.output == 'No pages found in Wikipedia category "Cities".'


@pytest.mark.asyncio
async def test_google_tools_report_missing_configuration(clock, wiki):
    loader = CacheLoader(TieredCache(default_policies(), clock=clock))
    google = FakeGoogle(configured=False)
    tools = ResearchTools(loader, google, wiki, FakeExtractor())

    for result in (
        await tools.google_search("x"),
        await tools.academic_search("x"),
        await tools.news_monitor("x"),
        await tools.multi_site_search("x", ["a.org"]),
        await tools.search_analytics(["x"]),
        await tools.search_trends(["x"]),
        await tools.fact_checker("x"),
        await tools.research_assistant("x"),
    ):
        assert result.success is False
        assert result.error == GOOGLE_NOT_CONFIGURED
    assert google.calls == 0


@pytest.mark.asyncio
async def test_google_search_output_and_cache(tools, google):
    first = await tools.google_search("asyncio")
    second = await tools.google_search("ASYNCIO")

    assert first.output == (
        'Found 1 results for "asyncio":\n\n'
        "1. **Result**\n   a snippet\n   https://example.test/r"
    )
    assert second.metadata["cached"] is True
    assert google.calls == 1


@pytest.mark.asyncio
async def test_different_google_tools_do_not_share_cache_entries(tools, google):
    await tools.google_search("asyncio")
    await tools.academic_search("asyncio")
    news = await tools.news_monitor("asyncio")
    multi = await tools.multi_site_search("asyncio", ["python.org"])

    assert google.calls == 4
    assert "Source: example.test" in news.output
    assert "Site: example.test" in multi.output


@pytest.mark.asyncio
async def test_extract_content_is_cached(tools):
    first = await tools.extract_content("https://example.test/a")
    second = await tools.extract_content("https://example.test/a")

    assert first.output.startswith("**Page**\n\nContent body")
    assert second.metadata["cached"] is True
    assert tools.extractor.calls == 1


@pytest.mark.asyncio
async def test_url_metadata_is_not_cached(tools):
    result = await tools.url_metadata_extractor("https://example.test/a")
    assert "Title: Page" in result.output
    assert "Description: Not found" in result.output
    assert result.metadata["cached"] is False


@pytest.mark.asyncio
async def test_sentiment_and_keywords_are_cached(tools):
    first = await tools.content_sentiment_analysis("a great day")
    second = await tools.content_sentiment_analysis("A  great day")
    keywords = await tools.keyword_extraction("python python asyncio", max_keywords=1)
    bad = await tools.keyword_extraction("python", max_keywords=0)

    assert "Overall: Positive" in first.output
    assert second.metadata["cached"] is True
    assert keywords.output == "Extracted 1 keywords:\n\n1. python (2 occurrences)"
    assert bad.success is False


@pytest.mark.asyncio
async def test_content_deduplication_tool(tools):
    items = [{"title": "Same story"}, {"title": "same STORY"}, {"title": "Other"}]
    result = await tools.content_deduplication(items)

    assert "Original items: 3" in result.output
    assert "Unique items: 2" in result.output
    assert "Duplicates removed: 1" in result.output
    assert result.metadata["threshold"] == 0.8

    bad = await tools.content_deduplication(items, similarity_threshold=1.5)
    assert bad.success is False


@pytest.mark.asyncio
async def test_citation_formatter(tools):
    result = await tools.citation_formatter("Title", authors=["Doe, J."], year=2020, source="Journal")
    assert result.output == "APA Citation:\n\nDoe, J. (2020). Title. Journal"


@pytest.mark.asyncio
async def test_data_export(tools):
    ok = await tools.data_export([{"a": 1}], output_format="markdown", filename="notes.md")
    bad = await tools.data_export({"a": 1}, output_format="csv")
    default = await tools.data_export({"a": 1})

    assert ok.output.startswith("Data exported as MARKDOWN:")
    assert ok.output.endswith("Suggested filename: notes.md")
    assert bad.success is False
    assert default.output.endswith("Suggested filename: export.json")


@pytest.mark.asyncio
async def test_research_session_manager_lifecycle(tools):
    saved = await tools.research_session_manager("save", session_name="ai", content="notes")
    listed = await tools.research_session_manager("list")
    loaded = await tools.research_session_manager("load", session_name="ai")
    deleted = await tools.research_session_manager("delete", session_name="ai")
    missing = await tools.research_session_manager("load", session_name="ai")
    unknown = await tools.research_session_manager("rename")
    incomplete = await tools.research_session_manager("save", session_name="ai")

    assert saved.output == 'Research session "ai" saved successfully.'
    assert listed.output == "Available research sessions:\n- ai"
    assert loaded.output == 'Research session "ai" loaded:\n\nnotes'
    assert deleted.output == 'Research session "ai" deleted successfully.'
    assert missing.success is False
    assert 'Research session "ai" not found.' in missing.output
    assert unknown.output == "Error: Unknown action: rename"
    assert incomplete.success is False


@pytest.mark.asyncio
async def test_cache_stats(tools):
    await tools.wikipedia_search("Tokyo")
    result = await tools.cache_stats()
    data = json.loads(result.output)

    assert data["total_entries"] == 1
    assert data["tiers"]["search"]["size"] == 1
    assert data["tiers"]["search"]["misses"] == 1


NO_WAIT = RetryPolicy(max_retries=0, backoff_seconds=0.0, timeout=1.0)


@pytest.mark.asyncio
async def test_extract_content_keeps_url_path_case_in_cache_key(tools):
    upper = await tools.extract_content("https://example.test/Docs/Page")
    lower = await tools.extract_content("https://example.test/docs/page")
    host = await tools.extract_content("https://EXAMPLE.test/Docs/Page")

    assert tools.extractor.calls == 2
    assert "https://example.test/Docs/Page" in upper.output
    assert "https://example.test/docs/page" in lower.output
    assert host.metadata["cached"] is True


@pytest.mark.asyncio
async def test_unparseable_urls_are_reported_not_raised(clock, wiki, google, mock_http):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, text="<html></html>")

    async with mock_http(handler) as http:
        loader = CacheLoader(TieredCache(default_policies(), clock=clock))
        tools = ResearchTools(
            loader,
            google,
            wiki,
            ContentExtractor(http, policy=NO_WAIT),
            archive=ArchiveClient(http, policy=NO_WAIT),
        )
        bad_url = "http://exa mple.com/\x00"
        results = [
            await tools.extract_content(bad_url),
            await tools.url_metadata_extractor(bad_url),
            await tools.archive_org_search(bad_url),
            await tools.content_summarizer([bad_url]),
        ]

    assert [r.success for r in results[:3]] == [False, False, False]
    assert results[0].output.startswith("Error: Content extraction failed: Invalid URL")
    assert results[3].metadata["failed"] == 1
    assert requests == []


@pytest.mark.asyncio
async def test_search_analytics(tools, google):
    google.fail_queries = {"broken"}
    result = await tools.search_analytics(["asyncio", "trio", "broken"], time_range="week")

    assert result.output.startswith("Search Analytics for 3 queries (week):\n\n")
    assert '1. "asyncio": 1 results\n   Top domains: example.test' in result.output
    assert '3. "broken": [FAIL] google unavailable' in result.output
    assert result.metadata["failed"] == 1
    assert result.metadata["warning"] == "1 queries failed"
    assert google.queries[0] == ("asyncio", 3, {"date_restrict": "w1"})


@pytest.mark.asyncio
async def test_search_analytics_caps_queries_and_validates_range(tools, google):
    result = await tools.search_analytics([f"q{i}" for i in range(8)], max_results=50)
    bad = await tools.search_analytics(["x"], time_range="decade")

    assert result.metadata["processed"] == 5
    assert {num for _, num, _ in google.queries} == {5}
    assert bad.success is False
    assert google.calls == 5


@pytest.mark.asyncio
async def test_search_trends(tools, google):
    google.snippet = "12 March 2024 ... markets rally"
    result = await tools.search_trends(["ai chips"])
    again = await tools.search_trends(["AI  chips"])

    assert result.output == (
        "Search Trends Analysis (6M):\n\n"
        "**ai chips**\nRecent activity: 1 mentions\nTop sources:\n"
        "• Result (example.test) - 12 March 2024"
    )
    assert google.queries == [("ai chips trend OR trending", 3, {"date_restrict": "m6"})]
    assert again.success is True
    assert google.calls == 1


@pytest.mark.asyncio
async def test_search_trends_defaults_undated_sources_to_recent(tools):
    result = await tools.search_trends(["x"], timeframe="1m")
    bad = await tools.search_trends(["x"], timeframe="2Y")

    assert result.output.startswith("Search Trends Analysis (1M):")
    assert "• Result (example.test) - Recent" in result.output
    assert bad.success is False


@pytest.mark.asyncio
async def test_content_summarizer_shares_extraction_cache(tools):
    await tools.extract_content("https://example.test/a")
    result = await tools.content_summarizer(
        ["https://example.test/a", "https://example.test/broken"], max_length=50
    )

    assert result.output == (
        "Content summaries for 2 URLs:\n\n"
        "1. **Page**\n   Content body of https://example.test/a\n\n"
        "2. https://example.test/broken: Failed to extract content"
    )
    assert result.metadata["warning"] == "1 URLs failed"
    assert tools.extractor.calls == 2


@pytest.mark.asyncio
async def test_content_summarizer_truncates_and_validates_length(tools):
    short = await tools.content_summarizer(["https://example.test/" + "x" * 80], max_length=50)
    bad = await tools.content_summarizer(["https://example.test/a"], max_length=10)

    summary = short.output.split("\n   ", 1)[1]
    assert len(summary) == 53
    assert summary.endswith("...")
    assert bad.success is False


@pytest.mark.asyncio
async def test_fact_checker(tools, google):
    result = await tools.fact_checker("the moon is made of cheese")
    empty = await tools.fact_checker("  ")

    assert google.queries[0][0] == "the moon is made of cheese fact check OR verification OR debunk"
    assert google.queries[0][1] == 5
    assert result.output.startswith('Fact-check analysis for: "the moon is made of cheese"\n\nFound 1 relevant sources:')
    assert "1. **Result**\n   Source: example.test\n   a snippet\n   https://example.test/r" in result.output
    assert empty.success is False


@pytest.mark.asyncio
async def test_research_assistant_depth_and_type(tools, google):
    standard = await tools.research_assistant("quantum computing")
    await tools.research_assistant("quantum computing", research_type="academic", depth="quick")
    await tools.research_assistant("quantum computing", research_type="news", depth="quick")

    assert standard.output.startswith("Research Assistant - quantum computing (comprehensive, standard depth)\n\n")
    assert "**quantum computing overview**\n• Result (example.test)" in standard.output
    assert standard.metadata["queries"] == 3
    academic_query, _, _ = google.queries[3]
    assert academic_query.startswith("quantum computing site:arxiv.org")
    news_query, _, news_options = google.queries[5]
    assert "site:bbc.com" in news_query
    assert news_options == {"date_restrict": "m1"}


@pytest.mark.asyncio
async def test_research_assistant_rejects_unknown_options(tools, google):
    bad_type = await tools.research_assistant("x", research_type="gossip")
    bad_depth = await tools.research_assistant("x", depth="bottomless")

    assert bad_type.success is False
    assert bad_depth.success is False
    assert google.calls == 0


@pytest.mark.asyncio
async def test_archive_org_search(tools):
    first = await tools.archive_org_search("https://example.test/Page")
    second = await tools.archive_org_search("https://example.test/Page")
    other_case = await tools.archive_org_search("https://example.test/page")
    empty = await tools.archive_org_search("https://example.test/Page", year=1999)

    assert first.output == (
        "Archive.org search results for: https://example.test/Page\n\n"
        "Found 1 archived versions:\n\n"
        "1. 20200101000000 - https://web.archive.org/web/20200101000000/https://example.test/Page"
    )
    assert second.metadata["cached"] is True
    assert other_case.metadata["cached"] is False
    assert empty.output.endswith("No archived versions found.")
    assert len(tools.archive.calls) == 3


@pytest.mark.asyncio
async def test_archive_org_search_without_client(clock, wiki, google):
    loader = CacheLoader(TieredCache(default_policies(), clock=clock))
    result = await ResearchTools(loader, google, wiki, FakeExtractor()).archive_org_search("https://example.test/")
    assert result.success is False
