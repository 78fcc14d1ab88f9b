import httpx
import pytest

from tools.crawl.extractor import MAX_CONTENT_CHARS, ContentExtractor, parse_page
from tools.search.reliability import RetryPolicy, UpstreamError, check_url

NO_WAIT = RetryPolicy(max_retries=0, backoff_seconds=0.0)

PAGE = """
<html>
  <head>
    <title>Example Article</title>
    <meta name="description" content="An example page">
    <meta name="keywords" content="example, test">
  </head>
  <body>
    <nav><a href="/home">Home</a></nav>
    <div class="ad">Buy now!</div>
    <article>
      <h1>Heading</h1>
      <p>This is a great article about testing.</p>
      <img src="/img/a.png" alt="A">
      <a href="https://other.test/page">Other</a>
      <a href="mailto:someone@example.com">Mail</a>
    </article>
    <footer>Copyright</footer>
    <script>track()</script>
  </body>
</html>
"""


def test_parse_page_prefers_article_and_drops_boilerplate():
    result = parse_page(PAGE, "https://example.test/post")

    assert result["title"] == "Example Article"
    assert result["description"] == "An example page"
    assert result["content"] == "Heading This is a great article about testing. Other Mail"
    assert "Buy now" not in result["content"]
    assert "Copyright" not in result["content"]
    assert result["truncated"] is False
    assert result["sentiment"]["label"] == "Positive"


def test_parse_page_resolves_links_and_images():
    result = parse_page(PAGE, "https://example.test/post")

    assert result["links"] == ["https://example.test/home", "https://other.test/page"]
    assert result["images"] == [{"src": "https://example.test/img/a.png", "alt": "A"}]


def test_parse_page_falls_back_to_body_and_caps_content():
    html = "<html><body><p>" + "word " * 5000 + "</p></body></html>"
    result = parse_page(html, "https://example.test/")

    assert len(result["content"]) == MAX_CONTENT_CHARS
    assert result["truncated"] is True


def test_parse_page_uses_og_description_fallback():
    html = '<html><head><meta property="og:description" content="OG text"></head><body>x</body></html>'
    assert parse_page(html, "https://example.test/")["description"] == "OG text"


@pytest.mark.asyncio
async def test_extract_fetches_page(mock_http):
    def handler(request):
        assert request.headers["user-agent"] == "tests/1.0"
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})

    async with mock_http(handler) as http:
        extractor = ContentExtractor(http, user_agent="tests/1.0", policy=NO_WAIT)
        result = await extractor.extract("https://example.test/post")

    assert result["url"] == "https://example.test/post"
    assert result["word_count"] > 0


@pytest.mark.asyncio
async def test_url_metadata(mock_http):
    def handler(request):
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})

    async with mock_http(handler) as http:
        meta = await ContentExtractor(http, policy=NO_WAIT).url_metadata("https://example.test/post")

    assert meta["title"] == "Example Article"
    assert meta["keywords"] == "example, test"
    assert meta["content_type"].startswith("text/html")
    assert meta["status_code"] == 200


@pytest.mark.asyncio
async def test_rejects_non_http_urls(mock_http):
    async with mock_http(lambda request: httpx.Response(200)) as http:
        extractor = ContentExtractor(http, policy=NO_WAIT)
        with pytest.raises(ValueError):
            await extractor.extract("file:///etc/passwd")


@pytest.mark.asyncio
async def test_fetch_failure_raises_upstream_error(mock_http):
    async with mock_http(lambda request: httpx.Response(500)) as http:
        extractor = ContentExtractor(http, policy=NO_WAIT)
        with pytest.raises(UpstreamError):
            await extractor.extract("https://example.test/down")


@pytest.mark.parametrize(
    "url",
    ["http://exa mple.com/\x00", "https://"],
)
def test_check_url_rejects_unparseable_urls(url):
    with pytest.raises(ValueError):
        check_url(url)


def test_check_url_keeps_valid_url():
    assert check_url("  https://example.test/Path?q=1 ") == "https://example.test/Path?q=1"


@pytest.mark.asyncio
async def test_unparseable_url_never_reaches_the_network(mock_http):
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(200, text=PAGE)

    async with mock_http(handler) as http:
        extractor = ContentExtractor(http, policy=NO_WAIT)
        with pytest.raises(ValueError):
            await extractor.extract("http://exa mple.com/\x00")
        with pytest.raises(ValueError):
            await extractor.url_metadata("http://exa mple.com/\x00")

    assert calls["n"] == 0
