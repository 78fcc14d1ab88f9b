"""
Static page extraction.

Fetches a URL with httpx and pulls the main readable content out of the
HTML with BeautifulSoup: navigation, ads and scripts are dropped before the
first matching content container is picked. No JavaScript rendering.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from analysis.text import analyze_sentiment, readability_score, word_count
from tools.search.reliability import RetryPolicy, check_url, fetch

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 10000
MAX_LINKS = 20
MAX_IMAGES = 10

NOISE_SELECTORS = ("script", "style", "nav", "header", "footer", "aside", "noscript", ".ad", ".advertisement")
CONTENT_SELECTORS = ("main", "article", ".content", ".post", ".entry", "#content", "#main")

DEFAULT_UA = "Mozilla/5.0 (compatible; research-mcp-server/1.0)"


def _meta(soup: BeautifulSoup, *, name: Optional[str] = None, prop: Optional[str] = None) -> str:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _main_text(soup: BeautifulSoup) -> str:
    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            text = node.get_text(separator=" ", strip=True)
            if text:
                return " ".join(text.split())
    body = soup.body or soup
    return " ".join(body.get_text(separator=" ", strip=True).split())


def _links(soup: BeautifulSoup, base_url: str) -> List[str]:
    seen: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = urljoin(base_url, anchor["href"].strip())
        if href.startswith(("http://", "https://")) and href not in seen:
            seen.append(href)
            if len(seen) >= MAX_LINKS:
                break
    return seen


def _images(soup: BeautifulSoup, base_url: str) -> List[Dict[str, str]]:
    images: List[Dict[str, str]] = []
    for img in soup.find_all("img", src=True):
        images.append({"src": urljoin(base_url, img["src"].strip()), "alt": (img.get("alt") or "").strip()})
        if len(images) >= MAX_IMAGES:
            break
    return images


def parse_page(html: str, url: str) -> Dict[str, Any]:
    """Turn raw HTML into the extracted-content payload."""
    soup = BeautifulSoup(html or "", "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    description = _meta(soup, name="description") or _meta(soup, prop="og:description")

    # links and images are collected before noise removal so nav links survive
    links = _links(soup, url)
    images = _images(soup, url)

    for element in soup.select(", ".join(NOISE_SELECTORS)):
        element.decompose()

    content = _main_text(soup)
    truncated = len(content) > MAX_CONTENT_CHARS
    content = content[:MAX_CONTENT_CHARS]

    return {
        "url": url,
        "title": title,
        "description": description,
        "content": content,
        "truncated": truncated,
        "word_count": word_count(content),
        "readability": readability_score(content),
        "sentiment": analyze_sentiment(content),
        "links": links,
        "images": images,
    }


class ContentExtractor:
    """Fetch pages and extract content or metadata."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        user_agent: str = DEFAULT_UA,
        policy: Optional[RetryPolicy] = None,
    ):
        self._http = http
        self._headers = {"User-Agent": user_agent, "Accept": "text/html,application/xhtml+xml"}
        self._policy = policy or RetryPolicy()

    async def extract(self, url: str) -> Dict[str, Any]:
        """
        Fetch a page and extract its main content.

        Raises:
            ValueError: URL is not http(s)
            UpstreamError: fetch failed
        """
        url = check_url(url)
        response = await fetch(self._http, url, headers=self._headers, policy=self._policy, provider="extract")
        result = parse_page(response.text, str(response.url))
        logger.info(f"[extract] {url} -> {result['word_count']} words")
        return result

    async def url_metadata(self, url: str) -> Dict[str, Any]:
        url = check_url(url)
        response = await fetch(self._http, url, headers=self._headers, policy=self._policy, provider="metadata")
        soup = BeautifulSoup(response.text or "", "html.parser")
        return {
            "url": str(response.url),
            "status_code": response.status_code,
            "content_type": response.headers.get("content-type", ""),
            "title": soup.title.get_text(strip=True) if soup.title else "",
            "description": _meta(soup, name="description") or _meta(soup, prop="og:description"),
            "keywords": _meta(soup, name="keywords"),
            "og_title": _meta(soup, prop="og:title"),
            "og_image": _meta(soup, prop="og:image"),
        }
