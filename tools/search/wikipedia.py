"""
Wikipedia Action API client.

Talks to ``https://{lang}.wikipedia.org/w/api.php`` with ``formatversion=2``
and reduces responses to compact, JSON-serializable payloads. Missing pages
come back as ``{"found": False, ...}`` rather than raising, so callers can
cache a not-found result like any other answer.

Usage:
    async with httpx.AsyncClient() as http:
        wiki = WikipediaClient(http)
        page = await wiki.get_page("Tokyo", lang="en")
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from analysis.text import clean_wikipedia_content
from tools.search.reliability import RetryPolicy, UpstreamError, get_json

logger = logging.getLogger(__name__)

LANGUAGE_RE = re.compile(r"^[a-z]{2,3}(-[a-z]+)?$")
NOT_FOUND_CODES = frozenset({"missingtitle", "nosuchpageid", "invalidtitle"})
MAX_PAGE_TEXT = 20000
CATEGORY_PREFIX = "Category:"


def normalize_language(lang: Optional[str], default: str = "en") -> str:
    code = (lang or default).strip().lower()
    if not LANGUAGE_RE.match(code):
        raise ValueError(f"invalid language code: {lang!r}")
    return code


def category_title(name: str) -> str:
    name = name.strip()
    return name if name.startswith(CATEGORY_PREFIX) else f"{CATEGORY_PREFIX}{name}"


def page_url(title: str, lang: str) -> str:
    return f"https://{lang}.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}"


def html_to_text(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "table", "sup"]):
        element.decompose()
    return clean_wikipedia_content(soup.get_text(separator=" "))


def _not_found(**fields: Any) -> Dict[str, Any]:
    return {"found": False, **fields}


class WikipediaClient:
    """Async client for the subset of the Action API the tools need."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        default_language: str = "en",
        user_agent: str = "research-mcp-server/1.0",
        policy: Optional[RetryPolicy] = None,
    ):
        self._http = http
        self.default_language = normalize_language(default_language)
        self._headers = {"User-Agent": user_agent}
        self._policy = policy or RetryPolicy()

    def language(self, lang: Optional[str]) -> str:
        return normalize_language(lang, self.default_language)

    def endpoint(self, lang: str) -> str:
        return f"https://{lang}.wikipedia.org/w/api.php"

    async def _api(self, lang: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Call the Action API; returns the payload or raises UpstreamError."""
        query = {"format": "json", "formatversion": "2", **params}
        data = await get_json(
            self._http,
            self.endpoint(lang),
            params=query,
            headers=self._headers,
            policy=self._policy,
            provider="wikipedia",
        )
        if not isinstance(data, dict):
            raise UpstreamError("wikipedia returned an unexpected payload")
        error = data.get("error")
        if isinstance(error, dict) and error.get("code") not in NOT_FOUND_CODES:
            raise UpstreamError(f"wikipedia API error {error.get('code')}: {error.get('info', '')}")
        return data

    async def _first_page(self, lang: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = await self._api(lang, {"action": "query", "redirects": "1", **params})
        pages = (data.get("query") or {}).get("pages") or []
        if isinstance(pages, dict):
            pages = list(pages.values())
        if not pages:
            return None
        page = pages[0]
        if not isinstance(page, dict) or page.get("missing") or page.get("invalid"):
            return None
        return page

    async def search(
        self,
        query: str,
        lang: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Dict[str, Any]:
        lang = self.language(lang)
        data = await self._api(
            lang,
            {
                "action": "query",
                "list": "search",
                "srsearch": query,
                "srlimit": max(1, min(int(limit), 50)),
                "sroffset": max(0, int(offset)),
                "srprop": "snippet|timestamp",
            },
        )
        block = data.get("query") or {}
        results = [
            {
                "title": hit.get("title", ""),
                "pageid": hit.get("pageid"),
                "snippet": html_to_text(hit.get("snippet", "")),
                "timestamp": hit.get("timestamp"),
            }
            for hit in block.get("search") or []
        ]
        total = (block.get("searchinfo") or {}).get("totalhits", len(results))
        logger.info(f"[wikipedia] search '{query[:60]}' ({lang}) -> {len(results)} results")
        return {"query": query, "lang": lang, "results": results, "total_hits": total}

    async def get_page(self, title: str, lang: Optional[str] = None) -> Dict[str, Any]:
        """Render a page with action=parse; includes sections, categories, links and langlinks."""
        lang = self.language(lang)
        data = await self._api(
            lang,
            {
                "action": "parse",
                "page": title,
                "prop": "text|sections|categories|links|langlinks|revid|displaytitle",
                "redirects": "1",
                "disableeditsection": "1",
            },
        )
        parsed = data.get("parse")
        if not isinstance(parsed, dict):
            return _not_found(title=title, lang=lang)

        resolved_title = parsed.get("title", title)
        text = html_to_text(parsed.get("text", ""))
        return {
            "found": True,
            "title": resolved_title,
            "pageid": parsed.get("pageid"),
            "revid": parsed.get("revid"),
            "lang": lang,
            "url": page_url(resolved_title, lang),
            "text": text[:MAX_PAGE_TEXT],
            "sections": [s.get("line", "") for s in parsed.get("sections") or []],
            "categories": [
                c.get("category", "").replace("_", " ")
                for c in parsed.get("categories") or []
                if not c.get("hidden")
            ],
            "links": [link.get("title", "") for link in parsed.get("links") or [] if link.get("ns") == 0],
            "langlinks": [
                {"lang": ll.get("lang"), "title": ll.get("title"), "url": ll.get("url")}
                for ll in parsed.get("langlinks") or []
            ],
        }

    async def get_page_by_id(self, page_id: int, lang: Optional[str] = None) -> Dict[str, Any]:
        lang = self.language(lang)
        page = await self._first_page(
            lang,
            {
                "pageids": int(page_id),
                "prop": "extracts|info",
                "explaintext": "1",
                "exsectionformat": "plain",
                "inprop": "url",
            },
        )
        if page is None:
            return _not_found(pageid=int(page_id), lang=lang)
        return {
            "found": True,
            "pageid": page.get("pageid"),
            "title": page.get("title", ""),
            "lang": lang,
            "url": page.get("fullurl"),
            "text": clean_wikipedia_content(page.get("extract", ""))[:MAX_PAGE_TEXT],
            "last_modified": page.get("touched"),
        }

    async def get_summary(self, title: str, lang: Optional[str] = None) -> Dict[str, Any]:
        """First three sentences of the page plus basic info."""
        lang = self.language(lang)
        page = await self._first_page(
            lang,
            {
                "titles": title,
                "prop": "extracts|info",
                "exsentences": "3",
                "explaintext": "1",
                "exsectionformat": "plain",
                "inprop": "url",
            },
        )
        if page is None:
            return _not_found(title=title, lang=lang)
        summary = clean_wikipedia_content(page.get("extract", ""))
        return {
            "found": True,
            "title": page.get("title", title),
            "pageid": page.get("pageid"),
            "lang": lang,
            "summary": summary,
            "word_count": len(summary.split()),
            "url": page.get("fullurl"),
            "last_modified": page.get("touched"),
            "length": page.get("length"),
        }

    async def get_random(self, lang: Optional[str] = None) -> Dict[str, Any]:
        lang = self.language(lang)
        data = await self._api(
            lang,
            {"action": "query", "list": "random", "rnnamespace": "0", "rnlimit": "1"},
        )
        pages = (data.get("query") or {}).get("random") or []
        if not pages:
            return _not_found(lang=lang)
        page = pages[0]
        return {"found": True, "title": page.get("title", ""), "pageid": page.get("id"), "lang": lang}

    async def get_languages(self, title: str, lang: Optional[str] = None) -> Dict[str, Any]:
        lang = self.language(lang)
        page = await self._first_page(
            lang,
            {"titles": title, "prop": "langlinks", "lllimit": "max", "llprop": "url"},
        )
        if page is None:
            return _not_found(title=title, lang=lang)
        languages = [
            {
                "lang": ll.get("lang"),
                "title": ll.get("title", ""),
                "url": ll.get("url") or page_url(ll.get("title", ""), ll.get("lang", lang)),
            }
            for ll in page.get("langlinks") or []
        ]
        return {
            "found": True,
            "title": page.get("title", title),
            "lang": lang,
            "language_count": len(languages),
            "languages": languages,
        }

    async def get_categories(self, title: str, lang: Optional[str] = None) -> List[str]:
        """Visible categories the page belongs to (with the ``Category:`` prefix)."""
        lang = self.language(lang)
        page = await self._first_page(
            lang,
            {"titles": title, "prop": "categories", "cllimit": "max", "clshow": "!hidden"},
        )
        if page is None:
            return []
        return [c.get("title", "") for c in page.get("categories") or []]

    async def get_links(self, title: str, lang: Optional[str] = None) -> List[str]:
        """Article-namespace links from the page."""
        lang = self.language(lang)
        page = await self._first_page(
            lang,
            {"titles": title, "prop": "links", "plnamespace": "0", "pllimit": "max"},
        )
        if page is None:
            return []
        return [link.get("title", "") for link in page.get("links") or []]

    async def get_category_members(
        self,
        category: str,
        lang: Optional[str] = None,
        limit: int = 20,
        member_type: str = "page",
    ) -> Dict[str, Any]:
        lang = self.language(lang)
        cat_title = category_title(category)
        data = await self._api(
            lang,
            {
                "action": "query",
                "list": "categorymembers",
                "cmtitle": cat_title,
                "cmtype": member_type,
                "cmlimit": max(1, min(int(limit), 500)),
                "cmprop": "ids|title|type",
            },
        )
        members = [
            {
                "title": m.get("title", ""),
                "pageid": m.get("pageid"),
                "ns": m.get("ns"),
                "type": m.get("type", member_type),
            }
            for m in (data.get("query") or {}).get("categorymembers") or []
        ]
        return {"category": cat_title, "lang": lang, "type": member_type, "members": members}

    async def search_nearby(
        self,
        lat: float,
        lon: float,
        radius: int = 1000,
        lang: Optional[str] = None,
        limit: int = 10,
    ) -> Dict[str, Any]:
        if not -90 <= lat <= 90 or not -180 <= lon <= 180:
            raise ValueError(f"coordinates out of range: ({lat}, {lon})")
        lang = self.language(lang)
        data = await self._api(
            lang,
            {
                "action": "query",
                "list": "geosearch",
                "gscoord": f"{lat}|{lon}",
                "gsradius": max(10, min(int(radius), 10000)),
                "gslimit": max(1, min(int(limit), 500)),
            },
        )
        places = [
            {
                "title": p.get("title", ""),
                "pageid": p.get("pageid"),
                "lat": p.get("lat"),
                "lon": p.get("lon"),
                "dist": p.get("dist"),
            }
            for p in (data.get("query") or {}).get("geosearch") or []
        ]
        return {"lat": lat, "lon": lon, "radius": radius, "lang": lang, "places": places}
