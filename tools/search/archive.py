"""
Wayback Machine snapshot lookup.

Uses the CDX server, which lists every capture of a URL (the
``wayback/available`` endpoint only returns the closest one). Captures are
collapsed by content digest so unchanged re-crawls are listed once.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from tools.search.reliability import RetryPolicy, UpstreamError, check_url, get_json

logger = logging.getLogger(__name__)

ARCHIVE_CDX_URL = "https://web.archive.org/cdx/search/cdx"
SNAPSHOT_URL = "https://web.archive.org/web/{timestamp}/{original}"
FIRST_ARCHIVE_YEAR = 1996
MAX_SNAPSHOTS = 50


def parse_cdx(rows: Any) -> List[Dict[str, str]]:
    """
    Convert CDX ``output=json`` rows into snapshot dicts.

    The first row is the field header; an empty list means no captures.
    """
    if not isinstance(rows, list) or len(rows) < 2:
        return []
    header = [str(name) for name in rows[0]]
    snapshots = []
    for row in rows[1:]:
        if not isinstance(row, list) or len(row) != len(header):
            continue
        record = dict(zip(header, row))
        timestamp = record.get("timestamp", "")
        original = record.get("original", "")
        if not timestamp or not original:
            continue
        snapshots.append(
            {
                "timestamp": timestamp,
                "url": SNAPSHOT_URL.format(timestamp=timestamp, original=original),
                "original": original,
                "status": record.get("statuscode", ""),
                "mimetype": record.get("mimetype", ""),
            }
        )
    return snapshots


class ArchiveClient:
    """Internet Archive CDX client."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        policy: Optional[RetryPolicy] = None,
        base_url: str = ARCHIVE_CDX_URL,
    ):
        self._http = http
        self._policy = policy or RetryPolicy()
        self._base_url = base_url

    async def snapshots(self, url: str, year: Optional[int] = None, limit: int = 10) -> Dict[str, Any]:
        """
        List archived captures of a URL, oldest first.

        Returns:
            {"url", "year", "snapshots": [{timestamp, url, original, status, mimetype}]}

        Raises:
            ValueError: bad URL or year
            UpstreamError: request failed or returned a non-list payload
        """
        url = check_url(url)
        params: Dict[str, Any] = {
            "url": url,
            "output": "json",
            "fl": "timestamp,original,statuscode,mimetype",
            "collapse": "digest",
            "limit": max(1, min(int(limit or 10), MAX_SNAPSHOTS)),
        }
        if year is not None:
            year = int(year)
            if year < FIRST_ARCHIVE_YEAR:
                raise ValueError(f"year must be {FIRST_ARCHIVE_YEAR} or later, got {year}")
            params["from"] = str(year)
            params["to"] = str(year)

        rows = await get_json(self._http, self._base_url, params=params, policy=self._policy, provider="archive")
        if not isinstance(rows, list):
            raise UpstreamError("archive returned an unexpected payload")
        snapshots = parse_cdx(rows)
        logger.info(f"[archive] {url[:80]} -> {len(snapshots)} snapshots")
        return {"url": url, "year": year, "snapshots": snapshots}
