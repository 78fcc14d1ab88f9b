"""
Reliability helpers for upstream HTTP calls.

Idempotent GETs are retried with exponential backoff on network-class
failures, HTTP 429 and 5xx. Anything else, or exhausted retries, is raised
as UpstreamError with API keys and URLs redacted from the message.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class UpstreamError(RuntimeError):
    """An upstream API call failed (network, timeout, HTTP error or bad payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RetryPolicy:
    """Runtime policy for timeouts and retries."""

    max_retries: int = 3
    backoff_seconds: float = 0.5
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.http_max_retries,
            backoff_seconds=settings.http_retry_backoff_seconds,
            timeout=settings.http_timeout,
        )


def sanitize_error_message(error: Any) -> str:
    sanitized = str(error)
    sanitized = re.sub(r"https?://[^\s]+", "[URL_REDACTED]", sanitized)
    sanitized = re.sub(r"\b[A-Za-z0-9_\-]{32,}\b", "[KEY_REDACTED]", sanitized)
    sanitized = re.sub(
        r"api[_\-]?key[\s=:]+[\w\-]+",
        "api_key=[REDACTED]",
        sanitized,
        flags=re.IGNORECASE,
    )
    if len(sanitized) > 300:
        sanitized = sanitized[:300] + "..."
    return sanitized


def check_url(url: str) -> str:
    """
    Strip and validate an http(s) URL before it is fetched.

    Raises:
        ValueError: wrong scheme, or httpx cannot parse the URL
    """
    url = (url or "").strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"URL must start with http:// or https://: {url!r}")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid URL {url!r}: {e}") from None
    if not parsed.host:
        raise ValueError(f"URL has no host: {url!r}")
    return url


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return isinstance(exc, httpx.TransportError)


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    policy: Optional[RetryPolicy] = None,
    provider: str = "upstream",
) -> httpx.Response:
    """
    GET with retry/backoff.

    Raises:
        UpstreamError: on a non-retryable failure or after the last attempt
    """
    policy = policy or RetryPolicy()
    attempts = max(1, int(policy.max_retries) + 1)

    for attempt in range(attempts):
        try:
            response = await client.get(url, params=params, headers=headers, timeout=policy.timeout)
            response.raise_for_status()
            return response
        except httpx.InvalidURL as e:
            message = sanitize_error_message(f"InvalidURL: {e}")
            logger.warning(f"[reliability] provider={provider} rejected URL: {message}")
            raise UpstreamError(message) from e
        except httpx.HTTPError as e:
            status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            is_last_attempt = attempt >= (attempts - 1)

            if not is_retryable(e) or is_last_attempt:
                message = sanitize_error_message(f"{type(e).__name__}: {e}")
                logger.warning(
                    f"[reliability] provider={provider} failed after {attempt + 1} attempts: {message}"
                )
                raise UpstreamError(message, status_code=status) from e

            delay = max(0.0, float(policy.backoff_seconds)) * (2 ** attempt)
            logger.debug(
                f"[reliability] provider={provider} attempt {attempt + 1} failed, retrying in {delay:.2f}s"
            )
            if delay > 0:
                await asyncio.sleep(delay)

    raise UpstreamError(f"{provider} request failed")  # pragma: no cover


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    policy: Optional[RetryPolicy] = None,
    provider: str = "upstream",
) -> Any:
    response = await fetch(
        client, url, params=params, headers=headers, policy=policy, provider=provider
    )
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(f"{provider} returned invalid JSON", status_code=response.status_code) from e
