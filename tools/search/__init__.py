from .archive import ArchiveClient
from .google import GoogleNotConfiguredError, GoogleSearchClient
from .reliability import RetryPolicy, UpstreamError
from .wikipedia import WikipediaClient

__all__ = [
    "ArchiveClient",
    "GoogleNotConfiguredError",
    "GoogleSearchClient",
    "RetryPolicy",
    "UpstreamError",
    "WikipediaClient",
]
