import re
from typing import Dict

from pydantic import field_validator
from pydantic_settings import BaseSettings

_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}(-[a-z]+)?$")


class Settings(BaseSettings):
    """Application settings."""

    # API Keys
    google_api_key: str = ""
    google_cse_id: str = ""
    google_search_url: str = "https://www.googleapis.com/customsearch/v1"
    archive_cdx_url: str = "https://web.archive.org/cdx/search/cdx"

    # Wikipedia
    default_language: str = "en"
    user_agent: str = "research-mcp-server/1.0 (https://github.com/research-mcp-server)"

    # Server identity
    server_name: str = "research-mcp-server"
    server_version: str = "1.0.0"

    # Upstream HTTP
    http_timeout: float = 10.0
    http_max_retries: int = 3
    http_retry_backoff_seconds: float = 0.5

    # Cache Config
    cache_max_entries: int = 500  # default capacity for each tier
    cache_capacity_overrides: str = ""  # e.g. "search=50,page=200"
    enable_request_coalescing: bool = True  # share in-flight fetches per cache key
    cache_ttl_web_search: int = 900
    cache_ttl_search: int = 900
    cache_ttl_page: int = 3600
    cache_ttl_page_by_id: int = 3600
    cache_ttl_metadata: int = 2700
    cache_ttl_category: int = 3600
    cache_ttl_language: int = 21600
    cache_ttl_related: int = 3600
    cache_ttl_summary: int = 3600
    cache_ttl_sentiment: int = 3600
    cache_ttl_keywords: int = 3600
    cache_ttl_extracted_content: int = 1800
    cache_ttl_url_metadata: int = 1800
    cache_ttl_archive: int = 21600

    # Deduplication
    dedup_similarity_threshold: float = 0.8

    # Logging Config
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: str = "logs/research-mcp.log"
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    enable_file_logging: bool = False
    enable_json_logging: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False

    @field_validator("default_language")
    @classmethod
    def _validate_language(cls, value: str) -> str:
        value = (value or "").strip().lower()
        if not _LANGUAGE_RE.match(value):
            raise ValueError(f"invalid language code: {value!r}")
        return value

    @field_validator("dedup_similarity_threshold")
    @classmethod
    def _validate_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("dedup_similarity_threshold must be within [0, 1]")
        return value

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_api_key.strip() and self.google_cse_id.strip())

    @property
    def cache_capacity_overrides_map(self) -> Dict[str, int]:
        """Parse "tier=capacity" pairs; blank items are skipped."""
        overrides: Dict[str, int] = {}
        for item in self.cache_capacity_overrides.split(","):
            item = item.strip()
            if not item:
                continue
            name, sep, raw = item.partition("=")
            if not sep:
                raise ValueError(f"invalid cache capacity override: {item!r}")
            overrides[name.strip().lower()] = int(raw.strip())
        return overrides

    @property
    def tier_ttls(self) -> Dict[str, int]:
        """Per-tier default TTLs in seconds, keyed by tier name."""
        prefix = "cache_ttl_"
        return {
            name[len(prefix):]: getattr(self, name)
            for name in type(self).model_fields
            if name.startswith(prefix)
        }


settings = Settings()
