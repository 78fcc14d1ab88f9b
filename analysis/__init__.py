from .citations import format_citation
from .dedup import ContentDeduplicator, deduplicate, partition_duplicates, similarity, tokenize
from .export import export_data
from .text import (
    analyze_sentiment,
    clean_wikipedia_content,
    extract_keywords,
    readability_score,
)
from .trends import summarize_content, top_domains, trend_sources

__all__ = [
    # Deduplication
    "ContentDeduplicator",
    "deduplicate",
    "partition_duplicates",
    "similarity",
    "tokenize",
    # Text
    "analyze_sentiment",
    "clean_wikipedia_content",
    "extract_keywords",
    "readability_score",
    # Search results
    "summarize_content",
    "top_domains",
    "trend_sources",
    "format_citation",
    "export_data",
]
