from tools.core.base import ResearchTool, ToolResult, tool_schema
from tools.crawl.extractor import ContentExtractor
from tools.search.google import GoogleSearchClient
from tools.search.wikipedia import WikipediaClient

__all__ = [
    "ResearchTool",
    "ToolResult",
    "tool_schema",
    "ContentExtractor",
    "GoogleSearchClient",
    "WikipediaClient",
]
