"""
Tool base classes for the research server.

- ToolResult: what every handler returns; MCP callers see ``output``
- ResearchTool: collects ``@tool_schema`` handlers for registration
- tool_schema: decorator declaring a tool's public name and description

Handlers never raise for expected failures (bad input, upstream errors);
they return ``fail_response`` so the MCP client always gets readable text.
"""

import inspect
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 100


@dataclass
class ToolResult:
    """
    Result of one tool call.

    Attributes:
        success: False for bad input and upstream failures
        output: Text returned to the MCP client
        metadata: Structured extras; cached handlers set ``cached``
        error: Failure message, None on success
    """
    success: bool
    output: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def cached(self) -> bool:
        return bool(self.metadata.get("cached", False))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    def __str__(self) -> str:
        tag = "[OK]" if self.success else "[FAIL]"
        text = self.output
        if len(text) > PREVIEW_CHARS:
            text = text[:PREVIEW_CHARS] + "..."
        return f"{tag} ToolResult: {text}"


class ResearchTool:
    """
    Base class for tool collections.

    Usage:
        class MyTools(ResearchTool):
            @tool_schema(name="echo", description="Echo the input")
            async def echo(self, text: str) -> ToolResult:
                return self.success_response(text)
    """

    def __init__(self):
        self._tools: Dict[str, Tuple[Dict[str, Any], Callable]] = {}
        self._collect_tools()

    def _collect_tools(self) -> None:
        for attr, method in inspect.getmembers(self, predicate=inspect.ismethod):
            schema = getattr(method, "_tool_schema", None)
            if attr.startswith("_") or schema is None:
                continue
            name = schema.get("name", attr)
            if name in self._tools:
                raise ValueError(f"duplicate tool name: {name}")
            self._tools[name] = ({**schema, "name": name}, method)
            logger.debug(f"Collected tool {name} from {type(self).__name__}.{attr}")

    def get_schemas(self) -> Dict[str, Dict[str, Any]]:
        return {name: dict(schema) for name, (schema, _) in self._tools.items()}

    def get_method(self, name: str) -> Optional[Callable]:
        entry = self._tools.get(name)
        return entry[1] if entry else None

    def list_methods(self) -> List[str]:
        return list(self._tools)

    def iter_tools(self) -> List[Tuple[Dict[str, Any], Callable]]:
        """(schema, bound method) pairs."""
        return list(self._tools.values())

    def success_response(self, data: Any, metadata: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Build a successful result.

        Strings are returned as-is, dicts and lists as indented JSON.
        """
        if isinstance(data, str):
            text = data
        elif isinstance(data, (dict, list)):
            text = json.dumps(data, ensure_ascii=False, indent=2)
        else:
            text = str(data)
        return ToolResult(success=True, output=text, metadata=dict(metadata or {}))

    def fail_response(self, error_msg: str, metadata: Optional[Dict[str, Any]] = None) -> ToolResult:
        return ToolResult(
            success=False,
            output=f"Error: {error_msg}",
            metadata=dict(metadata or {}),
            error=error_msg,
        )

    def partial_response(
        self,
        data: Any,
        warning: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        """Successful result carrying a warning, e.g. when some batch entries failed."""
        result = self.success_response(data, metadata)
        result.metadata["warning"] = warning
        return result


def tool_schema(**schema: Any) -> Callable:
    """
    Mark a ResearchTool method as an MCP tool.

    Usage:
        @tool_schema(name="wikipedia_search", description="Search Wikipedia articles")
        async def wikipedia_search(self, query: str, limit: int = 5) -> ToolResult:
            ...

    The input schema is derived from the handler signature when the tool is
    registered with the MCP server.
    """
    def mark(func: Callable) -> Callable:
        func._tool_schema = schema  # type: ignore[attr-defined]
        return func

    return mark
