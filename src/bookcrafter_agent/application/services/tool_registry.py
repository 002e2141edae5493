"""Tool registry: the single source of truth for what the model may request."""

import logging
from collections.abc import Iterable, Iterator

from bookcrafter_agent.application.tools import get_builtin_tools
from bookcrafter_agent.domain.models import ToolCategory, ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Immutable catalog of tool definitions keyed by name.

    Usage:
        registry = ToolRegistry.default()
        tools = registry.filter_enabled(["read_chapter", "write_chapter"])
        if registry.get("write_chapter").requires_approval:
            ...
    """

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f'Duplicate tool name "{tool.name}"')
            self._tools[tool.name] = tool

    @classmethod
    def default(cls) -> "ToolRegistry":
        """Create a registry holding the built-in catalog."""
        return cls(get_builtin_tools())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def get(self, name: str) -> ToolDefinition | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def filter_enabled(self, enabled_tools: Iterable[str] | None) -> list[ToolDefinition]:
        """Get the enabled subset, in catalog order. An empty selection means all tools."""
        selected = set(enabled_tools or ())
        if not selected:
            return self.all()
        unknown = selected - self._tools.keys()
        if unknown:
            logger.warning(f"Ignoring unknown enabled tools: {sorted(unknown)}")
        return [tool for tool in self._tools.values() if tool.name in selected]

    def requiring_approval(self) -> list[ToolDefinition]:
        return [tool for tool in self._tools.values() if tool.requires_approval]

    def read_only(self) -> list[ToolDefinition]:
        return [tool for tool in self._tools.values() if not tool.requires_approval]

    def by_category(self, category: ToolCategory) -> list[ToolDefinition]:
        return [tool for tool in self._tools.values() if tool.category == category]
