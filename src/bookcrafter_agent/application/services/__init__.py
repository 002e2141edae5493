"""Application services: tool catalog, tool execution and the store contract."""

from bookcrafter_agent.application.services.store_access import StoreAccess
from bookcrafter_agent.application.services.tool_executor import ToolArgumentError, ToolExecutor
from bookcrafter_agent.application.services.tool_registry import ToolRegistry

__all__ = [
    "StoreAccess",
    "ToolArgumentError",
    "ToolExecutor",
    "ToolRegistry",
]
