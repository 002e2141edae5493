"""Static tool catalog offered to the model."""

from bookcrafter_agent.application.tools.analysis_tools import get_analysis_tools
from bookcrafter_agent.application.tools.editing_tools import get_editing_tools
from bookcrafter_agent.application.tools.file_tools import get_file_tools
from bookcrafter_agent.application.tools.generation_tools import get_generation_tools
from bookcrafter_agent.domain.models import ToolDefinition


def get_builtin_tools() -> list[ToolDefinition]:
    """Get every catalog tool, grouped by category."""
    return [*get_file_tools(), *get_analysis_tools(), *get_generation_tools(), *get_editing_tools()]


__all__ = [
    "get_analysis_tools",
    "get_builtin_tools",
    "get_editing_tools",
    "get_file_tools",
    "get_generation_tools",
]
