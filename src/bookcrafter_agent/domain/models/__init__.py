"""Domain models for the agent orchestration core."""

from bookcrafter_agent.domain.models.agentic_settings import AgenticSettings, ApprovalMode
from bookcrafter_agent.domain.models.message import Message, MessageRole, ToolCall, ToolResult
from bookcrafter_agent.domain.models.tool import ToolCategory, ToolDefinition
from bookcrafter_agent.domain.models.tool_execution import ToolExecution, ToolExecutionStatus
from bookcrafter_agent.domain.models.writing_context import CurrentChapter, EntityField, EntityReference, TextSelection, WritingContext

__all__ = [
    "AgenticSettings",
    "ApprovalMode",
    "CurrentChapter",
    "EntityField",
    "EntityReference",
    "Message",
    "MessageRole",
    "TextSelection",
    "ToolCall",
    "ToolCategory",
    "ToolDefinition",
    "ToolExecution",
    "ToolExecutionStatus",
    "ToolResult",
    "WritingContext",
]
