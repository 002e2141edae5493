"""Conversation message models."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    """Role of the message sender."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"


@dataclass
class ToolCall:
    """A tool invocation requested by the model.

    The id is either assigned by the backend or synthesized by the adapter and
    stays the same across the start/delta/end stream events of one call.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(id=data["id"], name=data["name"], arguments=dict(data.get("arguments") or {}))


@dataclass
class ToolResult:
    """Outcome of executing (or rejecting) one tool call."""

    tool_call_id: str
    content: str
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"tool_call_id": self.tool_call_id, "content": self.content, "is_error": self.is_error}


@dataclass
class Message:
    """
    A single message in a conversation.

    The ordered list of messages is the conversation transcript. Assistant
    messages may carry the tool calls the model requested; tool_result
    messages carry the matching ToolResult.
    """

    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    tool_calls: list[ToolCall] | None = None
    tool_result: ToolResult | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list[ToolCall] | None = None) -> "Message":
        """Create an assistant message, optionally carrying tool calls."""
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool_result_message(cls, result: ToolResult, content: str | None = None) -> "Message":
        """Create a tool_result message.

        Args:
            result: The tool result this message records
            content: Display text for the message (defaults to the result content)
        """
        return cls(
            role=MessageRole.TOOL_RESULT,
            content=result.content if content is None else content,
            tool_result=result,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_result:
            result["tool_result"] = self.tool_result.to_dict()
        return result
