"""Provider-agnostic stream event vocabulary.

Every backend adapter turns its native streaming wire format into a sequence
of these events. A well-formed sequence for one call is:

    (text | tool_call_start (tool_call_delta)* tool_call_end)* (done | error)

with exactly one terminal ``done`` or ``error`` event.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from bookcrafter_agent.domain.models import ToolCall


class FinishReason(str, Enum):
    """Closed set of completion reasons every backend vocabulary maps into."""

    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"
    TOOL_USE = "tool_use"


class StreamEventType(str, Enum):
    """Kinds of normalized stream events."""

    TEXT = "text"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL_END = "tool_call_end"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """A single normalized unit of streamed model output.

    Attributes:
        type: Event kind
        content: Text fragment (text events)
        tool_call: Call identity on start (arguments empty) and the fully
            assembled call on end
        id: Call id (delta events)
        arguments: Raw argument fragment (delta events)
        finish_reason: Mapped completion reason (done events)
        error: Error message (error events)
        error_code: Categorized error code (error events)
    """

    type: StreamEventType
    content: str | None = None
    tool_call: ToolCall | None = None
    id: str | None = None
    arguments: str | None = None
    finish_reason: FinishReason | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type in (StreamEventType.DONE, StreamEventType.ERROR)

    @classmethod
    def text(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.TEXT, content=content)

    @classmethod
    def tool_call_start(cls, call_id: str, name: str) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL_START, id=call_id, tool_call=ToolCall(id=call_id, name=name))

    @classmethod
    def tool_call_delta(cls, call_id: str, arguments: str) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL_DELTA, id=call_id, arguments=arguments)

    @classmethod
    def tool_call_end(cls, tool_call: ToolCall) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL_END, id=tool_call.id, tool_call=tool_call)

    @classmethod
    def done(cls, finish_reason: FinishReason = FinishReason.STOP) -> "StreamEvent":
        return cls(type=StreamEventType.DONE, finish_reason=finish_reason)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error, error_code=error_code, finish_reason=FinishReason.ERROR)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization, omitting unset fields."""
        result: dict[str, Any] = {"type": self.type.value}
        if self.content is not None:
            result["content"] = self.content
        if self.tool_call is not None:
            result["tool_call"] = self.tool_call.to_dict()
        if self.id is not None:
            result["id"] = self.id
        if self.arguments is not None:
            result["arguments"] = self.arguments
        if self.finish_reason is not None:
            result["finish_reason"] = self.finish_reason.value
        if self.error is not None:
            result["error"] = self.error
        if self.error_code is not None:
            result["error_code"] = self.error_code
        return result
