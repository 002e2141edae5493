"""Tests for the normalized stream event vocabulary."""

from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent, StreamEventType
from bookcrafter_agent.domain.models import ToolCall


class TestStreamEvent:
    def test_text_event(self) -> None:
        event = StreamEvent.text("Hi")

        assert event.type == StreamEventType.TEXT
        assert event.is_terminal is False
        assert event.to_dict() == {"type": "text", "content": "Hi"}

    def test_tool_call_start_carries_identity_only(self) -> None:
        event = StreamEvent.tool_call_start("call-1", "read_chapter")

        assert event.id == "call-1"
        assert event.tool_call.name == "read_chapter"
        assert event.tool_call.arguments == {}

    def test_tool_call_end_carries_assembled_call(self) -> None:
        call = ToolCall(id="call-1", name="read_chapter", arguments={"bookSlug": "t1"})

        event = StreamEvent.tool_call_end(call)

        assert event.id == "call-1"
        assert event.to_dict()["tool_call"]["arguments"] == {"bookSlug": "t1"}

    def test_terminal_events(self) -> None:
        assert StreamEvent.done(FinishReason.TOOL_USE).is_terminal is True
        failure = StreamEvent.failure("OpenAI request failed: boom", "openai_api_error")
        assert failure.is_terminal is True
        assert failure.finish_reason == FinishReason.ERROR
        assert failure.to_dict()["error_code"] == "openai_api_error"
