"""Tests for the conversation and tool domain models.

Tests cover:
- Message factories and serialization
- ToolCall dictionary conversion
- ToolDefinition backend formats
- ToolExecution forward-only lifecycle
- AgenticSettings validation and approval policy
- WritingContext emptiness
"""

import pytest

from bookcrafter_agent.domain.models import (
    AgenticSettings,
    ApprovalMode,
    CurrentChapter,
    Message,
    MessageRole,
    TextSelection,
    ToolCall,
    ToolCategory,
    ToolDefinition,
    ToolExecution,
    ToolExecutionStatus,
    ToolResult,
    WritingContext,
)

# ============================================================================
# MESSAGE TESTS
# ============================================================================


class TestMessage:
    """Test Message factories."""

    def test_user_message(self) -> None:
        message = Message.user("Hi")

        assert message.role == MessageRole.USER
        assert message.content == "Hi"
        assert message.has_tool_calls is False

    def test_assistant_message_with_tool_calls(self) -> None:
        call = ToolCall(id="call-1", name="read_chapter", arguments={"bookSlug": "t1"})
        message = Message.assistant("", [call])

        assert message.has_tool_calls is True
        assert message.to_dict()["tool_calls"] == [{"id": "call-1", "name": "read_chapter", "arguments": {"bookSlug": "t1"}}]

    def test_assistant_message_with_empty_tool_calls_has_none(self) -> None:
        """An empty tool call list is normalized away."""
        message = Message.assistant("text", [])

        assert message.tool_calls is None
        assert "tool_calls" not in message.to_dict()

    def test_tool_result_message_defaults_content_to_result(self) -> None:
        result = ToolResult(tool_call_id="call-1", content="# c\n\nHello")
        message = Message.tool_result_message(result)

        assert message.role == MessageRole.TOOL_RESULT
        assert message.content == "# c\n\nHello"
        assert message.tool_result is result

    def test_tool_result_message_with_display_content(self) -> None:
        result = ToolResult(tool_call_id="call-1", content="Tool call was rejected by user", is_error=True)
        message = Message.tool_result_message(result, 'Tool call "write_chapter" was rejected by user')

        assert message.content == 'Tool call "write_chapter" was rejected by user'
        assert message.to_dict()["tool_result"]["is_error"] is True

    def test_tool_call_from_dict(self) -> None:
        call = ToolCall.from_dict({"id": "x", "name": "list_books"})

        assert call.arguments == {}
        assert call.to_dict() == {"id": "x", "name": "list_books", "arguments": {}}


# ============================================================================
# TOOL DEFINITION TESTS
# ============================================================================


class TestToolDefinition:
    """Test backend-specific tool shapes."""

    @pytest.fixture
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="read_chapter",
            description="Read a chapter",
            category=ToolCategory.FILE,
            parameters={
                "type": "object",
                "properties": {"bookSlug": {"type": "string"}},
                "required": ["bookSlug"],
            },
        )

    def test_openai_format(self, definition: ToolDefinition) -> None:
        formatted = definition.to_openai_format()

        assert formatted["type"] == "function"
        assert formatted["function"]["name"] == "read_chapter"
        assert formatted["function"]["parameters"]["required"] == ["bookSlug"]

    def test_ollama_format_matches_openai(self, definition: ToolDefinition) -> None:
        assert definition.to_ollama_format() == definition.to_openai_format()

    def test_anthropic_format(self, definition: ToolDefinition) -> None:
        formatted = definition.to_anthropic_format()

        assert formatted["name"] == "read_chapter"
        assert formatted["input_schema"]["properties"] == {"bookSlug": {"type": "string"}}

    def test_schema_without_required_omits_key(self) -> None:
        definition = ToolDefinition(name="list_books", description="List", category=ToolCategory.FILE)

        assert "required" not in definition.to_anthropic_format()["input_schema"]


# ============================================================================
# TOOL EXECUTION TESTS
# ============================================================================


class TestToolExecution:
    """Test the ToolExecution lifecycle."""

    @pytest.fixture
    def execution(self) -> ToolExecution:
        return ToolExecution(tool_call=ToolCall(id="call-1", name="write_chapter"))

    def test_starts_pending(self, execution: ToolExecution) -> None:
        assert execution.status == ToolExecutionStatus.PENDING
        assert execution.result is None
        assert execution.completed_at is None

    def test_approval_path(self, execution: ToolExecution) -> None:
        execution.transition_to(ToolExecutionStatus.APPROVED)
        execution.transition_to(ToolExecutionStatus.RUNNING)
        execution.transition_to(ToolExecutionStatus.COMPLETED, ToolResult("call-1", "ok"))

        assert execution.approved_at is not None
        assert execution.completed_at is not None
        assert execution.result.content == "ok"

    def test_rejection_is_terminal(self, execution: ToolExecution) -> None:
        execution.transition_to(ToolExecutionStatus.REJECTED, ToolResult("call-1", "Tool call was rejected by user", True))

        assert execution.status.is_terminal()
        with pytest.raises(ValueError):
            execution.transition_to(ToolExecutionStatus.RUNNING)

    def test_cannot_move_backward(self, execution: ToolExecution) -> None:
        execution.transition_to(ToolExecutionStatus.RUNNING)

        with pytest.raises(ValueError):
            execution.transition_to(ToolExecutionStatus.APPROVED)

    @pytest.mark.parametrize(
        "source,target,allowed",
        [
            (ToolExecutionStatus.PENDING, ToolExecutionStatus.ERROR, True),
            (ToolExecutionStatus.APPROVED, ToolExecutionStatus.REJECTED, False),
            (ToolExecutionStatus.RUNNING, ToolExecutionStatus.COMPLETED, True),
            (ToolExecutionStatus.COMPLETED, ToolExecutionStatus.ERROR, False),
        ],
    )
    def test_can_transition_to(self, source: ToolExecutionStatus, target: ToolExecutionStatus, allowed: bool) -> None:
        assert source.can_transition_to(target) is allowed

    def test_to_dict(self, execution: ToolExecution) -> None:
        data = execution.to_dict()

        assert data["status"] == "pending"
        assert data["tool_call"]["name"] == "write_chapter"
        assert data["approved_at"] is None


# ============================================================================
# AGENTIC SETTINGS TESTS
# ============================================================================


class TestAgenticSettings:
    """Test agent configuration."""

    def test_defaults(self) -> None:
        settings = AgenticSettings()

        assert settings.enabled is True
        assert settings.max_iterations == 10
        assert settings.approval_mode == ApprovalMode.WRITE_ONLY
        assert settings.enabled_tools == ()

    def test_rejects_zero_iterations(self) -> None:
        with pytest.raises(ValueError):
            AgenticSettings(max_iterations=0)

    def test_accepts_plain_strings(self) -> None:
        settings = AgenticSettings(approval_mode="all", enabled_tools=["read_chapter"])

        assert settings.approval_mode == ApprovalMode.ALL
        assert settings.enabled_tools == ("read_chapter",)

    @pytest.mark.parametrize(
        "mode,tool_flag,expected",
        [
            (ApprovalMode.NONE, True, False),
            (ApprovalMode.WRITE_ONLY, True, True),
            (ApprovalMode.WRITE_ONLY, False, False),
            (ApprovalMode.ALL, False, True),
        ],
    )
    def test_requires_approval(self, mode: ApprovalMode, tool_flag: bool, expected: bool) -> None:
        assert AgenticSettings(approval_mode=mode).requires_approval(tool_flag) is expected

    def test_with_changes_returns_copy(self) -> None:
        settings = AgenticSettings()
        changed = settings.with_changes(max_iterations=3)

        assert changed.max_iterations == 3
        assert settings.max_iterations == 10


# ============================================================================
# WRITING CONTEXT TESTS
# ============================================================================


class TestWritingContext:
    def test_empty_context(self) -> None:
        assert WritingContext().is_empty is True
        assert WritingContext().to_dict() == {}

    def test_context_with_chapter_and_selection(self) -> None:
        context = WritingContext(
            current_chapter=CurrentChapter(book_slug="t1", chapter_slug="c", title="c", content="Hello"),
            selection=TextSelection(text="Hel", start=0, end=3),
        )

        assert context.is_empty is False
        assert context.to_dict()["current_chapter"]["content"] == "Hello"
        assert context.to_dict()["selection"] == {"text": "Hel", "start": 0, "end": 3}
