"""Tests for the backend stream normalizers.

Tests cover:
- Text, tool-call and terminal events for Ollama NDJSON, OpenAI SSE and Anthropic SSE
- Argument fragments split across frames
- Chunked input with partial lines
- Malformed frames skipped without ending the stream
- Streams ending without a terminal frame
- Exactly one terminal event
"""

import json

import pytest

from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent, StreamEventType
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import (
    AnthropicStreamNormalizer,
    OllamaStreamNormalizer,
    OpenAiStreamNormalizer,
    StreamNormalizer,
    map_ollama_done,
    parse_tool_arguments,
)


def run(normalizer: StreamNormalizer, lines: list[str]) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    for line in lines:
        events.extend(normalizer.feed_line(line))
    events.extend(normalizer.finish())
    return events


def types(events: list[StreamEvent]) -> list[StreamEventType]:
    return [event.type for event in events]


def sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}"


def assert_single_terminal(events: list[StreamEvent]) -> None:
    assert sum(1 for e in events if e.is_terminal) == 1
    assert events[-1].is_terminal


# ============================================================================
# HELPERS
# ============================================================================


class TestHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ({"a": 1}, {"a": 1}),
            ('{"a": 1}', {"a": 1}),
            ("", {}),
            (None, {}),
            ("{broken", {}),
            ("[1, 2]", {}),
        ],
    )
    def test_parse_tool_arguments(self, raw, expected) -> None:
        assert parse_tool_arguments(raw) == expected

    def test_map_ollama_done(self) -> None:
        assert map_ollama_done(True, "stop") == FinishReason.TOOL_USE
        assert map_ollama_done(False, "length") == FinishReason.LENGTH
        assert map_ollama_done(False, "stop") == FinishReason.STOP


# ============================================================================
# OLLAMA
# ============================================================================


class TestOllamaStreamNormalizer:
    def test_text_then_done(self) -> None:
        normalizer = OllamaStreamNormalizer()
        events = run(
            normalizer,
            [
                json.dumps({"message": {"role": "assistant", "content": "Hel"}, "done": False}),
                json.dumps({"message": {"role": "assistant", "content": "lo"}, "done": False}),
                json.dumps({"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop", "prompt_eval_count": 7, "eval_count": 2}),
            ],
        )

        assert types(events) == [StreamEventType.TEXT, StreamEventType.TEXT, StreamEventType.DONE]
        assert "".join(e.content for e in events if e.content) == "Hello"
        assert events[-1].finish_reason == FinishReason.STOP
        assert normalizer.usage.total_tokens == 9

    def test_tool_call_frame(self) -> None:
        normalizer = OllamaStreamNormalizer()
        call = {"function": {"name": "read_chapter", "arguments": {"bookSlug": "t1", "chapterSlug": "c"}}}
        events = run(
            normalizer,
            [
                json.dumps({"message": {"role": "assistant", "content": "", "tool_calls": [call]}, "done": False}),
                json.dumps({"message": {"content": ""}, "done": True, "done_reason": "stop"}),
            ],
        )

        assert types(events) == [
            StreamEventType.TOOL_CALL_START,
            StreamEventType.TOOL_CALL_DELTA,
            StreamEventType.TOOL_CALL_END,
            StreamEventType.DONE,
        ]
        start, delta, end, done = events
        assert start.id == delta.id == end.id
        assert start.id.startswith("ollama-")
        assert json.loads(delta.arguments) == {"bookSlug": "t1", "chapterSlug": "c"}
        assert end.tool_call.arguments == {"bookSlug": "t1", "chapterSlug": "c"}
        assert done.finish_reason == FinishReason.TOOL_USE

    def test_generate_mode_reads_response_field(self) -> None:
        events = run(OllamaStreamNormalizer(chat_mode=False), [json.dumps({"response": "Hi", "done": True})])

        assert events[0].content == "Hi"
        assert events[-1].type == StreamEventType.DONE

    def test_malformed_frame_is_skipped(self) -> None:
        normalizer = OllamaStreamNormalizer()
        events = run(
            normalizer,
            [
                json.dumps({"message": {"content": "A"}, "done": False}),
                "{not json",
                json.dumps({"message": {"content": "B"}, "done": True}),
            ],
        )

        assert [e.content for e in events if e.type == StreamEventType.TEXT] == ["A", "B"]
        assert normalizer.frames_skipped == 1
        assert_single_terminal(events)

    def test_error_frame_terminates(self) -> None:
        events = run(OllamaStreamNormalizer(), [json.dumps({"error": "model 'x' not found"}), json.dumps({"message": {"content": "late"}})])

        assert types(events) == [StreamEventType.ERROR]
        assert events[0].error == "Ollama request failed: model 'x' not found"
        assert events[0].error_code == "ollama_api_error"

    def test_missing_done_frame_emits_error(self) -> None:
        events = run(OllamaStreamNormalizer(), [json.dumps({"message": {"content": "Half"}, "done": False})])

        assert types(events) == [StreamEventType.TEXT, StreamEventType.ERROR]
        assert events[-1].error_code == "ollama_stream_incomplete"

    def test_chunked_input_buffers_partial_lines(self) -> None:
        normalizer = OllamaStreamNormalizer()
        line = json.dumps({"message": {"content": "Hello"}, "done": True}) + "\n"

        events = normalizer.feed(line[:10]) + normalizer.feed(line[10:]) + normalizer.finish()

        assert types(events) == [StreamEventType.TEXT, StreamEventType.DONE]

    def test_trailing_line_without_newline_is_flushed(self) -> None:
        normalizer = OllamaStreamNormalizer()

        events = normalizer.feed(json.dumps({"message": {"content": "x"}, "done": True})) + normalizer.finish()

        assert types(events) == [StreamEventType.TEXT, StreamEventType.DONE]


# ============================================================================
# OPENAI
# ============================================================================


def openai_chunk(delta: dict | None = None, finish_reason: str | None = None, **extra) -> str:
    return sse({"choices": [{"index": 0, "delta": delta or {}, "finish_reason": finish_reason}], **extra})


def openai_tool_fragment(index: int, arguments: str, call_id: str | None = None, name: str | None = None) -> dict:
    function = {"arguments": arguments}
    if name:
        function["name"] = name
    fragment = {"index": index, "function": function}
    if call_id:
        fragment["id"] = call_id
        fragment["type"] = "function"
    return fragment


class TestOpenAiStreamNormalizer:
    def test_text_stream(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        events = run(
            normalizer,
            [
                openai_chunk({"role": "assistant", "content": ""}),
                openai_chunk({"content": "Hel"}),
                ": keep-alive comment",
                openai_chunk({"content": "lo"}),
                openai_chunk({}, "stop"),
                sse({"choices": [], "usage": {"prompt_tokens": 3, "completion_tokens": 2}}),
                "data: [DONE]",
            ],
        )

        assert types(events) == [StreamEventType.TEXT, StreamEventType.TEXT, StreamEventType.DONE]
        assert events[-1].finish_reason == FinishReason.STOP
        assert normalizer.usage.total_tokens == 5

    def test_fragmented_tool_arguments(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        events = run(
            normalizer,
            [
                openai_chunk({"tool_calls": [openai_tool_fragment(0, "", "call_1", "read_chapter")]}),
                openai_chunk({"tool_calls": [openai_tool_fragment(0, '{"bookSlug":')]}),
                openai_chunk({"tool_calls": [openai_tool_fragment(0, ' "t1", "chapterSlug": "c"}')]}),
                openai_chunk({}, "tool_calls"),
                "data: [DONE]",
            ],
        )

        assert types(events) == [
            StreamEventType.TOOL_CALL_START,
            StreamEventType.TOOL_CALL_DELTA,
            StreamEventType.TOOL_CALL_DELTA,
            StreamEventType.TOOL_CALL_END,
            StreamEventType.DONE,
        ]
        assert {e.id for e in events[:4]} == {"call_1"}
        assert events[3].tool_call.arguments == {"bookSlug": "t1", "chapterSlug": "c"}
        assert events[-1].finish_reason == FinishReason.TOOL_USE

    def test_interleaved_calls_stay_contiguous(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        events = run(
            normalizer,
            [
                openai_chunk({"tool_calls": [openai_tool_fragment(0, '{"bookSlug"', "call_a", "list_chapters")]}),
                openai_chunk({"tool_calls": [openai_tool_fragment(1, '{"entitySlug"', "call_b", "get_entity")]}),
                openai_chunk({"tool_calls": [openai_tool_fragment(0, ': "t1"}')]}),
                openai_chunk({"tool_calls": [openai_tool_fragment(1, ': "mira"}')]}),
                openai_chunk({}, "tool_calls"),
                "data: [DONE]",
            ],
        )

        ids = [e.id for e in events if e.type != StreamEventType.DONE]
        assert ids == ["call_a"] * 4 + ["call_b"] * 4
        assert [c.arguments for c in normalizer.tool_calls] == [{"bookSlug": "t1"}, {"entitySlug": "mira"}]
        assert_single_terminal(events)

    def test_malformed_arguments_decode_to_empty(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        run(
            normalizer,
            [
                openai_chunk({"tool_calls": [openai_tool_fragment(0, '{"bookSlug": ', "call_1", "list_chapters")]}),
                openai_chunk({}, "tool_calls"),
                "data: [DONE]",
            ],
        )

        assert normalizer.tool_calls[0].arguments == {}

    def test_malformed_frame_is_skipped(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        events = run(normalizer, [openai_chunk({"content": "A"}), "data: {oops", openai_chunk({"content": "B"}), "data: [DONE]"])

        assert [e.content for e in events if e.type == StreamEventType.TEXT] == ["A", "B"]
        assert normalizer.frames_skipped == 1

    def test_error_envelope(self) -> None:
        events = run(OpenAiStreamNormalizer(), [sse({"error": {"message": "Rate limit reached", "type": "requests"}})])

        assert types(events) == [StreamEventType.ERROR]
        assert events[0].error == "OpenAI request failed: Rate limit reached"

    def test_finish_without_done_sentinel(self) -> None:
        events = run(OpenAiStreamNormalizer(), [openai_chunk({"content": "Hi"}), openai_chunk({}, "length")])

        assert types(events) == [StreamEventType.TEXT, StreamEventType.DONE]
        assert events[-1].finish_reason == FinishReason.LENGTH

    def test_stream_cut_off(self) -> None:
        events = run(OpenAiStreamNormalizer(), [openai_chunk({"content": "Hi"})])

        assert events[-1].type == StreamEventType.ERROR
        assert events[-1].error == "OpenAI request failed: stream ended before completion"

    def test_nothing_after_terminal(self) -> None:
        normalizer = OpenAiStreamNormalizer()
        events = run(normalizer, ["data: [DONE]", openai_chunk({"content": "late"}), "data: [DONE]"])

        assert types(events) == [StreamEventType.DONE]
        assert normalizer.fail("too late") == []


# ============================================================================
# ANTHROPIC
# ============================================================================


def anthropic_events(*payloads: dict) -> list[str]:
    lines = []
    for payload in payloads:
        lines.append(f"event: {payload['type']}")
        lines.append(sse(payload))
        lines.append("")
    return lines


class TestAnthropicStreamNormalizer:
    def test_text_and_tool_use(self) -> None:
        normalizer = AnthropicStreamNormalizer()
        events = run(
            normalizer,
            anthropic_events(
                {"type": "message_start", "message": {"usage": {"input_tokens": 12, "output_tokens": 1}}},
                {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
                {"type": "ping"},
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Reading."}},
                {"type": "content_block_stop", "index": 0},
                {"type": "content_block_start", "index": 1, "content_block": {"type": "tool_use", "id": "toolu_1", "name": "read_chapter", "input": {}}},
                {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"bookSlug": "t1",'}},
                {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": ' "chapterSlug": "c"}'}},
                {"type": "content_block_stop", "index": 1},
                {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 30}},
                {"type": "message_stop"},
            ),
        )

        assert types(events) == [
            StreamEventType.TEXT,
            StreamEventType.TOOL_CALL_START,
            StreamEventType.TOOL_CALL_DELTA,
            StreamEventType.TOOL_CALL_DELTA,
            StreamEventType.TOOL_CALL_END,
            StreamEventType.DONE,
        ]
        assert events[4].tool_call.arguments == {"bookSlug": "t1", "chapterSlug": "c"}
        assert events[-1].finish_reason == FinishReason.TOOL_USE
        assert normalizer.usage.prompt_tokens == 12
        assert normalizer.usage.completion_tokens == 30

    def test_start_block_input_used_without_deltas(self) -> None:
        normalizer = AnthropicStreamNormalizer()
        run(
            normalizer,
            anthropic_events(
                {"type": "content_block_start", "index": 0, "content_block": {"type": "tool_use", "id": "toolu_2", "name": "list_books", "input": {"x": 1}}},
                {"type": "content_block_stop", "index": 0},
                {"type": "message_delta", "delta": {"stop_reason": "tool_use"}},
                {"type": "message_stop"},
            ),
        )

        assert normalizer.tool_calls[0].arguments == {"x": 1}

    def test_max_tokens_maps_to_length(self) -> None:
        events = run(
            AnthropicStreamNormalizer(),
            anthropic_events({"type": "message_delta", "delta": {"stop_reason": "max_tokens"}}, {"type": "message_stop"}),
        )

        assert events[-1].finish_reason == FinishReason.LENGTH

    def test_error_event(self) -> None:
        events = run(
            AnthropicStreamNormalizer(),
            anthropic_events({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}),
        )

        assert types(events) == [StreamEventType.ERROR]
        assert events[0].error == "Anthropic request failed: Overloaded"
        assert events[0].error_code == "anthropic_api_error"

    def test_missing_message_stop(self) -> None:
        events = run(
            AnthropicStreamNormalizer(),
            anthropic_events({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}}),
        )

        assert types(events) == [StreamEventType.TEXT, StreamEventType.ERROR]
        assert events[-1].error_code == "anthropic_stream_incomplete"

    def test_malformed_frame_is_skipped(self) -> None:
        normalizer = AnthropicStreamNormalizer()
        events = run(normalizer, ["data: {bad", *anthropic_events({"type": "message_stop"})])

        assert types(events) == [StreamEventType.DONE]
        assert normalizer.frames_skipped == 1
