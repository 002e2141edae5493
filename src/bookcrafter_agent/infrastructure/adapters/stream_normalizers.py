"""Stream normalizers: backend wire formats to StreamEvents.

Each backend streams differently:
- Ollama: newline-delimited JSON objects, a ``done`` flag on the last one
- OpenAI: server-sent events, ``data: {...}`` lines, a literal ``[DONE]`` sentinel
- Anthropic: typed server-sent events (content blocks, message deltas)

A normalizer is fed raw lines (or arbitrary chunks, buffered until a newline)
and returns the StreamEvents each one produces. It guarantees that every call
surfaces as start, zero or more deltas, then end, and that exactly one
terminal event (done or error) is ever produced, even when the backend goes
quiet before finishing.

Malformed frames are logged, counted and skipped; they never end the stream.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from bookcrafter_agent.application.agents.llm_provider import LlmProviderType, LlmUsage
from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent
from bookcrafter_agent.domain.models import ToolCall
from bookcrafter_agent.observability.metrics import llm_stream_frames_skipped

logger = logging.getLogger(__name__)


# =============================================================================
# Shared helpers
# =============================================================================


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """Decode tool-call arguments that may arrive as an object or a JSON string.

    Unparseable or non-object arguments decode to an empty dict.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed tool arguments: {raw[:200]!r}")
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def parse_ollama_tool_call(raw: dict[str, Any]) -> ToolCall:
    """Build a ToolCall from an Ollama tool_calls entry, synthesizing an id when absent."""
    function = raw.get("function") or {}
    return ToolCall(
        id=raw.get("id") or f"ollama-{uuid4().hex[:12]}",
        name=function.get("name", ""),
        arguments=parse_tool_arguments(function.get("arguments")),
    )


def map_openai_finish_reason(reason: str | None) -> FinishReason:
    if reason == "tool_calls":
        return FinishReason.TOOL_USE
    if reason == "length":
        return FinishReason.LENGTH
    return FinishReason.STOP


def map_anthropic_stop_reason(reason: str | None) -> FinishReason:
    if reason == "tool_use":
        return FinishReason.TOOL_USE
    if reason == "max_tokens":
        return FinishReason.LENGTH
    return FinishReason.STOP


def map_ollama_done(tool_calls_seen: bool, done_reason: str | None, done: bool = True) -> FinishReason:
    if tool_calls_seen:
        return FinishReason.TOOL_USE
    if done_reason == "length" or not done:
        return FinishReason.LENGTH
    return FinishReason.STOP


# =============================================================================
# Base normalizer
# =============================================================================


class StreamNormalizer(ABC):
    """Line-oriented parser enforcing the StreamEvent ordering rules.

    Attributes:
        tool_calls: Fully assembled calls, in the order their end events were emitted
        usage: Token usage reported by the backend, when it reports any
        finish_reason: The finish reason carried by the terminal done event
        frames_skipped: Number of frames dropped as malformed
    """

    provider: LlmProviderType

    def __init__(self) -> None:
        self._buffer = ""
        self._terminated = False
        self.tool_calls: list[ToolCall] = []
        self.usage = LlmUsage()
        self.finish_reason: FinishReason | None = None
        self.frames_skipped = 0

    @property
    def terminated(self) -> bool:
        """True once a done or error event has been emitted."""
        return self._terminated

    @property
    def provider_label(self) -> str:
        return self.provider.display_name

    def feed(self, chunk: str) -> list[StreamEvent]:
        """Feed an arbitrary chunk of the byte stream (already decoded).

        Partial lines are buffered until their newline arrives.
        """
        self._buffer += chunk
        events: list[StreamEvent] = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            events.extend(self.feed_line(line))
        return events

    def feed_line(self, line: str) -> list[StreamEvent]:
        """Feed one complete line."""
        if self._terminated:
            return []
        line = line.strip()
        if not line:
            return []
        return self._guard(self._parse_line(line))

    def finish(self) -> list[StreamEvent]:
        """Close the stream, flushing buffered input.

        If the backend never sent its final frame, a terminal error is
        produced so consumers are not left waiting.
        """
        events: list[StreamEvent] = []
        if self._buffer:
            remainder, self._buffer = self._buffer, ""
            events.extend(self.feed_line(remainder))
        if not self._terminated:
            events.extend(self._guard(self._on_eof()))
        return events

    def fail(self, message: str, error_code: str | None = None) -> list[StreamEvent]:
        """Terminate the stream with an error, unless it already terminated."""
        return self._guard([StreamEvent.failure(message, error_code)])

    @abstractmethod
    def _parse_line(self, line: str) -> list[StreamEvent]:
        """Translate one non-empty line into events."""

    def _on_eof(self) -> list[StreamEvent]:
        """Events to emit when the stream ends without a terminal frame."""
        return [
            StreamEvent.failure(
                f"{self.provider_label} request failed: stream ended before completion",
                f"{self.provider.value}_stream_incomplete",
            )
        ]

    def _guard(self, events: list[StreamEvent]) -> list[StreamEvent]:
        accepted: list[StreamEvent] = []
        for event in events:
            if self._terminated:
                break
            accepted.append(event)
            if event.is_terminal:
                self._terminated = True
                if event.finish_reason is not None:
                    self.finish_reason = event.finish_reason
        return accepted

    def _decode(self, payload: str) -> dict[str, Any] | None:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Skipping malformed {self.provider_label} stream frame: {payload[:200]!r}")
            self._skip()
            return None
        if not isinstance(data, dict):
            logger.warning(f"Skipping non-object {self.provider_label} stream frame: {payload[:200]!r}")
            self._skip()
            return None
        return data

    def _skip(self) -> None:
        self.frames_skipped += 1
        llm_stream_frames_skipped.add(1, {"provider": self.provider.value})

    def _end_call(self, tool_call: ToolCall) -> StreamEvent:
        self.tool_calls.append(tool_call)
        return StreamEvent.tool_call_end(tool_call)

    def _backend_error(self, error: Any) -> StreamEvent:
        detail = error.get("message") if isinstance(error, dict) else error
        return StreamEvent.failure(f"{self.provider_label} request failed: {detail}", f"{self.provider.value}_api_error")


# =============================================================================
# Ollama (NDJSON)
# =============================================================================


class OllamaStreamNormalizer(StreamNormalizer):
    """Normalizer for Ollama's /api/chat and /api/generate NDJSON streams.

    Ollama delivers a tool call whole, inside a single frame, so each call is
    emitted as start, one delta carrying the full arguments, and end.
    """

    provider = LlmProviderType.OLLAMA

    def __init__(self, chat_mode: bool = True) -> None:
        super().__init__()
        self._chat_mode = chat_mode

    def _parse_line(self, line: str) -> list[StreamEvent]:
        data = self._decode(line)
        if data is None:
            return []

        if data.get("error"):
            return [self._backend_error(data["error"])]

        events: list[StreamEvent] = []
        message = data.get("message") or {}
        content = message.get("content") if self._chat_mode else data.get("response")
        if content:
            events.append(StreamEvent.text(content))

        for raw_call in message.get("tool_calls") or []:
            tool_call = parse_ollama_tool_call(raw_call)
            events.append(StreamEvent.tool_call_start(tool_call.id, tool_call.name))
            events.append(StreamEvent.tool_call_delta(tool_call.id, json.dumps(tool_call.arguments)))
            events.append(self._end_call(tool_call))

        if data.get("done"):
            self.usage = LlmUsage(
                prompt_tokens=data.get("prompt_eval_count") or 0,
                completion_tokens=data.get("eval_count") or 0,
            )
            events.append(StreamEvent.done(map_ollama_done(bool(self.tool_calls), data.get("done_reason"))))
        return events


# =============================================================================
# OpenAI (SSE)
# =============================================================================


@dataclass
class _PendingCall:
    id: str
    name: str = ""
    arguments: str = ""
    started: bool = False
    ended: bool = False
    deltas: list[str] = field(default_factory=list)


class OpenAiStreamNormalizer(StreamNormalizer):
    """Normalizer for OpenAI chat completion SSE streams.

    Tool calls arrive as argument fragments keyed by ``index`` and may
    interleave. The first call opened streams live; fragments for any other
    call are held back and replayed (start, deltas, end) when the choice
    finishes, so each call's events stay contiguous and in index order.
    """

    provider = LlmProviderType.OPENAI

    def __init__(self) -> None:
        super().__init__()
        self._calls: dict[int, _PendingCall] = {}
        self._live_index: int | None = None
        self._pending_finish: FinishReason | None = None

    def _parse_line(self, line: str) -> list[StreamEvent]:
        if not line.startswith("data:"):
            # event:, id:, retry: and ":" comment lines carry nothing for us
            return []
        payload = line[5:].strip()

        if payload == "[DONE]":
            events = self._close_calls()
            events.append(StreamEvent.done(self._pending_finish or self._default_finish()))
            return events

        data = self._decode(payload)
        if data is None:
            return []

        if data.get("error"):
            return [self._backend_error(data["error"])]

        if data.get("usage"):
            usage = data["usage"]
            self.usage = LlmUsage(
                prompt_tokens=usage.get("prompt_tokens") or 0,
                completion_tokens=usage.get("completion_tokens") or 0,
            )

        choices = data.get("choices") or []
        if not choices:
            return []
        choice = choices[0]
        delta = choice.get("delta") or {}

        events: list[StreamEvent] = []
        if delta.get("content"):
            events.append(StreamEvent.text(delta["content"]))

        for fragment in delta.get("tool_calls") or []:
            events.extend(self._on_tool_fragment(fragment))

        if choice.get("finish_reason"):
            self._pending_finish = map_openai_finish_reason(choice["finish_reason"])
            events.extend(self._close_calls())
        return events

    def _on_tool_fragment(self, fragment: dict[str, Any]) -> list[StreamEvent]:
        index = fragment.get("index", 0)
        function = fragment.get("function") or {}
        call = self._calls.get(index)
        if call is None:
            call = _PendingCall(id=fragment.get("id") or f"call-{uuid4().hex[:12]}")
            self._calls[index] = call
        elif fragment.get("id") and not call.started:
            call.id = fragment["id"]

        if function.get("name"):
            call.name += function["name"]
        arguments = function.get("arguments") or ""
        call.arguments += arguments

        if call.ended:
            logger.warning(f"Ignoring OpenAI fragment for closed tool call {call.id}")
            return []

        if self._live_index is None:
            self._live_index = index

        if index != self._live_index:
            if arguments:
                call.deltas.append(arguments)
            return []

        events: list[StreamEvent] = []
        if not call.started:
            call.started = True
            events.append(StreamEvent.tool_call_start(call.id, call.name))
        if arguments:
            events.append(StreamEvent.tool_call_delta(call.id, arguments))
        return events

    def _close_calls(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for index in sorted(self._calls):
            call = self._calls[index]
            if call.ended:
                continue
            if not call.started:
                call.started = True
                events.append(StreamEvent.tool_call_start(call.id, call.name))
                events.extend(StreamEvent.tool_call_delta(call.id, fragment) for fragment in call.deltas)
            call.ended = True
            events.append(self._end_call(ToolCall(id=call.id, name=call.name, arguments=parse_tool_arguments(call.arguments))))
        self._live_index = None
        return events

    def _default_finish(self) -> FinishReason:
        return FinishReason.TOOL_USE if self.tool_calls else FinishReason.STOP

    def _on_eof(self) -> list[StreamEvent]:
        if self._pending_finish is None:
            return super()._on_eof()
        # finish_reason arrived but the [DONE] sentinel did not
        events = self._close_calls()
        events.append(StreamEvent.done(self._pending_finish))
        return events


# =============================================================================
# Anthropic (typed SSE)
# =============================================================================


class AnthropicStreamNormalizer(StreamNormalizer):
    """Normalizer for Anthropic messages SSE streams.

    Tool-use content blocks map one to one onto start/delta/end; the terminal
    done is emitted on ``message_stop`` using the stop reason recorded from
    the preceding ``message_delta``.
    """

    provider = LlmProviderType.ANTHROPIC

    def __init__(self) -> None:
        super().__init__()
        self._blocks: dict[int, _PendingCall] = {}
        self._stop_reason: str | None = None

    def _parse_line(self, line: str) -> list[StreamEvent]:
        if not line.startswith("data:"):
            return []
        data = self._decode(line[5:].strip())
        if data is None:
            return []

        event_type = data.get("type")

        if event_type == "content_block_start":
            block = data.get("content_block") or {}
            if block.get("type") != "tool_use":
                return []
            call = _PendingCall(id=block.get("id") or f"toolu-{uuid4().hex[:12]}", name=block.get("name", ""), started=True)
            if block.get("input"):
                call.arguments = json.dumps(block["input"])
            self._blocks[data.get("index", 0)] = call
            return [StreamEvent.tool_call_start(call.id, call.name)]

        if event_type == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "text_delta" and delta.get("text"):
                return [StreamEvent.text(delta["text"])]
            if delta.get("type") == "input_json_delta":
                call = self._blocks.get(data.get("index", 0))
                fragment = delta.get("partial_json") or ""
                if call is None or not fragment:
                    return []
                if not call.deltas:
                    # input_json_delta replaces any input carried on the start block
                    call.arguments = ""
                call.deltas.append(fragment)
                call.arguments += fragment
                return [StreamEvent.tool_call_delta(call.id, fragment)]
            return []

        if event_type == "content_block_stop":
            call = self._blocks.pop(data.get("index", 0), None)
            if call is None:
                return []
            call.ended = True
            return [self._end_call(ToolCall(id=call.id, name=call.name, arguments=parse_tool_arguments(call.arguments)))]

        if event_type == "message_start":
            usage = (data.get("message") or {}).get("usage") or {}
            self.usage.prompt_tokens = usage.get("input_tokens") or 0
            return []

        if event_type == "message_delta":
            self._stop_reason = (data.get("delta") or {}).get("stop_reason") or self._stop_reason
            usage = data.get("usage") or {}
            if usage.get("output_tokens") is not None:
                self.usage.completion_tokens = usage["output_tokens"]
            return []

        if event_type == "message_stop":
            return [StreamEvent.done(map_anthropic_stop_reason(self._stop_reason))]

        if event_type == "error":
            return [self._backend_error(data.get("error") or "unknown error")]

        # ping and future event types
        return []
