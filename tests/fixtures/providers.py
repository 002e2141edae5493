"""Scripted LLM providers for orchestrator tests."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from bookcrafter_agent.application.agents.llm_provider import LlmConfig, LlmProvider, LlmProviderType, LlmRequest, LlmResponse
from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent
from bookcrafter_agent.domain.models import ToolCall


def tool_use(*calls: ToolCall, content: str = "") -> LlmResponse:
    """A response requesting the given tool calls."""
    return LlmResponse(content=content, tool_calls=list(calls), finish_reason=FinishReason.TOOL_USE)


def final(content: str = "Done") -> LlmResponse:
    """A response ending the turn."""
    return LlmResponse(content=content, finish_reason=FinishReason.STOP)


class ScriptedLlmProvider(LlmProvider):
    """Returns queued responses in order and records every request.

    A queued exception is raised instead of returned. When the script runs
    out, the last entry is repeated.
    """

    def __init__(self, responses: list[Any] | None = None, stream_events: list[StreamEvent] | None = None, model: str = "scripted") -> None:
        super().__init__(LlmConfig(provider=LlmProviderType.OLLAMA, model=model))
        self.responses = list(responses or [final()])
        self.stream_events = stream_events if stream_events is not None else [StreamEvent.text("Hel"), StreamEvent.text("lo"), StreamEvent.done()]
        self.requests: list[LlmRequest] = []
        self.stream_requests: list[LlmRequest] = []
        self.closed = False
        self.connection_ok = True
        self.models = ["scripted"]
        self._index = 0

    @property
    def provider_type(self) -> LlmProviderType:
        return LlmProviderType.OLLAMA

    async def complete(self, request: LlmRequest) -> LlmResponse:
        self.requests.append(request)
        entry = self.responses[min(self._index, len(self.responses) - 1)]
        self._index += 1
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def stream_complete(self, request: LlmRequest) -> AsyncIterator[StreamEvent]:
        self.stream_requests.append(request)
        for event in self.stream_events:
            yield event

    async def test_connection(self) -> bool:
        return self.connection_ok

    async def list_models(self) -> list[str]:
        return list(self.models)

    async def close(self) -> None:
        self.closed = True


class BlockingLlmProvider(ScriptedLlmProvider):
    """Holds every completion until ``release`` is called."""

    def __init__(self, responses: list[Any] | None = None) -> None:
        super().__init__(responses)
        self.entered = asyncio.Event()
        self._release = asyncio.Event()

    def release(self) -> None:
        self._release.set()

    async def complete(self, request: LlmRequest) -> LlmResponse:
        self.entered.set()
        await self._release.wait()
        return await super().complete(request)
