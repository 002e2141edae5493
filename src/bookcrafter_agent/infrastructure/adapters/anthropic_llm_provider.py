"""Anthropic LLM Provider implementation.

This module provides the Anthropic implementation of the LlmProvider interface
on top of the messages API.

Features:
- x-api-key authentication plus the pinned anthropic-version header
- System prompt carried in the top-level ``system`` field
- Tool calls as ``tool_use`` blocks, results as ``tool_result`` blocks merged
  into a single user turn
- Typed SSE streaming through AnthropicStreamNormalizer
- OpenTelemetry tracing and metrics
"""

import logging
from typing import TYPE_CHECKING, Any

import httpx

from bookcrafter_agent.application.agents.llm_provider import (
    LlmConfig,
    LlmCredentialsError,
    LlmProviderError,
    LlmProviderType,
    LlmRequest,
    LlmResponse,
    LlmUsage,
    ToolChoice,
    ToolChoiceMode,
)
from bookcrafter_agent.application.agents.prompt_builder import build_system_prompt
from bookcrafter_agent.domain.models import Message, MessageRole, ToolCall
from bookcrafter_agent.infrastructure.adapters.http_llm_provider import HttpLlmProvider
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import AnthropicStreamNormalizer, StreamNormalizer, map_anthropic_stop_reason

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)

MESSAGES_ENDPOINT = "messages"
MODELS_ENDPOINT = "models"
DEFAULT_API_VERSION = "2023-06-01"


def _tool_choice(choice: ToolChoice) -> dict[str, Any] | None:
    if choice.mode == ToolChoiceMode.NONE:
        return None
    if choice.mode == ToolChoiceMode.REQUIRED:
        return {"type": "any"}
    if choice.mode == ToolChoiceMode.TOOL:
        return {"type": "tool", "name": choice.name}
    return {"type": "auto"}


def _append_user_blocks(messages: list[dict[str, Any]], blocks: list[dict[str, Any]]) -> None:
    """Append content blocks as a user turn, merging into a trailing user turn."""
    if messages and messages[-1]["role"] == "user":
        previous = messages[-1]
        if isinstance(previous["content"], str):
            previous["content"] = [{"type": "text", "text": previous["content"]}]
        previous["content"].extend(blocks)
        return
    messages.append({"role": "user", "content": list(blocks)})


class AnthropicLlmProvider(HttpLlmProvider):
    """Anthropic implementation of the LLM provider interface.

    Configuration:
        - base_url: API base URL (default: https://api.anthropic.com/v1)
        - api_key: Required; requests fail fast without it
        - model: Model name (e.g., "claude-3-5-sonnet-20241022")
        - extra["anthropic_version"]: API version header (default: 2023-06-01)
    """

    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"

    def __init__(self, config: LlmConfig, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(config, client)
        self._api_version = config.extra.get("anthropic_version") or DEFAULT_API_VERSION

    @property
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        return LlmProviderType.ANTHROPIC

    def _headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise LlmCredentialsError(
                message="Anthropic API key is required",
                error_code="anthropic_auth_config_error",
                provider=self.provider_name,
                is_retryable=False,
            )
        return {
            "x-api-key": self._config.api_key,
            "anthropic-version": self._api_version,
            "Content-Type": "application/json",
        }

    def _convert_history(self, history: list[Message]) -> list[dict[str, Any]]:
        """Convert conversation history to Anthropic messages.

        System messages are dropped; tool_use blocks without a recorded
        result are left out.
        """
        answered = self._answered_call_ids(history)
        anthropic_messages: list[dict[str, Any]] = []
        for msg in history:
            if msg.role == MessageRole.USER:
                _append_user_blocks(anthropic_messages, [{"type": "text", "text": msg.content}])
            elif msg.role == MessageRole.ASSISTANT:
                tool_calls = [tc for tc in msg.tool_calls or [] if tc.id in answered]
                if not tool_calls:
                    if msg.content:
                        anthropic_messages.append({"role": "assistant", "content": msg.content})
                    continue
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                blocks.extend({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments} for tc in tool_calls)
                anthropic_messages.append({"role": "assistant", "content": blocks})
            elif msg.role == MessageRole.TOOL_RESULT and msg.tool_result is not None:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_result.tool_call_id,
                    "content": msg.tool_result.content,
                }
                if msg.tool_result.is_error:
                    block["is_error"] = True
                _append_user_blocks(anthropic_messages, [block])
        return anthropic_messages

    def _build_request(self, request: LlmRequest, stream: bool) -> tuple[str, dict[str, Any]]:
        messages = self._convert_history(request.history)
        if request.prompt:
            _append_user_blocks(messages, [{"type": "text", "text": request.prompt}])

        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "system": build_system_prompt(request.context, request.system_prompt),
            "messages": messages,
            "stream": stream,
        }
        if request.tools:
            body["tools"] = [tool.to_anthropic_format() for tool in request.tools]
            tool_choice = _tool_choice(request.tool_choice)
            if tool_choice is not None:
                body["tool_choice"] = tool_choice
        return MESSAGES_ENDPOINT, body

    def _parse_response(self, endpoint: str, data: dict[str, Any]) -> LlmResponse:
        text_parts = []
        tool_calls = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(id=block.get("id", ""), name=block.get("name", ""), arguments=dict(block.get("input") or {})))
        usage = data.get("usage") or {}
        return LlmResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            finish_reason=map_anthropic_stop_reason(data.get("stop_reason")),
            usage=LlmUsage(prompt_tokens=usage.get("input_tokens") or 0, completion_tokens=usage.get("output_tokens") or 0),
        )

    def _create_normalizer(self, endpoint: str) -> StreamNormalizer:
        return AnthropicStreamNormalizer()

    async def test_connection(self) -> bool:
        """Issue a minimal completion to verify the key and model.

        Returns:
            True if the backend answered, False otherwise (including a missing key)
        """
        if not self._config.api_key:
            return False
        body = {
            "model": self.model,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "Hi"}],
        }
        try:
            await self._post_json(MESSAGES_ENDPOINT, body, self._headers())
            return True
        except LlmProviderError as e:
            logger.warning(f"Anthropic connection test failed: {e.message}")
            return False

    async def list_models(self) -> list[str]:
        """List models available to the API key."""
        if not self._config.api_key:
            return []
        try:
            data = await self._get_json(MODELS_ENDPOINT, self._headers())
        except LlmProviderError as e:
            logger.warning(f"Failed to list Anthropic models: {e.message}")
            return []
        return [m.get("id", "") for m in data.get("data", []) if m.get("id")]

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> None:
        """Configure AnthropicLlmProvider in the service collection.

        Args:
            builder: The application builder
        """
        from bookcrafter_agent.application.settings import resolve_settings

        settings = resolve_settings(builder)
        config: LlmConfig = settings.to_llm_config(LlmProviderType.ANTHROPIC)
        if not config.api_key:
            logger.warning("BOOKCRAFTER_ANTHROPIC_API_KEY is not set; Anthropic requests will fail until it is configured")

        provider = AnthropicLlmProvider(config)
        builder.services.add_singleton(AnthropicLlmProvider, singleton=provider)
        logger.info(f"Configured AnthropicLlmProvider: model={config.model}, url={provider.base_url}")
