"""OpenAI LLM Provider implementation.

This module provides the OpenAI implementation of the LlmProvider interface
on top of the chat completions API.

Features:
- Bearer API-key authentication (checked before any network call)
- Tool calling with full tool_choice support
- SSE streaming through OpenAiStreamNormalizer
- Model listing filtered to chat models
- OpenTelemetry tracing and metrics
"""

import json
import logging
from typing import TYPE_CHECKING, Any

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
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import OpenAiStreamNormalizer, StreamNormalizer, map_openai_finish_reason, parse_tool_arguments

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)

COMPLETIONS_ENDPOINT = "chat/completions"
MODELS_ENDPOINT = "models"
CHAT_MODEL_PREFIX = "gpt-"


def _tool_choice(choice: ToolChoice) -> Any:
    if choice.mode == ToolChoiceMode.TOOL:
        return {"type": "function", "function": {"name": choice.name}}
    return choice.mode.value


class OpenAiLlmProvider(HttpLlmProvider):
    """OpenAI implementation of the LLM provider interface.

    Configuration:
        - base_url: API base URL (default: https://api.openai.com/v1)
        - api_key: Required; requests fail fast without it
        - model: Model name (e.g., "gpt-4o-mini")
        - temperature, max_tokens: Sampling parameters
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    @property
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        return LlmProviderType.OPENAI

    def _headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise LlmCredentialsError(
                message="OpenAI API key is required",
                error_code="openai_auth_config_error",
                provider=self.provider_name,
                is_retryable=False,
            )
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    def _convert_history(self, history: list[Message]) -> list[dict[str, Any]]:
        """Convert conversation history to chat completion messages.

        Tool calls without a recorded result are left out, along with any
        assistant turn that has nothing else to say.
        """
        answered = self._answered_call_ids(history)
        openai_messages: list[dict[str, Any]] = []
        for msg in history:
            if msg.role == MessageRole.USER:
                openai_messages.append({"role": "user", "content": msg.content})
            elif msg.role == MessageRole.ASSISTANT:
                tool_calls = [tc for tc in msg.tool_calls or [] if tc.id in answered]
                if not msg.content and not tool_calls:
                    continue
                openai_msg: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
                if tool_calls:
                    openai_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                        }
                        for tc in tool_calls
                    ]
                openai_messages.append(openai_msg)
            elif msg.role == MessageRole.TOOL_RESULT and msg.tool_result is not None:
                openai_messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_result.tool_call_id,
                        "content": msg.tool_result.content,
                    }
                )
        return openai_messages

    def _build_request(self, request: LlmRequest, stream: bool) -> tuple[str, dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": build_system_prompt(request.context, request.system_prompt)}]
        messages.extend(self._convert_history(request.history))
        if request.prompt:
            messages.append({"role": "user", "content": request.prompt})

        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "stream": stream,
        }
        if request.tools:
            body["tools"] = [tool.to_openai_format() for tool in request.tools]
            body["tool_choice"] = _tool_choice(request.tool_choice)
        return COMPLETIONS_ENDPOINT, body

    def _parse_response(self, endpoint: str, data: dict[str, Any]) -> LlmResponse:
        choices = data.get("choices") or []
        choice = choices[0] if choices else {}
        message = choice.get("message") or {}
        tool_calls = [
            ToolCall(
                id=tc.get("id", ""),
                name=(tc.get("function") or {}).get("name", ""),
                arguments=parse_tool_arguments((tc.get("function") or {}).get("arguments")),
            )
            for tc in message.get("tool_calls") or []
        ]
        usage = data.get("usage") or {}
        return LlmResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=map_openai_finish_reason(choice.get("finish_reason")),
            usage=LlmUsage(prompt_tokens=usage.get("prompt_tokens") or 0, completion_tokens=usage.get("completion_tokens") or 0),
        )

    def _create_normalizer(self, endpoint: str) -> StreamNormalizer:
        return OpenAiStreamNormalizer()

    async def _fetch_model_ids(self) -> list[str]:
        data = await self._get_json(MODELS_ENDPOINT, self._headers())
        return [m.get("id", "") for m in data.get("data", []) if m.get("id")]

    async def test_connection(self) -> bool:
        """Verify the API key against the models endpoint.

        Returns:
            True if the key is accepted, False otherwise (including a missing key)
        """
        if not self._config.api_key:
            return False
        try:
            await self._fetch_model_ids()
            return True
        except LlmProviderError as e:
            logger.warning(f"OpenAI connection test failed: {e.message}")
            return False

    async def list_models(self) -> list[str]:
        """List chat models available to the API key, sorted."""
        if not self._config.api_key:
            return []
        try:
            model_ids = await self._fetch_model_ids()
        except LlmProviderError as e:
            logger.warning(f"Failed to list OpenAI models: {e.message}")
            return []
        return sorted(model_id for model_id in model_ids if model_id.startswith(CHAT_MODEL_PREFIX))

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> None:
        """Configure OpenAiLlmProvider in the service collection.

        Args:
            builder: The application builder
        """
        from bookcrafter_agent.application.settings import resolve_settings

        settings = resolve_settings(builder)
        config: LlmConfig = settings.to_llm_config(LlmProviderType.OPENAI)
        if not config.api_key:
            logger.warning("BOOKCRAFTER_OPENAI_API_KEY is not set; OpenAI requests will fail until it is configured")

        provider = OpenAiLlmProvider(config)
        builder.services.add_singleton(OpenAiLlmProvider, singleton=provider)
        logger.info(f"Configured OpenAiLlmProvider: model={config.model}, url={provider.base_url}")
