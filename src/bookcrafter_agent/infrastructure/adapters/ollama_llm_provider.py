"""Ollama LLM Provider implementation.

This module provides the Ollama implementation of the LlmProvider interface
for local and self-hosted models.

Features:
- /api/generate for plain prompts, /api/chat once tools or history are involved
- Tool calling (Ollama cannot force a tool choice; "none" drops the catalog and
  a pinned tool narrows it to that single tool)
- NDJSON streaming through OllamaStreamNormalizer
- Reachability check and model listing via /api/tags
- OpenTelemetry tracing and metrics
"""

import logging
from typing import TYPE_CHECKING, Any

import httpx

from bookcrafter_agent.application.agents.llm_provider import LlmConfig, LlmProviderError, LlmProviderType, LlmRequest, LlmResponse, LlmUsage, ToolChoiceMode
from bookcrafter_agent.application.agents.prompt_builder import build_system_prompt
from bookcrafter_agent.domain.models import Message, MessageRole, ToolDefinition
from bookcrafter_agent.infrastructure.adapters.http_llm_provider import HttpLlmProvider
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import OllamaStreamNormalizer, StreamNormalizer, map_ollama_done, parse_ollama_tool_call

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "api/chat"
GENERATE_ENDPOINT = "api/generate"
TAGS_ENDPOINT = "api/tags"


class OllamaLlmProvider(HttpLlmProvider):
    """Ollama implementation of the LLM provider interface.

    Configuration:
        - base_url: Ollama API URL (default: http://localhost:11434)
        - model: Model name (e.g., "llama3.2", "mistral:7b")
        - temperature, max_tokens: Sampling parameters (max_tokens maps to num_predict)
        - keep_alive: How long the model stays loaded after the request

    Usage:
        config = LlmConfig(provider=LlmProviderType.OLLAMA, model="llama3.2")
        provider = OllamaLlmProvider(config)
        response = await provider.complete(LlmRequest(prompt="Hello!"))
    """

    DEFAULT_BASE_URL = "http://localhost:11434"

    @property
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        return LlmProviderType.OLLAMA

    def _select_tools(self, request: LlmRequest) -> list[ToolDefinition]:
        if not request.tools or request.tool_choice.mode == ToolChoiceMode.NONE:
            return []
        if request.tool_choice.mode == ToolChoiceMode.TOOL:
            return [tool for tool in request.tools if tool.name == request.tool_choice.name]
        return list(request.tools)

    def _convert_history(self, history: list[Message]) -> list[dict[str, Any]]:
        """Convert conversation history to Ollama chat messages."""
        ollama_messages = []
        for msg in history:
            if msg.role == MessageRole.USER:
                ollama_messages.append({"role": "user", "content": msg.content})
            elif msg.role == MessageRole.ASSISTANT:
                ollama_msg: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    ollama_msg["tool_calls"] = [{"function": {"name": tc.name, "arguments": tc.arguments}} for tc in msg.tool_calls]
                ollama_messages.append(ollama_msg)
            elif msg.role == MessageRole.TOOL_RESULT and msg.tool_result is not None:
                ollama_messages.append({"role": "tool", "content": msg.tool_result.content})
        return ollama_messages

    def _build_request(self, request: LlmRequest, stream: bool) -> tuple[str, dict[str, Any]]:
        tools = self._select_tools(request)
        system_prompt = build_system_prompt(request.context, request.system_prompt)
        body: dict[str, Any] = {
            "model": self.model,
            "stream": stream,
            "options": {
                "temperature": self._config.temperature,
                "num_predict": self._config.max_tokens,
            },
        }
        if self._config.keep_alive:
            body["keep_alive"] = self._config.keep_alive

        if not tools and not request.history:
            body["prompt"] = request.prompt
            body["system"] = system_prompt
            return GENERATE_ENDPOINT, body

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(self._convert_history(request.history))
        if request.prompt:
            messages.append({"role": "user", "content": request.prompt})
        body["messages"] = messages
        if tools:
            body["tools"] = [tool.to_ollama_format() for tool in tools]
        return CHAT_ENDPOINT, body

    def _parse_response(self, endpoint: str, data: dict[str, Any]) -> LlmResponse:
        usage = LlmUsage(prompt_tokens=data.get("prompt_eval_count") or 0, completion_tokens=data.get("eval_count") or 0)
        if endpoint == GENERATE_ENDPOINT:
            return LlmResponse(
                content=data.get("response", ""),
                finish_reason=map_ollama_done(False, data.get("done_reason"), bool(data.get("done", True))),
                usage=usage,
            )

        message = data.get("message") or {}
        tool_calls = [parse_ollama_tool_call(tc) for tc in message.get("tool_calls") or []]
        return LlmResponse(
            content=message.get("content", ""),
            tool_calls=tool_calls,
            finish_reason=map_ollama_done(bool(tool_calls), data.get("done_reason")),
            usage=usage,
        )

    def _create_normalizer(self, endpoint: str) -> StreamNormalizer:
        return OllamaStreamNormalizer(chat_mode=endpoint == CHAT_ENDPOINT)

    async def test_connection(self) -> bool:
        """Check that the Ollama server answers.

        Returns:
            True if reachable, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.get(self._url(TAGS_ENDPOINT))
            return response.status_code == 200
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Ollama connection test failed: {e}")
            return False

    async def list_models(self) -> list[str]:
        """List locally installed models."""
        try:
            data = await self._get_json(TAGS_ENDPOINT, self._headers())
        except LlmProviderError as e:
            logger.warning(f"Failed to list Ollama models: {e}")
            return []
        return [m.get("name", "") for m in data.get("models", []) if m.get("name")]

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> None:
        """Configure OllamaLlmProvider in the service collection.

        Args:
            builder: The application builder
        """
        from bookcrafter_agent.application.settings import resolve_settings

        settings = resolve_settings(builder)
        config: LlmConfig = settings.to_llm_config(LlmProviderType.OLLAMA)
        provider = OllamaLlmProvider(config)

        builder.services.add_singleton(OllamaLlmProvider, singleton=provider)

        logger.info(f"Configured OllamaLlmProvider: model={config.model}, url={provider.base_url}")
