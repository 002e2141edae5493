"""LLM provider contract for the agent orchestration core.

This module defines the abstract interface every backend adapter implements,
together with the request/response types and the unified error taxonomy, so
the orchestrator never couples to a specific backend.

Design Principles:
- Interface-based design for swappable backends (local Ollama, OpenAI, Anthropic)
- Immutable configuration: a config change means a new adapter instance
- Non-streaming and streaming completions share one request type
- Streaming yields normalized StreamEvents with exactly one terminal event
- Typed errors distinguish missing credentials, transport failures and
  backend-reported errors
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent
from bookcrafter_agent.domain.models import Message, ToolCall, ToolDefinition, WritingContext

logger = logging.getLogger(__name__)


# =============================================================================
# Provider Enumeration
# =============================================================================


class LlmProviderType(str, Enum):
    """Supported LLM provider types."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def display_name(self) -> str:
        return {
            LlmProviderType.OLLAMA: "Ollama",
            LlmProviderType.OPENAI: "OpenAI",
            LlmProviderType.ANTHROPIC: "Anthropic",
        }[self]


# =============================================================================
# Unified Error Handling
# =============================================================================


class LlmProviderError(Exception):
    """Base error class for all LLM provider errors.

    Attributes:
        message: Human-readable error message
        error_code: Categorized error code for programmatic handling
        provider: The provider that raised the error (ollama, openai, anthropic)
        is_retryable: Whether the operation might succeed on retry
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        provider: str,
        is_retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider = provider
        self.is_retryable = is_retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "provider": self.provider,
            "is_retryable": self.is_retryable,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider}:{self.error_code}: {self.message})"


class LlmCredentialsError(LlmProviderError):
    """Credentials are missing; raised before any network call."""


class LlmTransportError(LlmProviderError):
    """The backend could not be reached or did not answer in time."""


class LlmBackendError(LlmProviderError):
    """The backend answered with an error (non-2xx status or error envelope)."""


# =============================================================================
# Request / Response Types
# =============================================================================


class ToolChoiceMode(str, Enum):
    AUTO = "auto"
    NONE = "none"
    REQUIRED = "required"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolChoice:
    """Hint telling the model whether (and which) tool to call.

    Attributes:
        mode: auto, none, required, or tool (pin to a single tool)
        name: Tool name when mode is TOOL
    """

    mode: ToolChoiceMode = ToolChoiceMode.AUTO
    name: str | None = None

    def __post_init__(self) -> None:
        if self.mode == ToolChoiceMode.TOOL and not self.name:
            raise ValueError("A pinned tool choice requires a tool name")

    @classmethod
    def auto(cls) -> "ToolChoice":
        return cls(ToolChoiceMode.AUTO)

    @classmethod
    def none(cls) -> "ToolChoice":
        return cls(ToolChoiceMode.NONE)

    @classmethod
    def required(cls) -> "ToolChoice":
        return cls(ToolChoiceMode.REQUIRED)

    @classmethod
    def tool(cls, name: str) -> "ToolChoice":
        return cls(ToolChoiceMode.TOOL, name)


@dataclass
class LlmRequest:
    """A single completion request.

    Attributes:
        prompt: The new user text (empty means the transcript carries the turn)
        history: Bounded recent conversation, including prior tool calls/results
        tools: Tool catalog subset offered to the model
        tool_choice: Tool-choice hint
        system_prompt: Custom system prompt (defaults to the writing assistant prompt)
        context: Editor context (active chapter, selection, entities)
    """

    prompt: str = ""
    history: list[Message] = field(default_factory=list)
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice = field(default_factory=ToolChoice.auto)
    system_prompt: str | None = None
    context: WritingContext | None = None

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)


@dataclass
class LlmUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class LlmResponse:
    """Response from a non-streaming completion.

    Attributes:
        content: The text content of the response
        tool_calls: Tool calls requested by the model
        finish_reason: Completion reason mapped into the closed set
        usage: Token usage statistics
    """

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.STOP
    usage: LlmUsage = field(default_factory=LlmUsage)

    @property
    def has_tool_calls(self) -> bool:
        """Check if the response contains tool calls."""
        return len(self.tool_calls) > 0


@dataclass(frozen=True)
class LlmConfig:
    """Immutable configuration for an LLM provider.

    Attributes:
        provider: Which backend this configuration targets
        model: Model identifier (e.g., "llama3.2", "gpt-4o-mini", "claude-3-5-sonnet-20241022")
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
        timeout: Request timeout in seconds
        base_url: Base URL for the API (backend default when None)
        api_key: API key (required by hosted backends)
        keep_alive: How long a local model stays loaded (Ollama only)
        extra: Provider-specific extra configuration
    """

    provider: LlmProviderType
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: float = 120.0
    base_url: str | None = None
    api_key: str | None = None
    keep_alive: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, masking the API key."""
        return {
            "provider": self.provider.value,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "base_url": self.base_url,
            "api_key": "***" if self.api_key else None,
            "keep_alive": self.keep_alive,
        }


# =============================================================================
# Provider Contract
# =============================================================================


class LlmProvider(ABC):
    """Abstract base class for LLM providers.

    Each implementation translates the tool catalog and the conversation
    history into its backend's native shapes, maps the backend's stop reasons
    into FinishReason, and parses its streaming format into StreamEvents.

    Implementations:
    - OllamaLlmProvider: local models over NDJSON
    - OpenAiLlmProvider: hosted chat completions over SSE
    - AnthropicLlmProvider: hosted messages API over typed SSE envelopes

    Usage:
        async with OllamaLlmProvider(config) as provider:
            response = await provider.complete(LlmRequest(prompt="Hello"))
    """

    def __init__(self, config: LlmConfig) -> None:
        """Initialize the LLM provider.

        Args:
            config: Provider configuration
        """
        self._config = config

    @property
    @abstractmethod
    def provider_type(self) -> LlmProviderType:
        """Get the provider type identifier."""
        pass

    @property
    def config(self) -> LlmConfig:
        """Get the provider configuration."""
        return self._config

    @property
    def model(self) -> str:
        """Get the model identifier."""
        return self._config.model

    @abstractmethod
    async def complete(self, request: LlmRequest) -> LlmResponse:
        """Send a single completion round-trip.

        Args:
            request: The completion request

        Returns:
            The complete response

        Raises:
            LlmCredentialsError: If required credentials are missing
            LlmTransportError: If the backend is unreachable or times out
            LlmBackendError: If the backend reports an error
        """
        pass

    @abstractmethod
    def stream_complete(self, request: LlmRequest) -> AsyncIterator[StreamEvent]:
        """Send a streaming completion request.

        This method is an async generator - implementations should use
        `async def` with `yield` statements. Failures are delivered as a
        terminal error event instead of being raised, and exactly one
        terminal event is always produced.

        Args:
            request: The completion request

        Yields:
            Normalized stream events
        """
        raise NotImplementedError

    @abstractmethod
    async def test_connection(self) -> bool:
        """Best-effort reachability probe. Never raises.

        Returns:
            True if the backend answered, False on any failure
        """
        pass

    async def list_models(self) -> list[str]:
        """List available models; empty when unsupported or unauthenticated."""
        return []

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the provider."""
        pass

    async def __aenter__(self) -> "LlmProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
