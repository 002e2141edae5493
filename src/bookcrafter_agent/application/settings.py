"""Application settings configuration for the Book Crafter agent core."""

import logging
import sys
from typing import TYPE_CHECKING

from neuroglia.hosting.abstractions import ApplicationSettings

from bookcrafter_agent.application.agents.llm_provider import LlmConfig, LlmProviderType
from bookcrafter_agent.domain.models import AgenticSettings, ApprovalMode

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)


class Settings(ApplicationSettings):
    """Agent core settings: provider selection, backend endpoints and agent defaults."""

    log_level: str = "INFO"

    # Which backend the orchestrator talks to: ollama, openai or anthropic
    ai_provider: str = LlmProviderType.OLLAMA.value

    # ==========================================================================
    # Ollama LLM Configuration
    # ==========================================================================
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    ollama_keep_alive: str = "30m"

    # ==========================================================================
    # OpenAI LLM Configuration
    # ==========================================================================
    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # ==========================================================================
    # Anthropic LLM Configuration
    # ==========================================================================
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_version: str = "2023-06-01"

    # Shared sampling configuration
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000
    llm_timeout: float = 120.0  # LLM can take time to respond

    # ==========================================================================
    # Agent Configuration
    # ==========================================================================
    agent_enabled: bool = True
    agent_max_iterations: int = 10
    agent_approval_mode: str = ApprovalMode.WRITE_ONLY.value  # none, write_only, all
    agent_enabled_tools: list[str] = []  # Empty = all tools
    agent_history_window: int = 20

    # Overrides the built-in writing assistant system prompt when set
    system_prompt: str | None = None

    class Config:
        env_file = ".env"
        env_prefix = "BOOKCRAFTER_"  # All env vars prefixed with BOOKCRAFTER_
        case_sensitive = False
        extra = "ignore"

    def to_llm_config(self, provider: LlmProviderType | str | None = None) -> LlmConfig:
        """Build the immutable provider configuration.

        Args:
            provider: Backend to configure (defaults to ``ai_provider``)

        Returns:
            LlmConfig for the selected backend

        Raises:
            ValueError: If the provider name is not supported
        """
        provider_type = LlmProviderType(provider or self.ai_provider)
        shared = {
            "temperature": self.llm_temperature,
            "max_tokens": self.llm_max_tokens,
            "timeout": self.llm_timeout,
        }
        if provider_type == LlmProviderType.OLLAMA:
            return LlmConfig(provider=provider_type, model=self.ollama_model, base_url=self.ollama_url, keep_alive=self.ollama_keep_alive, **shared)
        if provider_type == LlmProviderType.OPENAI:
            return LlmConfig(provider=provider_type, model=self.openai_model, base_url=self.openai_base_url, api_key=self.openai_api_key, **shared)
        return LlmConfig(
            provider=provider_type,
            model=self.anthropic_model,
            base_url=self.anthropic_base_url,
            api_key=self.anthropic_api_key,
            extra={"anthropic_version": self.anthropic_version},
            **shared,
        )

    def to_agentic_settings(self) -> AgenticSettings:
        """Build the agent defaults for new orchestrators."""
        return AgenticSettings(
            enabled=self.agent_enabled,
            max_iterations=self.agent_max_iterations,
            approval_mode=ApprovalMode(self.agent_approval_mode),
            enabled_tools=tuple(self.agent_enabled_tools),
            history_window=self.agent_history_window,
        )


app_settings = Settings()


def resolve_settings(builder: "ApplicationBuilderBase") -> Settings:
    """Get Settings from the builder's DI container, falling back to app_settings."""
    for desc in builder.services:
        if desc.service_type is Settings and desc.singleton:
            return desc.singleton
    logger.info("Settings not found in DI services, using app_settings singleton")
    return app_settings


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
