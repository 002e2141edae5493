"""Infrastructure layer for the Book Crafter agent core.

Contains:
- adapters/: HTTP adapters for Ollama, OpenAI and Anthropic plus their stream normalizers
- llm_provider_factory.py: Builds the adapter matching an LlmConfig
"""

from bookcrafter_agent.infrastructure.llm_provider_factory import LlmProviderFactory

__all__ = [
    "LlmProviderFactory",
]
