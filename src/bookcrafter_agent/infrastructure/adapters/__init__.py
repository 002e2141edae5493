"""LLM backend adapters for the Book Crafter agent core."""

from bookcrafter_agent.infrastructure.adapters.anthropic_llm_provider import AnthropicLlmProvider
from bookcrafter_agent.infrastructure.adapters.http_llm_provider import HttpLlmProvider
from bookcrafter_agent.infrastructure.adapters.ollama_llm_provider import OllamaLlmProvider
from bookcrafter_agent.infrastructure.adapters.openai_llm_provider import OpenAiLlmProvider
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import AnthropicStreamNormalizer, OllamaStreamNormalizer, OpenAiStreamNormalizer, StreamNormalizer

__all__ = [
    "AnthropicLlmProvider",
    "AnthropicStreamNormalizer",
    "HttpLlmProvider",
    "OllamaLlmProvider",
    "OllamaStreamNormalizer",
    "OpenAiLlmProvider",
    "OpenAiStreamNormalizer",
    "StreamNormalizer",
]
