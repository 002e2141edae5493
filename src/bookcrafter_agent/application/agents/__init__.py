"""Agent abstractions for the Book Crafter agent core.

This package contains:
- Stream event model shared by every backend
- LLM provider abstractions
- Approval gate and agent orchestrator
"""

from bookcrafter_agent.application.agents.agent_orchestrator import AgentOrchestrator, AgentRunResult, AgentRunStatus, AgentState
from bookcrafter_agent.application.agents.approval_gate import ApprovalDecision, ApprovalGate, ApprovalResolution
from bookcrafter_agent.application.agents.errors import AgentError
from bookcrafter_agent.application.agents.llm_provider import (
    LlmBackendError,
    LlmConfig,
    LlmCredentialsError,
    LlmProvider,
    LlmProviderError,
    LlmProviderType,
    LlmRequest,
    LlmResponse,
    LlmTransportError,
    LlmUsage,
    ToolChoice,
    ToolChoiceMode,
)
from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEvent, StreamEventType

__all__ = [
    # Orchestration
    "AgentError",
    "AgentOrchestrator",
    "AgentRunResult",
    "AgentRunStatus",
    "AgentState",
    "ApprovalDecision",
    "ApprovalGate",
    "ApprovalResolution",
    # Stream events
    "FinishReason",
    "StreamEvent",
    "StreamEventType",
    # LLM Provider
    "LlmBackendError",
    "LlmConfig",
    "LlmCredentialsError",
    "LlmProvider",
    "LlmProviderError",
    "LlmProviderType",
    "LlmRequest",
    "LlmResponse",
    "LlmTransportError",
    "LlmUsage",
    "ToolChoice",
    "ToolChoiceMode",
]
