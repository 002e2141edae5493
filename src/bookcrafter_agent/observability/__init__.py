"""Observability utilities and metrics for the agent core."""

from .metrics import (
    agent_approvals_requested,
    agent_approvals_resolved,
    agent_iterations,
    agent_runs,
    llm_request_count,
    llm_request_time,
    llm_stream_frames_skipped,
    llm_tool_calls,
    tool_execution_count,
    tool_execution_errors,
    tool_execution_time,
)

__all__ = [
    # LLM metrics
    "llm_request_count",
    "llm_request_time",
    "llm_stream_frames_skipped",
    "llm_tool_calls",
    # Tool metrics
    "tool_execution_count",
    "tool_execution_errors",
    "tool_execution_time",
    # Agent metrics
    "agent_approvals_requested",
    "agent_approvals_resolved",
    "agent_iterations",
    "agent_runs",
]
