"""Agentic run configuration."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class ApprovalMode(str, Enum):
    """Which tool calls must wait for human approval."""

    NONE = "none"
    WRITE_ONLY = "write_only"
    ALL = "all"


@dataclass(frozen=True)
class AgenticSettings:
    """Read-only configuration for one orchestrator run.

    Attributes:
        enabled: Whether prompts go through the agentic loop at all
        max_iterations: Upper bound on model calls per run
        approval_mode: Approval policy for tool calls
        enabled_tools: Names of tools offered to the model (empty means all)
        history_window: Number of recent messages sent as context
    """

    enabled: bool = True
    max_iterations: int = 10
    approval_mode: ApprovalMode = ApprovalMode.WRITE_ONLY
    enabled_tools: tuple[str, ...] = field(default_factory=tuple)
    history_window: int = 20

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.history_window < 1:
            raise ValueError("history_window must be at least 1")
        # Accept plain strings and lists from configuration sources
        object.__setattr__(self, "approval_mode", ApprovalMode(self.approval_mode))
        object.__setattr__(self, "enabled_tools", tuple(self.enabled_tools))

    def requires_approval(self, tool_requires_approval: bool) -> bool:
        """Apply the approval policy to a tool's approval flag."""
        if self.approval_mode == ApprovalMode.ALL:
            return True
        if self.approval_mode == ApprovalMode.WRITE_ONLY:
            return tool_requires_approval
        return False

    def with_changes(self, **changes: Any) -> "AgenticSettings":
        """Create a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "max_iterations": self.max_iterations,
            "approval_mode": self.approval_mode.value,
            "enabled_tools": list(self.enabled_tools),
            "history_window": self.history_window,
        }
