"""Tool execution lifecycle records."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bookcrafter_agent.domain.models.message import ToolCall, ToolResult


class ToolExecutionStatus(str, Enum):
    """Status of a tool execution.

    Transitions:
        PENDING → APPROVED | RUNNING | REJECTED | ERROR
        APPROVED → RUNNING | ERROR
        RUNNING → COMPLETED | ERROR
        COMPLETED, ERROR, REJECTED are terminal
    """

    PENDING = "pending"
    APPROVED = "approved"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    REJECTED = "rejected"

    def can_transition_to(self, target: "ToolExecutionStatus") -> bool:
        """Check if transition to target status is allowed."""
        valid_transitions: dict[ToolExecutionStatus, set[ToolExecutionStatus]] = {
            ToolExecutionStatus.PENDING: {
                ToolExecutionStatus.APPROVED,
                ToolExecutionStatus.RUNNING,
                ToolExecutionStatus.REJECTED,
                ToolExecutionStatus.ERROR,
            },
            ToolExecutionStatus.APPROVED: {ToolExecutionStatus.RUNNING, ToolExecutionStatus.ERROR},
            ToolExecutionStatus.RUNNING: {ToolExecutionStatus.COMPLETED, ToolExecutionStatus.ERROR},
            ToolExecutionStatus.COMPLETED: set(),
            ToolExecutionStatus.ERROR: set(),
            ToolExecutionStatus.REJECTED: set(),
        }
        return target in valid_transitions.get(self, set())

    def is_terminal(self) -> bool:
        return self in {ToolExecutionStatus.COMPLETED, ToolExecutionStatus.ERROR, ToolExecutionStatus.REJECTED}


@dataclass
class ToolExecution:
    """Audit record for one observed tool call within an agent run.

    Attributes:
        tool_call: The tool call this record tracks
        status: Current lifecycle status (only moves forward)
        result: The result once executed, rejected, or failed
        created_at: When the tool call was observed
        approved_at: When a human approved it (if gated)
        completed_at: When it reached a terminal status
    """

    tool_call: ToolCall
    status: ToolExecutionStatus = ToolExecutionStatus.PENDING
    result: ToolResult | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    approved_at: datetime | None = None
    completed_at: datetime | None = None

    def transition_to(self, status: ToolExecutionStatus, result: ToolResult | None = None) -> None:
        """Move the execution forward.

        Raises:
            ValueError: If the transition would move the record backward
        """
        if not self.status.can_transition_to(status):
            raise ValueError(f"Invalid tool execution transition: {self.status.value} -> {status.value}")
        self.status = status
        now = datetime.now(UTC)
        if status == ToolExecutionStatus.APPROVED:
            self.approved_at = now
        if result is not None:
            self.result = result
        if status.is_terminal():
            self.completed_at = now

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "tool_call": self.tool_call.to_dict(),
            "status": self.status.value,
            "result": self.result.to_dict() if self.result else None,
            "created_at": self.created_at.isoformat(),
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
