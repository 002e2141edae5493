"""One-shot approval gate between the agent loop and the human.

The loop parks on a future that is resolved exactly once by whichever of
approve, reject or cancel arrives first; later signals are no-ops.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from bookcrafter_agent.application.agents.errors import AgentError
from bookcrafter_agent.domain.models import ToolCall

if TYPE_CHECKING:
    from bookcrafter_agent.application.services.store_access import StoreAccess

logger = logging.getLogger(__name__)


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ApprovalResolution:
    """How the gate was resolved.

    Attributes:
        decision: Which signal won
        store_access: Store handle supplied with an approval, if any
    """

    decision: ApprovalDecision
    store_access: "StoreAccess | None" = None


class ApprovalGate:
    """Holds at most one tool call awaiting human consent."""

    def __init__(self) -> None:
        self._future: asyncio.Future[ApprovalResolution] | None = None
        self._pending: ToolCall | None = None

    @property
    def pending(self) -> ToolCall | None:
        """The tool call currently awaiting approval, if any."""
        return self._pending

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    def open(self, tool_call: ToolCall) -> None:
        """Arm the gate for a tool call.

        Raises:
            AgentError: If another tool call is already pending
        """
        if self._pending is not None:
            raise AgentError(
                f'Tool call "{self._pending.name}" is already awaiting approval',
                "approval_pending",
                details={"pending_tool_call_id": self._pending.id, "tool_call_id": tool_call.id},
            )
        self._future = asyncio.get_running_loop().create_future()
        self._pending = tool_call
        logger.debug(f"Approval requested for tool call {tool_call.id} ({tool_call.name})")

    async def wait(self) -> ApprovalResolution:
        """Suspend until the gate is resolved.

        Raises:
            AgentError: If the gate was never opened
        """
        if self._future is None:
            raise AgentError("No tool call is awaiting approval", "approval_not_pending")
        try:
            return await self._future
        finally:
            self._future = None
            self._pending = None

    def approve(self, store_access: "StoreAccess | None" = None) -> bool:
        """Approve the pending call. Returns False if nothing was resolved."""
        return self._resolve(ApprovalResolution(ApprovalDecision.APPROVED, store_access))

    def reject(self) -> bool:
        """Reject the pending call. Returns False if nothing was resolved."""
        return self._resolve(ApprovalResolution(ApprovalDecision.REJECTED))

    def cancel(self) -> bool:
        """Unblock a pending wait without a decision. Returns False if nothing was resolved."""
        return self._resolve(ApprovalResolution(ApprovalDecision.CANCELLED))

    def _resolve(self, resolution: ApprovalResolution) -> bool:
        if self._future is None or self._future.done():
            return False
        self._future.set_result(resolution)
        tool_call = self._pending
        self._pending = None
        if tool_call is not None:
            logger.info(f"Tool call {tool_call.id} ({tool_call.name}) {resolution.decision.value}")
        return True
