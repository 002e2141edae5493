"""Agent orchestrator for the Book Crafter writing assistant.

This module implements the agentic loop. Tool calls requested by the model
pass through the approval policy before they run against the store, and their
results go back to the model on the next iteration.

A run ends when:
- the model answers without requesting tools
- max_iterations model calls have been made
- the user rejects a gated call
- stop_agent() is called

Pattern:
1. Observe: Append the user prompt to the conversation
2. Think: Ask the model, offering the enabled tool catalog
3. Act: Run each requested tool call in order, parking on the approval gate
   for calls that need human consent
4. Repeat: Continue from the tool results (the prompt is only sent once)

State Machine:
    IDLE → RUNNING (run starts)
    RUNNING → AWAITING_APPROVAL (gated tool call)
    AWAITING_APPROVAL → RUNNING (approved or rejected)
    RUNNING | AWAITING_APPROVAL | STOPPED → IDLE (run ends)
    RUNNING | AWAITING_APPROVAL → STOPPED (stop requested)
"""

import inspect
import logging
import time
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from opentelemetry import trace

from bookcrafter_agent.application.agents.approval_gate import ApprovalDecision, ApprovalGate
from bookcrafter_agent.application.agents.errors import AgentError
from bookcrafter_agent.application.agents.llm_provider import LlmConfig, LlmProvider, LlmProviderError, LlmRequest, LlmResponse, ToolChoice
from bookcrafter_agent.application.agents.stream_events import FinishReason, StreamEventType
from bookcrafter_agent.application.services.store_access import StoreAccess, resolve
from bookcrafter_agent.application.services.tool_executor import ToolExecutor
from bookcrafter_agent.application.services.tool_registry import ToolRegistry
from bookcrafter_agent.domain.models import (
    AgenticSettings,
    CurrentChapter,
    EntityField,
    EntityReference,
    Message,
    MessageRole,
    TextSelection,
    ToolCall,
    ToolDefinition,
    ToolExecution,
    ToolExecutionStatus,
    ToolResult,
    WritingContext,
)
from bookcrafter_agent.observability.metrics import agent_approvals_requested, agent_approvals_resolved, agent_iterations, agent_runs

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

StreamCallback = Callable[[str], Any]
ToolCallCallback = Callable[[ToolExecution], Any]
ApprovalCallback = Callable[[ToolCall, ToolDefinition | None], Any]
ProviderFactory = Callable[[LlmConfig], LlmProvider]

STORE_UNAVAILABLE = "Error: Store access not available"
REJECTED_RESULT = "Tool call was rejected by user"


# =============================================================================
# State and result types
# =============================================================================


class AgentState(str, Enum):
    """Lifecycle state of the orchestrator."""

    IDLE = "idle"
    RUNNING = "running"
    AWAITING_APPROVAL = "awaiting_approval"
    STOPPED = "stopped"

    def can_transition_to(self, target: "AgentState") -> bool:
        """Check if transition to target state is allowed.

        Args:
            target: The target state to transition to

        Returns:
            True if the transition is valid, False otherwise
        """
        valid_transitions: dict[AgentState, set[AgentState]] = {
            AgentState.IDLE: {AgentState.RUNNING},
            AgentState.RUNNING: {AgentState.AWAITING_APPROVAL, AgentState.STOPPED, AgentState.IDLE},
            AgentState.AWAITING_APPROVAL: {AgentState.RUNNING, AgentState.STOPPED, AgentState.IDLE},
            AgentState.STOPPED: {AgentState.IDLE},
        }
        return target in valid_transitions.get(self, set())


class AgentRunStatus(str, Enum):
    """How an agent run ended."""

    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    STOPPED = "stopped"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class AgentRunResult:
    """Result of an agent run.

    Attributes:
        status: How the run ended
        response: The final assistant text of the run
        iterations: Number of model calls made
        tool_calls_made: Number of tool calls the executor ran
        error: Error message (failed runs)
        agentic: False when the prompt went through the plain chat path
    """

    status: AgentRunStatus
    response: str = ""
    iterations: int = 0
    tool_calls_made: int = 0
    error: str | None = None
    agentic: bool = True

    @property
    def success(self) -> bool:
        return self.status in (AgentRunStatus.COMPLETED, AgentRunStatus.MAX_ITERATIONS)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "response": self.response,
            "iterations": self.iterations,
            "tool_calls_made": self.tool_calls_made,
            "error": self.error,
            "agentic": self.agentic,
        }


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke an optional observer callback; failures are logged, never propagated."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Observer callback {getattr(callback, '__name__', callback)!r} failed")


# =============================================================================
# Orchestrator
# =============================================================================


class AgentOrchestrator:
    """Runs the conversation and the agentic tool loop for one author session.

    At most one run is active at a time; starting another raises
    ``AgentError("agent_busy")``. The orchestrator owns the transcript and the
    ToolExecution audit list; nothing else mutates them.

    Usage:
        orchestrator = AgentOrchestrator(provider)
        result = await orchestrator.send_agentic_message("Tighten chapter two", store_access=store)

        # From the UI, while a gated call is pending:
        orchestrator.approve_tool_call(store)   # or reject_tool_call() / stop_agent()
    """

    def __init__(
        self,
        provider: LlmProvider,
        tool_executor: ToolExecutor | None = None,
        agentic_settings: AgenticSettings | None = None,
        system_prompt: str | None = None,
        provider_factory: ProviderFactory | None = None,
        on_stream: StreamCallback | None = None,
        on_tool_call: ToolCallCallback | None = None,
        on_approval_required: ApprovalCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            provider: The LLM provider adapter
            tool_executor: Executor for tool calls (a default one over the built-in catalog otherwise)
            agentic_settings: Agent defaults for the next run
            system_prompt: Custom system prompt (the writing assistant prompt otherwise)
            provider_factory: Builds adapters on configuration changes
            on_stream: Receives assistant text as it becomes available
            on_tool_call: Receives every ToolExecution status change
            on_approval_required: Receives a tool call that is waiting for approval
        """
        self._provider = provider
        self._executor = tool_executor or ToolExecutor()
        self._settings = agentic_settings or AgenticSettings()
        self._system_prompt = system_prompt
        self._provider_factory = provider_factory
        self.on_stream = on_stream
        self.on_tool_call = on_tool_call
        self.on_approval_required = on_approval_required

        self._messages: list[Message] = []
        self._tool_history: list[ToolExecution] = []
        self._gate = ApprovalGate()
        self._state = AgentState.IDLE
        self._stop_requested = False
        self._is_streaming = False
        self._current_iteration = 0
        self._retired_providers: list[LlmProvider] = []

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def provider(self) -> LlmProvider:
        return self._provider

    @property
    def registry(self) -> ToolRegistry:
        return self._executor.registry

    @property
    def agentic_settings(self) -> AgenticSettings:
        return self._settings

    @property
    def messages(self) -> list[Message]:
        """A copy of the conversation transcript."""
        return list(self._messages)

    @property
    def tool_history(self) -> list[ToolExecution]:
        """ToolExecution records of the current (or last) run."""
        return list(self._tool_history)

    @property
    def pending_approval(self) -> ToolCall | None:
        return self._gate.pending

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_agent_running(self) -> bool:
        return self._state != AgentState.IDLE

    @property
    def is_streaming(self) -> bool:
        return self._is_streaming

    @property
    def current_iteration(self) -> int:
        return self._current_iteration

    # =========================================================================
    # Configuration
    # =========================================================================

    def update_agentic_settings(self, settings: AgenticSettings | None = None, **changes: Any) -> AgenticSettings:
        """Replace the agent settings; an active run keeps the settings it started with."""
        base = settings or self._settings
        self._settings = base.with_changes(**changes) if changes else base
        logger.info(f"Agentic settings updated: {self._settings.to_dict()}")
        return self._settings

    async def update_config(self, config: LlmConfig) -> LlmProvider:
        """Switch to a new adapter built from ``config``.

        The previous adapter is closed right away when idle, or once the
        active run finishes.
        """
        if self._provider_factory is None:
            from bookcrafter_agent.infrastructure.llm_provider_factory import LlmProviderFactory

            self._provider_factory = LlmProviderFactory.create_provider

        previous = self._provider
        self._provider = self._provider_factory(config)
        logger.info(f"LLM provider switched to {config.provider.value}:{config.model}")

        if self.is_agent_running:
            self._retired_providers.append(previous)
        else:
            await previous.close()
        return self._provider

    def clear_messages(self) -> None:
        """Clear the transcript and the tool history.

        Raises:
            AgentError: If a run is active
        """
        self._ensure_idle()
        self._messages.clear()
        self._tool_history.clear()

    # =========================================================================
    # Provider passthroughs
    # =========================================================================

    async def test_connection(self) -> bool:
        """Probe the active provider. Never raises."""
        try:
            return await self._provider.test_connection()
        except Exception as e:
            logger.error(f"Connection test failed: {e}")
            return False

    async def list_models(self) -> list[str]:
        """List models of the active provider. Never raises."""
        try:
            return await self._provider.list_models()
        except Exception as e:
            logger.error(f"Listing models failed: {e}")
            return []

    # =========================================================================
    # Context
    # =========================================================================

    async def build_context(
        self,
        store_access: StoreAccess,
        book_slug: str | None = None,
        chapter_slug: str | None = None,
        selection: TextSelection | None = None,
    ) -> WritingContext:
        """Assemble the editor context from the store.

        Args:
            store_access: Store to read the chapter and entities from
            book_slug: Book of the active chapter
            chapter_slug: Active chapter
            selection: Current text selection

        Returns:
            The writing context for the next request
        """
        current_chapter = None
        if book_slug and chapter_slug:
            chapter = await resolve(store_access.get_chapter(book_slug, chapter_slug))
            if chapter:
                current_chapter = CurrentChapter(
                    book_slug=book_slug,
                    chapter_slug=chapter_slug,
                    title=chapter.get("title") or chapter_slug,
                    content=chapter.get("content") or "",
                )

        entities = []
        for slug, entity in (await resolve(store_access.get_entities())).items():
            fields = [EntityField(name=f.get("name", ""), value=str(f.get("value", ""))) for f in entity.get("fields") or []]
            entities.append(EntityReference(slug=slug, name=entity.get("name") or slug, fields=fields))

        return WritingContext(current_chapter=current_chapter, selection=selection, entities=entities)

    # =========================================================================
    # Plain chat
    # =========================================================================

    async def send_message(self, text: str, context: WritingContext | None = None) -> str:
        """Send a prompt without tools, streaming the reply.

        Args:
            text: The user prompt
            context: Editor context for the system prompt

        Returns:
            The assistant reply, or the text streamed so far when stopped.
            A stopped reply is not added to the conversation.

        Raises:
            AgentError: If a run is active
            LlmProviderError: If the provider fails; an error message is recorded first
        """
        self._ensure_idle()
        self._transition(AgentState.RUNNING)
        self._stop_requested = False
        history = self._history_window(self._messages, self._settings.history_window)
        self._messages.append(Message.user(text))
        request = LlmRequest(prompt=text, history=history, system_prompt=self._system_prompt, context=context)

        chunks: list[str] = []
        self._is_streaming = True
        try:
            async with aclosing(self._provider.stream_complete(request)) as stream:
                async for event in stream:
                    if self._stop_requested:
                        break
                    if event.type == StreamEventType.TEXT and event.content:
                        chunks.append(event.content)
                        await _notify(self.on_stream, event.content)
                    elif event.type == StreamEventType.ERROR:
                        raise LlmProviderError(
                            message=event.error or "Unknown error",
                            error_code=event.error_code or "stream_error",
                            provider=self._provider.provider_type.value,
                        )
            reply = "".join(chunks)
            if self._stop_requested:
                logger.info("Stop requested during chat; discarding reply")
                return reply
            self._messages.append(Message.assistant(reply))
            return reply
        except LlmProviderError as e:
            logger.error(f"Chat request failed: {e.message}")
            self._messages.append(Message.assistant(f"Error: {e.message}"))
            raise
        finally:
            self._is_streaming = False
            self._transition(AgentState.IDLE)
            await self._close_retired_providers()

    # =========================================================================
    # Agentic loop
    # =========================================================================

    async def send_agentic_message(
        self,
        text: str,
        store_access: StoreAccess | None = None,
        context: WritingContext | None = None,
    ) -> AgentRunResult:
        """Run the agent loop for a user prompt.

        With agentic mode disabled the prompt goes through ``send_message``
        and the approval gate and tool history are never touched.

        Args:
            text: The user prompt
            store_access: Store handle tool calls run against
            context: Editor context for the system prompt

        Returns:
            AgentRunResult describing how the run ended

        Raises:
            AgentError: If a run is already active
        """
        settings = self._settings
        if not settings.enabled:
            reply = await self.send_message(text, context)
            status = AgentRunStatus.STOPPED if self._stop_requested else AgentRunStatus.COMPLETED
            return AgentRunResult(status=status, response=reply, agentic=False)

        self._ensure_idle()
        self._transition(AgentState.RUNNING)
        self._stop_requested = False
        self._current_iteration = 0
        self._tool_history.clear()

        tools = self.registry.filter_enabled(settings.enabled_tools)
        prior_history = self._history_window(self._messages, settings.history_window)
        self._messages.append(Message.user(text))

        start_time = time.time()
        result = AgentRunResult(status=AgentRunStatus.COMPLETED)
        with tracer.start_as_current_span("agent.run") as span:
            span.set_attribute("agent.max_iterations", settings.max_iterations)
            span.set_attribute("agent.approval_mode", settings.approval_mode.value)
            span.set_attribute("agent.tool_count", len(tools))
            try:
                result = await self._run_loop(text, prior_history, tools, settings, store_access, context)
            finally:
                self._is_streaming = False
                self._gate.cancel()
                self._transition(AgentState.IDLE)
                await self._close_retired_providers()

            duration_ms = (time.time() - start_time) * 1000
            span.set_attribute("agent.status", result.status.value)
            span.set_attribute("agent.iterations", result.iterations)
            span.set_attribute("agent.tool_calls", result.tool_calls_made)
            span.set_attribute("agent.duration_ms", duration_ms)
            agent_runs.add(1, {"status": result.status.value})
            agent_iterations.record(result.iterations, {"status": result.status.value})
            logger.info(f"Agent run {result.status.value}: iterations={result.iterations}, tool_calls={result.tool_calls_made}, {duration_ms:.0f}ms")
        return result

    async def _run_loop(
        self,
        prompt: str,
        prior_history: list[Message],
        tools: list[ToolDefinition],
        settings: AgenticSettings,
        store_access: StoreAccess | None,
        context: WritingContext | None,
    ) -> AgentRunResult:
        tools_by_name = {tool.name: tool for tool in tools}
        result = AgentRunResult(status=AgentRunStatus.MAX_ITERATIONS)

        for iteration in range(settings.max_iterations):
            if self._stop_requested:
                result.status = AgentRunStatus.STOPPED
                return result

            self._current_iteration = iteration
            logger.debug(f"Agent iteration {iteration + 1}/{settings.max_iterations}")
            request = LlmRequest(
                prompt=prompt if iteration == 0 else "",
                history=prior_history if iteration == 0 else self._history_window(self._messages, settings.history_window),
                tools=tools,
                tool_choice=ToolChoice.auto(),
                system_prompt=self._system_prompt,
                context=context,
            )

            self._is_streaming = True
            try:
                response: LlmResponse = await self._provider.complete(request)
            except LlmProviderError as e:
                logger.error(f"Agent iteration {iteration + 1} failed: {e.message}")
                self._messages.append(Message.assistant(f"Error: {e.message}"))
                result.status = AgentRunStatus.FAILED
                result.error = e.message
                result.iterations = iteration + 1
                return result
            except Exception as e:
                logger.exception(f"Agent iteration {iteration + 1} failed unexpectedly")
                self._messages.append(Message.assistant(f"Error: {e}"))
                result.status = AgentRunStatus.FAILED
                result.error = str(e)
                result.iterations = iteration + 1
                return result
            finally:
                self._is_streaming = False

            result.iterations = iteration + 1
            if self._stop_requested:
                logger.info("Stop requested during provider call; discarding response")
                result.status = AgentRunStatus.STOPPED
                return result

            if response.content or response.tool_calls:
                self._messages.append(Message.assistant(response.content, response.tool_calls))
            if response.content:
                result.response = response.content
                await _notify(self.on_stream, response.content)

            for tool_call in response.tool_calls:
                if self._stop_requested:
                    result.status = AgentRunStatus.STOPPED
                    return result
                outcome = await self._process_tool_call(tool_call, tools_by_name.get(tool_call.name), settings, store_access)
                if outcome == ToolExecutionStatus.REJECTED:
                    result.status = AgentRunStatus.REJECTED
                    return result
                if outcome is None:
                    result.status = AgentRunStatus.STOPPED
                    return result
                if outcome in (ToolExecutionStatus.COMPLETED, ToolExecutionStatus.ERROR) and tool_call.name in tools_by_name:
                    result.tool_calls_made += 1

            if self._stop_requested:
                result.status = AgentRunStatus.STOPPED
                return result
            if response.finish_reason != FinishReason.TOOL_USE or not response.tool_calls:
                result.status = AgentRunStatus.COMPLETED
                return result

        logger.warning(f"Agent run hit max iterations ({settings.max_iterations})")
        return result

    async def _process_tool_call(
        self,
        tool_call: ToolCall,
        definition: ToolDefinition | None,
        settings: AgenticSettings,
        store_access: StoreAccess | None,
    ) -> ToolExecutionStatus | None:
        """Handle one tool call. Returns the final execution status, or None when the run was stopped."""
        execution = ToolExecution(tool_call=tool_call)
        self._tool_history.append(execution)
        await _notify(self.on_tool_call, execution)

        if definition is None:
            logger.warning(f"Model requested unknown tool: {tool_call.name}")
            tool_result = ToolResult(tool_call_id=tool_call.id, content=f'Error: Unknown tool "{tool_call.name}"', is_error=True)
            await self._finish_execution(execution, ToolExecutionStatus.ERROR, tool_result)
            return execution.status

        if settings.requires_approval(definition.requires_approval):
            if self._stop_requested:
                return None
            self._gate.open(tool_call)
            self._transition(AgentState.AWAITING_APPROVAL)
            agent_approvals_requested.add(1, {"tool": tool_call.name})
            await _notify(self.on_approval_required, tool_call, definition)

            resolution = await self._gate.wait()
            agent_approvals_resolved.add(1, {"tool": tool_call.name, "decision": resolution.decision.value})

            if resolution.decision == ApprovalDecision.CANCELLED or self._stop_requested:
                # Left pending, with no result attached
                return None
            self._transition(AgentState.RUNNING)

            if resolution.decision == ApprovalDecision.REJECTED:
                tool_result = ToolResult(tool_call_id=tool_call.id, content=REJECTED_RESULT, is_error=True)
                execution.transition_to(ToolExecutionStatus.REJECTED, tool_result)
                self._messages.append(Message.tool_result_message(tool_result, f'Tool call "{tool_call.name}" was rejected by user'))
                await _notify(self.on_tool_call, execution)
                return execution.status

            execution.transition_to(ToolExecutionStatus.APPROVED)
            await _notify(self.on_tool_call, execution)
            store_access = resolution.store_access or store_access

        if store_access is None:
            logger.error(f"Cannot execute {tool_call.name}: no store access")
            tool_result = ToolResult(tool_call_id=tool_call.id, content=STORE_UNAVAILABLE, is_error=True)
            await self._finish_execution(execution, ToolExecutionStatus.ERROR, tool_result)
            return execution.status

        execution.transition_to(ToolExecutionStatus.RUNNING)
        await _notify(self.on_tool_call, execution)
        tool_result = await self._executor.execute(tool_call, store_access)
        final_status = ToolExecutionStatus.ERROR if tool_result.is_error else ToolExecutionStatus.COMPLETED
        await self._finish_execution(execution, final_status, tool_result)
        return execution.status

    async def _finish_execution(self, execution: ToolExecution, status: ToolExecutionStatus, tool_result: ToolResult) -> None:
        execution.transition_to(status, tool_result)
        self._messages.append(Message.tool_result_message(tool_result))
        await _notify(self.on_tool_call, execution)

    # =========================================================================
    # External signals
    # =========================================================================

    def approve_tool_call(self, store_access: StoreAccess | None = None) -> bool:
        """Approve the pending tool call, optionally supplying the store to run it against."""
        return self._gate.approve(store_access)

    def reject_tool_call(self) -> bool:
        """Reject the pending tool call; the run ends after recording the rejection."""
        return self._gate.reject()

    def stop_agent(self) -> bool:
        """Request the active run to stop.

        Takes effect before the next provider call, after an in-flight call
        returns (its response is discarded), and immediately while waiting for
        approval.

        Returns:
            False if no run was active
        """
        if self._state not in (AgentState.RUNNING, AgentState.AWAITING_APPROVAL):
            return False
        logger.info("Stop requested for active agent run")
        self._stop_requested = True
        self._transition(AgentState.STOPPED)
        self._gate.cancel()
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _ensure_idle(self) -> None:
        if self._state != AgentState.IDLE:
            raise AgentError("An agent run is already in progress", "agent_busy", details={"state": self._state.value})

    def _transition(self, target: AgentState) -> None:
        if self._state == target:
            return
        if not self._state.can_transition_to(target):
            raise AgentError(f"Invalid state transition {self._state.value} -> {target.value}", "invalid_state_transition")
        logger.debug(f"Agent state {self._state.value} -> {target.value}")
        self._state = target

    @staticmethod
    def _history_window(messages: list[Message], size: int) -> list[Message]:
        """Most recent messages, without leading tool results whose calls fell outside the window."""
        window = messages[-size:]
        while window and window[0].role == MessageRole.TOOL_RESULT:
            window = window[1:]
        return window

    async def _close_retired_providers(self) -> None:
        while self._retired_providers:
            provider = self._retired_providers.pop()
            await provider.close()

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> None:
        """Register the tool registry, executor and agent defaults in the service collection.

        Orchestrators are per author session and are built from these
        singletons plus the configured LlmProvider.

        Args:
            builder: The application builder
        """
        from bookcrafter_agent.application.settings import resolve_settings

        settings = resolve_settings(builder)
        registry = ToolRegistry.default()
        builder.services.add_singleton(ToolRegistry, singleton=registry)
        builder.services.add_singleton(ToolExecutor, singleton=ToolExecutor(registry))
        builder.services.add_singleton(AgenticSettings, singleton=settings.to_agentic_settings())
        logger.info(f"Configured agent services: {len(registry)} tools, approval_mode={settings.agent_approval_mode}")
