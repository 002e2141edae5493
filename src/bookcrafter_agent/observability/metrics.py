"""Business metrics for the agent orchestration core.

Defines OpenTelemetry metrics for:
- LLM: provider requests, latency, tool calls and malformed stream frames
- Tools: executions, latency and failures
- Agent: runs, loop iterations and approval traffic
"""

from opentelemetry import metrics

meter = metrics.get_meter(__name__)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_request_count = meter.create_counter(
    name="bookcrafter_agent.llm.request_count",
    description="Total LLM requests made",
    unit="1",
)

llm_request_time = meter.create_histogram(
    name="bookcrafter_agent.llm.request_time",
    description="Time for LLM requests (request start to final frame)",
    unit="ms",
)

llm_tool_calls = meter.create_counter(
    name="bookcrafter_agent.llm.tool_calls",
    description="Total tool calls requested by the LLM",
    unit="1",
)

llm_stream_frames_skipped = meter.create_counter(
    name="bookcrafter_agent.llm.stream_frames_skipped",
    description="Stream frames dropped because they could not be parsed",
    unit="1",
)

# =============================================================================
# TOOL METRICS
# =============================================================================

tool_execution_count = meter.create_counter(
    name="bookcrafter_agent.tools.execution_count",
    description="Total tool executions",
    unit="1",
)

tool_execution_time = meter.create_histogram(
    name="bookcrafter_agent.tools.execution_time",
    description="Time to execute tools against the store",
    unit="ms",
)

tool_execution_errors = meter.create_counter(
    name="bookcrafter_agent.tools.execution_errors",
    description="Total tool execution errors",
    unit="1",
)

# =============================================================================
# AGENT METRICS
# =============================================================================

agent_runs = meter.create_counter(
    name="bookcrafter_agent.agent.runs",
    description="Agent runs by final status",
    unit="1",
)

agent_iterations = meter.create_histogram(
    name="bookcrafter_agent.agent.iterations",
    description="Loop iterations used per agent run",
    unit="1",
)

agent_approvals_requested = meter.create_counter(
    name="bookcrafter_agent.agent.approvals_requested",
    description="Tool calls that waited for human approval",
    unit="1",
)

agent_approvals_resolved = meter.create_counter(
    name="bookcrafter_agent.agent.approvals_resolved",
    description="Approval waits resolved, by decision",
    unit="1",
)
