"""
Core Domain Models

This module defines the data models shared by the orchestration loop, the
subagent manager and the approval gate. They describe what flows through a
single run: the run context going in, the candidate responses coming back
from the chat service, the tool call records accumulated along the way and
the run result handed back to the caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TASK_DESCRIPTION_CHARS = 100
"""Length of the task summary carried in subagent events and handles."""


@dataclass(frozen=True)
class ToolDefinition:
    """
    A named, schema-described action executable against a target.

    Attributes:
        name: Unique tool name (e.g. "search.products", "form.submit-login")
        description: Human-readable description passed to the model
        parameters_schema: JSON Schema for the tool arguments (passed through)
        category: Optional scanner category the tool was discovered under
    """

    name: str
    description: str
    parameters_schema: dict[str, Any] = field(default_factory=dict)
    category: str | None = None


@dataclass(frozen=True)
class ToolTarget:
    """Execution identity a tool call is routed to."""

    tab_id: int
    origin_tab_id: int | None = None


@dataclass(frozen=True)
class PageContext:
    """Snapshot of the page the tools act on."""

    url: str
    title: str
    page_text: str | None = None
    headings: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MentionContext:
    """Another tab whose page state is merged in read-only for one turn."""

    tab_id: int
    title: str
    context: PageContext


@dataclass(frozen=True)
class RunContext:
    """
    Input to one orchestrator run. Immutable for the duration of the run.

    Attributes:
        tab_id: Tab that owns the conversation
        tools: Tool definitions currently available
        page_context: Current page snapshot (if any)
        conversation_history: Prior conversation turns
        mention_contexts: Other tabs referenced for this turn; the first one
                          becomes the execution target
    """

    tab_id: int
    tools: list[ToolDefinition] = field(default_factory=list)
    page_context: PageContext | None = None
    conversation_history: list[dict[str, Any]] = field(default_factory=list)
    mention_contexts: list[MentionContext] = field(default_factory=list)


@dataclass(frozen=True)
class FunctionCall:
    """A tool call requested by the model."""

    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class CandidateResponse:
    """One turn's output from the chat service."""

    text: str | None = None
    reasoning: str | None = None
    function_calls: list[FunctionCall] = field(default_factory=list)


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of a single tool execution."""

    success: bool
    data: Any = None
    error: str | None = None


@dataclass(frozen=True)
class ToolCallRecord:
    """Persisted record of one executed tool call. Never mutated after append."""

    name: str
    args: dict[str, Any]
    call_id: str
    result: ToolCallResult


@dataclass(frozen=True)
class ToolResponse:
    """Synthesized reply for one requested call, sent back on the next turn."""

    call_id: str
    name: str
    response: dict[str, Any]


class StopReason(str, Enum):
    """Why a run ended."""

    COMPLETED = "completed"
    TIMEOUT = "timeout"
    MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class RunResult:
    """
    Terminal output of an orchestrator run. Created exactly once per run.

    Attributes:
        text: Final answer, or a message naming the limit that was hit
        tool_calls: Every executed tool call in order
        updated_tools: Tool set after any navigation
        updated_page_context: Page context after any navigation
        steps_completed: Number of loop iterations entered
        reasoning: Optional reasoning text from the final turn
        stop_reason: Whether the model answered or a limit was hit
    """

    text: str
    tool_calls: list[ToolCallRecord]
    updated_tools: list[ToolDefinition]
    updated_page_context: PageContext | None
    steps_completed: int
    reasoning: str | None = None
    stop_reason: StopReason = StopReason.COMPLETED


@dataclass(frozen=True)
class RescanResult:
    """Fresh page snapshot returned by the navigation re-scan collaborator."""

    page_context: PageContext | None
    tools: list[ToolDefinition]


# ── Subagents ──


class SubagentStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SubagentTask:
    """
    Task definition for spawning a subagent.

    Attributes:
        prompt: Goal handed to the child orchestrator
        instructions: Optional extra instructions appended to the prompt
        context: Pre-supplied run context (built from tools when omitted)
        tools: Optional tool subset for the child
        depth: Recursion depth; the root is 0, delegation passes depth + 1
        timeout: Seconds before the child is cancelled (manager default if None)
    """

    prompt: str
    instructions: str | None = None
    context: RunContext | None = None
    tools: list[ToolDefinition] | None = None
    depth: int = 0
    timeout: float | None = None


@dataclass(frozen=True)
class SubagentResult:
    subagent_id: str
    success: bool
    text: str = ""
    steps_completed: int = 0
    error: str | None = None


@dataclass(frozen=True)
class SubagentInfo:
    """Caller-visible snapshot of one active subagent handle."""

    id: str
    task: str
    started_at: float
    status: SubagentStatus


# ── Approval ──


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class ApprovalRequest:
    tool_name: str
    args: dict[str, Any]
    tier: int
    description: str


# ── Context budget ──


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int
    output_tokens: int
    total_tokens: int
