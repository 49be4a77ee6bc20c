"""
Agent Orchestrator - the tool-use loop.

Drives a multi-turn conversation with the chat service:
1. Send the goal with the current tool set and page context
2. If the model answers without tool calls, that's the final answer
3. Otherwise execute the batch of calls in request order, feed the
   synthesized tool responses back, and loop

Plan-management calls are handled locally, delegation calls are routed to
the subagent manager, and a successful navigation tool re-scans the page and
skips the rest of its batch. The loop stops on a final answer, on the
wall-clock timeout or on the iteration cap; limits are reported in the
RunResult, never raised.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

from pagepilot.core.domain.call_kinds import CallClassifier, CallKind
from pagepilot.core.domain.context_budget import ContextBudgeter
from pagepilot.core.domain.events import EventBus, EventListener, EventType
from pagepilot.core.domain.models import (
    TASK_DESCRIPTION_CHARS,
    FunctionCall,
    PageContext,
    RunContext,
    RunResult,
    StopReason,
    SubagentTask,
    ToolCallRecord,
    ToolCallResult,
    ToolDefinition,
    ToolResponse,
    ToolTarget,
)
from pagepilot.core.interfaces.agent import SubagentProtocol
from pagepilot.core.interfaces.chat import ChatConfig, ChatFactory, ChatServiceProtocol
from pagepilot.core.interfaces.planning import PlanningProtocol
from pagepilot.core.interfaces.rescan import NavigationRescanProtocol
from pagepilot.core.interfaces.session import TabSessionProtocol
from pagepilot.core.interfaces.tools import ToolExecutionProtocol

SKIPPED_AFTER_NAVIGATION = (
    "Skipped: page navigated, this tool no longer exists on the new page."
)

ConfigBuilder = Callable[[PageContext | None, list[ToolDefinition]], ChatConfig]


@dataclass(frozen=True)
class OrchestratorSettings:
    """
    Loop limits. A value of 0 disables the corresponding limit.

    Attributes:
        max_iterations: Maximum loop iterations after the initial turn
        loop_timeout: Wall-clock budget in seconds, measured from loop entry
        history_max_messages: Chat history kept before each follow-up turn
    """

    max_iterations: int = 10
    loop_timeout: float = 60.0
    history_max_messages: int = 30


@dataclass
class OrchestratorDeps:
    """Collaborators injected into an AgentOrchestrator."""

    tool_port: ToolExecutionProtocol
    planning_port: PlanningProtocol
    chat_factory: ChatFactory
    build_config: ConfigBuilder
    rescanner: NavigationRescanProtocol
    context_budgeter: ContextBudgeter | None = None
    tab_session: TabSessionProtocol | None = None
    subagent_port: SubagentProtocol | None = None
    classifier: CallClassifier = field(default_factory=CallClassifier)
    depth: int = 0
    settings: OrchestratorSettings = field(default_factory=OrchestratorSettings)
    clock: Callable[[], float] = time.monotonic


@dataclass
class _RunState:
    """Working copies owned by a single run."""

    target: ToolTarget
    tools: list[ToolDefinition]
    page_context: PageContext | None
    mention_lines: list[str]
    records: list[ToolCallRecord] = field(default_factory=list)


class AgentOrchestrator:
    """
    Turn-taking state machine over a chat service and a tool execution port.

    Each instance owns its own event bus. A run creates its own chat handle
    and conversation state, so separate runs share nothing but the injected
    collaborators.
    """

    def __init__(self, deps: OrchestratorDeps):
        self.deps = deps
        self._chat: ChatServiceProtocol | None = None
        self._events = EventBus()
        self.logger = structlog.get_logger().bind(component="orchestrator", depth=deps.depth)

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to orchestrator events. Returns an unsubscribe callable."""
        return self._events.subscribe(listener)

    async def run(self, goal: str, context: RunContext) -> RunResult:
        """
        Run the tool-use loop for a goal.

        Args:
            goal: Natural-language goal from the user
            context: Target tab, available tools, page context and history

        Returns:
            RunResult with the final answer (or a limit message), every
            executed tool call, and the tool set / page context after any
            navigation.

        Raises:
            Exception: Chat-service failures propagate unchanged.
        """
        deps = self.deps
        settings = deps.settings

        if deps.context_budgeter:
            deps.context_budgeter.reset()

        chat = deps.chat_factory(list(context.conversation_history))
        self._chat = chat

        state = _RunState(
            target=self._resolve_target(context),
            tools=list(context.tools),
            page_context=context.page_context,
            mention_lines=self._format_mentions(context),
        )

        if deps.tab_session and state.page_context:
            deps.tab_session.set_tab_context(state.target.tab_id, state.page_context)

        self.logger.info(
            "run_start",
            goal=goal[:100],
            tab_id=state.target.tab_id,
            tools=len(state.tools),
        )

        response = await chat.send_message(goal, self._build_config(state))

        loop_start = deps.clock()
        iteration = 0

        while settings.max_iterations == 0 or iteration < settings.max_iterations:
            iteration += 1

            if settings.loop_timeout and deps.clock() - loop_start > settings.loop_timeout:
                self.logger.warning("loop_timeout", iteration=iteration, timeout=settings.loop_timeout)
                self._events.emit(EventType.TIMEOUT)
                return self._build_result(
                    state,
                    text=(
                        f"Tool loop time limit reached ({settings.loop_timeout:g}s) "
                        "before the task finished."
                    ),
                    steps_completed=iteration,
                    stop_reason=StopReason.TIMEOUT,
                )

            if not response.function_calls:
                text = (response.text or "").strip()
                self.logger.info("final_answer_received", iteration=iteration)
                self._events.emit(EventType.AI_RESPONSE, text=text, reasoning=response.reasoning)
                return self._build_result(
                    state,
                    text=text,
                    steps_completed=iteration,
                    reasoning=response.reasoning,
                )

            self.logger.info(
                "tool_calls_received",
                iteration=iteration,
                count=len(response.function_calls),
                tools=[fc.name for fc in response.function_calls],
            )

            tool_responses = await self._process_batch(response.function_calls, state)

            deps.planning_port.advance_step()

            chat.trim_history(settings.history_max_messages)
            response = await chat.send_message(tool_responses, self._build_config(state))

        self.logger.warning("max_iterations_reached", iterations=iteration)
        self._events.emit(EventType.MAX_ITERATIONS)
        return self._build_result(
            state,
            text=f"Maximum tool iterations reached ({settings.max_iterations}).",
            steps_completed=iteration,
            stop_reason=StopReason.MAX_ITERATIONS,
        )

    async def dispose(self) -> None:
        """Release the chat handle, end the tab session and drop listeners."""
        self._chat = None
        if self.deps.tab_session:
            self.deps.tab_session.end_session()
        self._events.clear()
        self.logger.debug("orchestrator_disposed")

    # ── Batch processing ──

    async def _process_batch(
        self,
        calls: list[FunctionCall],
        state: _RunState,
    ) -> list[ToolResponse]:
        """Execute one model turn's calls in order and build their replies."""
        tool_responses: list[ToolResponse] = []
        classifier = self.deps.classifier

        for index, fc in enumerate(calls):
            kind = classifier.classify(fc.name)

            if kind == CallKind.PLAN:
                tool_responses.append(self._handle_plan_call(fc))
                continue

            if kind == CallKind.DELEGATION and self.deps.subagent_port is not None:
                tool_responses.append(await self._handle_delegation(fc, state))
                continue

            result = await self._execute_tool_call(fc, state)
            tool_responses.append(self._tool_response(fc, self._response_payload(fc, result)))

            if result.success and kind == CallKind.NAVIGATION:
                await self._handle_navigation(fc, state)
                for skipped in calls[index + 1:]:
                    tool_responses.append(
                        self._tool_response(skipped, {"result": SKIPPED_AFTER_NAVIGATION})
                    )
                break

        return tool_responses

    def _handle_plan_call(self, fc: FunctionCall) -> ToolResponse:
        goal = fc.args.get("goal")
        goal = "" if goal is None else str(goal)
        raw_steps = fc.args.get("steps")
        if raw_steps is None:
            raw_steps = []
        if not isinstance(raw_steps, list):
            self.logger.warning("plan_call_invalid", tool=fc.name, steps_type=type(raw_steps).__name__)
            return self._tool_response(fc, {"error": f'{fc.name} requires "steps" to be a list of step objects'})

        steps = [{**step, "status": "pending"} for step in raw_steps if isinstance(step, dict)]

        if fc.name == "update_plan":
            self.deps.planning_port.update_plan(goal, steps)
            verb = "updated"
        else:
            self.deps.planning_port.create_plan(goal, steps)
            verb = "created"

        self.logger.info("plan_changed", action=verb, steps=len(steps))
        return self._tool_response(fc, {"result": f'Plan "{goal}" {verb}'})

    async def _handle_delegation(self, fc: FunctionCall, state: _RunState) -> ToolResponse:
        subagent_port = self.deps.subagent_port
        prompt = str(fc.args.get("prompt", ""))
        timeout = fc.args.get("timeout_seconds")

        self._events.emit(
            EventType.SUBAGENT_STARTED,
            subagent_id="",
            task=prompt[:TASK_DESCRIPTION_CHARS],
        )

        try:
            result = await subagent_port.spawn(
                SubagentTask(
                    prompt=prompt,
                    instructions=fc.args.get("instructions"),
                    timeout=float(timeout) if timeout is not None else None,
                    depth=self.deps.depth + 1,
                    tools=list(state.tools),
                    context=RunContext(
                        tab_id=state.target.tab_id,
                        tools=list(state.tools),
                        page_context=state.page_context,
                    ),
                )
            )
        except Exception as e:
            error = str(e) or "Subagent spawn failed"
            self.logger.error("subagent_spawn_error", error=error)
            self._events.emit(EventType.SUBAGENT_FAILED, subagent_id="", error=error)
            return self._tool_response(fc, {"error": error})

        if result.success:
            self._events.emit(
                EventType.SUBAGENT_COMPLETED,
                subagent_id=result.subagent_id,
                text=result.text,
                steps_completed=result.steps_completed,
            )
            return self._tool_response(fc, {"result": result.text})

        error = result.error or "Subagent failed"
        self._events.emit(EventType.SUBAGENT_FAILED, subagent_id=result.subagent_id, error=error)
        return self._tool_response(fc, {"error": error})

    async def _execute_tool_call(self, fc: FunctionCall, state: _RunState) -> ToolCallResult:
        """Execute one call through the tool port and record its outcome."""
        planning = self.deps.planning_port
        args = dict(fc.args)

        self._events.emit(EventType.TOOL_CALL, name=fc.name, args=args, call_id=fc.id)
        self.logger.info("tool_execute", tool=fc.name, args_keys=list(args.keys()))

        try:
            result = await self.deps.tool_port.execute(fc.name, args, state.target)
        except Exception as e:
            error = str(e)
            self.logger.error("tool_exception", tool=fc.name, error=error)
            result = ToolCallResult(success=False, error=error)
            planning.mark_step_failed(error)
            self._events.emit(EventType.TOOL_ERROR, name=fc.name, error=error, call_id=fc.id)
        else:
            if result.success:
                planning.mark_step_done()
                self._events.emit(
                    EventType.TOOL_RESULT,
                    name=fc.name,
                    data=result.data,
                    success=True,
                    call_id=fc.id,
                )
                if self.deps.tab_session and result.data is not None:
                    self.deps.tab_session.store_data(state.target.tab_id, fc.name, result.data)
            else:
                self.logger.warning("tool_failed", tool=fc.name, error=result.error)
                planning.mark_step_failed(result.error)
                self._events.emit(
                    EventType.TOOL_RESULT,
                    name=fc.name,
                    data=result.error,
                    success=False,
                    call_id=fc.id,
                )

        state.records.append(ToolCallRecord(name=fc.name, args=args, call_id=fc.id, result=result))
        return result

    def _response_payload(self, fc: FunctionCall, result: ToolCallResult) -> dict[str, Any]:
        if not result.success:
            return {"error": result.error or "Tool execution failed"}

        data = result.data
        if self.deps.context_budgeter:
            data = self.deps.context_budgeter.process_tool_result(fc.name, data)
        return {"result": data}

    async def _handle_navigation(self, fc: FunctionCall, state: _RunState) -> None:
        """Re-scan the page after a navigation tool and replace working copies."""
        self._events.emit(EventType.NAVIGATION, tool_name=fc.name)
        self.logger.info("navigation_detected", tool=fc.name, tab_id=state.target.tab_id)

        try:
            rescan = await self.deps.rescanner.rescan(state.target.tab_id, list(state.tools))
        except Exception as e:
            self.logger.warning("rescan_failed", tool=fc.name, error=str(e))
            return

        state.page_context = rescan.page_context
        if rescan.tools:
            state.tools = list(rescan.tools)
        else:
            self.logger.warning("rescan_returned_no_tools", tool=fc.name)

        if self.deps.tab_session and state.page_context:
            self.deps.tab_session.set_tab_context(state.target.tab_id, state.page_context)

    # ── Helpers ──

    def _build_config(self, state: _RunState) -> ChatConfig:
        """Build the chat config, adding tab session and mention context."""
        config = self.deps.build_config(state.page_context, list(state.tools))
        extra: list[str] = []

        if state.mention_lines:
            extra += ["", "**MENTIONED TABS (read-only):**", *state.mention_lines]

        if self.deps.tab_session:
            summary = self.deps.tab_session.build_context_summary()
            if summary:
                extra += ["", "**MULTI-TAB SESSION CONTEXT:**", summary]

        if extra and config.system_instruction:
            return replace(config, system_instruction=[*config.system_instruction, *extra])
        return config

    def _resolve_target(self, context: RunContext) -> ToolTarget:
        if context.mention_contexts:
            return ToolTarget(
                tab_id=context.mention_contexts[0].tab_id,
                origin_tab_id=context.tab_id,
            )
        return ToolTarget(tab_id=context.tab_id, origin_tab_id=context.tab_id)

    def _format_mentions(self, context: RunContext) -> list[str]:
        return [
            f"- Tab {m.tab_id} \"{m.title}\": {m.context.url}"
            for m in context.mention_contexts
        ]

    def _tool_response(self, fc: FunctionCall, response: dict[str, Any]) -> ToolResponse:
        return ToolResponse(call_id=fc.id, name=fc.name, response=response)

    def _build_result(
        self,
        state: _RunState,
        text: str,
        steps_completed: int,
        reasoning: str | None = None,
        stop_reason: StopReason = StopReason.COMPLETED,
    ) -> RunResult:
        self.logger.info(
            "run_complete",
            stop_reason=stop_reason.value,
            steps=steps_completed,
            tool_calls=len(state.records),
        )
        return RunResult(
            text=text,
            tool_calls=list(state.records),
            updated_tools=list(state.tools),
            updated_page_context=state.page_context,
            steps_completed=steps_completed,
            reasoning=reasoning,
            stop_reason=stop_reason,
        )
