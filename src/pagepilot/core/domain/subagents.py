"""
Subagent Manager - bounded recursive delegation.

Spawns fresh orchestrator instances as child tasks through an injected
factory, so the manager never depends on the orchestrator's concrete wiring.
Two limits are enforced at spawn time, with no queuing:

- depth: a task whose depth has reached max_depth is rejected
- concurrency: a spawn while max_concurrent handles are active is rejected

Each child run is raced against a cancellation signal that fires on timeout
or on cancel(). Whichever settles first wins. A losing child run is not
interrupted; it finishes in the background and its outcome is discarded.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, replace

import structlog

from pagepilot.core.domain.errors import SubagentCancelledError
from pagepilot.core.domain.models import (
    TASK_DESCRIPTION_CHARS,
    RunContext,
    RunResult,
    SubagentInfo,
    SubagentResult,
    SubagentStatus,
    SubagentTask,
)
from pagepilot.core.interfaces.agent import AgentFactory, AgentProtocol


@dataclass(frozen=True)
class SubagentSettings:
    max_depth: int = 2
    max_concurrent: int = 3
    default_timeout: float = 30.0


@dataclass
class _ActiveSubagent:
    info: SubagentInfo
    cancel_event: asyncio.Event


class SubagentManager:
    """
    Owns the table of active subagent handles.

    Only this class reads or writes the table; callers get immutable
    SubagentInfo snapshots from get_active_subagents().
    """

    def __init__(
        self,
        agent_factory: AgentFactory,
        settings: SubagentSettings | None = None,
    ):
        """
        Args:
            agent_factory: Builds a fresh orchestrator for a given depth
            settings: Depth, concurrency and timeout limits
        """
        self.agent_factory = agent_factory
        self.settings = settings or SubagentSettings()
        self._active: dict[str, _ActiveSubagent] = {}
        self._detached: set[asyncio.Task] = set()
        self.logger = structlog.get_logger().bind(component="subagent_manager")

    async def spawn(self, task: SubagentTask) -> SubagentResult:
        """
        Run a task in a child orchestrator.

        Limit violations, failures and cancellations are all reported through
        the returned SubagentResult; this method does not raise for them.
        """
        max_depth = self.settings.max_depth
        if task.depth >= max_depth:
            self.logger.warning("subagent_spawn_rejected", reason="depth", depth=task.depth)
            return SubagentResult(
                subagent_id="",
                success=False,
                error=f"Max subagent depth ({max_depth}) reached",
            )

        max_concurrent = self.settings.max_concurrent
        if len(self._active) >= max_concurrent:
            self.logger.warning(
                "subagent_spawn_rejected", reason="concurrency", active=len(self._active)
            )
            return SubagentResult(
                subagent_id="",
                success=False,
                error=f"Max concurrent subagents ({max_concurrent}) reached",
            )

        subagent_id = self._generate_id()
        timeout = task.timeout if task.timeout is not None else self.settings.default_timeout
        cancel_event = asyncio.Event()
        self._active[subagent_id] = _ActiveSubagent(
            info=SubagentInfo(
                id=subagent_id,
                task=task.prompt[:TASK_DESCRIPTION_CHARS],
                started_at=time.time(),
                status=SubagentStatus.RUNNING,
            ),
            cancel_event=cancel_event,
        )
        timer = asyncio.get_running_loop().call_later(timeout, cancel_event.set)

        self.logger.info(
            "subagent_started",
            subagent_id=subagent_id,
            depth=task.depth,
            timeout=timeout,
        )

        agent: AgentProtocol | None = None
        try:
            agent = self.agent_factory(task.depth)
            result = await self._race(
                agent.run(self._build_prompt(task), self._build_context(task)),
                cancel_event,
            )

            self._set_status(subagent_id, SubagentStatus.COMPLETED)
            self.logger.info(
                "subagent_completed",
                subagent_id=subagent_id,
                steps=result.steps_completed,
            )
            return SubagentResult(
                subagent_id=subagent_id,
                success=True,
                text=result.text,
                steps_completed=result.steps_completed,
            )

        except Exception as e:
            cancelled = isinstance(e, SubagentCancelledError)
            status = SubagentStatus.CANCELLED if cancelled else SubagentStatus.FAILED
            self._set_status(subagent_id, status)
            self.logger.warning(
                "subagent_failed",
                subagent_id=subagent_id,
                status=status.value,
                error=str(e),
            )
            return SubagentResult(
                subagent_id=subagent_id,
                success=False,
                error=str(e),
            )

        finally:
            timer.cancel()
            if agent is not None:
                try:
                    await agent.dispose()
                except Exception as e:
                    self.logger.debug("subagent_dispose_failed", subagent_id=subagent_id, error=str(e))
            self._active.pop(subagent_id, None)

    def get_active_subagents(self) -> list[SubagentInfo]:
        return [entry.info for entry in self._active.values()]

    async def cancel(self, subagent_id: str) -> None:
        """Trigger the cancellation path of a running subagent. No-op otherwise."""
        entry = self._active.get(subagent_id)
        if entry and entry.info.status == SubagentStatus.RUNNING:
            self.logger.info("subagent_cancel_requested", subagent_id=subagent_id)
            entry.cancel_event.set()

    # ── Private ──

    async def _race(
        self,
        run: Awaitable[RunResult],
        cancel_event: asyncio.Event,
    ) -> RunResult:
        """
        Wait for the child run or the cancellation signal, whichever first.

        A child run that has already finished when the wait returns wins,
        even if the signal fired in the same loop cycle.
        """
        run_task = asyncio.ensure_future(run)
        cancel_wait = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait(
                {run_task, cancel_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            run_task.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if run_task.done():
            return run_task.result()

        self._detach(run_task)
        raise SubagentCancelledError()

    def _detach(self, run_task: asyncio.Task) -> None:
        self._detached.add(run_task)
        run_task.add_done_callback(self._discard_outcome)

    def _discard_outcome(self, run_task: asyncio.Task) -> None:
        self._detached.discard(run_task)
        if not run_task.cancelled() and run_task.exception() is not None:
            self.logger.debug("discarded_subagent_error", error=str(run_task.exception()))

    def _set_status(self, subagent_id: str, status: SubagentStatus) -> None:
        entry = self._active.get(subagent_id)
        if entry:
            entry.info = replace(entry.info, status=status)

    def _build_prompt(self, task: SubagentTask) -> str:
        if task.instructions:
            return f"{task.prompt}\n\nInstructions: {task.instructions}"
        return task.prompt

    def _build_context(self, task: SubagentTask) -> RunContext:
        if task.context is not None:
            return task.context
        return RunContext(tab_id=0, tools=list(task.tools or []))

    def _generate_id(self) -> str:
        return f"sub_{uuid.uuid4().hex[:12]}"
