"""
Agent and Subagent Protocols

AgentProtocol is the contract shared by the root orchestrator and every
child spawned through the subagent manager. SubagentProtocol is what the
orchestrator depends on for delegation, so the two never import each other's
concrete classes.
"""

from collections.abc import Callable
from typing import Protocol

from pagepilot.core.domain.events import EventListener
from pagepilot.core.domain.models import (
    RunContext,
    RunResult,
    SubagentInfo,
    SubagentResult,
    SubagentTask,
)


class AgentProtocol(Protocol):
    async def run(self, goal: str, context: RunContext) -> RunResult:
        ...

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        ...

    async def dispose(self) -> None:
        ...


AgentFactory = Callable[[int], AgentProtocol]
"""Builds a fresh orchestrator for the given recursion depth."""


class SubagentProtocol(Protocol):
    async def spawn(self, task: SubagentTask) -> SubagentResult:
        ...

    def get_active_subagents(self) -> list[SubagentInfo]:
        ...

    async def cancel(self, subagent_id: str) -> None:
        ...
