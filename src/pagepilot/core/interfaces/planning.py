"""
Planning Protocol

Step-tracking collaborator driven by the orchestrator. Implementations treat
calls without an active plan as no-ops.
"""

from typing import Any, Protocol


class PlanningProtocol(Protocol):
    def create_plan(self, goal: str, steps: list[dict[str, Any]]) -> None:
        ...

    def update_plan(self, goal: str, steps: list[dict[str, Any]]) -> None:
        ...

    def mark_step_done(self, detail: str | None = None) -> None:
        ...

    def mark_step_failed(self, detail: str | None = None) -> None:
        ...

    def advance_step(self) -> None:
        """Release the current step; called once per tool batch."""
        ...
