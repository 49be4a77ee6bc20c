"""
Plan Tracker - in-memory planning collaborator.

Holds the active plan created through the create_plan / update_plan tools
and tracks step progress batch by batch: the current step is chosen once per
tool batch (the first step not yet done) and released by advance_step(), so
every call in a batch reports against the same step.

Calls without an active plan are no-ops.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PlanStep:
    id: str
    title: str
    status: StepStatus = StepStatus.PENDING
    detail: str | None = None
    children: list["PlanStep"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlanStep":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            children=[cls.from_dict(c) for c in data.get("children") or [] if isinstance(c, dict)],
        )


@dataclass
class Plan:
    goal: str
    steps: list[PlanStep]
    created_at: datetime = field(default_factory=datetime.now)

    def to_markdown(self) -> str:
        """Render the plan as a checklist."""
        icons = {
            StepStatus.PENDING: "[ ]",
            StepStatus.IN_PROGRESS: "[~]",
            StepStatus.DONE: "[x]",
            StepStatus.FAILED: "[!]",
            StepStatus.SKIPPED: "[-]",
        }
        lines = [f"Goal: {self.goal}"]
        for step in self.steps:
            line = f"{icons[step.status]} {step.id}. {step.title}"
            if step.detail:
                line += f" ({step.detail})"
            lines.append(line)
        return "\n".join(lines)


class PlanTracker:
    """Implements PlanningProtocol with batch-aware step tracking."""

    def __init__(self) -> None:
        self.plan: Plan | None = None
        self._current_index = 0
        self._batch_index: int | None = None
        self.logger = structlog.get_logger().bind(component="plan_tracker")

    def create_plan(self, goal: str, steps: list[dict[str, Any]]) -> None:
        self.plan = Plan(goal=goal, steps=[PlanStep.from_dict(s) for s in steps])
        self._current_index = 0
        self._batch_index = None
        self.logger.info("plan_created", goal=goal[:100], steps=len(self.plan.steps))

    def update_plan(self, goal: str, steps: list[dict[str, Any]]) -> None:
        if self.plan is None:
            self.create_plan(goal, steps)
            return
        self.plan.goal = goal
        self.plan.steps = [PlanStep.from_dict(s) for s in steps]
        self._current_index = 0
        self._batch_index = None
        self.logger.info("plan_updated", goal=goal[:100], steps=len(self.plan.steps))

    def current_step(self) -> PlanStep | None:
        """Return the step the current batch reports against."""
        if self.plan is None:
            return None

        steps = self.plan.steps
        if self._batch_index is None:
            while self._current_index < len(steps) and steps[self._current_index].status == StepStatus.DONE:
                self._current_index += 1
            self._batch_index = self._current_index

        if self._batch_index < len(steps):
            return steps[self._batch_index]
        return None

    def mark_step_done(self, detail: str | None = None) -> None:
        step = self.current_step()
        if step:
            step.status = StepStatus.DONE
            step.detail = detail

    def mark_step_failed(self, detail: str | None = None) -> None:
        step = self.current_step()
        if step:
            step.status = StepStatus.FAILED
            step.detail = detail[:50] if detail else None

    def advance_step(self) -> None:
        self._batch_index = None

    def mark_remaining_steps_done(self) -> None:
        """Close out pending work once the run has produced its answer."""
        if self.plan is None:
            return
        for step in self.plan.steps:
            for item in (step, *step.children):
                if item.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS):
                    item.status = StepStatus.DONE
