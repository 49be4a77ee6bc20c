"""
Domain Events for Orchestrator Runs

Events are fire-and-forget notifications emitted while a run progresses.
They are not part of the RunResult. Each orchestrator owns its own EventBus
so concurrent runs and subagents never see each other's events.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog


class EventType(str, Enum):
    """Discriminator for orchestrator events."""

    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"
    AI_RESPONSE = "ai_response"
    NAVIGATION = "navigation"
    SUBAGENT_STARTED = "subagent_started"
    SUBAGENT_COMPLETED = "subagent_completed"
    SUBAGENT_FAILED = "subagent_failed"
    TIMEOUT = "timeout"
    MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class OrchestratorEvent:
    """
    A single notification emitted during a run.

    Attributes:
        type: Event discriminator
        data: Event payload (e.g. name/args for tool_call, text for ai_response)
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


EventListener = Callable[[OrchestratorEvent], None]


class EventBus:
    """
    Listener registry owned by a single orchestrator instance.

    Emission iterates over a snapshot of the registered listeners, so a
    listener may subscribe or unsubscribe (itself or others) from inside its
    callback without affecting the current emission. A failing listener is
    logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self.logger = structlog.get_logger().bind(component="event_bus")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener and return its unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: EventType, **data: Any) -> None:
        event = OrchestratorEvent(type=event_type, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self.logger.warning(
                    "listener_failed",
                    event_type=event_type.value,
                    error=str(e),
                )

    def clear(self) -> None:
        self._listeners.clear()
