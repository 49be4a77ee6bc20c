"""
Tool Execution Protocol

The opaque port through which named tool calls reach their execution target
(for example a browser tab). The approval gate implements the same protocol
as a decorator around the real port.
"""

from collections.abc import Callable
from typing import Any, Protocol

from pagepilot.core.domain.models import ToolCallResult, ToolDefinition, ToolTarget


class ToolExecutionProtocol(Protocol):
    """Protocol for executing tools against a target."""

    async def execute(
        self,
        tool_name: str,
        args: dict[str, Any],
        target: ToolTarget,
    ) -> ToolCallResult:
        """Execute a tool and report success, data or error."""
        ...

    async def get_available_tools(self, tab_id: int) -> list[ToolDefinition]:
        """List the tools currently available on a tab."""
        ...

    def on_tools_changed(
        self,
        callback: Callable[[list[ToolDefinition]], None],
    ) -> Callable[[], None]:
        """Subscribe to tool set changes; returns an unsubscribe callable."""
        ...
