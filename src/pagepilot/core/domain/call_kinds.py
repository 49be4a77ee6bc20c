"""
Tool call classification.

Every requested call is resolved once into a closed set of categories so the
orchestrator can branch exhaustively instead of checking name prefixes at
each decision point.
"""

from dataclasses import dataclass
from enum import Enum

PLAN_TOOL_NAMES = ("create_plan", "update_plan")
DELEGATION_TOOL_NAME = "delegate_task"
DEFAULT_NAVIGATION_PREFIXES = ("search.", "nav.", "form.submit-")


class CallKind(str, Enum):
    """Category of a requested tool call."""

    PLAN = "plan"
    DELEGATION = "delegation"
    NAVIGATION = "navigation"
    TOOL = "tool"


@dataclass(frozen=True)
class CallClassifier:
    """
    Resolves tool names into CallKind values.

    Attributes:
        plan_tools: Names handled locally as plan management
        delegation_tool: Name routed to the subagent manager
        navigation_prefixes: Prefixes of tools whose success invalidates the
                             current page and tool snapshot
    """

    plan_tools: tuple[str, ...] = PLAN_TOOL_NAMES
    delegation_tool: str = DELEGATION_TOOL_NAME
    navigation_prefixes: tuple[str, ...] = DEFAULT_NAVIGATION_PREFIXES

    def classify(self, tool_name: str) -> CallKind:
        if tool_name in self.plan_tools:
            return CallKind.PLAN
        if tool_name == self.delegation_tool:
            return CallKind.DELEGATION
        if tool_name.startswith(self.navigation_prefixes):
            return CallKind.NAVIGATION
        return CallKind.TOOL
