"""
Approval Gate - human-in-the-loop check before destructive tool calls.

Decorates a ToolExecutionProtocol: every call is classified into a security
tier, and calls at or above the approval threshold are held until the
approval callback answers. Auto-approve mode bypasses the check entirely.
"""

from collections.abc import Awaitable, Callable
from enum import IntEnum
from typing import Any

import structlog

from pagepilot.core.domain.models import (
    ApprovalDecision,
    ApprovalRequest,
    ToolCallResult,
    ToolDefinition,
    ToolTarget,
)
from pagepilot.core.interfaces.tools import ToolExecutionProtocol


class SecurityTier(IntEnum):
    """Known tiers. The scale is open; anything >= MUTATION needs approval."""

    SAFE = 0
    NAVIGATION = 1
    MUTATION = 2


ApprovalCallback = Callable[[ApprovalRequest], Awaitable[ApprovalDecision]]
TierResolverFn = Callable[[str], int]


class ApprovalGate:
    """
    Tool execution decorator that gates high-tier calls behind approval.

    Implements ToolExecutionProtocol, so it can be handed to the orchestrator
    in place of the wrapped port.
    """

    def __init__(
        self,
        inner: ToolExecutionProtocol,
        resolve_tier: TierResolverFn,
        on_approval_needed: ApprovalCallback,
        approval_threshold: int = SecurityTier.MUTATION,
    ):
        """
        Args:
            inner: The wrapped tool execution port
            resolve_tier: Maps a tool name to its security tier
            on_approval_needed: Asks a human to approve or deny a request
            approval_threshold: Lowest tier that requires approval
        """
        self.inner = inner
        self.resolve_tier = resolve_tier
        self.on_approval_needed = on_approval_needed
        self.approval_threshold = approval_threshold
        self._auto_approve = False
        self.logger = structlog.get_logger().bind(component="approval_gate")

    async def execute(
        self,
        tool_name: str,
        args: dict[str, Any],
        target: ToolTarget,
    ) -> ToolCallResult:
        tier = self.resolve_tier(tool_name)

        if tier >= self.approval_threshold and not self._auto_approve:
            self.logger.info("approval_requested", tool=tool_name, tier=tier)
            decision = await self.on_approval_needed(
                ApprovalRequest(
                    tool_name=tool_name,
                    args=args,
                    tier=tier,
                    description=f"Execute {tool_name}",
                )
            )

            if decision == ApprovalDecision.DENIED:
                self.logger.info("approval_denied", tool=tool_name, tier=tier)
                return ToolCallResult(
                    success=False,
                    error=f'Tool "{tool_name}" execution denied by user.',
                )

        return await self.inner.execute(tool_name, args, target)

    async def get_available_tools(self, tab_id: int) -> list[ToolDefinition]:
        return await self.inner.get_available_tools(tab_id)

    def on_tools_changed(
        self,
        callback: Callable[[list[ToolDefinition]], None],
    ) -> Callable[[], None]:
        return self.inner.on_tools_changed(callback)

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        if self._auto_approve:
            return ApprovalDecision.APPROVED
        return await self.on_approval_needed(request)

    def set_auto_approve(self, enabled: bool) -> None:
        self.logger.warning("auto_approve_changed", enabled=enabled)
        self._auto_approve = enabled

    def is_auto_approve(self) -> bool:
        return self._auto_approve
