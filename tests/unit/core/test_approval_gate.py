"""Unit tests for the ApprovalGate tool port decorator."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pagepilot.core.domain.approval_gate import ApprovalGate, SecurityTier
from pagepilot.core.domain.models import (
    ApprovalDecision,
    ToolCallResult,
    ToolDefinition,
    ToolTarget,
)
from pagepilot.infrastructure.tools.tier_resolver import TierResolver

TARGET = ToolTarget(tab_id=1)


@pytest.fixture
def inner():
    port = MagicMock()
    port.execute = AsyncMock(return_value=ToolCallResult(success=True, data="clicked"))
    port.get_available_tools = AsyncMock(return_value=[ToolDefinition(name="a", description="A")])
    port.on_tools_changed = MagicMock(return_value="unsubscribe")
    return port


@pytest.fixture
def approve():
    return AsyncMock(return_value=ApprovalDecision.APPROVED)


@pytest.fixture
def deny():
    return AsyncMock(return_value=ApprovalDecision.DENIED)


class TestApprovalGate:
    """Calls at or above the threshold tier need approval."""

    @pytest.mark.asyncio
    async def test_safe_tool_skips_approval(self, inner, deny):
        gate = ApprovalGate(inner, TierResolver(), deny)

        result = await gate.execute("page.extract", {}, TARGET)

        assert result.success is True
        deny.assert_not_awaited()
        inner.execute.assert_awaited_once_with("page.extract", {}, TARGET)

    @pytest.mark.asyncio
    async def test_denied_call_never_reaches_inner(self, inner, deny):
        gate = ApprovalGate(inner, TierResolver(), deny)

        result = await gate.execute("form.submit-order", {"confirm": True}, TARGET)

        assert result.success is False
        assert result.error == 'Tool "form.submit-order" execution denied by user.'
        inner.execute.assert_not_awaited()

        request = deny.await_args.args[0]
        assert request.tool_name == "form.submit-order"
        assert request.tier == SecurityTier.MUTATION
        assert request.args == {"confirm": True}

    @pytest.mark.asyncio
    async def test_approved_call_executes(self, inner, approve):
        gate = ApprovalGate(inner, TierResolver(), approve)

        result = await gate.execute("checkout.pay", {}, TARGET)

        assert result.data == "clicked"
        approve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, inner, deny):
        gate = ApprovalGate(inner, TierResolver(), deny, approval_threshold=SecurityTier.NAVIGATION)

        result = await gate.execute("nav.home", {}, TARGET)

        assert result.success is False
        deny.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_auto_approve_bypasses_callback(self, inner, deny):
        gate = ApprovalGate(inner, TierResolver(), deny)
        gate.set_auto_approve(True)

        result = await gate.execute("form.submit-order", {}, TARGET)

        assert gate.is_auto_approve() is True
        assert result.success is True
        deny.assert_not_awaited()
        assert await gate.request_approval(MagicMock()) == ApprovalDecision.APPROVED

    @pytest.mark.asyncio
    async def test_discovery_passes_through(self, inner, approve):
        gate = ApprovalGate(inner, TierResolver(), approve)
        callback = MagicMock()

        tools = await gate.get_available_tools(5)
        unsubscribe = gate.on_tools_changed(callback)

        inner.get_available_tools.assert_awaited_once_with(5)
        assert tools[0].name == "a"
        inner.on_tools_changed.assert_called_once_with(callback)
        assert unsubscribe == "unsubscribe"


class TestTierResolver:
    def test_longest_prefix_wins(self):
        resolver = TierResolver()

        assert resolver("form.submit-login") == SecurityTier.MUTATION
        assert resolver("form.fill-email") == SecurityTier.SAFE
        assert resolver("search.query") == SecurityTier.NAVIGATION

    def test_unknown_tool_uses_default_tier(self):
        assert TierResolver()("page.extract") == SecurityTier.SAFE
        assert TierResolver(default_tier=SecurityTier.MUTATION)("page.extract") == SecurityTier.MUTATION

    def test_custom_prefixes_replace_defaults(self):
        resolver = TierResolver(prefix_tiers={"danger.": 2})

        assert resolver("danger.delete") == 2
        assert resolver("checkout.pay") == SecurityTier.SAFE
