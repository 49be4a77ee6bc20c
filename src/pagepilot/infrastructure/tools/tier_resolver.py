"""
Tier Resolver - maps tool names to security tiers.

Tiers are assigned by name prefix (longest prefix wins) with a configurable
fallback. Used by the ApprovalGate to decide which calls need approval.
"""

from pagepilot.core.domain.approval_gate import SecurityTier

DEFAULT_PREFIX_TIERS: dict[str, int] = {
    "search.": SecurityTier.NAVIGATION,
    "nav.": SecurityTier.NAVIGATION,
    "browser.": SecurityTier.NAVIGATION,
    "form.submit-": SecurityTier.MUTATION,
    "form.": SecurityTier.SAFE,
    "cart.": SecurityTier.MUTATION,
    "checkout.": SecurityTier.MUTATION,
}


class TierResolver:
    """Callable resolving a tool name to its security tier."""

    def __init__(
        self,
        prefix_tiers: dict[str, int] | None = None,
        default_tier: int = SecurityTier.SAFE,
    ):
        tiers = DEFAULT_PREFIX_TIERS if prefix_tiers is None else prefix_tiers
        # Longest prefix first so "form.submit-" beats "form."
        self._prefixes = sorted(tiers.items(), key=lambda item: len(item[0]), reverse=True)
        self.default_tier = int(default_tier)

    def __call__(self, tool_name: str) -> int:
        for prefix, tier in self._prefixes:
            if tool_name.startswith(prefix):
                return int(tier)
        return self.default_tier
