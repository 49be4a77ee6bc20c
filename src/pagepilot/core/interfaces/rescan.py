"""
Navigation Re-scan Protocol

After a navigation-causing tool succeeds the orchestrator asks this
collaborator for a fresh page context and tool set.
"""

from typing import Protocol

from pagepilot.core.domain.models import RescanResult, ToolDefinition


class NavigationRescanProtocol(Protocol):
    async def rescan(
        self,
        tab_id: int,
        current_tools: list[ToolDefinition],
    ) -> RescanResult:
        """
        Wait for the tab to settle and re-discover its tools.

        Implementations should return current_tools when discovery fails;
        the orchestrator also falls back to its last known tool set if the
        call raises or returns no tools.
        """
        ...
