"""
In-memory tab session.

Remembers, per tab, the last known page and the data returned by successful
tool calls, and summarizes it for the system instruction so the model can
refer to results gathered on other tabs.
"""

import json
from dataclasses import dataclass, field
from typing import Any

import structlog

from pagepilot.core.domain.models import PageContext

SUMMARY_VALUE_CHARS = 200


@dataclass
class TabState:
    url: str
    title: str
    extracted_data: dict[str, Any] = field(default_factory=dict)


class InMemoryTabSession:
    """Implements TabSessionProtocol with a plain dict keyed by tab id."""

    def __init__(self) -> None:
        self._tabs: dict[int, TabState] = {}
        self.active = True
        self.logger = structlog.get_logger().bind(component="tab_session")

    def set_tab_context(self, tab_id: int, page_context: PageContext) -> None:
        # A new page starts with no extracted data.
        self._tabs[tab_id] = TabState(url=page_context.url, title=page_context.title)
        self.active = True

    def store_data(self, tab_id: int, tool_name: str, data: Any) -> None:
        tab = self._tabs.get(tab_id)
        if tab is None:
            tab = self._tabs[tab_id] = TabState(url="", title="")
        tab.extracted_data[tool_name] = data

    def get_tab(self, tab_id: int) -> TabState | None:
        return self._tabs.get(tab_id)

    def build_context_summary(self) -> str:
        """Summarize tabs visited in this session. Empty with fewer than two tabs."""
        if len(self._tabs) < 2:
            return ""

        lines = []
        for tab_id, tab in self._tabs.items():
            lines.append(f"- Tab {tab_id}: {tab.title} ({tab.url})")
            for tool_name, data in tab.extracted_data.items():
                value = data if isinstance(data, str) else json.dumps(data, default=str)
                if len(value) > SUMMARY_VALUE_CHARS:
                    value = value[:SUMMARY_VALUE_CHARS] + "..."
                lines.append(f"  - {tool_name}: {value}")
        return "\n".join(lines)

    def end_session(self) -> None:
        if self.active:
            self.logger.debug("tab_session_ended", tabs=len(self._tabs))
        self._tabs.clear()
        self.active = False
