"""
Tab Session Protocol

Optional multi-tab session memory. The orchestrator seeds it with the page
context, stores successful tool data per tab, and injects its summary into
the system instruction.
"""

from typing import Any, Protocol

from pagepilot.core.domain.models import PageContext


class TabSessionProtocol(Protocol):
    def set_tab_context(self, tab_id: int, page_context: PageContext) -> None:
        ...

    def store_data(self, tab_id: int, tool_name: str, data: Any) -> None:
        ...

    def build_context_summary(self) -> str:
        ...

    def end_session(self) -> None:
        ...
