"""Shared fixtures for PagePilot unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pagepilot.core.domain.models import (
    CandidateResponse,
    FunctionCall,
    PageContext,
    RescanResult,
    ToolCallResult,
    ToolDefinition,
)
from pagepilot.core.interfaces.chat import ChatConfig


def text_response(text: str, reasoning: str | None = None) -> CandidateResponse:
    """Model turn without tool calls."""
    return CandidateResponse(text=text, reasoning=reasoning)


def calls_response(*calls: tuple[str, dict]) -> CandidateResponse:
    """Model turn requesting the given (name, args) calls in order."""
    return CandidateResponse(
        function_calls=[
            FunctionCall(id=f"call_{i}", name=name, args=args)
            for i, (name, args) in enumerate(calls, start=1)
        ]
    )


@pytest.fixture
def page_tools():
    """Tools exposed by the initial page."""
    return [
        ToolDefinition(name="search.query", description="Search the site"),
        ToolDefinition(name="form.fill-email", description="Fill the email field"),
        ToolDefinition(name="page.extract", description="Extract page text"),
    ]


@pytest.fixture
def page_context():
    return PageContext(url="https://shop.example/", title="Example Shop", page_text="Welcome")


@pytest.fixture
def mock_chat():
    """Mock ChatServiceProtocol. Tests set send_message.side_effect."""
    chat = MagicMock()
    chat.send_message = AsyncMock(return_value=text_response("done"))
    chat.trim_history = MagicMock()
    return chat


@pytest.fixture
def mock_tool_port():
    """Mock ToolExecutionProtocol that succeeds with "ok"."""
    port = MagicMock()
    port.execute = AsyncMock(return_value=ToolCallResult(success=True, data="ok"))
    port.get_available_tools = AsyncMock(return_value=[])
    return port


@pytest.fixture
def mock_planning():
    """Mock PlanningProtocol."""
    return MagicMock()


@pytest.fixture
def new_page_tools():
    return [ToolDefinition(name="results.open", description="Open a result")]


@pytest.fixture
def mock_rescanner(new_page_tools):
    """Mock NavigationRescanProtocol returning a results page."""
    rescanner = MagicMock()
    rescanner.rescan = AsyncMock(
        return_value=RescanResult(
            page_context=PageContext(url="https://shop.example/search?q=x", title="Results"),
            tools=new_page_tools,
        )
    )
    return rescanner


@pytest.fixture
def mock_build_config():
    return MagicMock(return_value=ChatConfig(system_instruction=["You are a test agent."]))
