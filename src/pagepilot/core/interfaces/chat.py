"""
Chat Service Protocol

Defines the contract for the stateful chat handle the orchestrator talks to.
A handle keeps its own conversation history; each orchestrator run creates a
fresh one through a factory.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from pagepilot.core.domain.models import CandidateResponse, ToolResponse


@dataclass(frozen=True)
class ChatConfig:
    """
    Per-turn configuration sent alongside a message.

    Attributes:
        system_instruction: Lines joined into the system message
        tools: Tool declarations in OpenAI function format
        temperature: Optional sampling temperature override
        max_tokens: Optional output token limit override
    """

    system_instruction: list[str] = field(default_factory=list)
    tools: list[dict[str, Any]] = field(default_factory=list)
    temperature: float | None = None
    max_tokens: int | None = None


class ChatServiceProtocol(Protocol):
    """
    Protocol for the language-model chat service.

    Exceptions raised by send_message are not handled by the orchestrator;
    they propagate to the caller of run().
    """

    async def send_message(
        self,
        message: str | list[ToolResponse],
        config: ChatConfig,
    ) -> CandidateResponse:
        """
        Append a user message (str) or tool responses to the history and
        return the model's next turn.
        """
        ...

    def trim_history(self, max_messages: int) -> None:
        """Drop the oldest history entries beyond max_messages."""
        ...


ChatFactory = Callable[[list[dict[str, Any]]], ChatServiceProtocol]
"""Creates a fresh chat handle seeded with prior conversation history."""
