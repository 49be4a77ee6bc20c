"""
Context Budgeter - keeps oversized tool results out of the conversation.

Large tool results are replaced with a short preview plus a reference id
that resolves back to the full content. Token usage is tracked cumulatively
across request/response cycles using a 4-chars-per-token estimate.
"""

import math
from dataclasses import dataclass
from typing import Any

import structlog

from pagepilot.core.domain.models import TokenUsage


@dataclass(frozen=True)
class ContextBudgetSettings:
    offload_threshold: int = 5000
    offload_preview_chars: int = 500


class ContextBudgeter:
    """Tracks token usage and offloads tool results above a token threshold."""

    def __init__(self, settings: ContextBudgetSettings | None = None):
        self.settings = settings or ContextBudgetSettings()
        self._input_tokens = 0
        self._output_tokens = 0
        self._counter = 0
        self._offloaded: dict[str, str] = {}
        self.logger = structlog.get_logger().bind(component="context_budgeter")

    def process_tool_result(self, tool_name: str, result: Any) -> Any:
        """
        Offload a tool result if it exceeds the token threshold.

        Args:
            tool_name: Name of the tool that produced the result
            result: Tool result data; non-string values are returned untouched

        Returns:
            The unchanged result, or a preview string carrying the reference id.
        """
        if not isinstance(result, str):
            return result

        tokens = self.estimate_tokens(result)
        if tokens <= self.settings.offload_threshold:
            return result

        ref_id = f"offload-{tool_name}-{self._counter}"
        self._counter += 1
        self._offloaded[ref_id] = result
        self.logger.info("tool_result_offloaded", tool=tool_name, tokens=tokens, ref=ref_id)

        preview = result[: self.settings.offload_preview_chars]
        return f"{preview}\n\n[... {tokens} tokens offloaded - ref: {ref_id}]"

    def get_offloaded(self, ref_id: str) -> str | None:
        return self._offloaded.get(ref_id)

    def track_usage(self, input_tokens: int, output_tokens: int) -> None:
        self._input_tokens += input_tokens
        self._output_tokens += output_tokens

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / 4)

    def get_usage(self) -> TokenUsage:
        return TokenUsage(
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            total_tokens=self._input_tokens + self._output_tokens,
        )

    def reset(self) -> None:
        """Clear offloaded content and usage counters. Called once per run."""
        self._input_tokens = 0
        self._output_tokens = 0
        self._counter = 0
        self._offloaded.clear()
