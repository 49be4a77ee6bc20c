"""
LiteLLM Chat Service

Stateful chat handle over litellm.acompletion. Keeps the conversation history
for one orchestrator run, renders the per-turn ChatConfig into a system
message plus OpenAI-format tool declarations, and parses the model's reply
into a CandidateResponse.

Transient provider errors are retried with exponential backoff; anything
else (or exhausting the retries) is raised to the orchestrator's caller.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import litellm
import structlog

from pagepilot.core.domain.context_budget import ContextBudgeter
from pagepilot.core.domain.models import CandidateResponse, ToolResponse
from pagepilot.core.interfaces.chat import ChatConfig
from pagepilot.infrastructure.tools.tool_converter import (
    assistant_tool_calls_to_message,
    parse_tool_calls,
    tool_response_to_message,
)


@dataclass
class RetryPolicy:
    """Retry policy for transient completion failures."""

    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: list[str] = field(
        default_factory=lambda: ["RateLimitError", "ServiceUnavailableError", "Timeout"]
    )


class LiteLLMChatService:
    """Implements ChatServiceProtocol on top of LiteLLM."""

    def __init__(
        self,
        model: str,
        history: list[dict[str, Any]] | None = None,
        context_budgeter: ContextBudgeter | None = None,
        retry_policy: RetryPolicy | None = None,
        max_tool_output_chars: int = 20000,
    ):
        """
        Args:
            model: LiteLLM model string (e.g. "gpt-4.1-mini", "openrouter/...")
            history: Prior conversation messages to continue from
            context_budgeter: Receives token usage reported by the provider
            retry_policy: Retry behavior for transient errors
            max_tool_output_chars: Truncation limit for tool payloads
        """
        self.model = model
        self.history: list[dict[str, Any]] = list(history or [])
        self.context_budgeter = context_budgeter
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_tool_output_chars = max_tool_output_chars
        self.logger = structlog.get_logger().bind(component="litellm_chat", model=model)

    async def send_message(
        self,
        message: str | list[ToolResponse],
        config: ChatConfig,
    ) -> CandidateResponse:
        if isinstance(message, str):
            self.history.append({"role": "user", "content": message})
        else:
            for response in message:
                self.history.append(
                    tool_response_to_message(response, self.max_tool_output_chars)
                )

        messages = self._build_messages(config)
        params: dict[str, Any] = {}
        if config.tools:
            params["tools"] = config.tools
            params["tool_choice"] = "auto"
        if config.temperature is not None:
            params["temperature"] = config.temperature
        if config.max_tokens is not None:
            params["max_tokens"] = config.max_tokens

        response = await self._complete(messages, params)
        message_obj = response.choices[0].message

        candidate = CandidateResponse(
            text=getattr(message_obj, "content", None),
            reasoning=getattr(message_obj, "reasoning_content", None),
            function_calls=parse_tool_calls(getattr(message_obj, "tool_calls", None)),
        )

        if candidate.function_calls:
            self.history.append(
                assistant_tool_calls_to_message(candidate.function_calls, candidate.text)
            )
        else:
            self.history.append({"role": "assistant", "content": candidate.text or ""})

        self._report_usage(response)
        return candidate

    def trim_history(self, max_messages: int) -> None:
        """
        Keep only the newest max_messages entries.

        Tool messages orphaned from their assistant turn are dropped from the
        front so the provider never sees a tool reply without its call.
        """
        if max_messages <= 0 or len(self.history) <= max_messages:
            return

        trimmed = self.history[-max_messages:]
        while trimmed and trimmed[0].get("role") == "tool":
            trimmed.pop(0)

        self.logger.debug(
            "history_trimmed",
            before=len(self.history),
            after=len(trimmed),
        )
        self.history = trimmed

    def _build_messages(self, config: ChatConfig) -> list[dict[str, Any]]:
        if not config.system_instruction:
            return list(self.history)
        system = {"role": "system", "content": "\n".join(config.system_instruction)}
        return [system, *self.history]

    async def _complete(self, messages: list[dict[str, Any]], params: dict[str, Any]) -> Any:
        policy = self.retry_policy

        for attempt in range(policy.max_attempts):
            try:
                start_time = time.time()
                self.logger.info(
                    "llm_completion_started",
                    attempt=attempt + 1,
                    message_count=len(messages),
                )

                response = await litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    timeout=policy.timeout,
                    **params,
                )

                self.logger.info(
                    "llm_completion_success",
                    latency_ms=int((time.time() - start_time) * 1000),
                )
                return response

            except Exception as e:
                error_type = type(e).__name__
                error_msg = str(e)

                should_retry = attempt < policy.max_attempts - 1 and any(
                    err_type in error_type or err_type in error_msg
                    for err_type in policy.retry_on_errors
                )
                if not should_retry:
                    self.logger.error(
                        "llm_completion_failed",
                        error_type=error_type,
                        error=error_msg[:200],
                        attempts=attempt + 1,
                    )
                    raise

                backoff_time = policy.backoff_multiplier**attempt
                self.logger.warning(
                    "llm_completion_retry",
                    error_type=error_type,
                    attempt=attempt + 1,
                    backoff_seconds=backoff_time,
                )
                await asyncio.sleep(backoff_time)

        raise RuntimeError("LLM completion retries exhausted")

    def _report_usage(self, response: Any) -> None:
        if self.context_budgeter is None:
            return

        usage = getattr(response, "usage", None)
        if usage is None:
            return

        # Handle both dict and object forms
        if isinstance(usage, dict):
            prompt_tokens = usage.get("prompt_tokens", 0)
            completion_tokens = usage.get("completion_tokens", 0)
        else:
            prompt_tokens = getattr(usage, "prompt_tokens", 0)
            completion_tokens = getattr(usage, "completion_tokens", 0)

        self.context_budgeter.track_usage(int(prompt_tokens or 0), int(completion_tokens or 0))
