"""
Tool Converter - OpenAI function calling format conversion.

This module converts between the orchestrator's domain types (ToolDefinition,
FunctionCall, ToolResponse) and the message format used by OpenAI-style
native function calling.
"""

import json
from typing import Any

import structlog

from pagepilot.core.domain.models import FunctionCall, ToolDefinition, ToolResponse

logger = structlog.get_logger()


def tools_to_openai_format(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    """
    Convert tool definitions to OpenAI function calling format.

    Args:
        tools: Tool definitions to declare to the model

    Returns:
        List of tool definitions in OpenAI format:
        [
            {
                "type": "function",
                "function": {
                    "name": "tool_name",
                    "description": "Tool description",
                    "parameters": { JSON Schema }
                }
            },
            ...
        ]
    """
    openai_tools = []

    for tool in tools:
        openai_tools.append({
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema or {"type": "object", "properties": {}},
            },
        })

    return openai_tools


def tool_response_to_message(
    response: ToolResponse,
    max_output_chars: int = 20000,
) -> dict[str, Any]:
    """
    Convert a synthesized tool response to an OpenAI tool message.

    Large "result" / "error" values are truncated to prevent token overflow.
    The default limit is 20,000 chars (~5,000 tokens).

    Args:
        response: ToolResponse built by the orchestrator
        max_output_chars: Max characters per payload field

    Returns:
        Message dict in OpenAI tool response format:
        {
            "role": "tool",
            "tool_call_id": "...",
            "name": "tool_name",
            "content": "JSON string of result"
        }
    """
    payload = _truncate_payload(response.response, max_output_chars)

    return {
        "role": "tool",
        "tool_call_id": response.call_id,
        "name": response.name,
        "content": json.dumps(payload, ensure_ascii=False, default=str),
    }


def _truncate_payload(payload: dict[str, Any], max_chars: int) -> dict[str, Any]:
    truncated = payload.copy()

    for key in ("result", "error"):
        if key not in truncated:
            continue
        value = truncated[key]
        if isinstance(value, (list, dict)):
            value = json.dumps(value, ensure_ascii=False, default=str)
            if len(value) <= max_chars:
                continue
        if isinstance(value, str) and len(value) > max_chars:
            overflow = len(value) - max_chars
            truncated[key] = (
                value[:max_chars] + f"\n\n[... TRUNCATED - {overflow} more chars ...]"
            )

    return truncated


def assistant_tool_calls_to_message(
    function_calls: list[FunctionCall],
    content: str | None = None,
) -> dict[str, Any]:
    """
    Create the assistant message that precedes tool results in history.

    Args:
        function_calls: Calls requested by the model
        content: Optional text the model produced alongside the calls

    Returns:
        Assistant message dict with tool_calls in OpenAI format.
    """
    return {
        "role": "assistant",
        "content": content,
        "tool_calls": [
            {
                "id": fc.id,
                "type": "function",
                "function": {
                    "name": fc.name,
                    "arguments": json.dumps(fc.args, ensure_ascii=False, default=str),
                },
            }
            for fc in function_calls
        ],
    }


def parse_tool_calls(raw_tool_calls: list[Any] | None) -> list[FunctionCall]:
    """
    Parse OpenAI-style tool calls into FunctionCall objects.

    Accepts either dicts or SDK objects exposing the same attributes.
    Arguments that are not valid JSON are replaced with an empty dict.
    """
    calls: list[FunctionCall] = []

    for raw in raw_tool_calls or []:
        call_id = _field(raw, "id") or ""
        function = _field(raw, "function")
        name = _field(function, "name") or ""
        raw_args = _field(function, "arguments")

        if isinstance(raw_args, dict):
            args = raw_args
        else:
            try:
                args = json.loads(raw_args) if raw_args else {}
            except json.JSONDecodeError:
                logger.warning("tool_args_parse_failed", tool=name, raw_args=raw_args)
                args = {}
            if not isinstance(args, dict):
                args = {}

        calls.append(FunctionCall(id=call_id, name=name, args=args))

    return calls


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)
