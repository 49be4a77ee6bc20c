"""
Orchestrator Prompts

System instruction for the tool-use loop, declarations of the tools the
orchestrator handles itself (plan management and delegation), and the
default ChatConfig builder that renders page context into the instruction.
"""

from datetime import date
from typing import Any

from pagepilot.core.domain.call_kinds import DELEGATION_TOOL_NAME
from pagepilot.core.domain.models import PageContext, ToolDefinition
from pagepilot.core.interfaces.chat import ChatConfig
from pagepilot.infrastructure.tools.tool_converter import tools_to_openai_format

PAGE_TEXT_MAX_CHARS = 4000

ORCHESTRATOR_SYSTEM_PROMPT = """You are a browser automation agent. You complete the user's goal by calling the tools exposed by the current page.

## RULES
1. For goals that need two or more steps, navigation, or search plus analysis, call `create_plan` FIRST.
2. Call tools in the order they must happen. Later calls in the same turn may depend on earlier ones (fill a field, then submit).
3. After a navigation tool succeeds the page changes: remaining calls from that turn are skipped and you will receive the new tool set.
4. If a tool fails or is denied by the user, read the error and adapt; do not repeat the same call unchanged.
5. When the goal is complete, answer in plain text without calling any tool."""

_STEP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": 'Step ID (e.g., "1", "2", "2.1")'},
        "title": {"type": "string", "description": "What this step does"},
        "children": {
            "type": "array",
            "description": "Optional sub-steps",
            "items": {
                "type": "object",
                "properties": {"id": {"type": "string"}, "title": {"type": "string"}},
                "required": ["id", "title"],
            },
        },
    },
    "required": ["id", "title"],
}

PLAN_TOOLS = [
    ToolDefinition(
        name="create_plan",
        description=(
            "Create an execution plan for a complex multi-step task. Call this FIRST "
            "before executing any other tools when the task requires 2+ steps, "
            "navigation, or search+analysis."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "goal": {"type": "string", "description": "The overall goal of the plan"},
                "steps": {
                    "type": "array",
                    "description": "Ordered list of steps to achieve the goal",
                    "items": _STEP_SCHEMA,
                },
            },
            "required": ["goal", "steps"],
        },
    ),
    ToolDefinition(
        name="update_plan",
        description=(
            "Update the current execution plan: add, remove or modify steps if the "
            "plan needs to change during execution."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "goal": {"type": "string", "description": "Updated goal (or same as before)"},
                "steps": {"type": "array", "items": _STEP_SCHEMA},
            },
            "required": ["goal", "steps"],
        },
    ),
]

DELEGATION_TOOL = ToolDefinition(
    name=DELEGATION_TOOL_NAME,
    description=(
        "Delegate a self-contained sub-task to a child agent that works on the same "
        "page with the same tools. Returns the child's final answer."
    ),
    parameters_schema={
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "The sub-task to complete"},
            "instructions": {"type": "string", "description": "Optional extra guidance"},
            "timeout_seconds": {"type": "number", "description": "Optional time budget"},
        },
        "required": ["prompt"],
    },
)


def format_page_context(page_context: PageContext | None) -> list[str]:
    """Render a page snapshot as system instruction lines."""
    if page_context is None:
        return ["**CURRENT PAGE:** unknown"]

    lines = [
        "**CURRENT PAGE:**",
        f"- URL: {page_context.url}",
        f"- Title: {page_context.title}",
    ]
    if page_context.headings:
        lines.append(f"- Headings: {' | '.join(page_context.headings[:10])}")
    if page_context.page_text:
        text = page_context.page_text
        if len(text) > PAGE_TEXT_MAX_CHARS:
            text = text[:PAGE_TEXT_MAX_CHARS] + "\n[...truncated]"
        lines += ["", "**PAGE TEXT:**", text]
    return lines


def build_chat_config(
    page_context: PageContext | None,
    tools: list[ToolDefinition],
    include_delegation: bool = False,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> ChatConfig:
    """
    Build the ChatConfig for one turn.

    Args:
        page_context: Current page snapshot
        tools: Page tools currently available
        include_delegation: Also declare delegate_task (only when a subagent
                            manager is wired and depth allows it)
        temperature: Optional sampling temperature
        max_tokens: Optional output token limit

    Returns:
        ChatConfig with the system instruction and all tool declarations.
    """
    declared = [*PLAN_TOOLS, *tools]
    if include_delegation:
        declared.append(DELEGATION_TOOL)

    system_instruction = [
        ORCHESTRATOR_SYSTEM_PROMPT,
        "",
        f"Today is {date.today().strftime('%A, %B %d, %Y')}.",
        "",
        *format_page_context(page_context),
    ]

    return ChatConfig(
        system_instruction=system_instruction,
        tools=tools_to_openai_format(declared),
        temperature=temperature,
        max_tokens=max_tokens,
    )
