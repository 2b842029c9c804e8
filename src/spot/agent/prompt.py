"""
agent.prompt - System prompt templates for the coding agent.

build_system_prompt() assembles the per-turn system prompt from the base
persona, detected project context, and the session task list.
inject_tool_instructions() appends the tool-calling protocol to the first
system message exactly once.
"""

from __future__ import annotations

from typing import Optional, Sequence

from spot.agent.tools.registry import ToolRegistry
from spot.domain.models import ChatMessage, Role, Task

TOOL_CALLING_MARKER = "## TOOL CALLING"

BASE_SYSTEM_PROMPT = """You are Spot, a local AI assistant for coding and Linux system tasks.

## Response Style
- Questions and chat → respond naturally and conversationally
- Task requests (create, build, modify, run, etc.) → acknowledge briefly, then use tools to do it

## When to Use Tools
If the user asks you to DO something (create files, run commands, modify code, build something):
- Use your tools directly - don't show code for the user to copy
- Don't tell them what commands to run - run them yourself with bash
- Don't show file contents - write them with write_file

Example task: "create a hello world script"
WRONG: "Here's a script you can create..." (showing code)
RIGHT: "I'll create that for you." then use write_file tool

## Tools
You have these tools: {tool_names}

When performing actions, output the tool call as JSON on its own line:
{{"name": "tool_name", "arguments": {{"param": "value"}}}}
"""

TOOL_CALLING_TEMPLATE = """

{marker}

When you need to use a tool, output ONLY a JSON object in this exact format (no markdown, no explanation before it):
{{"name": "tool_name", "arguments": {{"param": "value"}}}}

Available tools:
{tool_descriptions}

After I execute the tool, I will give you the result and you can continue."""


def format_tasks(tasks: Sequence[Task]) -> str:
    """Render the task list for the system prompt ('' when empty)."""
    if not tasks:
        return ""
    return "## Current Tasks\n" + "\n".join(task.render() for task in tasks)


def build_system_prompt(
    registry: ToolRegistry,
    environment: Optional[str] = None,
    tasks: Sequence[Task] = (),
) -> str:
    """Build the system prompt for one turn.

    Args:
        registry:     Registered tools (names are listed in the prompt).
        environment:  Rendered project context, or None when no project
                      was detected.
        tasks:        Current session tasks.
    """
    prompt = BASE_SYSTEM_PROMPT.format(tool_names=", ".join(registry.names()))
    if environment:
        prompt += "\n" + environment
    tasks_section = format_tasks(tasks)
    if tasks_section:
        prompt += "\n\n" + tasks_section
    return prompt


def inject_tool_instructions(
    messages: list[ChatMessage],
    registry: ToolRegistry,
) -> None:
    """Append the tool-calling protocol to the first system message, in place.

    Idempotent: skipped when the first message is not a system message or
    already carries the protocol.
    """
    if not messages or messages[0].role != Role.SYSTEM:
        return
    first = messages[0]
    if TOOL_CALLING_MARKER in first.content:
        return
    messages[0] = ChatMessage(
        role=Role.SYSTEM,
        content=first.content + TOOL_CALLING_TEMPLATE.format(
            marker=TOOL_CALLING_MARKER,
            tool_descriptions=registry.describe(),
        ),
    )
