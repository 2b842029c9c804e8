"""
agent.tools.registry - Tool registration, discovery, and invocation.

Central registry that manages all available tools. Read-only after the
factory has registered the built-ins, so one instance is shared by every
turn. invoke() is the capability boundary: arguments are validated
against the tool's pydantic schema there, and every failure mode comes
back as text rather than an exception.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool
from spot.domain.exceptions import UnknownToolError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Manages tool registration and invocation."""

    def __init__(self, timeout: Optional[float] = None):
        self._tools: dict[str, BaseTool] = {}
        self._timeout = timeout

    def register(self, tool: BaseTool) -> None:
        """Register a tool by its name."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> BaseTool:
        """Get a tool by name."""
        if name not in self._tools:
            raise UnknownToolError(f"Tool '{name}' not registered")
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> list[BaseTool]:
        """Return all registered tools."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        """Return all registered tool names."""
        return list(self._tools.keys())

    def describe(self) -> str:
        """Describe every registered tool, for the system prompt."""
        return "\n\n".join(tool.describe() for tool in self._tools.values())

    async def invoke(
        self,
        name: str,
        arguments: Mapping[str, Any],
        ctx: Optional[ToolContext] = None,
    ) -> str:
        """Validate arguments, run the tool, and return its text output.

        Never raises for tool-level problems: unknown names, schema
        violations, timeouts, and exceptions inside the tool all become
        ``Error ...`` / ``Unknown tool`` strings for the model to read.
        """
        if name not in self._tools:
            logger.info("Model requested unknown tool '%s'", name)
            return f"Unknown tool: {name}"
        tool = self._tools[name]

        try:
            params = tool.get_schema().model_validate(dict(arguments))
        except ValidationError as exc:
            logger.info("Invalid arguments for tool '%s': %s", name, exc)
            return f"Error: invalid arguments for {name}:\n{_format_validation(exc)}"

        kwargs = params.model_dump(exclude_unset=False)
        try:
            if self._timeout:
                result = await asyncio.wait_for(
                    tool.execute(ctx, **kwargs), timeout=self._timeout,
                )
            else:
                result = await tool.execute(ctx, **kwargs)
        except asyncio.TimeoutError:
            logger.warning("Tool '%s' timed out after %gs", name, self._timeout)
            return f"Error: {name} timed out after {self._timeout:g}s"
        except Exception as exc:
            logger.exception("Tool '%s' raised", name)
            return f"Error executing {name}: {exc}"

        return result.output


def _format_validation(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        lines.append(f"  - {loc}: {err.get('msg', 'invalid value')}")
    return "\n".join(lines)
