"""
agent.tools.base - Base tool interface and result container.

All agent tools inherit from BaseTool and return ToolResult.
"""

from __future__ import annotations

import asyncio
import functools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from spot.application.context import ToolContext

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run blocking disk work in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


@dataclass
class ToolResult:
    """Result returned by a tool execution.

    output:  Text fed back to the model.
    data:    Structured data for callers (not passed through the model).
    """
    output: str
    data: Any = None


class BaseTool(ABC):
    """Abstract base for all agent tools.

    execute() must not raise for expected failures (missing file, bad
    pattern); return an ``Error: ...`` result instead. The registry still
    guards against anything that slips through.
    """

    name: str
    description: str

    @abstractmethod
    async def execute(self, ctx: Optional[ToolContext], **kwargs) -> ToolResult:
        """Execute the tool with the given context and validated arguments."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's input arguments."""
        ...

    def describe(self) -> str:
        """Render name, description, and parameters for the system prompt."""
        schema = self.get_schema().model_json_schema()
        lines = [f"{self.name}: {self.description}", "Parameters:"]
        for param, prop in schema.get("properties", {}).items():
            line = f"  - {param}: {prop.get('description', '')}"
            options = _enum_values(prop)
            if options:
                line += f" (options: {', '.join(options)})"
            lines.append(line)
        return "\n".join(lines)


def _enum_values(prop: dict[str, Any]) -> list[str]:
    """Pull Literal[...] choices out of a JSON-schema property."""
    if "enum" in prop:
        return [str(v) for v in prop["enum"]]
    for variant in prop.get("anyOf", []):
        if "enum" in variant:
            return [str(v) for v in variant["enum"]]
    return []
