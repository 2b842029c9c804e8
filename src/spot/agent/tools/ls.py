"""
agent.tools.ls - Directory listing.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool, ToolResult
from spot.agent.tools.bash import run_process


class LsInput(BaseModel):
    """Input schema for the ls tool."""

    path: str = Field(default=".", description="Directory to list (default: current directory)")


class LsTool(BaseTool):
    """List a directory with ``ls -la``."""

    name = "ls"
    description = "List contents of a directory. Shows files and folders with details."

    def __init__(self, timeout: float = 10.0):
        self._timeout = timeout

    def get_schema(self) -> type[BaseModel]:
        return LsInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        path: str = ".",
        **kwargs,
    ) -> ToolResult:
        cwd = ctx.cwd if ctx else os.getcwd()
        try:
            out = await run_process(["ls", "-la", path or "."], cwd, self._timeout)
        except OSError as exc:
            return ToolResult(output=f"Error: {exc}")

        if out.returncode != 0 or out.stderr:
            return ToolResult(output=f"Error: {out.stderr.strip() or 'Failed to list directory'}")
        return ToolResult(output=out.stdout.strip())
