"""
agent.tools.search - File-name and content search.

glob walks the tree with pathlib; grep shells out to ripgrep when it is
installed and falls back to ``grep -rn`` otherwise.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool, ToolResult, run_blocking
from spot.agent.tools.bash import run_process

MAX_GLOB_RESULTS = 100
MAX_GREP_LINES = 50


# ---------------------------------------------------------------------------
# glob
# ---------------------------------------------------------------------------

class GlobInput(BaseModel):
    """Input schema for the glob tool."""

    pattern: str = Field(
        description='Pattern: "*" for all files, "*.py" for .py files, "**/*.js" for recursive search',
    )
    path: str = Field(default=".", description="Directory to search in (default: current directory)")


class GlobTool(BaseTool):
    """Find files by glob pattern."""

    name = "glob"
    description = (
        'List or find files. Use pattern "*" to list all files in a directory, '
        'or "**/*.ext" to find by extension.'
    )

    def get_schema(self) -> type[BaseModel]:
        return GlobInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        pattern: str = "*",
        path: str = ".",
        **kwargs,
    ) -> ToolResult:
        base = Path(ctx.resolve(path)) if ctx else Path(path).resolve()
        if not await run_blocking(base.is_dir):
            return ToolResult(output=f"Error: Not a directory: {path}")

        try:
            matches = await run_blocking(_glob, base, pattern)
        except (ValueError, NotImplementedError) as exc:
            return ToolResult(output=f"Error searching for files: {exc}")

        if not matches:
            return ToolResult(output=f"No files found matching pattern: {pattern}")
        shown = matches[:MAX_GLOB_RESULTS]
        header = f"Found {len(matches)} file(s)"
        if len(matches) > len(shown):
            header += f", showing the first {len(shown)}"
        return ToolResult(output=f"{header}:\n" + "\n".join(shown), data=matches)


def _glob(base: Path, pattern: str) -> list[str]:
    return sorted(
        str(p.relative_to(base)) for p in base.glob(pattern)
        if not _is_hidden(p.relative_to(base))
    )


def _is_hidden(rel: Path) -> bool:
    return any(part.startswith(".") for part in rel.parts)


# ---------------------------------------------------------------------------
# grep
# ---------------------------------------------------------------------------

class GrepInput(BaseModel):
    """Input schema for the grep tool."""

    model_config = ConfigDict(populate_by_name=True)

    pattern: str = Field(description="Regex pattern to search for")
    path: str = Field(default=".", description="File or directory to search in (default: current directory)")
    type: Optional[str] = Field(default=None, description='File type to search (e.g., "ts", "js", "py")')
    case_sensitive: bool = Field(
        default=False,
        alias="caseSensitive",
        description="Whether the search is case sensitive (default: false)",
    )


class GrepTool(BaseTool):
    """Search file contents with ripgrep or grep."""

    name = "grep"
    description = "Search for a pattern in files. Uses ripgrep (rg) if available, falls back to grep."

    def __init__(self, timeout: float = 30.0):
        self._timeout = timeout

    def get_schema(self) -> type[BaseModel]:
        return GrepInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        pattern: str = "",
        path: str = ".",
        type: Optional[str] = None,
        case_sensitive: bool = False,
        **kwargs,
    ) -> ToolResult:
        cwd = ctx.cwd if ctx else os.getcwd()

        if shutil.which("rg"):
            argv = ["rg", "--line-number", "--color=never"]
            if not case_sensitive:
                argv.append("-i")
            if type:
                argv += ["-t", type]
        else:
            argv = ["grep", "-rn"]
            if not case_sensitive:
                argv.append("-i")
            if type:
                argv.append(f"--include=*.{type}")
        argv += ["-e", pattern, path or "."]

        try:
            out = await run_process(argv, cwd, self._timeout)
        except OSError as exc:
            return ToolResult(output=f"Error: {exc}")

        # Both tools exit 1 for "no matches" and 2 for real errors.
        if out.returncode == 2 and out.stderr:
            return ToolResult(output=f"Error: {out.stderr.strip()}")

        lines = [line for line in out.stdout.strip().split("\n") if line]
        if not lines:
            return ToolResult(output=f"No matches found for pattern: {pattern}")

        body = "\n".join(lines[:MAX_GREP_LINES])
        if len(lines) > MAX_GREP_LINES:
            body += f"\n... ({len(lines) - MAX_GREP_LINES} more matches)"
        return ToolResult(output=f"Found {len(lines)} match(es):\n{body}")
