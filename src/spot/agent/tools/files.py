"""
agent.tools.files - Read, write, and surgically edit files.

Paths are resolved against ToolContext.cwd (absolute paths pass through).
Failures come back as ``Error: ...`` text so the model can correct itself.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool, ToolResult, run_blocking


def _resolve(ctx: Optional[ToolContext], path: str) -> Path:
    if ctx is not None:
        return Path(ctx.resolve(path))
    return Path(os.path.abspath(os.path.expanduser(path)))


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# read_file
# ---------------------------------------------------------------------------

class ReadFileInput(BaseModel):
    """Input schema for the read_file tool."""

    path: str = Field(description="The path to the file to read (absolute or relative to cwd)")
    offset: Optional[int] = Field(
        default=None, description="Line number to start reading from (1-indexed, optional)",
    )
    limit: Optional[int] = Field(
        default=None, description="Maximum number of lines to read (optional)",
    )


class ReadFileTool(BaseTool):
    """Return file contents with line numbers."""

    name = "read_file"
    description = "Read the contents of a file. Returns the file content with line numbers."

    def get_schema(self) -> type[BaseModel]:
        return ReadFileInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        path: str = "",
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        **kwargs,
    ) -> ToolResult:
        full_path = _resolve(ctx, path)
        try:
            content = await run_blocking(full_path.read_text, encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return ToolResult(output=f"Error: File not found: {path}")
        except OSError as exc:
            return ToolResult(output=f"Error reading file: {exc}")

        lines = content.split("\n")
        start = max(0, (offset or 1) - 1)
        end = start + limit if limit else len(lines)
        numbered = "\n".join(
            f"{start + i + 1:>6}│ {line}" for i, line in enumerate(lines[start:end])
        )
        return ToolResult(output=f"File: {full_path}\n{'─' * 60}\n{numbered}")


# ---------------------------------------------------------------------------
# write_file
# ---------------------------------------------------------------------------

class WriteFileInput(BaseModel):
    """Input schema for the write_file tool."""

    path: str = Field(description="The path to the file to write (absolute or relative to cwd)")
    content: str = Field(description="The content to write to the file")


class WriteFileTool(BaseTool):
    """Create or overwrite a file."""

    name = "write_file"
    description = (
        "Write content to a file. Creates the file if it doesn't exist, "
        "overwrites if it does."
    )

    def get_schema(self) -> type[BaseModel]:
        return WriteFileInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        path: str = "",
        content: str = "",
        **kwargs,
    ) -> ToolResult:
        full_path = _resolve(ctx, path)
        try:
            await run_blocking(_write_text, full_path, content)
        except OSError as exc:
            return ToolResult(output=f"Error writing file: {exc}")

        line_count = len(content.split("\n"))
        return ToolResult(output=f"Successfully wrote {line_count} lines to {full_path}")


# ---------------------------------------------------------------------------
# edit_file
# ---------------------------------------------------------------------------

class EditFileInput(BaseModel):
    """Input schema for the edit_file tool."""

    path: str = Field(description="The path to the file to edit (absolute or relative to cwd)")
    old_string: str = Field(
        description=(
            "The exact string to find and replace. Must match exactly "
            "including whitespace and indentation."
        ),
    )
    new_string: str = Field(
        description="The string to replace it with. Use empty string to delete.",
    )
    replace_all: bool = Field(
        default=False,
        description="If true, replace all occurrences. Default is false (replace first only).",
    )


class EditFileTool(BaseTool):
    """Replace an exact string inside a file."""

    name = "edit_file"
    description = (
        "Edit a file by replacing a specific string with new content. "
        "Use this for surgical edits instead of rewriting entire files."
    )

    def get_schema(self) -> type[BaseModel]:
        return EditFileInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        path: str = "",
        old_string: str = "",
        new_string: str = "",
        replace_all: bool = False,
        **kwargs,
    ) -> ToolResult:
        full_path = _resolve(ctx, path)
        if not await run_blocking(full_path.is_file):
            return ToolResult(output=f"Error: File not found: {full_path}")

        try:
            content = await run_blocking(full_path.read_text, encoding="utf-8")
        except OSError as exc:
            return ToolResult(output=f"Error editing file: {exc}")

        occurrences = content.count(old_string) if old_string else 0
        if old_string and occurrences == 0:
            preview = old_string if len(old_string) <= 100 else old_string[:100] + "..."
            return ToolResult(output=(
                f"Error: String not found in file.\nSearched for:\n{preview}\n\n"
                "Make sure the string matches exactly, including whitespace and indentation."
            ))
        if occurrences > 1 and not replace_all:
            return ToolResult(output=(
                f"Error: Found {occurrences} occurrences of the string. Either:\n"
                "1. Provide more context to make the match unique, or\n"
                "2. Set replace_all: true to replace all occurrences"
            ))

        if not old_string:
            # Empty needle inserts at the top of the file.
            updated, count = new_string + content, 1
        elif replace_all:
            updated, count = content.replace(old_string, new_string), occurrences
        else:
            updated, count = content.replace(old_string, new_string, 1), 1

        try:
            await run_blocking(full_path.write_text, updated, encoding="utf-8")
        except OSError as exc:
            return ToolResult(output=f"Error editing file: {exc}")

        if new_string == "":
            action = "Deleted"
        elif old_string == "":
            action = "Inserted"
        else:
            action = "Replaced"

        if replace_all and count > 1:
            return ToolResult(output=f"{action} {count} occurrences in {path}")
        return ToolResult(output=f"{action} text in {path}")
