"""
agent.tools.bash - Shell command execution.

Runs ``bash -c <command>`` in the session's working directory. A command
that outlives its timeout is killed and reported as timed out; the model
sees that exactly like any other result.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


@dataclass
class ProcessOutput:
    stdout: str
    stderr: str
    returncode: Optional[int]
    timed_out: bool = False


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the process and everything it spawned."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        logger.debug("Process %s already exited", proc.pid)


async def run_process(
    argv: Sequence[str],
    cwd: str,
    timeout: float,
) -> ProcessOutput:
    """Run *argv* to completion, killing it after *timeout* seconds.

    Raises FileNotFoundError / OSError when the executable cannot start.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        env=os.environ.copy(),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=hasattr(os, "killpg"),
    )
    timed_out = False
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        timed_out = True
        _kill_group(proc)
        stdout, stderr = await proc.communicate()
        logger.warning("Process %s killed after %gs", argv[0], timeout)
    finally:
        # Also reached when an outer deadline cancels us.
        if proc.returncode is None:
            _kill_group(proc)
            await proc.wait()

    return ProcessOutput(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        returncode=proc.returncode,
        timed_out=timed_out,
    )


class BashInput(BaseModel):
    """Input schema for the bash tool."""

    command: str = Field(description="The bash command to execute")
    timeout: Optional[int] = Field(
        default=None,
        description=f"Timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )


class BashTool(BaseTool):
    """Execute a shell command and report its output."""

    name = "bash"
    description = (
        "Execute a bash command and return its output. "
        "Use this for system commands, git, package managers, tests, etc."
    )

    def __init__(self, default_timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self._default_timeout_ms = default_timeout_ms

    def get_schema(self) -> type[BaseModel]:
        return BashInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        command: str = "",
        timeout: Optional[int] = None,
        **kwargs,
    ) -> ToolResult:
        timeout_ms = timeout or self._default_timeout_ms
        cwd = ctx.cwd if ctx else os.getcwd()
        try:
            out = await run_process(["bash", "-c", command], cwd, timeout_ms / 1000)
        except OSError as exc:
            return ToolResult(output=f"Error executing command: {exc}")

        return ToolResult(output=format_process_output(out, timeout_ms), data=out)


def format_process_output(out: ProcessOutput, timeout_ms: int) -> str:
    result = ""
    if out.stdout:
        result += f"stdout:\n{out.stdout}"
    if out.stderr:
        if result:
            result += "\n"
        result += f"stderr:\n{out.stderr}"
    if out.timed_out:
        result += f"\n(Command timed out after {timeout_ms}ms)"
    elif out.returncode not in (0, None):
        result += f"\n(Exit code: {out.returncode})"
    return result or "(No output)"
