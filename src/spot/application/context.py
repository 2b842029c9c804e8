"""
application.context - Execution context handed to every tool call.

Replaces ambient process state (cwd, global session) with an explicit
object. The executor passes the same ToolContext to every capability in a
turn; tools that do not need it ignore it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

from spot.domain.ports import TaskBoard


@dataclass
class ToolContext:
    """Per-session context passed through the tool layer.

    Attributes:
        cwd:         Working directory relative paths are resolved against.
        session:     Task-list surface of the live session (None in one-off
                     tool invocations).
        request_id:  Unique per user turn, for tracing/logging.
    """
    cwd: str = field(default_factory=os.getcwd)
    session: Optional[TaskBoard] = None
    request_id: str = field(default_factory=lambda: uuid4().hex)

    def new_request(self) -> None:
        """Start a new user turn within the same session."""
        self.request_id = uuid4().hex

    def resolve(self, path: str) -> str:
        """Resolve *path* against the working directory."""
        return os.path.abspath(os.path.join(self.cwd, os.path.expanduser(path)))
