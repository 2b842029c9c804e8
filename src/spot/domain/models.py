"""
domain.models - Value objects and entities for conversation state.

These are plain data containers with no dependencies on infrastructure
(no LangChain, no Ollama, no filesystem). Timestamps are epoch
milliseconds; they are informational, append order is the only ordering
guarantee.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class Role(str, Enum):
    """Speaker of a conversation turn."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """A single transcript turn. Immutable once appended."""
    role: Role
    content: str
    timestamp: int = 0


@dataclass(frozen=True)
class ChatMessage:
    """A message as sent to the model backend (no timestamp)."""
    role: Role
    content: str


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling options forwarded to the backend with every request."""
    temperature: float = 0.7
    top_p: float = 0.9
    num_ctx: int = 32768


@dataclass(frozen=True)
class ModelInfo:
    """A model available on the local backend."""
    name: str
    size: int = 0


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_STATUS_MARKERS = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[>]",
    TaskStatus.COMPLETED: "[x]",
}


@dataclass
class Task:
    """A session-owned work item.

    Status changes go through transition(); the session manager is the
    only caller.
    """
    content: str
    id: str = field(default_factory=lambda: uuid4().hex[:8])
    status: TaskStatus = TaskStatus.PENDING
    created: int = field(default_factory=now_ms)

    def transition(self, status: TaskStatus) -> None:
        self.status = TaskStatus(status)

    @property
    def marker(self) -> str:
        return _STATUS_MARKERS[self.status]

    def render(self) -> str:
        return f"{self.marker} {self.content} (id: {self.id})"


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

@dataclass
class Transcript:
    """Durable conversation state for one project.

    Attributes:
        project_root:    Project identity (absolute path of the project root).
        model:           Active model name.
        messages:        Retained turns, in append order.
        summary:         Accumulated digest of compacted turns, or None.
        summary_cutoff:  Timestamp of the newest message folded into summary.
        superseded:      Compacted turns, kept for audit only.
        tasks:           Session task list.
    """
    project_root: str
    model: str
    id: str = field(default_factory=lambda: str(uuid4()))
    messages: list[Message] = field(default_factory=list)
    summary: Optional[str] = None
    summary_cutoff: int = 0
    superseded: list[Message] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    @classmethod
    def empty(cls, project_root: str, model: str) -> Transcript:
        return cls(project_root=project_root, model=model)

    @property
    def active_messages(self) -> list[Message]:
        """Messages not yet superseded by the summary."""
        if not self.summary:
            return list(self.messages)
        return [m for m in self.messages if m.timestamp > self.summary_cutoff]


@dataclass(frozen=True)
class SessionMetadata:
    """Listing entry for an archived transcript."""
    id: str
    project_root: str
    model: str
    message_count: int
    created: int
    updated: int


@dataclass(frozen=True)
class SessionInfo:
    """Display summary of the current transcript."""
    id: str
    message_count: int
    has_summary: bool
    task_count: int
    created: int
    updated: int


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolCall:
    """A parsed operation request. Transient: discarded after execution."""
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
