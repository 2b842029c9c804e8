"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the system needs without specifying HOW. Infrastructure
modules provide concrete implementations. Application services depend only
on these protocols, never on concrete classes.

Using typing.Protocol (structural typing) instead of ABC: any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol, Sequence, runtime_checkable

from spot.domain.models import (
    ChatMessage,
    GenerationOptions,
    Message,
    ModelInfo,
    SessionMetadata,
    Task,
    TaskStatus,
    Transcript,
)


# ---------------------------------------------------------------------------
# Model Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ModelGatewayPort(Protocol):
    """Chat access to the local model backend."""

    def stream(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> AsyncIterator[str]: ...

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> str: ...

    async def list_models(self) -> list[ModelInfo]: ...


@runtime_checkable
class SummarizerPort(Protocol):
    """Produce a digest of older conversation turns."""

    async def summarize(self, messages: Sequence[Message]) -> str: ...


# ---------------------------------------------------------------------------
# Persistence Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class TranscriptRepository(Protocol):
    """Durable storage keyed by project identity."""

    async def save(self, transcript: Transcript) -> None: ...

    async def load(self, project_root: str) -> Optional[Transcript]: ...

    async def archive(self, transcript: Transcript) -> str: ...

    async def list_archived(self, project_root: str) -> list[SessionMetadata]: ...

    async def load_archived(
        self, project_root: str, session_id: str,
    ) -> Optional[Transcript]: ...

    async def delete(self, project_root: str) -> None: ...


# ---------------------------------------------------------------------------
# Tool-facing session surface
# ---------------------------------------------------------------------------

@runtime_checkable
class TaskBoard(Protocol):
    """The slice of the session that tools are allowed to mutate."""

    @property
    def tasks(self) -> list[Task]: ...

    def add_task(self, content: str) -> Task: ...

    def update_task(self, task_id: str, status: TaskStatus) -> bool: ...

    def remove_task(self, task_id: str) -> bool: ...

    def clear_completed_tasks(self) -> int: ...
