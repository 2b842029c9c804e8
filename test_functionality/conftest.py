"""
Shared fixtures: scripted model gateway, in-memory repository, factories.

Nothing here talks to Ollama.
"""

from __future__ import annotations

import copy
from typing import AsyncIterator, Optional, Sequence

import pytest

from spot.agent.tools.registry import ToolRegistry
from spot.application.services.session_manager import SessionManager
from spot.domain.exceptions import ModelGatewayError, PersistenceError
from spot.domain.models import (
    ChatMessage,
    GenerationOptions,
    ModelInfo,
    SessionMetadata,
    Transcript,
)
from spot.factory import create_tool_registry
from spot.infrastructure.config import Settings
from spot.infrastructure.persistence.transcript_repo import JsonTranscriptRepository


class ScriptedGateway:
    """ModelGatewayPort that replays canned responses, one per request."""

    def __init__(self, responses: Sequence[str] = (), chunk_size: int = 7):
        self.responses = list(responses)
        self.requests: list[list[ChatMessage]] = []
        self.chunk_size = chunk_size
        self.models = [ModelInfo(name="qwen2.5-coder:32b-instruct", size=19_000_000_000)]

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        self.requests.append(list(messages))
        if not self.responses:
            raise ModelGatewayError("no scripted response left")
        text = self.responses.pop(0)
        for i in range(0, len(text), self.chunk_size):
            yield text[i:i + self.chunk_size]

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> str:
        parts = [chunk async for chunk in self.stream(messages, model, options)]
        return "".join(parts)

    async def list_models(self) -> list[ModelInfo]:
        return list(self.models)


class MemoryRepository:
    """TranscriptRepository keeping deep copies in dicts."""

    def __init__(self):
        self.current: dict[str, Transcript] = {}
        self.archived: dict[str, list[Transcript]] = {}
        self.saves = 0
        self.fail_saves = False

    async def save(self, transcript: Transcript) -> None:
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.saves += 1
        self.current[transcript.project_root] = copy.deepcopy(transcript)

    async def load(self, project_root: str) -> Optional[Transcript]:
        stored = self.current.get(project_root)
        return copy.deepcopy(stored) if stored else None

    async def archive(self, transcript: Transcript) -> str:
        self.archived.setdefault(transcript.project_root, []).append(copy.deepcopy(transcript))
        self.current.pop(transcript.project_root, None)
        return f"memory://{transcript.id}"

    async def list_archived(self, project_root: str) -> list[SessionMetadata]:
        return [
            SessionMetadata(
                id=t.id, project_root=t.project_root, model=t.model,
                message_count=len(t.messages), created=t.created, updated=t.updated,
            )
            for t in self.archived.get(project_root, [])
        ]

    async def load_archived(self, project_root: str, session_id: str) -> Optional[Transcript]:
        for t in self.archived.get(project_root, []):
            if t.id.startswith(session_id):
                return copy.deepcopy(t)
        return None

    async def delete(self, project_root: str) -> None:
        self.current.pop(project_root, None)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(sessions_dir=tmp_path / "sessions", autosave_delay=0.05)


@pytest.fixture
def registry(settings) -> ToolRegistry:
    return create_tool_registry(settings)


@pytest.fixture
def memory_repo() -> MemoryRepository:
    return MemoryRepository()


@pytest.fixture
def json_repo(tmp_path) -> JsonTranscriptRepository:
    return JsonTranscriptRepository(tmp_path / "sessions")


@pytest.fixture
def session(memory_repo, tmp_path) -> SessionManager:
    return SessionManager(
        project_root=str(tmp_path / "project"),
        model="test-model",
        repository=memory_repo,
        autosave_delay=0.05,
    )
