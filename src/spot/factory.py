"""
factory - Composition root for the Spot coding agent.

ALL dependency wiring happens here. No other module constructs its own
dependencies. The CLI calls this factory to get a fully configured
session and conversation service.

Usage:
    from spot.factory import ServiceFactory
    from spot.infrastructure.config import Settings

    factory = ServiceFactory(Settings.from_env())
    await factory.initialize()          # detect project, resume session

    conversation = factory.create_conversation_service()
    result = await conversation.send("list the files here")
    await factory.shutdown()            # final save
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from spot.agent.executor import AgentExecutor
from spot.agent.prompt import build_system_prompt
from spot.agent.tools.bash import BashTool
from spot.agent.tools.files import EditFileTool, ReadFileTool, WriteFileTool
from spot.agent.tools.ls import LsTool
from spot.agent.tools.registry import ToolRegistry
from spot.agent.tools.search import GlobTool, GrepTool
from spot.agent.tools.todo import TodoTool
from spot.application.context import ToolContext
from spot.application.services.continuity import ContinuityEngine
from spot.application.services.conversation import ConversationService
from spot.application.services.session_manager import SessionManager
from spot.domain.ports import ModelGatewayPort, SummarizerPort, TranscriptRepository
from spot.infrastructure.config import Settings
from spot.infrastructure.llm.gateway import OllamaModelGateway
from spot.infrastructure.llm.summarizer import OllamaSummarizer
from spot.infrastructure.persistence.transcript_repo import JsonTranscriptRepository
from spot.infrastructure.project.detector import (
    ProjectContext,
    detect_project,
    format_project_context,
)

logger = logging.getLogger(__name__)


def create_tool_registry(settings: Settings) -> ToolRegistry:
    """Registry with every built-in capability."""
    registry = ToolRegistry(timeout=settings.tool_timeout)
    for tool in (
        ReadFileTool(),
        WriteFileTool(),
        EditFileTool(),
        LsTool(),
        GlobTool(),
        GrepTool(),
        BashTool(default_timeout_ms=settings.bash_timeout_ms),
        TodoTool(),
    ):
        registry.register(tool)
    return registry


class ServiceFactory:
    """Composition root - wires all dependencies together.

    Call initialize() once at startup, then create services as needed.
    Gateway and repository can be swapped for fakes in tests.
    """

    def __init__(
        self,
        config: Settings,
        *,
        cwd: Optional[Path] = None,
        gateway: Optional[ModelGatewayPort] = None,
        repository: Optional[TranscriptRepository] = None,
        summarizer: Optional[SummarizerPort] = None,
        on_save_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._config = config
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._gateway = gateway or OllamaModelGateway(config.ollama_base_url)
        self._repository = repository or JsonTranscriptRepository(config.sessions_dir)
        self._summarizer = summarizer
        self._on_save_error = on_save_error

        self._tools = create_tool_registry(config)
        self._project: Optional[ProjectContext] = None
        self._session: Optional[SessionManager] = None
        self._ctx: Optional[ToolContext] = None
        self._resumed = False

    async def initialize(self) -> None:
        """One-time startup: detect the project and resume its session."""
        logger.info("Initializing ServiceFactory in %s", self._cwd)
        self.reload_project()
        project_root = str(self._project.root if self._project else self._cwd)

        self._session = SessionManager(
            project_root=project_root,
            model=self._config.primary_model,
            repository=self._repository,
            autosave_delay=self._config.autosave_delay,
            on_save_error=self._on_save_error,
        )
        self._resumed = await self._session.load()
        self._ctx = ToolContext(cwd=str(self._cwd), session=self._session)
        logger.info("ServiceFactory ready (resumed=%s)", self._resumed)

    async def shutdown(self) -> None:
        """Final synchronous save."""
        if self._session is not None:
            await self._session.close()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def gateway(self) -> ModelGatewayPort:
        return self._gateway

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def project(self) -> Optional[ProjectContext]:
        return self._project

    @property
    def session(self) -> SessionManager:
        self._ensure_initialized()
        return self._session

    @property
    def resumed(self) -> bool:
        return self._resumed

    def reload_project(self) -> Optional[ProjectContext]:
        """Re-run project detection (SPOT.md edits, new git branch, ...)."""
        self._project = detect_project(self._cwd, self._config.instructions_file)
        return self._project

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_summarizer(self) -> SummarizerPort:
        if self._summarizer is None:
            self._summarizer = OllamaSummarizer(
                gateway=self._gateway,
                model=self._config.fast_model,
                options=self._config.summary_options,
                max_message_chars=self._config.summary_message_chars,
            )
        return self._summarizer

    def create_continuity_engine(self) -> ContinuityEngine:
        return ContinuityEngine(
            summarizer=self.create_summarizer(),
            threshold=self._config.context_threshold,
            keep_recent=self._config.keep_recent_messages,
            fallback_max_paths=self._config.fallback_max_paths,
        )

    def create_agent(self) -> AgentExecutor:
        return AgentExecutor(
            gateway=self._gateway,
            tools=self._tools,
            options=self._config.generation_options,
            max_rounds=self._config.max_tool_rounds,
        )

    def system_prompt(self) -> str:
        """System prompt for the next turn (project and tasks change over time)."""
        return build_system_prompt(
            self._tools,
            environment=format_project_context(self._project, self._cwd),
            tasks=self._session.tasks if self._session else (),
        )

    def create_conversation_service(self) -> ConversationService:
        """Create the turn service bound to the live session."""
        self._ensure_initialized()
        return ConversationService(
            agent=self.create_agent(),
            session=self._session,
            continuity=self.create_continuity_engine(),
            system_prompt=self.system_prompt,
            ctx=self._ctx,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if self._session is None:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
