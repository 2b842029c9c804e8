"""
application.services.session_manager - Owner of the live transcript.

Exactly one SessionManager exists per process and it is the only thing
that mutates the Transcript. Every mutation marks the session dirty and
(re)schedules a debounced background save, so a burst of changes costs
one write. save() cancels the pending timer and writes immediately.

Durability is best-effort: a crash inside the debounce window loses the
latest mutations, never the on-disk record, because the repository
replaces the whole file atomically.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence

from spot.domain.exceptions import PersistenceError
from spot.domain.models import (
    ChatMessage,
    Message,
    Role,
    SessionInfo,
    SessionMetadata,
    Task,
    TaskStatus,
    Transcript,
    now_ms,
)
from spot.domain.ports import TranscriptRepository

logger = logging.getLogger(__name__)

SUMMARY_SEPARATOR = "\n\n---\n\n"
SUMMARY_HEADING = "## Previous Conversation Summary"


class SessionManager:
    """Explicitly owned session with a create/load → mutate → save/archive lifecycle."""

    def __init__(
        self,
        project_root: str,
        model: str,
        repository: TranscriptRepository,
        autosave_delay: float = 2.0,
        on_save_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._repo = repository
        self._autosave_delay = autosave_delay
        self._on_save_error = on_save_error
        self._transcript = Transcript.empty(project_root, model)
        self._dirty = False
        self._save_task: Optional[asyncio.Task] = None
        self._save_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def id(self) -> str:
        return self._transcript.id

    @property
    def project_root(self) -> str:
        return self._transcript.project_root

    @property
    def model(self) -> str:
        return self._transcript.model

    @property
    def messages(self) -> list[Message]:
        return self._transcript.messages

    @property
    def summary(self) -> Optional[str]:
        return self._transcript.summary

    @property
    def tasks(self) -> list[Task]:
        return self._transcript.tasks

    @property
    def dirty(self) -> bool:
        return self._dirty

    def info(self) -> SessionInfo:
        t = self._transcript
        return SessionInfo(
            id=t.id[:8],
            message_count=len(t.messages),
            has_summary=bool(t.summary),
            task_count=len(t.tasks),
            created=t.created,
            updated=t.updated,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> bool:
        """Replace the empty transcript with the stored one, if any."""
        existing = await self._repo.load(self._transcript.project_root)
        if existing is None:
            return False
        self._transcript = existing
        self._dirty = False
        logger.info(
            "Resumed session %s (%d messages)", existing.id[:8], len(existing.messages),
        )
        return True

    async def save(self) -> None:
        """Write now, cancelling any pending autosave.

        Raises:
            PersistenceError: the record could not be written. The in-memory
                transcript is untouched and stays dirty.
        """
        self._cancel_pending_save()
        await self._write()

    async def archive(self) -> str:
        """Move the transcript to cold storage and start an empty one.

        The fresh transcript keeps only the model and project identity.
        If archiving fails nothing changes, in memory or on disk.

        Returns:
            Location of the archived record.
        """
        await self.save()
        location = await self._repo.archive(self._transcript)
        old = self._transcript
        self._transcript = Transcript.empty(old.project_root, old.model)
        self._dirty = False
        logger.info("Archived session %s to %s", old.id[:8], location)
        return location

    def clear(self) -> None:
        """Start over in memory; the next save overwrites the stored record."""
        old = self._transcript
        self._transcript = Transcript.empty(old.project_root, old.model)
        self._mark_dirty()

    async def list_archived(self) -> list[SessionMetadata]:
        return await self._repo.list_archived(self._transcript.project_root)

    async def load_archived(self, session_id: str) -> bool:
        """Make an archived transcript current. Accepts a unique id prefix."""
        archived = await self._repo.load_archived(self._transcript.project_root, session_id)
        if archived is None:
            return False
        self._transcript = archived
        self._mark_dirty()
        return True

    async def close(self) -> None:
        """Final synchronous save on shutdown (only if anything changed)."""
        if self._dirty:
            await self.save()
        else:
            self._cancel_pending_save()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_model(self, model: str) -> None:
        self._transcript.model = model
        self._mark_dirty()

    def add_message(self, role: Role, content: str) -> Message:
        """Append a turn.

        Timestamps are strictly increasing within a transcript (and strictly
        after summary_cutoff) so the cutoff comparison can never swallow a
        retained message that landed in the same millisecond.
        """
        t = self._transcript
        floor = t.summary_cutoff
        if t.messages:
            floor = max(floor, t.messages[-1].timestamp)
        message = Message(role=Role(role), content=content, timestamp=max(now_ms(), floor + 1))
        t.messages.append(message)
        t.updated = now_ms()
        self._mark_dirty()
        return message

    def apply_compaction(self, digest: str, compacted: Sequence[Message]) -> None:
        """Fold *compacted* (a prefix of messages) into the summary.

        Summaries accumulate: each digest covers a disjoint range, so the
        new one is appended after the previous ones.
        """
        if not compacted:
            return
        t = self._transcript
        count = len(compacted)
        if list(t.messages[:count]) != list(compacted):
            raise ValueError("Compacted messages must be a prefix of the transcript")

        t.summary = f"{t.summary}{SUMMARY_SEPARATOR}{digest}" if t.summary else digest
        t.summary_cutoff = max(t.summary_cutoff, compacted[-1].timestamp)
        t.superseded.extend(compacted)
        t.messages = t.messages[count:]
        t.updated = now_ms()
        self._mark_dirty()

    # Tasks (TaskBoard) ---------------------------------------------------

    def add_task(self, content: str) -> Task:
        task = Task(content=content)
        self._transcript.tasks.append(task)
        self._mark_dirty()
        return task

    def update_task(self, task_id: str, status: TaskStatus) -> bool:
        for task in self._transcript.tasks:
            if task.id == task_id:
                task.transition(status)
                self._mark_dirty()
                return True
        return False

    def remove_task(self, task_id: str) -> bool:
        tasks = self._transcript.tasks
        for index, task in enumerate(tasks):
            if task.id == task_id:
                del tasks[index]
                self._mark_dirty()
                return True
        return False

    def clear_completed_tasks(self) -> int:
        t = self._transcript
        before = len(t.tasks)
        t.tasks = [task for task in t.tasks if task.status != TaskStatus.COMPLETED]
        removed = before - len(t.tasks)
        if removed:
            self._mark_dirty()
        return removed

    # ------------------------------------------------------------------
    # Model context
    # ------------------------------------------------------------------

    def context_messages(self, system_prompt: str) -> list[ChatMessage]:
        """Messages for the next model request.

        The system prompt carries the accumulated summary; messages at or
        before summary_cutoff are left out.
        """
        t = self._transcript
        content = system_prompt
        if t.summary:
            content += f"\n\n{SUMMARY_HEADING}\n{t.summary}"
        context = [ChatMessage(role=Role.SYSTEM, content=content)]
        context.extend(ChatMessage(role=m.role, content=m.content) for m in t.active_messages)
        return context

    # ------------------------------------------------------------------
    # Debounced persistence
    # ------------------------------------------------------------------

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._cancel_pending_save()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (sync caller): wait for an explicit save().
            return
        self._save_task = loop.create_task(self._autosave())

    def _cancel_pending_save(self) -> None:
        task = self._save_task
        self._save_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def _autosave(self) -> None:
        await asyncio.sleep(self._autosave_delay)
        # Detach before writing so a new mutation schedules a fresh save
        # instead of cancelling this one mid-write.
        self._save_task = None
        if not self._dirty:
            return
        try:
            await self._write()
        except PersistenceError as exc:
            logger.warning("Autosave failed: %s", exc)
            if self._on_save_error:
                self._on_save_error(exc)

    async def _write(self) -> None:
        async with self._save_lock:
            self._dirty = False
            try:
                await self._repo.save(self._transcript)
            except PersistenceError:
                self._dirty = True
                raise
        logger.debug("Saved session %s", self._transcript.id[:8])


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
