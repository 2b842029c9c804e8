"""
infrastructure.persistence.transcript_repo - JSON file transcript repository.

One directory per project, named "<basename>-<sha256(root)[:12]>" so it is
both collision-resistant and recognisable on disk:

    <sessions_dir>/<project-dir>/current.json
    <sessions_dir>/<project-dir>/archive/<utc-timestamp>-<id8>.json

Every record is a complete, self-contained transcript written atomically
(temp file + os.replace), so a crash mid-write leaves the previous record
intact. Unreadable records load as None.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from spot.domain.exceptions import PersistenceError
from spot.domain.models import (
    Message,
    Role,
    SessionMetadata,
    Task,
    TaskStatus,
    Transcript,
)

logger = logging.getLogger(__name__)

CURRENT_FILE = "current.json"
ARCHIVE_DIR = "archive"


def project_key(project_root: str) -> str:
    """Directory name for a project: readable basename plus a path hash."""
    digest = hashlib.sha256(project_root.encode("utf-8")).hexdigest()[:12]
    name = os.path.basename(project_root.rstrip("/\\")) or "default"
    return f"{name}-{digest}"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "role": Role(message.role).value,
        "content": message.content,
        "timestamp": message.timestamp,
    }


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _message_from_dict(data: dict[str, Any]) -> Message:
    data = _require_mapping(data, "message")
    return Message(
        role=Role(data["role"]),
        content=str(data["content"]),
        timestamp=int(data.get("timestamp", 0)),
    )


def _task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "content": task.content,
        "status": TaskStatus(task.status).value,
        "created": task.created,
    }


def _task_from_dict(data: dict[str, Any]) -> Task:
    data = _require_mapping(data, "task")
    return Task(
        id=str(data["id"]),
        content=str(data["content"]),
        status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
        created=int(data.get("created", 0)),
    )


def transcript_to_dict(transcript: Transcript) -> dict[str, Any]:
    return {
        "id": transcript.id,
        "project_root": transcript.project_root,
        "model": transcript.model,
        "messages": [_message_to_dict(m) for m in transcript.messages],
        "summary": transcript.summary,
        "summary_cutoff": transcript.summary_cutoff,
        "superseded": [_message_to_dict(m) for m in transcript.superseded],
        "tasks": [_task_to_dict(t) for t in transcript.tasks],
        "created": transcript.created,
        "updated": transcript.updated,
    }


def transcript_from_dict(data: dict[str, Any]) -> Transcript:
    """Rebuild a Transcript; raises KeyError/TypeError/ValueError on bad shape."""
    data = _require_mapping(data, "record")
    summary = data.get("summary")
    return Transcript(
        id=str(data["id"]),
        project_root=str(data["project_root"]),
        model=str(data["model"]),
        messages=[_message_from_dict(m) for m in data.get("messages", [])],
        summary=str(summary) if summary is not None else None,
        summary_cutoff=int(data.get("summary_cutoff", 0)),
        superseded=[_message_from_dict(m) for m in data.get("superseded", [])],
        tasks=[_task_from_dict(t) for t in data.get("tasks", [])],
        created=int(data["created"]),
        updated=int(data["updated"]),
    )


# ---------------------------------------------------------------------------
# File helpers (blocking; run in the default executor)
# ---------------------------------------------------------------------------

def _atomic_write(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _read_record(path: Path) -> Optional[Transcript]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read session file %s: %s", path, exc)
        return None
    try:
        return transcript_from_dict(json.loads(raw.decode("utf-8")))
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("Ignoring corrupt session file %s: %s", path, exc)
        return None


def _archive_name(transcript: Transcript) -> str:
    stamp = datetime.now(timezone.utc).isoformat()
    stamp = stamp.replace(":", "-").replace(".", "-").replace("+", "_")
    return f"{stamp}-{transcript.id[:8]}.json"


class JsonTranscriptRepository:
    """TranscriptRepository storing one JSON file per record."""

    def __init__(self, sessions_dir: Path):
        self._root = Path(sessions_dir).expanduser()

    @property
    def sessions_dir(self) -> Path:
        return self._root

    def project_dir(self, project_root: str) -> Path:
        return self._root / project_key(project_root)

    def current_path(self, project_root: str) -> Path:
        return self.project_dir(project_root) / CURRENT_FILE

    def archive_dir(self, project_root: str) -> Path:
        return self.project_dir(project_root) / ARCHIVE_DIR

    # ------------------------------------------------------------------

    async def save(self, transcript: Transcript) -> None:
        """Overwrite the current record for the transcript's project.

        The snapshot is serialized before the first await, so mutations
        made while the write is in flight land in the next save.
        """
        payload = json.dumps(transcript_to_dict(transcript), indent=2, ensure_ascii=False)
        path = self.current_path(transcript.project_root)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _atomic_write, path, payload)
        except OSError as exc:
            raise PersistenceError(f"Could not save session to {path}: {exc}") from exc

    async def load(self, project_root: str) -> Optional[Transcript]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_record, self.current_path(project_root))

    async def archive(self, transcript: Transcript) -> str:
        """Snapshot to the archive, then remove the current record.

        If the current record cannot be removed the snapshot is deleted
        again, so the caller sees either both steps or neither.

        Returns:
            Path of the archived file.
        """
        payload = json.dumps(transcript_to_dict(transcript), indent=2, ensure_ascii=False)
        target = self.archive_dir(transcript.project_root) / _archive_name(transcript)
        current = self.current_path(transcript.project_root)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _atomic_write, target, payload)
        except OSError as exc:
            raise PersistenceError(f"Could not write archive {target}: {exc}") from exc

        try:
            await loop.run_in_executor(None, current.unlink, True)
        except OSError as exc:
            await loop.run_in_executor(None, target.unlink, True)
            raise PersistenceError(
                f"Could not clear current session {current}: {exc}"
            ) from exc
        logger.info("Archived session %s to %s", transcript.id[:8], target)
        return str(target)

    async def list_archived(self, project_root: str) -> list[SessionMetadata]:
        """Archived sessions for a project, most recently updated first."""
        loop = asyncio.get_running_loop()
        records = await loop.run_in_executor(None, self._read_archive, project_root)
        entries = [
            SessionMetadata(
                id=t.id,
                project_root=t.project_root,
                model=t.model,
                message_count=len(t.messages),
                created=t.created,
                updated=t.updated,
            )
            for t in records
        ]
        entries.sort(key=lambda e: e.updated, reverse=True)
        return entries

    async def load_archived(
        self, project_root: str, session_id: str,
    ) -> Optional[Transcript]:
        """Load an archived session by full id or unambiguous id prefix."""
        if not session_id:
            return None
        loop = asyncio.get_running_loop()
        records = await loop.run_in_executor(None, self._read_archive, project_root)
        for record in records:
            if record.id == session_id:
                return record
        matches = [r for r in records if r.id.startswith(session_id)]
        if len(matches) > 1:
            logger.info("Session prefix '%s' is ambiguous (%d matches)", session_id, len(matches))
            return None
        return matches[0] if matches else None

    async def delete(self, project_root: str) -> None:
        loop = asyncio.get_running_loop()
        path = self.current_path(project_root)
        try:
            await loop.run_in_executor(None, path.unlink, True)
        except OSError as exc:
            raise PersistenceError(f"Could not delete {path}: {exc}") from exc

    def _read_archive(self, project_root: str) -> list[Transcript]:
        directory = self.archive_dir(project_root)
        if not directory.is_dir():
            return []
        records = []
        for path in sorted(directory.glob("*.json")):
            record = _read_record(path)
            if record is not None:
                records.append(record)
        return records
