"""
JSON transcript repository: layout, round-trip, archive, corrupt records.
"""

import json
import os

import pytest

from spot.domain.exceptions import PersistenceError
from spot.domain.models import Message, Role, Task, TaskStatus, Transcript
from spot.infrastructure.persistence.transcript_repo import (
    JsonTranscriptRepository,
    project_key,
)


def make_transcript(root: str, **overrides) -> Transcript:
    transcript = Transcript(
        project_root=root,
        model="qwen2.5-coder:32b-instruct",
        messages=[
            Message(Role.USER, "read main.py", 1_700_000_000_001),
            Message(Role.ASSISTANT, '{"name": "read_file", "arguments": {"path": "main.py"}}', 1_700_000_000_002),
            Message(Role.USER, "Tool result for read_file:\nprint('ü')", 1_700_000_000_003),
            Message(Role.ASSISTANT, "It prints ü.", 1_700_000_000_004),
        ],
        summary="Earlier: set up the project.",
        summary_cutoff=1_700_000_000_000,
        superseded=[Message(Role.USER, "init", 1_699_999_999_999)],
        tasks=[
            Task(content="write docs", id="a1b2c3d4", status=TaskStatus.IN_PROGRESS, created=1),
            Task(content="fix bug", id="e5f6a7b8", created=2),
        ],
    )
    for key, value in overrides.items():
        setattr(transcript, key, value)
    return transcript


def test_project_key_is_readable_and_hashed():
    key = project_key("/home/me/code/spot")
    name, digest = key.rsplit("-", 1)
    assert name == "spot"
    assert len(digest) == 12
    assert project_key("/home/me/code/spot") == key
    assert project_key("/home/you/code/spot") != key
    assert project_key("/").startswith("default-")


@pytest.mark.asyncio
async def test_save_then_load_round_trips(json_repo, tmp_path):
    root = str(tmp_path / "project")
    original = make_transcript(root)

    await json_repo.save(original)
    loaded = await json_repo.load(root)

    assert loaded == original


@pytest.mark.asyncio
async def test_saved_file_layout_and_keys(json_repo, tmp_path):
    root = str(tmp_path / "project")
    await json_repo.save(make_transcript(root))

    path = json_repo.current_path(root)
    assert path.parent.name == project_key(root)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert set(data) == {
        "id", "project_root", "model", "messages", "summary", "summary_cutoff",
        "superseded", "tasks", "created", "updated",
    }
    assert data["tasks"][0] == {
        "id": "a1b2c3d4", "content": "write docs", "status": "in_progress", "created": 1,
    }
    # No temp files left behind.
    assert [p.name for p in path.parent.iterdir() if p.is_file()] == ["current.json"]


@pytest.mark.asyncio
async def test_save_overwrites_wholesale(json_repo, tmp_path):
    root = str(tmp_path)
    await json_repo.save(make_transcript(root))
    shorter = make_transcript(root, messages=[], tasks=[], summary=None)
    await json_repo.save(shorter)
    assert await json_repo.load(root) == shorter


@pytest.mark.asyncio
async def test_missing_record_loads_as_none(json_repo, tmp_path):
    assert await json_repo.load(str(tmp_path / "nowhere")) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    b"{not json",
    b'{"id": "x"}',
    b"[]",
    b"null",
    b'"x"',
    b"",
    b"\xff\xfe garbage",
    b'{"id": "x", "project_root": "/p", "model": "m", "created": 1, "updated": 1, "messages": [3]}',
])
async def test_corrupt_record_loads_as_none(json_repo, tmp_path, payload):
    root = str(tmp_path)
    path = json_repo.current_path(root)
    path.parent.mkdir(parents=True)
    path.write_bytes(payload)
    assert await json_repo.load(root) is None


@pytest.mark.asyncio
async def test_archive_moves_record(json_repo, tmp_path):
    root = str(tmp_path)
    transcript = make_transcript(root)
    await json_repo.save(transcript)

    location = await json_repo.archive(transcript)

    assert os.path.exists(location)
    assert not json_repo.current_path(root).exists()
    assert await json_repo.load(root) is None
    archived = await json_repo.list_archived(root)
    assert [a.id for a in archived] == [transcript.id]
    assert archived[0].message_count == 4
    assert await json_repo.load_archived(root, transcript.id) == transcript


@pytest.mark.asyncio
async def test_archive_rolls_back_when_current_cannot_be_cleared(json_repo, tmp_path, monkeypatch):
    root = str(tmp_path)
    transcript = make_transcript(root)
    await json_repo.save(transcript)

    from pathlib import Path
    real_unlink = Path.unlink
    current = json_repo.current_path(root)

    def flaky_unlink(self, missing_ok=False):
        if self == current:
            raise PermissionError("read-only")
        return real_unlink(self, missing_ok)

    monkeypatch.setattr(Path, "unlink", flaky_unlink)

    with pytest.raises(PersistenceError):
        await json_repo.archive(transcript)

    monkeypatch.undo()
    assert await json_repo.load(root) == transcript
    assert await json_repo.list_archived(root) == []


@pytest.mark.asyncio
async def test_list_archived_newest_first_and_skips_garbage(json_repo, tmp_path):
    root = str(tmp_path)
    older = make_transcript(root, updated=1000)
    newer = make_transcript(root, updated=2000)
    await json_repo.archive(older)
    await json_repo.archive(newer)
    archive_dir = json_repo.archive_dir(root)
    (archive_dir / "broken.json").write_text("{", encoding="utf-8")
    (archive_dir / "null.json").write_bytes(b"null")
    (archive_dir / "list.json").write_bytes(b"[]")
    (archive_dir / "binary.json").write_bytes(b"\xff\xfe garbage")

    archived = await json_repo.list_archived(root)

    assert [a.id for a in archived] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_load_archived_prefix_rules(json_repo, tmp_path):
    root = str(tmp_path)
    first = make_transcript(root, id="abc11111-0000")
    second = make_transcript(root, id="abc22222-0000")
    await json_repo.archive(first)
    await json_repo.archive(second)

    assert (await json_repo.load_archived(root, "abc1")).id == first.id
    assert await json_repo.load_archived(root, "abc") is None
    assert await json_repo.load_archived(root, "zzz") is None
    assert (await json_repo.load_archived(root, "abc22222-0000")).id == second.id


@pytest.mark.asyncio
async def test_delete_current(json_repo, tmp_path):
    root = str(tmp_path)
    await json_repo.save(make_transcript(root))
    await json_repo.delete(root)
    assert await json_repo.load(root) is None
    await json_repo.delete(root)
