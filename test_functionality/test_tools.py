"""
Built-in capabilities and the registry boundary.
"""

import asyncio
import shutil
import threading
from pathlib import Path

import pytest

from spot.application.context import ToolContext
from spot.application.services.session_manager import SessionManager
from spot.domain.models import TaskStatus


@pytest.fixture
def ctx(tmp_path, session) -> ToolContext:
    return ToolContext(cwd=str(tmp_path), session=session)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_builtin_tools_registered(registry):
    assert registry.names() == [
        "read_file", "write_file", "edit_file", "ls", "glob", "grep", "bash", "todo",
    ]


def test_duplicate_registration_rejected(registry):
    from spot.agent.tools.todo import TodoTool
    with pytest.raises(ValueError):
        registry.register(TodoTool())


def test_describe_lists_parameters_and_options(registry):
    text = registry.describe()
    assert "todo: Manage a task list" in text
    assert "(options: list, add, start, complete, remove, clear_completed)" in text
    assert "  - path: The path to the file to read" in text


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_as_text(registry, ctx):
    result = await registry.invoke("teleport", {}, ctx)
    assert result == "Unknown tool: teleport"


@pytest.mark.asyncio
async def test_invalid_arguments_are_reported_as_text(registry, ctx):
    result = await registry.invoke("read_file", {"offset": 3}, ctx)
    assert result.startswith("Error: invalid arguments for read_file")
    assert "path" in result


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_write_then_read(registry, ctx, tmp_path):
    result = await registry.invoke(
        "write_file", {"path": "pkg/hello.py", "content": "print('hi')\nprint('bye')"}, ctx,
    )
    assert result.startswith("Successfully wrote 2 lines to")
    assert (tmp_path / "pkg" / "hello.py").exists()

    result = await registry.invoke("read_file", {"path": "pkg/hello.py"}, ctx)
    assert result.startswith(f"File: {tmp_path / 'pkg' / 'hello.py'}")
    assert "     1│ print('hi')" in result
    assert "     2│ print('bye')" in result


@pytest.mark.asyncio
async def test_read_with_offset_and_limit(registry, ctx, tmp_path):
    (tmp_path / "n.txt").write_text("\n".join(f"line{i}" for i in range(1, 11)))
    result = await registry.invoke("read_file", {"path": "n.txt", "offset": 4, "limit": 2}, ctx)
    assert "     4│ line4" in result
    assert "     5│ line5" in result
    assert "line6" not in result


@pytest.mark.asyncio
async def test_read_missing_file(registry, ctx):
    result = await registry.invoke("read_file", {"path": "nope.txt"}, ctx)
    assert result == "Error: File not found: nope.txt"


@pytest.mark.asyncio
async def test_edit_replaces_unique_match(registry, ctx, tmp_path):
    target = tmp_path / "app.py"
    target.write_text("x = 1\ny = 2\n")
    result = await registry.invoke(
        "edit_file", {"path": "app.py", "old_string": "y = 2", "new_string": "y = 3"}, ctx,
    )
    assert result == "Replaced text in app.py"
    assert target.read_text() == "x = 1\ny = 3\n"


@pytest.mark.asyncio
async def test_edit_ambiguous_match_needs_replace_all(registry, ctx, tmp_path):
    target = tmp_path / "dup.txt"
    target.write_text("a a a")
    result = await registry.invoke(
        "edit_file", {"path": "dup.txt", "old_string": "a", "new_string": "b"}, ctx,
    )
    assert result.startswith("Error: Found 3 occurrences")
    assert target.read_text() == "a a a"

    result = await registry.invoke(
        "edit_file",
        {"path": "dup.txt", "old_string": "a", "new_string": "b", "replace_all": True},
        ctx,
    )
    assert result == "Replaced 3 occurrences in dup.txt"
    assert target.read_text() == "b b b"


@pytest.mark.asyncio
async def test_file_io_runs_off_the_event_loop(registry, ctx, tmp_path, monkeypatch):
    (tmp_path / "f.txt").write_text("hello")
    on_loop_thread = []
    original = Path.read_text

    def tracking_read_text(self, *args, **kwargs):
        on_loop_thread.append(threading.current_thread() is threading.main_thread())
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", tracking_read_text)
    await registry.invoke("read_file", {"path": "f.txt"}, ctx)
    await registry.invoke(
        "edit_file", {"path": "f.txt", "old_string": "hello", "new_string": "bye"}, ctx,
    )

    assert on_loop_thread == [False, False]


@pytest.mark.asyncio
async def test_edit_missing_string(registry, ctx, tmp_path):
    (tmp_path / "f.txt").write_text("hello")
    result = await registry.invoke(
        "edit_file", {"path": "f.txt", "old_string": "bye", "new_string": "x"}, ctx,
    )
    assert result.startswith("Error: String not found in file.")


# ---------------------------------------------------------------------------
# Shell and search
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_bash_runs_in_working_directory(registry, ctx, tmp_path):
    result = await registry.invoke("bash", {"command": "pwd"}, ctx)
    assert result.startswith("stdout:\n")
    assert tmp_path.name in result


@pytest.mark.asyncio
async def test_bash_reports_exit_code_and_stderr(registry, ctx):
    result = await registry.invoke("bash", {"command": "echo oops >&2; exit 3"}, ctx)
    assert "stderr:\noops" in result
    assert result.endswith("(Exit code: 3)")


@pytest.mark.asyncio
async def test_bash_timeout_is_a_result(registry, ctx):
    result = await registry.invoke("bash", {"command": "sleep 5", "timeout": 200}, ctx)
    assert "(Command timed out after 200ms)" in result


@pytest.mark.asyncio
async def test_registry_deadline_kills_the_shell(ctx, tmp_path):
    from spot.agent.tools.bash import BashTool
    from spot.agent.tools.registry import ToolRegistry

    registry = ToolRegistry(timeout=0.5)
    registry.register(BashTool())
    marker = tmp_path / "marker"

    result = await registry.invoke(
        "bash", {"command": f"sleep 1; touch {marker}", "timeout": 10_000}, ctx,
    )
    await asyncio.sleep(1.5)

    assert result == "Error: bash timed out after 0.5s"
    assert not marker.exists()


@pytest.mark.asyncio
async def test_bash_no_output(registry, ctx):
    assert await registry.invoke("bash", {"command": "true"}, ctx) == "(No output)"


@pytest.mark.asyncio
async def test_glob_skips_hidden(registry, ctx, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("")
    (tmp_path / "src" / "b.py").write_text("")
    (tmp_path / ".venv").mkdir()
    (tmp_path / ".venv" / "c.py").write_text("")

    result = await registry.invoke("glob", {"pattern": "**/*.py"}, ctx)
    assert result.splitlines()[0] == "Found 2 file(s):"
    assert "src/a.py" in result
    assert ".venv" not in result


@pytest.mark.asyncio
async def test_glob_reports_total_when_truncated(registry, ctx, tmp_path):
    for i in range(105):
        (tmp_path / f"m{i:03d}.txt").write_text("")

    result = await registry.invoke("glob", {"pattern": "*.txt"}, ctx)

    lines = result.splitlines()
    assert lines[0] == "Found 105 file(s), showing the first 100:"
    assert len(lines) == 101
    assert lines[-1] == "m099.txt"


@pytest.mark.asyncio
async def test_glob_no_match(registry, ctx):
    result = await registry.invoke("glob", {"pattern": "*.rs"}, ctx)
    assert result == "No files found matching pattern: *.rs"


@pytest.mark.skipif(
    shutil.which("rg") is None and shutil.which("grep") is None,
    reason="needs ripgrep or grep",
)
@pytest.mark.asyncio
async def test_grep_finds_matches(registry, ctx, tmp_path):
    (tmp_path / "notes.txt").write_text("alpha\nTODO: fix me\nomega\n")
    result = await registry.invoke("grep", {"pattern": "TODO"}, ctx)
    assert "TODO: fix me" in result


@pytest.mark.asyncio
async def test_ls_lists_directory(registry, ctx, tmp_path):
    (tmp_path / "visible.txt").write_text("x")
    result = await registry.invoke("ls", {}, ctx)
    assert "visible.txt" in result


# ---------------------------------------------------------------------------
# Todo
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_todo_add_creates_pending_task(registry, ctx, session: SessionManager):
    result = await registry.invoke("todo", {"action": "add", "content": "fix bug"}, ctx)

    assert len(session.tasks) == 1
    task = session.tasks[0]
    assert task.status == TaskStatus.PENDING
    assert task.content == "fix bug"
    assert task.id in result


@pytest.mark.asyncio
async def test_todo_lifecycle(registry, ctx, session: SessionManager):
    await registry.invoke("todo", {"action": "add", "content": "write tests"}, ctx)
    task_id = session.tasks[0].id

    assert await registry.invoke("todo", {"action": "start", "id": task_id}, ctx) == (
        f"Task {task_id} marked as in progress"
    )
    listing = await registry.invoke("todo", {"action": "list"}, ctx)
    assert f"[>] write tests (id: {task_id})" in listing

    await registry.invoke("todo", {"action": "complete", "id": task_id}, ctx)
    assert session.tasks[0].status == TaskStatus.COMPLETED

    result = await registry.invoke("todo", {"action": "clear_completed"}, ctx)
    assert result == "Cleared 1 completed task(s)"
    assert session.tasks == []


@pytest.mark.asyncio
async def test_todo_unknown_id(registry, ctx):
    result = await registry.invoke("todo", {"action": "remove", "id": "deadbeef"}, ctx)
    assert result == "Error: Task deadbeef not found"


@pytest.mark.asyncio
async def test_todo_without_session(registry, tmp_path):
    result = await registry.invoke("todo", {"action": "list"}, ToolContext(cwd=str(tmp_path)))
    assert result == "Error: Todo tool requires session context"


@pytest.mark.asyncio
async def test_todo_rejects_unknown_action(registry, ctx):
    result = await registry.invoke("todo", {"action": "explode"}, ctx)
    assert result.startswith("Error: invalid arguments for todo")
