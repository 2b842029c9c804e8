"""
Project root discovery and system-prompt environment rendering.
"""

import json

from spot.infrastructure.project.detector import (
    detect_project,
    find_project_root,
    format_project_context,
)


def test_walks_up_to_marker(tmp_path):
    (tmp_path / "pyproject.toml").write_text("[project]\nname='x'\n")
    nested = tmp_path / "src" / "pkg"
    nested.mkdir(parents=True)
    assert find_project_root(nested) == tmp_path.resolve()


def test_no_marker_means_no_project(tmp_path, monkeypatch):
    lonely = tmp_path / "empty"
    lonely.mkdir()
    monkeypatch.setattr(
        "spot.infrastructure.project.detector.PROJECT_MARKERS", ("NO_SUCH_MARKER_FILE",),
    )
    assert detect_project(lonely) is None
    assert format_project_context(None, lonely) == f"## Environment\nWorking directory: {lonely}"


def test_instructions_name_and_stack(tmp_path):
    (tmp_path / "SPOT.md").write_text("# Rocket Shop\n\nUse tabs.\n")
    (tmp_path / "package.json").write_text(json.dumps({
        "dependencies": {"react": "^18", "express": "^4"},
        "devDependencies": {"typescript": "^5"},
    }))
    (tmp_path / "requirements.txt").write_text("requests\n")

    project = detect_project(tmp_path)

    assert project is not None
    assert project.name == "Rocket Shop"
    assert project.instructions.startswith("# Rocket Shop")
    assert project.tech_stack == ["Node.js", "TypeScript", "React", "Express", "Python"]
    assert project.is_git_repo is False


def test_yaml_name_and_basename_fallbacks(tmp_path):
    named = tmp_path / "named"
    named.mkdir()
    (named / "SPOT.md").write_text("name: yaml-project\nnotes: none\n")
    assert detect_project(named).name == "yaml-project"

    plain = tmp_path / "plain-dir"
    plain.mkdir()
    (plain / "go.mod").write_text("module x\n")
    project = detect_project(plain)
    assert project.name == "plain-dir"
    assert project.tech_stack == ["Go"]


def test_format_project_context(tmp_path):
    (tmp_path / "SPOT.md").write_text("# Demo\nAlways run tests.")
    (tmp_path / "Cargo.toml").write_text("[package]\n")
    project = detect_project(tmp_path)

    text = format_project_context(project, tmp_path)

    assert text.startswith("## Project Instructions (from SPOT.md)\n# Demo\nAlways run tests.")
    assert "## Environment" in text
    assert f"Working directory: {tmp_path}" in text
    assert f"Project root: {project.root}" in text
    assert "Project name: Demo" in text
    assert "Tech stack: Rust" in text
    assert "Git repo" not in text
