"""
infrastructure.project.detector - Working-directory project detection.

Walks up from the working directory to the nearest directory holding a
project marker, then gathers what the system prompt needs: SPOT.md
instructions, git branch, a coarse tech-stack guess, and a display name.
The project root doubles as the session identity.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

INSTRUCTIONS_FILE = "SPOT.md"

# Checked in order; the instructions file wins over VCS and manifests.
PROJECT_MARKERS = (
    INSTRUCTIONS_FILE,
    ".git",
    "package.json",
    "Cargo.toml",
    "go.mod",
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "Makefile",
    "CMakeLists.txt",
    "pom.xml",
    "build.gradle",
    "Gemfile",
    "composer.json",
    "mix.exs",
    "deno.json",
)

_JS_FRAMEWORKS = (
    ("react", "React"),
    ("vue", "Vue"),
    ("svelte", "Svelte"),
    ("express", "Express"),
    ("next", "Next.js"),
)

_HEADING = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_YAML_NAME = re.compile(r"^name:\s*(.+)$", re.MULTILINE)


@dataclass
class ProjectContext:
    root: Path
    name: str
    instructions: Optional[str] = None
    is_git_repo: bool = False
    git_branch: Optional[str] = None
    tech_stack: list[str] = field(default_factory=list)


def find_project_root(start: Path) -> Optional[Path]:
    """Nearest ancestor of *start* (inclusive) containing a project marker."""
    current = start.resolve()
    for directory in (current, *current.parents):
        for marker in PROJECT_MARKERS:
            if (directory / marker).exists():
                return directory
    return None


def _git_branch(root: Path) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "-C", str(root), "branch", "--show-current"],
            capture_output=True, text=True, timeout=5, check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git branch lookup failed: %s", exc)
        return None
    branch = result.stdout.strip()
    return branch if result.returncode == 0 and branch else None


def _detect_tech_stack(root: Path) -> list[str]:
    stack: list[str] = []

    package_json = root / "package.json"
    if package_json.is_file():
        runtime = "Bun" if (root / "bun.lockb").exists() or (root / "bun.lock").exists() else "Node.js"
        stack.append(runtime)
        try:
            manifest = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Unreadable package.json: %s", exc)
            manifest = {}
        deps = {
            **(manifest.get("dependencies") or {}),
            **(manifest.get("devDependencies") or {}),
        }
        stack.append("TypeScript" if "typescript" in deps or (root / "tsconfig.json").exists() else "JavaScript")
        stack.extend(label for dep, label in _JS_FRAMEWORKS if dep in deps)

    if (root / "Cargo.toml").is_file():
        stack.append("Rust")
    if (root / "go.mod").is_file():
        stack.append("Go")
    if any((root / name).is_file() for name in ("pyproject.toml", "setup.py", "requirements.txt")):
        stack.append("Python")
    return stack


def _project_name(root: Path, instructions: Optional[str]) -> str:
    if instructions:
        heading = _HEADING.search(instructions)
        if heading:
            return heading.group(1).strip()
        yaml_name = _YAML_NAME.search(instructions)
        if yaml_name:
            return yaml_name.group(1).strip().strip("'\"")
    return root.name


def detect_project(
    cwd: Optional[Path] = None,
    instructions_file: str = INSTRUCTIONS_FILE,
) -> Optional[ProjectContext]:
    """Detect the project containing *cwd*, or None outside any project."""
    start = Path(cwd) if cwd is not None else Path.cwd()
    root = find_project_root(start)
    if root is None:
        logger.debug("No project marker found above %s", start)
        return None

    instructions = None
    instructions_path = root / instructions_file
    if instructions_path.is_file():
        try:
            instructions = instructions_path.read_text(encoding="utf-8").strip() or None
        except OSError as exc:
            logger.warning("Could not read %s: %s", instructions_path, exc)

    is_git = (root / ".git").exists()
    context = ProjectContext(
        root=root,
        name=_project_name(root, instructions),
        instructions=instructions,
        is_git_repo=is_git,
        git_branch=_git_branch(root) if is_git else None,
        tech_stack=_detect_tech_stack(root),
    )
    logger.info("Detected project %s at %s", context.name, root)
    return context


def format_project_context(project: Optional[ProjectContext], cwd: Optional[Path] = None) -> str:
    """Render project details as system-prompt sections."""
    working_dir = Path(cwd) if cwd is not None else Path.cwd()
    if project is None:
        return f"## Environment\nWorking directory: {working_dir}"

    sections = []
    if project.instructions:
        sections.append(f"## Project Instructions (from {INSTRUCTIONS_FILE})\n{project.instructions}")

    env = [
        "## Environment",
        f"Working directory: {working_dir}",
        f"Project root: {project.root}",
        f"Project name: {project.name}",
    ]
    if project.is_git_repo:
        branch = f" (branch: {project.git_branch})" if project.git_branch else ""
        env.append(f"Git repo: yes{branch}")
    if project.tech_stack:
        env.append(f"Tech stack: {', '.join(project.tech_stack)}")
    sections.append("\n".join(env))
    return "\n\n".join(sections)
