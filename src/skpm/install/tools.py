"""
Agent tool integration links.

Each supported tool has a marker directory in the project root. When no
explicit target list is given, every tool whose marker exists receives links
to the exposed skill alias (``.agents/skills/<name>``):

    claude    .claude/agents/<name>       -> alias
    codex     .codex/<name>               -> alias
    cursor    .cursor/rules/<name>/*.mdc  -> each markdown file of the skill
    windsurf  .windsurf/rules/<name>      -> alias
    gemini    .gemini/rules/<name>        -> alias
    copilot   .github/<name>              -> alias
"""

import os
import shutil
from pathlib import Path

import structlog

from ..errors import SymlinkError, UnknownToolTargetError

logger = structlog.get_logger()

TOOL_MARKERS: dict[str, str] = {
    "claude": ".claude",
    "codex": ".codex",
    "cursor": ".cursor",
    "windsurf": ".windsurf",
    "gemini": ".gemini",
    "copilot": ".github",
}

# Directory (relative to the project) that receives the per-skill link
TOOL_LINK_DIRS: dict[str, Path] = {
    "claude": Path(".claude") / "agents",
    "codex": Path(".codex"),
    "cursor": Path(".cursor") / "rules",
    "windsurf": Path(".windsurf") / "rules",
    "gemini": Path(".gemini") / "rules",
    "copilot": Path(".github"),
}

# Tools that get one link per markdown file instead of one directory link
_PER_FILE_TOOLS = {"cursor"}


def remove_path(target: Path) -> None:
    """Remove a file, symlink or directory tree if present."""
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)


def ensure_symlink(target: Path, link_path: Path) -> None:
    """Create or replace link_path so it points at target."""
    link_path.parent.mkdir(parents=True, exist_ok=True)
    remove_path(link_path)
    try:
        os.symlink(target, link_path, target_is_directory=target.is_dir())
    except PermissionError as e:
        raise SymlinkError(
            f"Failed to create symlink at {link_path}. On Windows, enable "
            "Developer Mode or run with admin privileges."
        ) from e


def parse_tool_targets(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Split comma-separated targets, trim, lowercase and de-duplicate in order."""
    if not value:
        return []
    values = [value] if isinstance(value, str) else list(value)
    targets = [t.strip().lower() for entry in values for t in entry.split(",")]
    return list(dict.fromkeys(t for t in targets if t))


def validate_tool_targets(targets: list[str]) -> None:
    for target in targets:
        if target not in TOOL_MARKERS:
            raise UnknownToolTargetError(target)


def detect_tools(project_root: Path) -> list[str]:
    """Tools whose marker directory exists in the project root."""
    return [tool for tool, marker in TOOL_MARKERS.items() if (Path(project_root) / marker).exists()]


def _markdown_files(root: Path) -> list[Path]:
    files: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in sorted(filenames):
            if filename.endswith(".md"):
                files.append(Path(dirpath) / filename)
    return sorted(files)


def link_tool_targets(
    project_root: Path,
    skill_name: str,
    skill_path: Path,
    agent_targets: list[str] | None = None,
) -> list[str]:
    """Create integration links for one exposed skill.

    Args:
        project_root: Project directory.
        skill_name: Bare skill name.
        skill_path: Exposed alias of the skill (``.agents/skills/<name>``).
        agent_targets: Explicit tools; auto-detected from markers when empty.

    Returns:
        Tools that received links.
    """
    project_root = Path(project_root)
    targets = parse_tool_targets(agent_targets)
    validate_tool_targets(targets)
    tools = targets or detect_tools(project_root)

    for tool in tools:
        link_root = project_root / TOOL_LINK_DIRS[tool] / skill_name
        if tool in _PER_FILE_TOOLS:
            remove_path(link_root)
            link_root.mkdir(parents=True, exist_ok=True)
            for file_path in _markdown_files(skill_path):
                relative = file_path.relative_to(skill_path)
                ensure_symlink(file_path, link_root / relative.with_suffix(".mdc"))
        else:
            ensure_symlink(skill_path, link_root)

    if tools:
        logger.debug("tools.linked", skill=skill_name, tools=tools)
    return tools


def remove_tool_links(project_root: Path, skill_name: str) -> None:
    """Remove every tool link for a skill, whatever tools are configured."""
    for link_dir in TOOL_LINK_DIRS.values():
        remove_path(Path(project_root) / link_dir / skill_name)
