"""
Tests for the local store and tool links.

Covers:
- LocalStore: copy-once store entries, alias symlinks, pruning
- Tool targets: parsing, validation, detection
- Tool links: directory links, cursor per-file .mdc links, removal
"""

import os
from pathlib import Path

import pytest

from skpm.errors import UnknownToolTargetError
from skpm.install import (
    LocalStore,
    detect_tools,
    get_exposed_path,
    get_store_path,
    link_tool_targets,
    parse_tool_targets,
    remove_tool_links,
    validate_tool_targets,
)


@pytest.fixture
def cached(tmp_path: Path) -> Path:
    entry = tmp_path / "cache" / "frontend" / "1.1.0"
    (entry / "rules").mkdir(parents=True)
    (entry / "skpm.json").write_text('{"name": "frontend"}')
    (entry / "SKILL.md").write_text("# Frontend\n")
    (entry / "rules" / "react.md").write_text("Use hooks.\n")
    return entry


# ── Tests: store paths ───────────────────────────────────────────────────


class TestPaths:
    def test_store_path(self, project_dir: Path):
        assert get_store_path(project_dir, "core", "2.0.0") == (
            project_dir / ".agents" / "skills" / ".store" / "core@2.0.0"
        )

    def test_exposed_path(self, project_dir: Path):
        assert get_exposed_path(project_dir, "core") == project_dir / ".agents" / "skills" / "core"


# ── Tests: LocalStore ────────────────────────────────────────────────────


class TestLocalStore:
    def test_ensure_stored_copies(self, project_dir: Path, cached: Path):
        store = LocalStore(project_dir)
        path = store.ensure_stored("frontend", "1.1.0", cached)
        assert (path / "SKILL.md").read_text() == "# Frontend\n"
        assert (path / "rules" / "react.md").is_file()

    def test_ensure_stored_copies_once(self, project_dir: Path, cached: Path):
        store = LocalStore(project_dir)
        path = store.ensure_stored("frontend", "1.1.0", cached)
        (cached / "SKILL.md").write_text("changed upstream")
        store.ensure_stored("frontend", "1.1.0", cached)
        assert (path / "SKILL.md").read_text() == "# Frontend\n"

    def test_install_top_level_creates_alias(self, project_dir: Path, cached: Path):
        store = LocalStore(project_dir)
        tools = store.install_top_level_skill("frontend", "1.1.0", cached)

        alias = store.exposed_path("frontend")
        assert alias.is_symlink()
        assert alias.resolve() == store.store_path("frontend", "1.1.0").resolve()
        assert tools == []

    def test_alias_replaced_on_version_change(self, project_dir: Path, cached: Path, tmp_path: Path):
        newer = tmp_path / "cache" / "frontend" / "1.2.0"
        newer.mkdir(parents=True)
        (newer / "SKILL.md").write_text("# Frontend 1.2\n")

        store = LocalStore(project_dir)
        store.install_top_level_skill("frontend", "1.1.0", cached)
        store.install_top_level_skill("frontend", "1.2.0", newer)

        alias = store.exposed_path("frontend")
        assert alias.resolve() == store.store_path("frontend", "1.2.0").resolve()
        assert store.list_entries() == ["frontend@1.1.0", "frontend@1.2.0"]

    def test_remove_skill_links(self, project_dir: Path, cached: Path):
        (project_dir / ".claude").mkdir()
        store = LocalStore(project_dir)
        store.install_top_level_skill("frontend", "1.1.0", cached)

        store.remove_skill_links("frontend")

        assert not os.path.lexists(store.exposed_path("frontend"))
        assert not os.path.lexists(project_dir / ".claude" / "agents" / "frontend")
        assert store.store_path("frontend", "1.1.0").is_dir()

    def test_prune_orphans(self, project_dir: Path, cached: Path):
        store = LocalStore(project_dir)
        store.ensure_stored("frontend", "1.1.0", cached)
        store.ensure_stored("core", "2.0.0", cached)

        removed = store.prune_orphans({"core@2.0.0"})

        assert removed == ["frontend@1.1.0"]
        assert store.list_entries() == ["core@2.0.0"]

    def test_list_entries_ignores_staging(self, project_dir: Path):
        store = LocalStore(project_dir)
        (store.store_dir / ".core@1.0.0-tmp").mkdir(parents=True)
        (store.store_dir / "not-a-key").mkdir()
        assert store.list_entries() == []


# ── Tests: tool targets ──────────────────────────────────────────────────


class TestToolTargets:
    def test_parse_comma_separated(self):
        assert parse_tool_targets("claude, Cursor,claude") == ["claude", "cursor"]

    def test_parse_list(self):
        assert parse_tool_targets(["claude,codex", "gemini"]) == ["claude", "codex", "gemini"]

    def test_parse_empty(self):
        assert parse_tool_targets(None) == []
        assert parse_tool_targets("") == []

    def test_validate_unknown(self):
        with pytest.raises(UnknownToolTargetError, match="vim"):
            validate_tool_targets(["claude", "vim"])

    def test_detect(self, project_dir: Path):
        (project_dir / ".claude").mkdir()
        (project_dir / ".github").mkdir()
        assert detect_tools(project_dir) == ["claude", "copilot"]


# ── Tests: tool links ────────────────────────────────────────────────────


class TestToolLinks:
    @pytest.fixture
    def exposed(self, project_dir: Path, cached: Path) -> Path:
        store = LocalStore(project_dir)
        store.install_top_level_skill("frontend", "1.1.0", cached)
        return store.exposed_path("frontend")

    def test_detected_tools_get_directory_links(self, project_dir: Path, exposed: Path):
        (project_dir / ".claude").mkdir()
        (project_dir / ".windsurf").mkdir()

        tools = link_tool_targets(project_dir, "frontend", exposed)

        assert tools == ["claude", "windsurf"]
        assert (project_dir / ".claude" / "agents" / "frontend").is_symlink()
        assert (project_dir / ".windsurf" / "rules" / "frontend" / "SKILL.md").is_file()

    def test_explicit_targets_override_detection(self, project_dir: Path, exposed: Path):
        (project_dir / ".claude").mkdir()
        tools = link_tool_targets(project_dir, "frontend", exposed, ["codex"])
        assert tools == ["codex"]
        assert (project_dir / ".codex" / "frontend").is_symlink()
        assert not os.path.lexists(project_dir / ".claude" / "agents" / "frontend")

    def test_cursor_links_markdown_as_mdc(self, project_dir: Path, exposed: Path):
        link_tool_targets(project_dir, "frontend", exposed, ["cursor"])
        rules = project_dir / ".cursor" / "rules" / "frontend"
        assert (rules / "SKILL.mdc").is_symlink()
        assert (rules / "rules" / "react.mdc").read_text() == "Use hooks.\n"
        assert not (rules / "skpm.mdc").exists()

    def test_unknown_target_rejected(self, project_dir: Path, exposed: Path):
        with pytest.raises(UnknownToolTargetError):
            link_tool_targets(project_dir, "frontend", exposed, ["emacs"])

    def test_remove_tool_links(self, project_dir: Path, exposed: Path):
        link_tool_targets(project_dir, "frontend", exposed, ["claude", "cursor", "copilot"])
        remove_tool_links(project_dir, "frontend")
        assert not os.path.lexists(project_dir / ".claude" / "agents" / "frontend")
        assert not os.path.lexists(project_dir / ".cursor" / "rules" / "frontend")
        assert not os.path.lexists(project_dir / ".github" / "frontend")
