"""
Project-local content-addressable store.

Layout inside a project:

    .agents/skills/.store/<name>@<version>/   immutable copy of a cache entry
    .agents/skills/<name>                     alias -> store entry (top-level only)

Store entries are copied once and never modified; a version change always
lands under a new key. Only skills the project requests directly get an alias
and tool links; transitive packages are stored but not exposed.
"""

import os
import shutil
import tempfile
from pathlib import Path

import structlog

from ..manifest.models import package_key
from .tools import ensure_symlink, link_tool_targets, remove_path, remove_tool_links

logger = structlog.get_logger()

SKILLS_DIR = Path(".agents") / "skills"
STORE_DIR = SKILLS_DIR / ".store"


def get_store_path(project_root: Path, name: str, version: str) -> Path:
    return Path(project_root) / STORE_DIR / package_key(name, version)


def get_exposed_path(project_root: Path, name: str) -> Path:
    return Path(project_root) / SKILLS_DIR / name


class LocalStore:
    """Installs cached packages into one project's store."""

    def __init__(self, project_root: Path | str):
        self.root = Path(project_root)
        self.store_dir = self.root / STORE_DIR
        self.log = logger.bind(component="local_store")

    def store_path(self, name: str, version: str) -> Path:
        return get_store_path(self.root, name, version)

    def exposed_path(self, name: str) -> Path:
        return get_exposed_path(self.root, name)

    def ensure_stored(self, name: str, version: str, cached_path: Path) -> Path:
        """Copy a cache entry into the store unless already present."""
        destination = self.store_path(name, version)
        if destination.exists():
            return destination

        self.store_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}-", dir=self.store_dir))
        try:
            shutil.copytree(cached_path, staging, symlinks=True, dirs_exist_ok=True)
            staging.chmod(0o755)
            os.replace(staging, destination)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            if not destination.exists():
                raise
        self.log.debug("store.copied", key=destination.name)
        return destination

    def install_top_level_skill(
        self,
        name: str,
        version: str,
        cached_path: Path,
        agent_targets: list[str] | None = None,
    ) -> list[str]:
        """Store a root-level skill, point its alias at it and link tools.

        Returns:
            Tools that received integration links.
        """
        store_path = self.ensure_stored(name, version, cached_path)
        exposed = self.exposed_path(name)
        ensure_symlink(store_path, exposed)
        return link_tool_targets(self.root, name, exposed, agent_targets)

    def remove_skill_links(self, name: str) -> None:
        """Drop the alias and every tool link of a top-level skill."""
        remove_path(self.exposed_path(name))
        remove_tool_links(self.root, name)

    def list_entries(self) -> list[str]:
        """Store keys (``name@version``) currently on disk."""
        if not self.store_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.store_dir.iterdir()
            if entry.is_dir() and "@" in entry.name and not entry.name.startswith(".")
        )

    def prune_orphans(self, referenced_keys: set[str]) -> list[str]:
        """Delete store entries whose key is not referenced.

        Args:
            referenced_keys: ``name@version`` keys of the current lockfile.

        Returns:
            Keys that were removed.
        """
        removed: list[str] = []
        for key in self.list_entries():
            if key not in referenced_keys:
                shutil.rmtree(self.store_dir / key)
                removed.append(key)
        if removed:
            self.log.info("store.pruned", removed=removed)
        return removed
