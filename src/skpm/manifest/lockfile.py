"""
Reading and writing skpm JSON documents.

Paths are fixed relative to the project root:
    skpm.json        project manifest (or package manifest inside a skill)
    skpm-lock.json   lockfile
"""

import json
from pathlib import Path
from typing import Any

from ..errors import InvalidDocumentError, ProjectError
from .models import (
    LOCKFILE_VERSION,
    Lockfile,
    LockfileRoot,
    PackageManifest,
    ProjectManifest,
    ResolvedPackage,
    package_key,
)

MANIFEST_FILE = "skpm.json"
LOCKFILE_FILE = "skpm-lock.json"


def get_manifest_path(root: Path) -> Path:
    return Path(root) / MANIFEST_FILE


def get_lockfile_path(project_root: Path) -> Path:
    return Path(project_root) / LOCKFILE_FILE


def _read_json(path: Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidDocumentError(path, str(e)) from e


def _write_json(path: Path, data: Any) -> None:
    Path(path).write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


# ── Manifests ─────────────────────────────────────────────────────────────


def load_project_manifest(path: Path) -> ProjectManifest:
    return ProjectManifest.model_validate(_read_json(path))


def load_package_manifest(path: Path) -> PackageManifest:
    return PackageManifest.model_validate(_read_json(path))


def write_project_manifest(path: Path, manifest: ProjectManifest) -> None:
    _write_json(path, manifest.model_dump(by_alias=True, exclude_none=True))


# ── Lockfile ──────────────────────────────────────────────────────────────


def check_resolved_edges(packages: dict[str, ResolvedPackage]) -> None:
    """Every ``resolved`` edge must point at a key of the same map.

    Raises:
        ProjectError: On the first dangling edge.
    """
    for key, pkg in packages.items():
        for dep_name, dep_version in pkg.resolved.items():
            if package_key(dep_name, dep_version) not in packages:
                raise ProjectError(
                    f"Lockfile entry {key} references missing package {dep_name}@{dep_version}"
                )


def create_lockfile(
    registry: str,
    root_name: str,
    skills: dict[str, str],
    packages: dict[str, ResolvedPackage],
    lockfile_version: int = LOCKFILE_VERSION,
) -> Lockfile:
    """Build a Lockfile from a resolution result, keys sorted for stable output."""
    check_resolved_edges(packages)
    return Lockfile(
        lockfile_version=lockfile_version,
        registry=registry,
        root=LockfileRoot(name=root_name, skills=dict(skills)),
        packages={key: packages[key] for key in sorted(packages)},
    )


def read_lockfile(path: Path) -> Lockfile:
    return Lockfile.model_validate(_read_json(path))


def write_lockfile(path: Path, lockfile: Lockfile) -> None:
    _write_json(path, lockfile.model_dump(by_alias=True))
