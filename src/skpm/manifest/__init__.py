"""
Manifest and lockfile documents.
"""

from .lockfile import (
    LOCKFILE_FILE,
    MANIFEST_FILE,
    check_resolved_edges,
    create_lockfile,
    get_lockfile_path,
    get_manifest_path,
    load_package_manifest,
    load_project_manifest,
    read_lockfile,
    write_lockfile,
    write_project_manifest,
)
from .models import (
    LOCKFILE_VERSION,
    Lockfile,
    LockfileRoot,
    PackageManifest,
    ProjectManifest,
    ResolvedPackage,
    SkillFileMapping,
    package_key,
)

__all__ = [
    "LOCKFILE_FILE",
    "LOCKFILE_VERSION",
    "Lockfile",
    "LockfileRoot",
    "MANIFEST_FILE",
    "PackageManifest",
    "ProjectManifest",
    "ResolvedPackage",
    "SkillFileMapping",
    "check_resolved_edges",
    "create_lockfile",
    "get_lockfile_path",
    "get_manifest_path",
    "load_package_manifest",
    "load_project_manifest",
    "package_key",
    "read_lockfile",
    "write_lockfile",
    "write_project_manifest",
]
