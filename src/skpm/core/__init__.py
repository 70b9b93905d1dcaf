"""
Project workflows: install, add, remove, update, list, info, search and init.
"""

from .project import (
    InstalledSkill,
    InstallResult,
    Project,
    RemoveResult,
    SkillListing,
    UpdateResult,
    VersionChange,
    parse_skill_spec,
    resolve_registry_url,
)
from .source import RegistryPackageSource

__all__ = [
    "InstallResult",
    "InstalledSkill",
    "Project",
    "RegistryPackageSource",
    "RemoveResult",
    "SkillListing",
    "UpdateResult",
    "VersionChange",
    "parse_skill_spec",
    "resolve_registry_url",
]
