"""
Pydantic models for skpm documents.

- ProjectManifest: ``skpm.json`` at a project root (what the project wants).
- PackageManifest: ``skpm.json`` inside a published skill (what a skill is).
- ResolvedPackage / Lockfile: ``skpm-lock.json`` (what was resolved).

Field names follow the JSON documents (camelCase aliases where needed);
models accept both alias and Python names.
"""

from pydantic import BaseModel, Field, field_validator

from ..versioning import is_valid_range, is_valid_version

LOCKFILE_VERSION = 1


def _check_range(value: str) -> str:
    if not is_valid_range(value):
        raise ValueError(f"Invalid semver range: {value}")
    return value


def _check_version(value: str) -> str:
    if not is_valid_version(value):
        raise ValueError(f"Invalid semver version: {value}")
    return value


class SkillFileMapping(BaseModel):
    """Category mapping inside a package (skills/agents entries)."""

    source: str = Field(min_length=1)

    model_config = {"extra": "forbid"}


class PackageManifest(BaseModel):
    """Metadata of one published skill version. Read-only for the engine."""

    name: str = Field(min_length=1)
    version: str
    description: str = Field(min_length=1)
    dependencies: dict[str, str] = Field(default_factory=dict)
    files: list[str] = Field(default_factory=list)
    license: str = Field(min_length=1)
    author: str = Field(min_length=1)
    skills: list[SkillFileMapping] | None = None
    agents: list[SkillFileMapping] | None = None

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("version")
    @classmethod
    def _valid_version(cls, v: str) -> str:
        return _check_version(v)

    @field_validator("dependencies")
    @classmethod
    def _valid_ranges(cls, v: dict[str, str]) -> dict[str, str]:
        for range_expr in v.values():
            _check_range(range_expr)
        return v


class ProjectManifest(BaseModel):
    """A project's requested skills."""

    name: str = Field(min_length=1)
    skills: dict[str, str] = Field(default_factory=dict)
    registry: str | None = None
    agent_targets: list[str] | None = Field(default=None, alias="agentTargets")

    model_config = {"extra": "forbid", "populate_by_name": True}

    @field_validator("skills")
    @classmethod
    def _valid_ranges(cls, v: dict[str, str]) -> dict[str, str]:
        for range_expr in v.values():
            _check_range(range_expr)
        return v


class ResolvedPackage(BaseModel):
    """One (name, version) that survived resolution."""

    name: str = Field(min_length=1)
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    resolved: dict[str, str] = Field(default_factory=dict)
    integrity: str = Field(min_length=1)

    model_config = {"extra": "forbid"}

    @property
    def key(self) -> str:
        return package_key(self.name, self.version)


class LockfileRoot(BaseModel):
    name: str = Field(min_length=1)
    skills: dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class Lockfile(BaseModel):
    """Persisted snapshot of a resolved graph."""

    lockfile_version: int = Field(default=LOCKFILE_VERSION, ge=0, alias="lockfileVersion")
    registry: str = Field(min_length=1)
    root: LockfileRoot
    packages: dict[str, ResolvedPackage] = Field(default_factory=dict)

    model_config = {"extra": "forbid", "populate_by_name": True}

    def version_of(self, name: str) -> str | None:
        """Resolved version of a package name, if present."""
        for pkg in self.packages.values():
            if pkg.name == name:
                return pkg.version
        return None


def package_key(name: str, version: str) -> str:
    """Canonical identity string ``name@version``."""
    return f"{name}@{version}"
