"""
Types consumed and produced by the dependency resolver.
"""

from dataclasses import dataclass, field
from typing import Literal, Protocol

from ..manifest.models import PackageManifest, ResolvedPackage, package_key


@dataclass(frozen=True)
class Requester:
    """Who placed a requirement: the project root or a resolved package.

    Used as a dictionary key to retract every requirement a package version
    contributed when that version is replaced.
    """

    kind: Literal["root", "package"]
    name: str = ""
    version: str = ""

    @classmethod
    def root(cls) -> "Requester":
        return cls(kind="root")

    @classmethod
    def package(cls, name: str, version: str) -> "Requester":
        return cls(kind="package", name=name, version=version)

    @property
    def is_root(self) -> bool:
        return self.kind == "root"

    def __str__(self) -> str:
        return "root" if self.is_root else package_key(self.name, self.version)


@dataclass(frozen=True)
class Requirement:
    """A range placed on a package name, with the path that led to it."""

    name: str
    range: str
    path: list[str]
    requester: Requester


class PackageSource(Protocol):
    """Metadata capability the resolver is given (never cached by it)."""

    def list_versions(self, name: str) -> list[str]: ...

    def get_manifest(self, name: str, version: str) -> PackageManifest: ...

    def get_integrity(self, name: str, version: str) -> str: ...


@dataclass
class ResolveResult:
    """Resolved graph: the root requirements and every surviving package."""

    root_name: str
    skills: dict[str, str]
    packages: dict[str, ResolvedPackage] = field(default_factory=dict)

    def version_of(self, name: str) -> str | None:
        for pkg in self.packages.values():
            if pkg.name == name:
                return pkg.version
        return None
