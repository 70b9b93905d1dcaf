"""
Pydantic models for registry catalog documents.

Catalogs are read leniently (unknown keys ignored): a registry may carry
fields newer than this client. Manifests are kept raw here and validated only
when a specific version is requested, so one malformed historical entry does
not make the whole package unreadable.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from ..manifest.models import PackageManifest


class RegistryIndexPackage(BaseModel):
    name: str
    description: str | None = None
    latest: str | None = None
    versions: list[str] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class RegistryIndex(BaseModel):
    """Root catalog: ``index.json``."""

    generated_at: str | None = Field(default=None, alias="generatedAt")
    packages: dict[str, RegistryIndexPackage] = Field(default_factory=dict)

    model_config = {"extra": "ignore", "populate_by_name": True}


class PackageVersionEntry(BaseModel):
    manifest: dict[str, Any]
    integrity: str
    tarball: str

    model_config = {"extra": "ignore"}


class PackageIndex(BaseModel):
    """Per-package catalog: ``packages/<name>/index.json``."""

    name: str
    description: str | None = None
    versions: dict[str, PackageVersionEntry] = Field(default_factory=dict)
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = {"extra": "ignore", "populate_by_name": True}


@dataclass(frozen=True)
class TarballLocation:
    """Declared digest and archive reference for one version."""

    integrity: str
    tarball: str


@dataclass(frozen=True)
class DownloadInfo:
    """Where bytes actually came from, for archive diagnostics."""

    url: str
    status_code: int
    content_type: str | None


@dataclass(frozen=True)
class RegistryEntry:
    """One name/version pair from a registry scan."""

    name: str
    version: str
    manifest: PackageManifest
    path: str
