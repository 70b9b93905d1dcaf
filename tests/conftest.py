"""
Shared fixtures: on-disk registries built in tmp_path.
"""

import io
import json
import logging
import tarfile
from pathlib import Path

import pytest
import structlog

from skpm.config.schema import AppConfig, CacheConfig, LoggingConfig, RegistryConfig
from skpm.integrity import digest_directory
from skpm.logging import configure_logging


def write_package(
    root: Path,
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    files: dict[str, str] | None = None,
    description: str | None = None,
) -> Path:
    """Write a skill directory (skpm.json plus files) and return it."""
    root.mkdir(parents=True, exist_ok=True)
    files = files if files is not None else {"SKILL.md": f"# {name} {version}\n"}
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    manifest = {
        "name": name,
        "version": version,
        "description": description or f"{name} skill",
        "license": "MIT",
        "author": "Tests",
        "dependencies": dependencies or {},
        "files": sorted(files),
    }
    (root / "skpm.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return root


def tar_directory(source: Path, tarball: Path) -> None:
    tarball.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(tarball, "w:gz") as tar:
        for path in sorted(source.rglob("*")):
            tar.add(path, arcname=path.relative_to(source).as_posix(), recursive=False)


class RegistryBuilder:
    """Builds a file registry: index.json, package indexes and tarballs."""

    def __init__(self, root: Path, build_dir: Path):
        self.root = root
        self.build_dir = build_dir
        self.root.mkdir(parents=True, exist_ok=True)
        self._write(self.root / "index.json", {"packages": {}})

    @property
    def locator(self) -> str:
        return str(self.root)

    def add(
        self,
        name: str,
        version: str,
        dependencies: dict[str, str] | None = None,
        files: dict[str, str] | None = None,
        description: str | None = None,
        integrity: str | None = None,
    ) -> str:
        """Publish name@version; returns the declared integrity."""
        source = write_package(
            self.build_dir / name / version,
            name,
            version,
            dependencies=dependencies,
            files=files,
            description=description,
        )
        tarball = f"tarballs/{name}/{version}.tgz"
        tar_directory(source, self.root / tarball)
        declared = integrity or digest_directory(source)
        manifest = json.loads((source / "skpm.json").read_text(encoding="utf-8"))
        self.set_entry(name, version, manifest, declared, tarball, description=manifest["description"])
        return declared

    def set_entry(
        self,
        name: str,
        version: str,
        manifest: dict,
        integrity: str,
        tarball: str,
        description: str | None = None,
    ) -> None:
        index_path = self.root / "packages" / name / "index.json"
        index = self._read(index_path) or {"name": name, "versions": {}}
        index["description"] = description
        index["versions"][version] = {
            "manifest": manifest,
            "integrity": integrity,
            "tarball": tarball,
        }
        self._write(index_path, index)

        root_index = self._read(self.root / "index.json")
        root_index["packages"][name] = {
            "name": name,
            "description": description,
            "versions": sorted(index["versions"]),
        }
        self._write(self.root / "index.json", root_index)

    def write_raw(self, relative: str, data: bytes) -> None:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def _read(self, path: Path):
        if not path.is_file():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, path: Path, data) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def gzip_tarball_bytes(files: dict[str, str]) -> bytes:
    """In-memory gzip tarball with the given package-relative files."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for relative, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(relative)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def registry(tmp_path: Path) -> RegistryBuilder:
    return RegistryBuilder(tmp_path / "registry", tmp_path / "build")


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    return tmp_path / "mirrors"


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def app_config(registry: RegistryBuilder, mirror_root: Path, cache_root: Path) -> AppConfig:
    return AppConfig(
        registry=RegistryConfig(url=registry.locator, cache_dir=mirror_root),
        cache=CacheConfig(dir=cache_root),
    )


@pytest.fixture(autouse=True)
def quiet_logging():
    configure_logging(LoggingConfig(), quiet=True)
    yield
    logging.root.handlers.clear()
    structlog.reset_defaults()
