"""
Publisher — package a skill directory and hand it to a registry.

Two destinations:

- File registries (``file://`` URL, absolute or ``./`` path): the tarball is
  written to ``tarballs/<name>/<version>.tgz`` and both catalog documents are
  updated in place.
- HTTP registries: the tarball and its metadata are POSTed as multipart form
  data to the registry's API host (``registry.X`` → ``api.X``) at
  ``/api/publish`` with a bearer token.

The published file set comes from the manifest's ``files`` patterns plus
``skpm.json``; the declared integrity is the digest of exactly that set, which
is what a consumer recomputes after extracting the tarball.
"""

import json
import os
import re
import shutil
import tarfile
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from ..errors import PublishError
from ..integrity import digest, list_files
from ..logging.human import HumanLog
from ..manifest.lockfile import MANIFEST_FILE, load_package_manifest
from ..manifest.models import PackageManifest
from ..registry.client import DEFAULT_REGISTRY, ROOT_INDEX, package_index_path
from ..registry.sources import DEFAULT_TIMEOUT, file_url_to_path, is_http_locator
from ..versioning import latest

logger = structlog.get_logger()

DEFAULT_TOKEN_ENV = "SKPM_PUBLISH_TOKEN"
PUBLISH_API_PATH = "/api/publish"


@dataclass
class PublishResult:
    name: str
    version: str
    registry: str
    location: str
    tarball: str
    integrity: str
    files: list[str] = field(default_factory=list)


# ── File selection ────────────────────────────────────────────────────────


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a publish pattern.

    ``**`` matches across directories, ``*`` within one path segment and
    ``?`` any single character. Everything else is literal.
    """
    normalized = pattern.replace("\\", "/")
    parts: list[str] = []
    i = 0
    while i < len(normalized):
        char = normalized[i]
        if char == "*":
            if normalized[i + 1:i + 2] == "*":
                while i < len(normalized) and normalized[i] == "*":
                    i += 1
                parts.append(".*")
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$")


def _normalize_relative(entry: str) -> str:
    normalized = os.path.normpath(entry).replace(os.sep, "/").lstrip("/")
    if ".." in PurePosixPath(normalized).parts:
        raise PublishError(f"Publish file patterns must stay within the package: {entry}")
    return normalized


def collect_publish_files(package_root: Path, manifest: PackageManifest) -> list[str]:
    """Files to publish, as sorted posix paths relative to package_root.

    Raises:
        PublishError: A pattern is absolute, escapes the package, or matches
            nothing.
    """
    available = list_files(package_root)
    selected: set[str] = set()

    for pattern in manifest.files:
        trimmed = pattern.strip()
        if not trimmed:
            continue
        if os.path.isabs(trimmed) or trimmed.startswith("/"):
            raise PublishError(f"Publish file patterns must be relative: {pattern}")

        matcher = glob_to_regex(trimmed)
        matches = [entry for entry in available if matcher.match(entry)]
        if not matches:
            raise PublishError(f"No files match pattern: {pattern}")
        selected.update(_normalize_relative(entry) for entry in matches)

    selected.add(MANIFEST_FILE)
    return sorted(selected)


def write_tarball(package_root: Path, tarball_path: Path, files: list[str]) -> None:
    """Write a gzip tarball whose entries are the package-relative files."""
    tarball_path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(tarball_path, "w:gz") as tar:
        for relative in files:
            tar.add(Path(package_root) / relative, arcname=relative, recursive=False)


def tarball_reference(manifest: PackageManifest) -> str:
    return f"tarballs/{manifest.name}/{manifest.version}.tgz"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── File registries ───────────────────────────────────────────────────────


def resolve_registry_base_dir(registry_url: str, registry_base_dir: Path | None = None) -> Path:
    if registry_base_dir is not None:
        return Path(registry_base_dir)
    trimmed = registry_url.strip()
    if trimmed.startswith("file://"):
        return file_url_to_path(trimmed)
    if os.path.isabs(trimmed) or trimmed.startswith("."):
        return Path(trimmed).resolve()
    raise PublishError("Publish requires a file:// registry URL or an explicit registry directory.")


def _read_json(path: Path) -> Any:
    if not path.is_file():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def publish_to_file_registry(
    package_root: Path,
    manifest: PackageManifest,
    files: list[str],
    registry_url: str,
    registry_base_dir: Path | None = None,
) -> PublishResult:
    """Write the tarball into a directory registry and update its catalogs.

    Raises:
        PublishError: The version is already published.
    """
    base = resolve_registry_base_dir(registry_url, registry_base_dir)
    tarball = tarball_reference(manifest)
    tarball_path = base / tarball
    duplicate = PublishError(f"Registry already contains {manifest.name}@{manifest.version}.")

    if tarball_path.exists():
        raise duplicate

    package_index_file = base / package_index_path(manifest.name)
    package_index = _read_json(package_index_file) or {
        "name": manifest.name,
        "description": manifest.description,
        "versions": {},
    }
    if manifest.version in package_index.get("versions", {}):
        raise duplicate

    write_tarball(package_root, tarball_path, files)
    integrity = digest(package_root, files)

    package_index["description"] = manifest.description
    package_index.setdefault("versions", {})[manifest.version] = {
        "manifest": manifest.model_dump(exclude_none=True),
        "integrity": integrity,
        "tarball": tarball,
    }
    package_index["updatedAt"] = _now()

    versions = sorted(package_index["versions"])
    registry_index_file = base / ROOT_INDEX
    registry_index = _read_json(registry_index_file) or {"packages": {}}
    registry_index.setdefault("packages", {})[manifest.name] = {
        "name": manifest.name,
        "description": manifest.description,
        "latest": latest(versions) or versions[-1],
        "versions": versions,
    }
    registry_index["generatedAt"] = _now()

    _write_json(package_index_file, package_index)
    _write_json(registry_index_file, registry_index)

    return PublishResult(
        name=manifest.name,
        version=manifest.version,
        registry=registry_url,
        location=str(base),
        tarball=tarball,
        integrity=integrity,
        files=files,
    )


# ── HTTP registries ───────────────────────────────────────────────────────


def derive_publish_api_url(registry_url: str) -> str:
    """``https://registry.skpm.dev`` → ``https://api.skpm.dev/api/publish``."""
    parts = urlsplit(registry_url.strip())
    netloc = parts.netloc
    host = parts.hostname or ""
    if host.startswith("registry."):
        netloc = netloc.replace(host, "api." + host[len("registry."):], 1)
    return urlunsplit((parts.scheme, netloc, PUBLISH_API_PATH, "", ""))


def publish_to_http_registry(
    package_root: Path,
    manifest: PackageManifest,
    files: list[str],
    registry_url: str,
    token: str | None = None,
    token_env: str = DEFAULT_TOKEN_ENV,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> PublishResult:
    """POST metadata and tarball to the registry's publish endpoint.

    Raises:
        PublishError: No token, transport failure, or a non-2xx answer.
    """
    token = token or os.environ.get(token_env)
    if not token:
        raise PublishError(f"Missing publish token. Set {token_env} or pass --token.")

    tarball = tarball_reference(manifest)
    api_url = derive_publish_api_url(registry_url)
    scratch = Path(tempfile.mkdtemp(prefix="skpm-publish-"))
    try:
        tarball_path = scratch / f"{manifest.version}.tgz"
        write_tarball(package_root, tarball_path, files)
        integrity = digest(package_root, files)

        metadata = {
            "name": manifest.name,
            "version": manifest.version,
            "manifest": manifest.model_dump(exclude_none=True),
            "integrity": integrity,
            "tarball": tarball,
        }

        logger.info("publish.upload", url=api_url, name=manifest.name, version=manifest.version)
        with httpx.Client(timeout=timeout, transport=transport) as client:
            try:
                response = client.post(
                    api_url,
                    headers={"Authorization": f"Bearer {token}"},
                    data={"metadata": json.dumps(metadata)},
                    files={
                        "tarball": (
                            f"{manifest.version}.tgz",
                            tarball_path.read_bytes(),
                            "application/gzip",
                        )
                    },
                )
            except httpx.HTTPError as e:
                raise PublishError(f"Publish request to {api_url} failed: {e}") from e

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("error") if isinstance(body, dict) else None
            raise PublishError(
                f"Publish failed (HTTP {response.status_code}): {message or 'Unknown error'}"
            )
    finally:
        shutil.rmtree(scratch, ignore_errors=True)

    return PublishResult(
        name=manifest.name,
        version=manifest.version,
        registry=registry_url,
        location=api_url,
        tarball=tarball,
        integrity=integrity,
        files=files,
    )


# ── Entry point ───────────────────────────────────────────────────────────


def publish_package(
    package_root: Path | str,
    registry_url: str = DEFAULT_REGISTRY,
    registry_base_dir: Path | None = None,
    token: str | None = None,
    token_env: str = DEFAULT_TOKEN_ENV,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> PublishResult:
    """Publish the skill rooted at package_root.

    Raises:
        PublishError: Missing manifest, bad patterns, duplicate version or a
            rejected upload.
        ValidationError: skpm.json is not a valid package manifest.
    """
    package_root = Path(package_root)
    manifest_path = package_root / MANIFEST_FILE
    if not manifest_path.is_file():
        raise PublishError("Missing skpm.json. Publish must be run from a package root.")

    manifest = load_package_manifest(manifest_path)
    files = collect_publish_files(package_root, manifest)
    log = logger.bind(component="publisher", name=manifest.name, version=manifest.version)
    log.debug("publish.files", files=files)

    if is_http_locator(registry_url):
        result = publish_to_http_registry(
            package_root,
            manifest,
            files,
            registry_url,
            token=token,
            token_env=token_env,
            timeout=timeout,
            transport=transport,
        )
    else:
        result = publish_to_file_registry(
            package_root, manifest, files, registry_url, registry_base_dir
        )

    HumanLog(log).published(result.name, result.version, result.registry)
    return result
