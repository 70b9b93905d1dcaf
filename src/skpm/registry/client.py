"""
Registry client — catalog reads, version listing and archive download.

Every catalog document goes through fetch-with-cache-fallback:

- Local registries are read directly and mirrored into the cache directory.
- Network registries are fetched; a success overwrites the mirror, and any
  network failure falls back to the mirror when one exists.

The cache directory is ``<registry cache root>/<sha256(locator)>`` so each
registry locator gets its own mirror.

Typical usage:
    with RegistryClient("https://registry.skpm.dev") as client:
        client.ensure_catalog_available()
        versions = client.list_package_versions("frontend")
"""

import hashlib
import json
from pathlib import Path
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..errors import (
    DocumentNotFoundError,
    HttpStatusError,
    MalformedArchiveError,
    PackageNotFoundError,
    RegistryError,
    RegistryUnreachableError,
    VersionNotFoundError,
)
from ..manifest.models import PackageManifest
from ..versioning import sort_versions_desc
from .models import (
    DownloadInfo,
    PackageIndex,
    RegistryEntry,
    RegistryIndex,
    TarballLocation,
)
from .sources import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_TIMEOUT,
    HttpFetcher,
    copy_local_file,
    file_url_to_path,
    is_http_locator,
    resolve_source,
)

logger = structlog.get_logger()

DEFAULT_REGISTRY = "https://registry.skpm.dev"
DEFAULT_REGISTRY_CACHE_ROOT = Path.home() / ".skpm" / "registry"

ROOT_INDEX = "index.json"

# gzip member header (RFC 1952)
GZIP_MAGIC = b"\x1f\x8b"
_PREVIEW_BYTES = 512
_PREVIEW_CHARS = 200


def get_registry_cache_path(locator: str, cache_root: Path | None = None) -> Path:
    """Deterministic mirror directory for a registry locator."""
    root = Path(cache_root) if cache_root else DEFAULT_REGISTRY_CACHE_ROOT
    return root / hashlib.sha256(locator.encode("utf-8")).hexdigest()


def package_index_path(name: str) -> str:
    return f"packages/{name}/index.json"


def _is_missing(error: RegistryUnreachableError) -> bool:
    if isinstance(error, DocumentNotFoundError):
        return True
    return isinstance(error, HttpStatusError) and error.status_code == 404


class RegistryClient:
    """Read-side client for one registry locator."""

    def __init__(
        self,
        locator: str,
        cache_root: Path | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            locator: Registry URL or path (http(s)://, file://, absolute or ./relative).
            cache_root: Root of registry mirrors. Defaults to ~/.skpm/registry
            timeout: Per-request timeout in seconds for network registries.
            max_redirects: Redirect hop limit for network requests.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.locator = locator
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport
        self.source = resolve_source(
            locator,
            timeout=timeout,
            max_redirects=max_redirects,
            transport=transport,
        )
        self.cache_path = get_registry_cache_path(locator, cache_root)
        self._fetcher: HttpFetcher | None = None
        self.log = logger.bind(component="registry_client", registry=locator)

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self.source.close()
        if self._fetcher is not None:
            self._fetcher.close()

    # ── Catalog documents ────────────────────────────────────────────────

    def ensure_catalog_available(self) -> Path:
        """Make sure the root catalog has been fetched into the mirror.

        Returns:
            The mirror directory for this registry.
        """
        self.cache_path.mkdir(parents=True, exist_ok=True)
        self.read_registry_index()
        return self.cache_path

    def _load_document(self, relative_path: str) -> Any:
        mirror = self.cache_path / relative_path

        if not self.source.is_remote:
            data = self.source.fetch_document(relative_path)
            self._write_mirror(mirror, data)
            return data

        try:
            data = self.source.fetch_document(relative_path)
        except RegistryUnreachableError as e:
            if mirror.is_file():
                self.log.warning(
                    "registry.fetch.fallback",
                    path=relative_path,
                    error=str(e),
                )
                return json.loads(mirror.read_text(encoding="utf-8"))
            raise
        self._write_mirror(mirror, data)
        return data

    def _write_mirror(self, mirror: Path, data: Any) -> None:
        mirror.parent.mkdir(parents=True, exist_ok=True)
        mirror.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def read_registry_index(self) -> RegistryIndex:
        try:
            data = self._load_document(ROOT_INDEX)
        except RegistryUnreachableError as e:
            if _is_missing(e):
                raise RegistryUnreachableError(
                    f"Registry index not found at {self.source.location_of(ROOT_INDEX)}",
                    location=self.locator,
                ) from e
            raise
        return self._validate(RegistryIndex, data, ROOT_INDEX)

    def read_package_index(self, name: str) -> PackageIndex:
        relative = package_index_path(name)
        try:
            data = self._load_document(relative)
        except RegistryUnreachableError as e:
            if _is_missing(e):
                raise PackageNotFoundError(name, self.locator) from e
            raise
        return self._validate(PackageIndex, data, relative)

    def _validate(self, model: type, data: Any, relative_path: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RegistryError(
                f"Malformed registry document {self.source.location_of(relative_path)}: {e}"
            ) from e

    # ── Queries ──────────────────────────────────────────────────────────

    def list_package_names(self) -> list[str]:
        return sorted(self.read_registry_index().packages)

    def list_package_versions(self, name: str) -> list[str]:
        """Valid semver versions descending, then unparseable ones lexically."""
        return sort_versions_desc(list(self.read_package_index(name).versions))

    def get_manifest(self, name: str, version: str) -> PackageManifest:
        entry = self.read_package_index(name).versions.get(version)
        if entry is None:
            raise VersionNotFoundError(name, version)
        return PackageManifest.model_validate(entry.manifest)

    def get_integrity_and_location(self, name: str, version: str) -> TarballLocation:
        entry = self.read_package_index(name).versions.get(version)
        if entry is None:
            raise VersionNotFoundError(name, version)
        return TarballLocation(integrity=entry.integrity, tarball=entry.tarball)

    def scan(self) -> list[RegistryEntry]:
        """Every version of every package, names sorted, versions newest first."""
        entries: list[RegistryEntry] = []
        for name in self.list_package_names():
            for version in self.list_package_versions(name):
                entries.append(
                    RegistryEntry(
                        name=name,
                        version=version,
                        manifest=self.get_manifest(name, version),
                        path=package_index_path(name),
                    )
                )
        return entries

    def search(self, query: str | None = None) -> list[RegistryEntry]:
        """Case-insensitive match on name or description."""
        entries = self.scan()
        if not query:
            return entries
        needle = query.lower()
        return [
            e for e in entries
            if needle in e.name.lower() or needle in e.manifest.description.lower()
        ]

    # ── Archives ─────────────────────────────────────────────────────────

    def download_tarball(self, tarball: str, target: Path) -> DownloadInfo:
        """Fetch a declared tarball reference into target.

        The reference may be an absolute http(s) URL, a ``file://`` URL or a
        path relative to the registry root.
        """
        self.log.debug("registry.tarball.download", tarball=tarball)
        if is_http_locator(tarball):
            return self._http_fetcher().download(tarball.strip(), target)
        if tarball.startswith("file://"):
            return copy_local_file(file_url_to_path(tarball), target)
        return self.source.fetch_bytes(tarball, target)

    def tarball_url(self, tarball: str) -> str:
        """Location a tarball reference resolves to, for diagnostics."""
        if is_http_locator(tarball) or tarball.startswith("file://"):
            return tarball
        return self.source.location_of(tarball)

    def _http_fetcher(self) -> HttpFetcher:
        if self._fetcher is None:
            self._fetcher = HttpFetcher(
                timeout=self.timeout,
                max_redirects=self.max_redirects,
                transport=self._transport,
            )
        return self._fetcher


def assert_gzip_archive(path: Path, url: str, content_type: str | None = None) -> None:
    """Check the gzip signature of a downloaded archive.

    Raises:
        MalformedArchiveError: With url, content type and a short text preview
            of the payload (typically an HTML error page).
    """
    with open(path, "rb") as f:
        head = f.read(_PREVIEW_BYTES)
    if head[:2] == GZIP_MAGIC:
        return
    preview = head.decode("utf-8", errors="replace").strip()[:_PREVIEW_CHARS]
    raise MalformedArchiveError(url, content_type, preview)
