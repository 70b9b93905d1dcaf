"""
Machine-global content cache keyed by (name, version).

Entries are immutable: once ``<cache root>/<name>/<version>`` exists it is
trusted without re-verification and the registry is not contacted.

A miss downloads the declared tarball into scratch space, checks the gzip
signature, extracts it, copies the tree into a staging directory beside the
final entry, recomputes the integrity digest and only then renames the
staging directory into place. Content that fails verification never appears
at the final path, and scratch/staging space is removed on every path out.
"""

import os
import shutil
import tarfile
import tempfile
from pathlib import Path

import structlog

from ..errors import IntegrityMismatchError, MalformedArchiveError
from ..integrity import digest_directory
from ..registry.client import RegistryClient, assert_gzip_archive

logger = structlog.get_logger()

DEFAULT_CACHE_ROOT = Path.home() / ".skpm" / "cache"


def extract_archive(archive: Path, destination: Path, url: str, content_type: str | None) -> None:
    """Extract a gzip tarball, refusing entries that escape destination."""
    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:gz") as tar:
            tar.extractall(destination, filter="data")
    except (tarfile.TarError, EOFError, OSError) as e:
        raise MalformedArchiveError(url, content_type, f"cannot extract archive: {e}") from e


class ContentCache:
    """Verified, immutable package cache shared by every project."""

    def __init__(self, cache_root: Path | None = None) -> None:
        """Initialize the cache.

        Args:
            cache_root: Cache directory. Defaults to ~/.skpm/cache
        """
        self.cache_root = Path(cache_root) if cache_root else DEFAULT_CACHE_ROOT
        self.log = logger.bind(component="content_cache")

    def get_cached_package_path(self, name: str, version: str) -> Path:
        return self.cache_root / name / version

    def is_cached(self, name: str, version: str) -> bool:
        return self.get_cached_package_path(name, version).exists()

    def ensure_package_cached(self, client: RegistryClient, name: str, version: str) -> Path:
        """Return the cache entry for name@version, fetching it on a miss.

        Args:
            client: Registry to fetch from on a miss (untouched on a hit).
            name: Package name.
            version: Exact version.

        Returns:
            Path of the cache entry.

        Raises:
            MalformedArchiveError: Payload is not a gzip tarball.
            IntegrityMismatchError: Extracted content digest differs from the
                registry's declared digest.
            RegistryError: Lookup or download failures.
        """
        destination = self.get_cached_package_path(name, version)
        if destination.exists():
            self.log.debug("cache.hit", name=name, version=version)
            return destination

        location = client.get_integrity_and_location(name, version)
        self.log.info("cache.fetch", name=name, version=version, tarball=location.tarball)

        scratch = Path(tempfile.mkdtemp(prefix="skpm-cache-"))
        staging: Path | None = None
        try:
            archive = scratch / "package.tgz"
            info = client.download_tarball(location.tarball, archive)
            assert_gzip_archive(archive, info.url, info.content_type)

            extracted = scratch / "package"
            extract_archive(archive, extracted, info.url, info.content_type)

            destination.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{version}-", dir=destination.parent))
            shutil.copytree(extracted, staging, symlinks=True, dirs_exist_ok=True)
            staging.chmod(0o755)

            actual = digest_directory(staging)
            if actual != location.integrity:
                raise IntegrityMismatchError(
                    name=name,
                    version=version,
                    expected=location.integrity,
                    actual=actual,
                    locator=client.locator,
                )

            try:
                os.replace(staging, destination)
            except OSError:
                # Another run populated the entry first; entries are immutable
                if not destination.exists():
                    raise
                self.log.debug("cache.populated_concurrently", name=name, version=version)
            else:
                staging = None
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        self.log.info("cache.stored", name=name, version=version, path=str(destination))
        return destination
