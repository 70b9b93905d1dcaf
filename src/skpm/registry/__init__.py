"""
Registry Client: catalogs, versions and archives from a local or remote registry.
"""

from .client import (
    DEFAULT_REGISTRY,
    GZIP_MAGIC,
    RegistryClient,
    assert_gzip_archive,
    get_registry_cache_path,
    package_index_path,
)
from .models import (
    DownloadInfo,
    PackageIndex,
    PackageVersionEntry,
    RegistryEntry,
    RegistryIndex,
    RegistryIndexPackage,
    TarballLocation,
)
from .sources import (
    HttpFetcher,
    HttpRegistrySource,
    LocalRegistrySource,
    RegistrySource,
    file_url_to_path,
    is_http_locator,
    resolve_source,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "DownloadInfo",
    "GZIP_MAGIC",
    "HttpFetcher",
    "HttpRegistrySource",
    "LocalRegistrySource",
    "PackageIndex",
    "PackageVersionEntry",
    "RegistryClient",
    "RegistryEntry",
    "RegistryIndex",
    "RegistryIndexPackage",
    "RegistrySource",
    "TarballLocation",
    "assert_gzip_archive",
    "file_url_to_path",
    "get_registry_cache_path",
    "is_http_locator",
    "package_index_path",
    "resolve_source",
]
