"""
Registry-backed PackageSource for the resolver.
"""

from ..manifest.models import PackageManifest
from ..registry.client import RegistryClient


class RegistryPackageSource:
    """Adapts a RegistryClient to the resolver's PackageSource protocol.

    Integrity is the digest the registry declares for the version; the cache
    verifies extracted content against the same value before trusting it.
    """

    def __init__(self, client: RegistryClient):
        self.client = client

    def list_versions(self, name: str) -> list[str]:
        return self.client.list_package_versions(name)

    def get_manifest(self, name: str, version: str) -> PackageManifest:
        return self.client.get_manifest(name, version)

    def get_integrity(self, name: str, version: str) -> str:
        return self.client.get_integrity_and_location(name, version).integrity
