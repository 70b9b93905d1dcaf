"""
Error hierarchy for skpm.

Every failure the engine can surface derives from SkpmError. Errors that
carry diagnostic payloads (conflicts, requirement paths, digests) expose them
as named attributes so callers can render or test them without parsing the
message.
"""

from dataclasses import dataclass, field


def format_path(path: list[str]) -> str:
    """Render a requirement path as 'root -> a -> b'."""
    return " -> ".join(path)


class SkpmError(Exception):
    """Base error for skpm operations."""

    pass


# ── Resolution ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConflictDetail:
    """Two requirement paths pinning one name to incompatible ranges."""

    name: str
    existing_range: str
    new_range: str
    existing_path: list[str] = field(default_factory=list)
    new_path: list[str] = field(default_factory=list)

    def describe(self) -> str:
        return (
            f"Conflict on {self.name}: {self.existing_range} "
            f"({format_path(self.existing_path)}) vs {self.new_range} "
            f"({format_path(self.new_path)})"
        )


class ResolutionError(SkpmError):
    """Resolution failed because requirements cannot be reconciled."""

    def __init__(self, message: str, conflicts: list[ConflictDetail] | None = None):
        super().__init__(message)
        self.conflicts: list[ConflictDetail] = list(conflicts or [])

    def render(self) -> str:
        """Message followed by one line per conflict."""
        lines = [str(self)]
        lines.extend(conflict.describe() for conflict in self.conflicts)
        return "\n".join(lines)


class NoSatisfyingVersionError(SkpmError):
    """No published version satisfies the accumulated constraints."""

    def __init__(self, name: str, ranges: list[str], path: list[str]):
        self.name = name
        self.ranges = ranges
        self.path = path
        super().__init__(
            f"No version of {name} satisfies range {', '.join(ranges)} "
            f"(required by {format_path(path)})"
        )


class CyclicDependencyError(SkpmError):
    """A package requires itself, directly or transitively."""

    def __init__(self, name: str, path: list[str]):
        self.name = name
        self.path = path
        super().__init__(f"Detected cyclic dependency while resolving {format_path(path)}")


# ── Registry ──────────────────────────────────────────────────────────────


class RegistryError(SkpmError):
    """Base error for registry access."""

    pass


class UnsupportedRegistryError(RegistryError):
    """The registry locator has no known scheme or path form."""

    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Unsupported registry URL: {locator}")


class RegistryUnreachableError(RegistryError):
    """A registry document or archive could not be obtained."""

    def __init__(self, message: str, location: str = ""):
        super().__init__(message)
        self.location = location


class DocumentNotFoundError(RegistryUnreachableError):
    """The registry answered but has no document at the requested location."""

    pass


class HttpStatusError(RegistryUnreachableError):
    """The registry answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}", location=url)


class TooManyRedirectsError(RegistryUnreachableError):
    """Redirect chain exceeded the hop limit."""

    def __init__(self, url: str, max_redirects: int):
        self.max_redirects = max_redirects
        super().__init__(f"Too many redirects for {url}", location=url)


class RequestTimeoutError(RegistryUnreachableError):
    """The request did not complete within the configured timeout."""

    def __init__(self, url: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout:g}s: {url}", location=url)


class PackageNotFoundError(RegistryError):
    """The registry has no catalog for this package name."""

    def __init__(self, name: str, locator: str = ""):
        self.name = name
        self.locator = locator
        where = f" in registry {locator}" if locator else ""
        super().__init__(f"Skill not found{where}: {name}")


class VersionNotFoundError(RegistryError):
    """The package catalog has no entry for this version."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"Registry metadata missing {name}@{version}")


class MalformedArchiveError(RegistryError):
    """A downloaded archive does not start with the gzip signature."""

    def __init__(self, url: str, content_type: str | None, preview: str):
        self.url = url
        self.content_type = content_type
        self.preview = preview
        super().__init__(
            f"Downloaded archive is not gzip. URL={url} "
            f"content-type={content_type or 'unknown'} preview=\"{preview}\""
        )


# ── Cache / store ─────────────────────────────────────────────────────────


class IntegrityMismatchError(SkpmError):
    """Extracted content digest disagrees with the registry's declared digest."""

    def __init__(self, name: str, version: str, expected: str, actual: str, locator: str):
        self.name = name
        self.version = version
        self.expected = expected
        self.actual = actual
        self.locator = locator
        super().__init__(
            f"Integrity mismatch for {name}@{version} from {locator}: "
            f"expected {expected}, got {actual}"
        )


class UnknownToolTargetError(SkpmError):
    """An agent tool target is not in the link table."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Unknown tool target: {target}")


class SymlinkError(SkpmError):
    """A link could not be created (typically missing privileges on Windows)."""

    pass


# ── Project / publish ─────────────────────────────────────────────────────


class ProjectError(SkpmError):
    """Project manifest or lockfile problem (missing file, unknown skill...)."""

    pass


class InvalidDocumentError(ProjectError):
    """skpm.json or skpm-lock.json is not valid JSON."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"{path} is not valid JSON: {reason}")


class PublishError(SkpmError):
    """Publishing a package failed."""

    pass
