"""
Project workflows — the operations behind every skpm command.

A Project binds a directory (holding ``skpm.json``) to the configuration
that locates the registry, the registry mirrors and the content cache:

    project = Project(Path("."), config)
    project.add("frontend@^1.0.0")
    project.install(frozen=True)

Install is the pipeline every mutating command ends in: resolve the root
requirements against the registry, persist the lockfile, then make every
locked package present in the content cache and the project store. Only the
skills the project requests directly are exposed and linked into tools.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..cache.store import ContentCache
from ..config.schema import AppConfig
from ..errors import PackageNotFoundError, ProjectError
from ..install.store import LocalStore
from ..install.tools import parse_tool_targets, validate_tool_targets
from ..logging.human import HumanLog
from ..manifest.lockfile import (
    create_lockfile,
    get_lockfile_path,
    get_manifest_path,
    load_project_manifest,
    read_lockfile,
    write_lockfile,
    write_project_manifest,
)
from ..manifest.models import Lockfile, PackageManifest, ProjectManifest
from ..registry.client import RegistryClient
from ..registry.models import RegistryEntry
from ..resolver import resolve
from ..versioning import is_valid_range, latest
from .source import RegistryPackageSource

logger = structlog.get_logger()


@dataclass
class InstalledSkill:
    """A top-level skill exposed by an install."""

    name: str
    version: str
    tools: list[str] = field(default_factory=list)


@dataclass
class InstallResult:
    registry: str
    lockfile: Lockfile
    installed: list[InstalledSkill] = field(default_factory=list)


@dataclass
class VersionChange:
    """Locked version of one package before and after an update."""

    name: str
    old: str | None
    new: str | None


@dataclass
class UpdateResult:
    install: InstallResult
    changes: list[VersionChange] = field(default_factory=list)


@dataclass
class RemoveResult:
    name: str
    install: InstallResult
    pruned: list[str] = field(default_factory=list)


@dataclass
class SkillListing:
    """A root skill with its requested range and locked version (if any)."""

    name: str
    range: str
    version: str | None = None


def resolve_registry_url(
    manifest: ProjectManifest | None,
    override: str | None,
    default: str,
) -> str:
    """Registry precedence: explicit override, then the project's, then default."""
    if override and override.strip():
        return override.strip()
    if manifest is not None and manifest.registry:
        return manifest.registry
    return default


def parse_skill_spec(spec: str, explicit_range: str | None = None) -> tuple[str, str]:
    """Split ``name@range`` into (name, range).

    The range defaults to ``*``. A leading ``@`` belongs to the name, so only
    the last ``@`` after the first character separates the range.

    Raises:
        ProjectError: Empty name, invalid range, or a range given both ways.
    """
    if not spec:
        raise ProjectError("Skill name is required.")
    if explicit_range and not is_valid_range(explicit_range):
        raise ProjectError(f"Invalid semver range: {explicit_range}")

    at = spec.rfind("@")
    if at > 0:
        if explicit_range:
            raise ProjectError("Provide a range either with @ or --range, not both.")
        name = spec[:at]
        range_expr = spec[at + 1:] or "*"
        if not is_valid_range(range_expr):
            raise ProjectError(f"Invalid semver range: {range_expr}")
        return name, range_expr

    return spec, explicit_range or "*"


def _locked_versions(lockfile: Lockfile | None) -> dict[str, str]:
    if lockfile is None:
        return {}
    return {pkg.name: pkg.version for pkg in lockfile.packages.values()}


class Project:
    """One skpm project directory."""

    def __init__(
        self,
        root: Path | str,
        config: AppConfig | None = None,
        registry_override: str | None = None,
        transport=None,
    ):
        """Initialize the project.

        Args:
            root: Directory holding skpm.json.
            config: Application configuration. Defaults to AppConfig().
            registry_override: Registry locator that beats the manifest's.
            transport: Optional httpx transport for registry clients.
        """
        self.root = Path(root)
        self.config = config or AppConfig()
        self.registry_override = registry_override
        self._transport = transport
        self.cache = ContentCache(self.config.cache.dir)
        self.store = LocalStore(self.root)
        self.log = logger.bind(component="project", root=str(self.root))
        self.hlog = HumanLog(self.log)

    @property
    def manifest_path(self) -> Path:
        return get_manifest_path(self.root)

    @property
    def lockfile_path(self) -> Path:
        return get_lockfile_path(self.root)

    # ── Documents ────────────────────────────────────────────────────────

    def load_manifest(self) -> ProjectManifest:
        if not self.manifest_path.exists():
            raise ProjectError("Missing skpm.json. Run 'skpm init' first.")
        return load_project_manifest(self.manifest_path)

    def manifest_if_exists(self) -> ProjectManifest | None:
        if not self.manifest_path.exists():
            return None
        return load_project_manifest(self.manifest_path)

    def lockfile_if_exists(self) -> Lockfile | None:
        if not self.lockfile_path.exists():
            return None
        return read_lockfile(self.lockfile_path)

    def registry_url(self, manifest: ProjectManifest | None) -> str:
        return resolve_registry_url(manifest, self.registry_override, self.config.registry.url)

    def open_client(self, registry: str) -> RegistryClient:
        return RegistryClient(
            registry,
            cache_root=self.config.registry.cache_dir,
            timeout=self.config.registry.timeout,
            max_redirects=self.config.registry.max_redirects,
            transport=self._transport,
        )

    # ── init ─────────────────────────────────────────────────────────────

    def init(
        self,
        name: str | None = None,
        registry: str | None = None,
        agent_targets: list[str] | None = None,
    ) -> ProjectManifest:
        """Create skpm.json with no skills.

        The project name falls back to package.json's name, then to the
        directory name.
        """
        if self.manifest_path.exists():
            raise ProjectError("skpm.json already exists in this directory.")

        targets = parse_tool_targets(agent_targets)
        validate_tool_targets(targets)

        manifest = ProjectManifest(
            name=(name or "").strip() or self._inferred_name(),
            skills={},
            registry=(registry or "").strip() or None,
            agent_targets=targets or None,
        )
        self.root.mkdir(parents=True, exist_ok=True)
        write_project_manifest(self.manifest_path, manifest)
        self.log.info("project.initialized", name=manifest.name)
        return manifest

    def _inferred_name(self) -> str:
        package_json = self.root / "package.json"
        if package_json.is_file():
            try:
                data = json.loads(package_json.read_text(encoding="utf-8"))
            except ValueError:
                data = {}
            if isinstance(data, dict) and str(data.get("name") or "").strip():
                return str(data["name"]).strip()
        return self.root.resolve().name

    # ── install / update ─────────────────────────────────────────────────

    def install(
        self,
        frozen: bool = False,
        agent_targets: list[str] | None = None,
    ) -> InstallResult:
        """Resolve, lock and materialize the project's skills.

        Args:
            frozen: Materialize the existing lockfile without resolving.
            agent_targets: Tools to link, overriding the manifest's list.

        Raises:
            ProjectError: Missing manifest, or a frozen install without a
                matching lockfile.
            ResolutionError / NoSatisfyingVersionError / CyclicDependencyError
            RegistryError / IntegrityMismatchError
        """
        manifest = self.load_manifest()
        targets = parse_tool_targets(agent_targets) or list(manifest.agent_targets or [])
        validate_tool_targets(targets)

        if frozen:
            lockfile = self._frozen_lockfile(manifest)
            registry = resolve_registry_url(None, self.registry_override, lockfile.registry)
            self.hlog.frozen(len(lockfile.packages))
            with self.open_client(registry) as client:
                installed = self._materialize(client, lockfile, targets)
            return InstallResult(registry=registry, lockfile=lockfile, installed=installed)

        registry = self.registry_url(manifest)
        self.hlog.resolving(registry)
        with self.open_client(registry) as client:
            client.ensure_catalog_available()
            result = resolve(manifest.name, manifest.skills, RegistryPackageSource(client))
            self.hlog.resolved(len(result.packages))

            lockfile = create_lockfile(registry, result.root_name, result.skills, result.packages)
            write_lockfile(self.lockfile_path, lockfile)
            self.log.info("project.lockfile_written", packages=len(lockfile.packages))

            installed = self._materialize(client, lockfile, targets)
        return InstallResult(registry=registry, lockfile=lockfile, installed=installed)

    def _frozen_lockfile(self, manifest: ProjectManifest) -> Lockfile:
        lockfile = self.lockfile_if_exists()
        if lockfile is None:
            raise ProjectError("Missing skpm-lock.json. Run 'skpm install' without --frozen first.")
        if lockfile.root.skills != manifest.skills:
            raise ProjectError(
                "skpm-lock.json is out of date with skpm.json. "
                "Run 'skpm install' without --frozen to refresh it."
            )
        return lockfile

    def _materialize(
        self,
        client: RegistryClient,
        lockfile: Lockfile,
        targets: list[str],
    ) -> list[InstalledSkill]:
        installed: list[InstalledSkill] = []
        for pkg in lockfile.packages.values():
            if not self.cache.is_cached(pkg.name, pkg.version):
                self.hlog.fetching(pkg.name, pkg.version)
            cached = self.cache.ensure_package_cached(client, pkg.name, pkg.version)

            if pkg.name in lockfile.root.skills:
                tools = self.store.install_top_level_skill(
                    pkg.name, pkg.version, cached, targets or None
                )
                installed.append(InstalledSkill(name=pkg.name, version=pkg.version, tools=tools))
                self.hlog.skill_installed(pkg.name, pkg.version, tools)
            else:
                self.store.ensure_stored(pkg.name, pkg.version, cached)

        self.hlog.install_complete(len(installed))
        return installed

    def update(self, agent_targets: list[str] | None = None) -> UpdateResult:
        """Re-resolve from the registry and report locked version changes."""
        before = _locked_versions(self.lockfile_if_exists())
        result = self.install(agent_targets=agent_targets)
        after = _locked_versions(result.lockfile)

        changes = [
            VersionChange(name=name, old=before.get(name), new=after.get(name))
            for name in sorted(set(before) | set(after))
            if before.get(name) != after.get(name)
        ]
        self.log.info("project.updated", changes=len(changes))
        return UpdateResult(install=result, changes=changes)

    # ── add / remove ─────────────────────────────────────────────────────

    def add(
        self,
        spec: str,
        range_expr: str | None = None,
        agent_targets: list[str] | None = None,
    ) -> InstallResult:
        """Add a root skill and install. skpm.json is restored if install fails."""
        manifest = self.load_manifest()
        name, range_expr = parse_skill_spec(spec, range_expr)

        updated = manifest.model_copy(update={"skills": {**manifest.skills, name: range_expr}})
        previous_lock = (
            self.lockfile_path.read_bytes() if self.lockfile_path.exists() else None
        )
        write_project_manifest(self.manifest_path, updated)

        try:
            result = self.install(agent_targets=agent_targets)
        except Exception:
            write_project_manifest(self.manifest_path, manifest)
            if previous_lock is not None:
                self.lockfile_path.write_bytes(previous_lock)
            else:
                self.lockfile_path.unlink(missing_ok=True)
            self.log.info("project.add_rolled_back", name=name)
            raise

        self.hlog.skill_added(name, range_expr)
        return result

    def remove(self, name: str, agent_targets: list[str] | None = None) -> RemoveResult:
        """Drop a root skill, reinstall and sweep store entries nothing locks."""
        manifest = self.load_manifest()
        if name not in manifest.skills:
            raise ProjectError(f"Skill not found in skpm.json: {name}")

        skills = {k: v for k, v in manifest.skills.items() if k != name}
        write_project_manifest(self.manifest_path, manifest.model_copy(update={"skills": skills}))
        self.store.remove_skill_links(name)

        result = self.install(agent_targets=agent_targets)
        pruned = self.store.prune_orphans(set(result.lockfile.packages))

        self.hlog.skill_removed(name)
        if pruned:
            self.hlog.store_pruned(pruned)
        return RemoveResult(name=name, install=result, pruned=pruned)

    # ── Queries ──────────────────────────────────────────────────────────

    def list_skills(self) -> list[SkillListing]:
        """Root skills with locked versions, or the bare manifest entries."""
        manifest = self.load_manifest()
        lockfile = self.lockfile_if_exists()
        if lockfile is None:
            return [SkillListing(name=n, range=r) for n, r in manifest.skills.items()]

        versions = _locked_versions(lockfile)
        return [
            SkillListing(name=n, range=r, version=versions.get(n))
            for n, r in lockfile.root.skills.items()
        ]

    def info(self, name: str, version: str | None = None) -> PackageManifest:
        """Manifest of name@version; latest valid version when omitted."""
        registry = self.registry_url(self.manifest_if_exists())
        with self.open_client(registry) as client:
            client.ensure_catalog_available()
            versions = client.list_package_versions(name)
            if not versions:
                raise PackageNotFoundError(name, registry)
            chosen = version or latest(versions) or versions[-1]
            return client.get_manifest(name, chosen)

    def search(self, query: str | None = None) -> list[RegistryEntry]:
        registry = self.registry_url(self.manifest_if_exists())
        with self.open_client(registry) as client:
            client.ensure_catalog_available()
            return client.search(query)
