"""
Dependency resolver — one version per package name across the whole graph.

Depth-first and requirement-accumulating: every range ever placed on a name is
kept, and a name's version must satisfy all of them. When a later requirement
rules out the version already chosen, the package is upgraded in place: the
old version's contributed requirements are retracted, its entry is dropped,
and packages left without any requirer are pruned, cascading, before the new
version's subtree is walked.

Iteration is name-sorted at every level so the same inputs always produce the
same lockfile.

Typical usage:
    result = resolve("my-project", {"frontend": "^1.0.0"}, source)
    result.packages["frontend@1.1.0"].resolved  # {"core": "2.0.0"}
"""

import structlog

from ..errors import (
    ConflictDetail,
    CyclicDependencyError,
    NoSatisfyingVersionError,
    ResolutionError,
    format_path,
)
from ..manifest.models import ResolvedPackage, package_key
from ..versioning import max_satisfying, satisfies_all
from .models import PackageSource, Requester, Requirement, ResolveResult

logger = structlog.get_logger()


class ResolutionContext:
    """Mutable state of one resolution run.

    Passed through the recursion explicitly; nothing here outlives resolve().
    """

    def __init__(self, source: PackageSource):
        self.source = source
        self.resolved_versions: dict[str, str] = {}
        self.requirements: dict[str, list[Requirement]] = {}
        self.in_progress: set[str] = set()
        self.root_names: set[str] = set()
        self.packages: dict[str, ResolvedPackage] = {}
        self.log = logger.bind(component="resolver")

    # ── Entry point ──────────────────────────────────────────────────────

    def run(self, root_name: str, skills: dict[str, str]) -> ResolveResult:
        self.root_names = set(skills)
        for name in sorted(skills):
            self.resolve_requirement(
                Requirement(
                    name=name,
                    range=skills[name],
                    path=["root", name],
                    requester=Requester.root(),
                )
            )

        self._refresh_resolved_edges()
        self.log.info(
            "resolver.complete",
            root=root_name,
            packages=len(self.packages),
        )
        return ResolveResult(
            root_name=root_name,
            skills=dict(skills),
            packages={key: self.packages[key] for key in sorted(self.packages)},
        )

    # ── Recursion ────────────────────────────────────────────────────────

    def resolve_requirement(self, req: Requirement) -> None:
        """Record req and make sure its name resolves to a version satisfying it."""
        name = req.name
        self.requirements.setdefault(name, []).append(req)

        if name in self.in_progress:
            raise CyclicDependencyError(name, req.path)

        existing = self.resolved_versions.get(name)
        if existing is not None and satisfies_all(existing, self._ranges(name)):
            return

        self.in_progress.add(name)
        try:
            version = self._pick(name, req.path)
            if existing is not None:
                self._replace(name, existing, version)
            self.resolved_versions[name] = version
            self._walk(name, version, req.path)
        finally:
            self.in_progress.discard(name)

    def _walk(self, name: str, version: str, path: list[str]) -> None:
        manifest = self.source.get_manifest(name, version)
        dependencies = dict(manifest.dependencies)
        requester = Requester.package(name, version)

        for dep_name in sorted(dependencies):
            self.resolve_requirement(
                Requirement(
                    name=dep_name,
                    range=dependencies[dep_name],
                    path=path + [dep_name],
                    requester=requester,
                )
            )

        resolved = {
            dep_name: self.resolved_versions[dep_name]
            for dep_name in sorted(dependencies)
            if dep_name in self.resolved_versions
        }
        integrity = self.source.get_integrity(name, version)
        self.packages[package_key(name, version)] = ResolvedPackage(
            name=name,
            version=version,
            dependencies=dependencies,
            resolved=resolved,
            integrity=integrity,
        )

    # ── Version selection ────────────────────────────────────────────────

    def _ranges(self, name: str) -> list[str]:
        return [req.range for req in self.requirements.get(name, [])]

    def _pick(self, name: str, path: list[str]) -> str:
        ranges = self._ranges(name)
        versions = self.source.list_versions(name)
        version = max_satisfying(versions, ranges)
        if version is not None:
            self.log.debug(
                "resolver.pick",
                name=name,
                version=version,
                candidates=len(versions),
            )
            return version

        distinct = list(dict.fromkeys(ranges))
        if len(distinct) >= 2:
            reqs = self.requirements[name]
            first, last = reqs[0], reqs[-1]
            conflict = ConflictDetail(
                name=name,
                existing_range=first.range,
                new_range=last.range,
                existing_path=list(first.path),
                new_path=list(last.path),
            )
            raise ResolutionError(
                f"Conflict on {name}: {conflict.existing_range} vs {conflict.new_range} "
                f"(paths: {format_path(conflict.existing_path)} | {format_path(conflict.new_path)})",
                [conflict],
            )
        raise NoSatisfyingVersionError(name, distinct, path)

    # ── Upgrade in place ─────────────────────────────────────────────────

    def _replace(self, name: str, old_version: str, new_version: str) -> None:
        """Drop name@old_version and everything only it kept alive."""
        self.log.info(
            "resolver.upgrade",
            name=name,
            old=old_version,
            new=new_version,
        )
        self._retract(Requester.package(name, old_version))
        self.packages.pop(package_key(name, old_version), None)
        self._prune()

    def _retract(self, requester: Requester) -> None:
        for dep_name, reqs in self.requirements.items():
            self.requirements[dep_name] = [r for r in reqs if r.requester != requester]

    def _prune(self) -> None:
        """Remove non-root packages with no requirers until nothing changes."""
        changed = True
        while changed:
            changed = False
            for name in sorted(self.resolved_versions):
                if name not in self.resolved_versions:
                    continue
                if name in self.root_names or name in self.in_progress:
                    continue
                if self.requirements.get(name):
                    continue
                version = self.resolved_versions.pop(name)
                self.packages.pop(package_key(name, version), None)
                self.requirements.pop(name, None)
                self._retract(Requester.package(name, version))
                self.log.debug("resolver.prune", name=name, version=version)
                changed = True

    def _refresh_resolved_edges(self) -> None:
        # An upgrade can leave earlier packages pointing at a replaced version
        for key, pkg in self.packages.items():
            self.packages[key] = pkg.model_copy(
                update={
                    "resolved": {
                        dep_name: self.resolved_versions[dep_name]
                        for dep_name in sorted(pkg.dependencies)
                        if dep_name in self.resolved_versions
                    }
                }
            )


def resolve(root_name: str, skills: dict[str, str], source: PackageSource) -> ResolveResult:
    """Resolve root requirements against source.

    Args:
        root_name: Project name recorded in the result.
        skills: Root requirements, name → range.
        source: Metadata capability (versions, manifests, integrity).

    Returns:
        ResolveResult with one ResolvedPackage per surviving name@version.

    Raises:
        ResolutionError: Two requirement paths pin a name to incompatible ranges.
        NoSatisfyingVersionError: No published version meets a single range.
        CyclicDependencyError: A package requires itself transitively.
    """
    return ResolutionContext(source).run(root_name, skills)
