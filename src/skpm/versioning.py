"""
Semantic version helpers with npm range semantics.

Ranges follow the npm grammar (``^1.2.0``, ``~1.2``, ``1.x``, ``>=1 <2``,
``1.0.0 - 1.4.0``, ``a || b``, ``*``) through semantic_version.NpmSpec.
Version strings that do not parse as strict semver are "invalid": they are
never selected by the resolver but are still listed after valid ones.
"""

from functools import lru_cache

import semantic_version


@lru_cache(maxsize=1024)
def parse_version(value: str) -> semantic_version.Version | None:
    """Parse a strict semver string, or None when it is not one."""
    try:
        return semantic_version.Version(value)
    except ValueError:
        return None


@lru_cache(maxsize=1024)
def parse_range(value: str) -> semantic_version.NpmSpec | None:
    """Parse an npm range expression, or None when it is not one."""
    try:
        return semantic_version.NpmSpec(value.strip() or "*")
    except ValueError:
        return None


def is_valid_version(value: str) -> bool:
    return parse_version(value) is not None


def is_valid_range(value: str) -> bool:
    return parse_range(value) is not None


def satisfies(version: str, range_expr: str) -> bool:
    """True when version is valid semver and matches the npm range."""
    parsed = parse_version(version)
    spec = parse_range(range_expr)
    if parsed is None or spec is None:
        return False
    return spec.match(parsed)


def satisfies_all(version: str, ranges: list[str]) -> bool:
    return all(satisfies(version, r) for r in ranges)


def sort_versions_desc(versions: list[str]) -> list[str]:
    """Valid versions highest-first, then invalid strings in lexical order."""
    valid = [v for v in versions if parse_version(v) is not None]
    invalid = sorted(v for v in versions if parse_version(v) is None)
    valid.sort(key=parse_version, reverse=True)
    return valid + invalid


def max_satisfying(versions: list[str], ranges: list[str]) -> str | None:
    """Highest valid version satisfying every range, or None."""
    candidates = [v for v in versions if parse_version(v) is not None and satisfies_all(v, ranges)]
    if not candidates:
        return None
    return max(candidates, key=parse_version)


def latest(versions: list[str]) -> str | None:
    """Highest valid version; falls back to the lexically last string."""
    ordered = sort_versions_desc(versions)
    valid = [v for v in ordered if parse_version(v) is not None]
    if valid:
        return valid[0]
    return ordered[-1] if ordered else None
