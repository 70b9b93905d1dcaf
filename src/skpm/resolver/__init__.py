"""
Dependency Resolver: deterministic version selection over an injected source.
"""

from .models import PackageSource, Requester, Requirement, ResolveResult
from .resolver import ResolutionContext, resolve

__all__ = [
    "PackageSource",
    "Requester",
    "Requirement",
    "ResolutionContext",
    "ResolveResult",
    "resolve",
]
