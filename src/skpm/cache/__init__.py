"""
Content Cache: verified, immutable package bytes shared across projects.
"""

from .store import DEFAULT_CACHE_ROOT, ContentCache, extract_archive

__all__ = [
    "ContentCache",
    "DEFAULT_CACHE_ROOT",
    "extract_archive",
]
