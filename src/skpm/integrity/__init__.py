"""
Integrity Hasher: deterministic content digest over a file tree.
"""

from .hasher import ALGORITHM, digest, digest_directory, list_files

__all__ = [
    "ALGORITHM",
    "digest",
    "digest_directory",
    "list_files",
]
