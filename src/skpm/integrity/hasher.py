"""
Content digest over an explicit list of files.

The digest is the trust anchor for fetched content: the registry declares a
digest per version and the cache recomputes it after extraction.

Format: SHA-256 over, for each path in sorted order, the UTF-8 posix path,
one NUL byte and the raw file bytes. Rendered as ``sha256-<hex>``.
"""

import hashlib
import os
from pathlib import Path

ALGORITHM = "sha256"

# Read files in chunks so large skills are hashed without loading them whole
_CHUNK_SIZE = 64 * 1024


def _to_posix(entry: str) -> str:
    entry = entry.replace(os.sep, "/")
    if os.altsep:
        entry = entry.replace(os.altsep, "/")
    return entry


def list_files(root: Path | str) -> list[str]:
    """List every regular file and symlink under root.

    Directories are walked but not listed. Symlinks are listed and never
    walked into: a link to a file contributes the bytes read through it, any
    other link (directory or dangling) contributes its link text.

    Returns:
        Posix relative paths, sorted.
    """
    root = Path(root)
    results: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        for dirname in list(dirnames):
            if (base / dirname).is_symlink():
                dirnames.remove(dirname)
                results.append(_to_posix(str((base / dirname).relative_to(root))))
        for filename in filenames:
            results.append(_to_posix(str((base / filename).relative_to(root))))
    return sorted(results)


def digest(root: Path | str, files: list[str]) -> str:
    """Compute the integrity digest for files under root.

    Args:
        root: Directory the relative paths are resolved against.
        files: Relative paths to include. Order and native separators do
            not affect the result.

    Returns:
        Digest string like ``sha256-3a7bd3e2...``.
    """
    root = Path(root)
    hasher = hashlib.new(ALGORITHM)
    for relative in sorted(_to_posix(f) for f in files):
        hasher.update(relative.encode("utf-8"))
        hasher.update(b"\x00")
        target = root / relative
        if target.is_symlink() and not target.is_file():
            # Links to directories and dangling links: hash the link text
            hasher.update(os.readlink(target).encode("utf-8"))
            continue
        with open(target, "rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                hasher.update(chunk)
    return f"{ALGORITHM}-{hasher.hexdigest()}"


def digest_directory(root: Path | str) -> str:
    """Digest every file under root (see list_files)."""
    return digest(root, list_files(root))
