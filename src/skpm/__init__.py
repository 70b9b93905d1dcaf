"""
skpm — package manager for agent skills.

Resolves versioned skill bundles from a registry, caches them in a verified
machine-global cache and installs them into a project-local store.
"""

__version__ = "0.4.0"
