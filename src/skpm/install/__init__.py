"""
Local Store & Installer: project store, exposed aliases and tool links.
"""

from .store import SKILLS_DIR, STORE_DIR, LocalStore, get_exposed_path, get_store_path
from .tools import (
    TOOL_LINK_DIRS,
    TOOL_MARKERS,
    detect_tools,
    ensure_symlink,
    link_tool_targets,
    parse_tool_targets,
    remove_tool_links,
    validate_tool_targets,
)

__all__ = [
    "LocalStore",
    "SKILLS_DIR",
    "STORE_DIR",
    "TOOL_LINK_DIRS",
    "TOOL_MARKERS",
    "detect_tools",
    "ensure_symlink",
    "get_exposed_path",
    "get_store_path",
    "link_tool_targets",
    "parse_tool_targets",
    "remove_tool_links",
    "validate_tool_targets",
]
