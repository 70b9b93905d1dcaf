"""
Publisher: tarball creation and registry upload.
"""

from .publisher import (
    PublishResult,
    collect_publish_files,
    derive_publish_api_url,
    glob_to_regex,
    publish_package,
    publish_to_file_registry,
    publish_to_http_registry,
    write_tarball,
)

__all__ = [
    "PublishResult",
    "collect_publish_files",
    "derive_publish_api_url",
    "glob_to_regex",
    "publish_package",
    "publish_to_file_registry",
    "publish_to_http_registry",
    "write_tarball",
]
