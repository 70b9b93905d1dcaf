"""
Configuration: Pydantic schemas and the YAML/env/CLI loader.
"""

from .loader import DEFAULT_CONFIG_PATH, deep_merge, load_config
from .schema import AppConfig, CacheConfig, LoggingConfig, PublishConfig, RegistryConfig

__all__ = [
    "AppConfig",
    "CacheConfig",
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "PublishConfig",
    "RegistryConfig",
    "deep_merge",
    "load_config",
]
