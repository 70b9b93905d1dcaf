"""
Pydantic models for skpm configuration.

Defines the configuration schemas using Pydantic v2 for validation,
defaults, and serialization.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from ..registry.client import DEFAULT_REGISTRY, DEFAULT_REGISTRY_CACHE_ROOT
from ..cache.store import DEFAULT_CACHE_ROOT


class RegistryConfig(BaseModel):
    """Registry access configuration."""

    url: str = DEFAULT_REGISTRY
    timeout: float = Field(default=15.0, gt=0, description="Per-request timeout in seconds")
    max_redirects: int = Field(default=5, ge=0, le=20)
    cache_dir: Path = Field(
        default=DEFAULT_REGISTRY_CACHE_ROOT,
        description="Root of the per-registry catalog mirrors",
    )

    model_config = {"extra": "forbid"}


class CacheConfig(BaseModel):
    """Machine-global content cache."""

    dir: Path = DEFAULT_CACHE_ROOT

    model_config = {"extra": "forbid"}


class PublishConfig(BaseModel):
    """Publish client configuration."""

    token_env: str = Field(
        default="SKPM_PUBLISH_TOKEN",
        description="Environment variable holding the bearer token for HTTP registries",
    )

    model_config = {"extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    # "human" shows install progress only
    level: Literal["debug", "info", "human", "warn", "error"] = "human"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Root configuration."""

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
