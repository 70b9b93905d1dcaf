"""
Configuration loader with deep merge.

Precedence (lowest to highest):
1. Defaults (defined in the Pydantic schemas)
2. YAML file (explicit path, or ~/.skpm/config.yaml when present)
3. Environment variables
4. CLI arguments

The merge is recursive to preserve every key at every level.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig

DEFAULT_CONFIG_PATH = Path.home() / ".skpm" / "config.yaml"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dictionary merge.

    Args:
        base: Base dictionary
        override: Dictionary whose values win on leaf conflicts

    Returns:
        New merged dictionary.

    Example:
        >>> deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 99}, "e": 4})
        {'a': {'b': 99, 'c': 2}, 'e': 4}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(config_path: Path | None) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None to skip

    Returns:
        Configuration dictionary, empty when there is no file

    Raises:
        FileNotFoundError: An explicit path does not exist.
    """
    if not config_path:
        return {}

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def load_env_overrides() -> dict[str, Any]:
    """Load overrides from environment variables.

    Supported variables:
        SKPM_REGISTRY: overrides registry.url
        SKPM_REGISTRY_CACHE_DIR: overrides registry.cache_dir
        SKPM_CACHE_DIR: overrides cache.dir
        SKPM_LOG_LEVEL: overrides logging.level

    Returns:
        Overrides dictionary
    """
    overrides: dict[str, Any] = {}

    if registry := os.environ.get("SKPM_REGISTRY"):
        overrides.setdefault("registry", {})["url"] = registry

    if registry_cache := os.environ.get("SKPM_REGISTRY_CACHE_DIR"):
        overrides.setdefault("registry", {})["cache_dir"] = registry_cache

    if cache_dir := os.environ.get("SKPM_CACHE_DIR"):
        overrides.setdefault("cache", {})["dir"] = cache_dir

    if log_level := os.environ.get("SKPM_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level.lower()

    return overrides


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Apply overrides from CLI arguments.

    The registry URL given on the command line is not applied here: it
    overrides the project manifest's registry too, so the project layer
    handles it (see core.project.resolve_registry_url).
    """
    overrides: dict[str, Any] = {}

    if cli_args.get("cache_dir"):
        overrides.setdefault("cache", {})["dir"] = cli_args["cache_dir"]

    if cli_args.get("timeout") is not None:
        overrides.setdefault("registry", {})["timeout"] = cli_args["timeout"]

    if cli_args.get("log_level"):
        overrides.setdefault("logging", {})["level"] = cli_args["log_level"]

    if cli_args.get("log_file"):
        overrides.setdefault("logging", {})["file"] = cli_args["log_file"]

    if cli_args.get("verbose") is not None:
        overrides.setdefault("logging", {})["verbose"] = cli_args["verbose"]

    return deep_merge(config_dict, overrides)


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Load and validate the full configuration.

    Args:
        config_path: YAML configuration path. When None, the default
            ~/.skpm/config.yaml is used if it exists.
        cli_args: CLI argument dictionary

    Returns:
        Validated AppConfig

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ValidationError: If the merged configuration is invalid
    """
    cli_args = cli_args or {}

    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH

    yaml_config = load_yaml_config(config_path)
    merged = deep_merge(yaml_config, load_env_overrides())
    merged = apply_cli_overrides(merged, cli_args)

    return AppConfig(**merged)
