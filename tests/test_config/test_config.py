"""
Tests for configuration loading (defaults ← YAML ← env ← CLI).
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from skpm.config import AppConfig, deep_merge, load_config
from skpm.config.loader import load_env_overrides
from skpm.registry import DEFAULT_REGISTRY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("SKPM_REGISTRY", "SKPM_CACHE_DIR", "SKPM_REGISTRY_CACHE_DIR", "SKPM_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_default_file(monkeypatch, tmp_path: Path):
    monkeypatch.setattr("skpm.config.loader.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")


# ── Tests: defaults ──────────────────────────────────────────────────────


class TestDefaults:
    def test_defaults(self, no_default_file):
        config = load_config()
        assert config.registry.url == DEFAULT_REGISTRY
        assert config.registry.timeout == 15.0
        assert config.registry.max_redirects == 5
        assert config.logging.level == "human"
        assert config.publish.token_env == "SKPM_PUBLISH_TOKEN"

    def test_extra_keys_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(registry={"url": "x", "mirror": True})


# ── Tests: layering ──────────────────────────────────────────────────────


class TestLayering:
    def test_yaml(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("registry:\n  url: ./local-registry\n  timeout: 3\ncache:\n  dir: /tmp/skpm-cache\n")
        config = load_config(config_path=path)
        assert config.registry.url == "./local-registry"
        assert config.registry.timeout == 3.0
        assert config.registry.max_redirects == 5
        assert config.cache.dir == Path("/tmp/skpm-cache")

    def test_empty_yaml(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(config_path=path).registry.url == DEFAULT_REGISTRY

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("registry:\n  url: ./from-yaml\n")
        monkeypatch.setenv("SKPM_REGISTRY", "./from-env")
        monkeypatch.setenv("SKPM_LOG_LEVEL", "DEBUG")
        config = load_config(config_path=path)
        assert config.registry.url == "./from-env"
        assert config.logging.level == "debug"

    def test_env_overrides_dict(self, monkeypatch):
        monkeypatch.setenv("SKPM_CACHE_DIR", "/c")
        monkeypatch.setenv("SKPM_REGISTRY_CACHE_DIR", "/r")
        assert load_env_overrides() == {"cache": {"dir": "/c"}, "registry": {"cache_dir": "/r"}}

    def test_cli_beats_env(self, monkeypatch, no_default_file):
        monkeypatch.setenv("SKPM_CACHE_DIR", "/from-env")
        config = load_config(cli_args={"cache_dir": "/from-cli", "timeout": 1.5, "verbose": 2})
        assert config.cache.dir == Path("/from-cli")
        assert config.registry.timeout == 1.5
        assert config.logging.verbose == 2

    def test_invalid_value(self, no_default_file):
        with pytest.raises(ValidationError):
            load_config(cli_args={"timeout": -1})


# ── Tests: deep_merge ────────────────────────────────────────────────────


class TestDeepMerge:
    def test_nested(self):
        assert deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 99}, "e": 4}) == {
            "a": {"b": 99, "c": 2},
            "e": 4,
        }

    def test_does_not_mutate(self):
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}
