"""
Tests for the click CLI: option wiring, output and exit codes.
"""

import json
import logging
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from conftest import RegistryBuilder, write_package
from skpm import __version__
from skpm.cli import EXIT_CONFIG_ERROR, EXIT_FAILED, main


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path, mirror_root: Path):
    monkeypatch.setattr("skpm.config.loader.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    for var in ("SKPM_REGISTRY", "SKPM_CACHE_DIR", "SKPM_LOG_LEVEL", "SKPM_PUBLISH_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SKPM_REGISTRY_CACHE_DIR", str(mirror_root))
    yield
    logging.root.handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def populated(registry: RegistryBuilder) -> RegistryBuilder:
    registry.add("core", "2.0.0")
    registry.add("frontend", "1.1.0", dependencies={"core": "^2.0.0"}, description="Frontend conventions")
    return registry


@pytest.fixture
def common(populated: RegistryBuilder, project_dir: Path, cache_root: Path) -> list[str]:
    return ["-C", str(project_dir), "--registry", populated.locator, "--cache-dir", str(cache_root)]


def write_manifest(project_dir: Path, skills: dict[str, str]) -> None:
    (project_dir / "skpm.json").write_text(json.dumps({"name": "app", "skills": skills}))


# ── Tests: basics ────────────────────────────────────────────────────────


class TestBasics:
    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "install", "add", "remove", "update", "list", "info", "search", "publish"):
            assert command in result.output

    def test_invalid_config_value(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["list", *common, "--timeout", "-1"])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid configuration" in result.output

    def test_malformed_manifest(self, runner: CliRunner, common: list[str], project_dir: Path):
        (project_dir / "skpm.json").write_text("{not json")
        result = runner.invoke(main, ["list", *common])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid document" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_malformed_lockfile(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {})
        (project_dir / "skpm-lock.json").write_text("")
        result = runner.invoke(main, ["list", *common])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "skpm-lock.json is not valid JSON" in result.output


# ── Tests: project commands ──────────────────────────────────────────────


class TestProjectCommands:
    def test_init(self, runner: CliRunner, project_dir: Path):
        result = runner.invoke(main, ["init", "-C", str(project_dir), "--name", "demo"])
        assert result.exit_code == 0, result.output
        assert "Initialized skpm.json for demo." in result.output
        assert json.loads((project_dir / "skpm.json").read_text()) == {"name": "demo", "skills": {}}

    def test_init_json_uses_detected_tools(self, runner: CliRunner, project_dir: Path):
        (project_dir / ".claude").mkdir()
        result = runner.invoke(main, ["init", "-C", str(project_dir), "--name", "demo", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"name": "demo", "skills": {}, "agentTargets": ["claude"]}

    def test_init_twice_fails(self, runner: CliRunner, project_dir: Path):
        write_manifest(project_dir, {})
        result = runner.invoke(main, ["init", "-C", str(project_dir)])
        assert result.exit_code == EXIT_FAILED
        assert "Error: skpm.json already exists" in result.output

    def test_install_json(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {"frontend": "^1.0.0"})
        result = runner.invoke(main, ["install", *common, "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["installed"] == [{"name": "frontend", "version": "1.1.0", "tools": []}]
        assert (project_dir / "skpm-lock.json").is_file()

    def test_install_human_output(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {"frontend": "^1.0.0"})
        result = runner.invoke(main, ["install", *common])
        assert result.exit_code == 0, result.output
        assert "+ frontend@1.1.0" in result.output
        assert "Installed 1 skill" in result.output

    def test_install_without_manifest(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["install", *common])
        assert result.exit_code == EXIT_FAILED
        assert "Run 'skpm init' first" in result.output

    def test_conflict_exit_code(self, runner: CliRunner, common: list[str], populated, project_dir: Path):
        populated.add("shared", "1.0.0")
        populated.add("shared", "2.0.0")
        populated.add("left", "1.0.0", dependencies={"shared": "^1.0.0"})
        populated.add("right", "1.0.0", dependencies={"shared": "^2.0.0"})
        write_manifest(project_dir, {"left": "*", "right": "*"})

        result = runner.invoke(main, ["install", *common])

        assert result.exit_code == EXIT_FAILED
        assert "Conflict on shared" in result.output

    def test_add_and_list(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {})
        added = runner.invoke(main, ["add", "frontend@^1.0.0", *common, "--quiet"])
        assert added.exit_code == 0, added.output

        listed = runner.invoke(main, ["list", *common])
        assert listed.exit_code == 0
        assert "- frontend@1.1.0" in listed.output

    def test_add_unknown_skill(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {})
        result = runner.invoke(main, ["add", "ghost", *common])
        assert result.exit_code == EXIT_FAILED
        assert "Error:" in result.output
        assert json.loads((project_dir / "skpm.json").read_text())["skills"] == {}

    def test_list_without_lockfile(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {"frontend": "^1.0.0"})
        result = runner.invoke(main, ["list", *common])
        assert "No lockfile found. Listing manifest entries:" in result.output
        assert "- frontend@^1.0.0" in result.output

    def test_remove_json(self, runner: CliRunner, common: list[str], project_dir: Path):
        write_manifest(project_dir, {"frontend": "^1.0.0"})
        runner.invoke(main, ["install", *common, "--quiet"])

        result = runner.invoke(main, ["remove", "frontend", *common, "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert sorted(payload["pruned"]) == ["core@2.0.0", "frontend@1.1.0"]
        assert payload["installed"] == []

    def test_update(self, runner: CliRunner, common: list[str], populated, project_dir: Path):
        write_manifest(project_dir, {"frontend": "^1.0.0"})
        runner.invoke(main, ["install", *common, "--quiet"])
        populated.add("core", "2.3.0")

        result = runner.invoke(main, ["update", *common, "--quiet"])

        assert result.exit_code == 0, result.output
        assert "core: 2.0.0 -> 2.3.0" in result.output
        assert "Update complete." in result.output


# ── Tests: registry commands ─────────────────────────────────────────────


class TestRegistryCommands:
    def test_info(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["info", "frontend", *common])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "frontend@1.1.0"
        assert "Frontend conventions" in lines
        assert "License: MIT" in lines
        assert "- core@^2.0.0" in lines

    def test_info_unknown(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["info", "ghost", *common])
        assert result.exit_code == EXIT_FAILED

    def test_search(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["search", "conventions", *common])
        assert result.exit_code == 0
        assert result.output.strip() == "frontend@1.1.0 - Frontend conventions"

    def test_search_no_match(self, runner: CliRunner, common: list[str]):
        result = runner.invoke(main, ["search", "nothing-like-this", *common])
        assert "No skills found." in result.output

    def test_publish_to_directory(self, runner: CliRunner, tmp_path: Path):
        package = write_package(tmp_path / "skill", "tools", "0.1.0")
        target = tmp_path / "published"

        result = runner.invoke(main, ["publish", "-C", str(package), "--registry", str(target), "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["tarball"] == "tarballs/tools/0.1.0.tgz"
        assert (target / payload["tarball"]).is_file()
