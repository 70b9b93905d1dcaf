"""
Main CLI for skpm using Click.

Every command loads the configuration (defaults ← YAML ← env ← CLI),
configures logging, runs one project workflow and renders its result either
as text or, with --json, as a JSON document on stdout. Progress lines go to
stderr through the HUMAN log level.
"""

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable

import click
from pydantic import ValidationError

from . import __version__
from .config.loader import load_config
from .config.schema import AppConfig
from .core import InstallResult, Project
from .errors import InvalidDocumentError, ResolutionError, SkpmError
from .install.tools import detect_tools, parse_tool_targets
from .logging import configure_logging
from .publish import publish_package

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 3
EXIT_INTERRUPTED = 130


def _common_options(f: Callable) -> Callable:
    """Options shared by every command."""
    options = [
        click.option(
            "-c",
            "--config",
            type=click.Path(exists=True, path_type=Path),
            help="Path to the YAML configuration file",
        ),
        click.option(
            "-C",
            "--project-dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=Path("."),
            show_default=True,
            help="Project directory (holds skpm.json)",
        ),
        click.option("--registry", default=None, help="Registry URL or path (overrides skpm.json)"),
        click.option("--cache-dir", default=None, help="Content cache directory"),
        click.option("--timeout", type=float, default=None, help="Registry request timeout in seconds"),
        click.option(
            "--log-level",
            type=click.Choice(["debug", "info", "human", "warn", "error"]),
            default=None,
            help="Minimum log level",
        ),
        click.option("--log-file", type=click.Path(), default=None, help="Write JSON logs to this file"),
        click.option("-v", "--verbose", count=True, help="More technical output (-v, -vv)"),
        click.option("--quiet", is_flag=True, help="Quiet mode"),
        click.option("--json", "json_output", is_flag=True, help="JSON output on stdout"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _load(kwargs: dict[str, Any]) -> AppConfig:
    config = load_config(config_path=kwargs.get("config"), cli_args=kwargs)
    configure_logging(
        config.logging,
        json_output=kwargs.get("json_output", False),
        quiet=kwargs.get("quiet", False),
    )
    return config


def _execute(
    kwargs: dict[str, Any],
    action: Callable[[AppConfig], Any],
    render: Callable[[Any], None] | None = None,
) -> None:
    """Run action with configuration, error mapping and output rendering."""
    try:
        config = _load(kwargs)
    except FileNotFoundError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        payload = action(config)
    except KeyboardInterrupt:
        click.echo("\nInterrupted.", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except InvalidDocumentError as e:
        click.echo(f"Invalid document: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except ResolutionError as e:
        click.echo(e.render(), err=True)
        sys.exit(EXIT_FAILED)
    except SkpmError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except ValidationError as e:
        click.echo(f"Invalid document: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    if kwargs.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
    elif render is not None:
        render(payload)


def _project(config: AppConfig, kwargs: dict[str, Any]) -> Project:
    return Project(kwargs["project_dir"], config, registry_override=kwargs.get("registry"))


def _install_payload(result: InstallResult) -> dict[str, Any]:
    return {
        "registry": result.registry,
        "installed": [asdict(skill) for skill in result.installed],
    }


@click.group()
@click.version_option(version=__version__, prog_name="skpm")
def main() -> None:
    """skpm - package manager for AI agent skills.

    Resolves skill dependencies against a registry, verifies and caches their
    content, and links installed skills into agent tools (Claude, Codex,
    Cursor, Windsurf, Gemini, Copilot).
    """
    pass


# ── PROJECT COMMANDS ─────────────────────────────────────────────────────


@main.command()
@click.option("--name", default=None, help="Project name (default: package.json name or directory)")
@click.option("--tool", "tools", multiple=True, help="Agent tool to link (repeatable or comma-separated)")
@click.option("-y", "--yes", is_flag=True, help="Use detected tools without asking")
@_common_options
def init(name: str | None, tools: tuple[str, ...], yes: bool, **kwargs) -> None:
    """Create skpm.json in the project directory."""

    def action(config: AppConfig) -> Any:
        project = _project(config, kwargs)
        targets = parse_tool_targets(tools)
        if not targets and not project.manifest_path.exists():
            detected = detect_tools(project.root)
            if detected and (
                yes
                or kwargs.get("json_output")
                or click.confirm(
                    f"Configure agentTargets for detected tools ({', '.join(detected)})?",
                    default=True,
                    err=True,
                )
            ):
                targets = detected
        manifest = project.init(
            name=name,
            registry=kwargs.get("registry"),
            agent_targets=targets,
        )
        return manifest.model_dump(by_alias=True, exclude_none=True)

    _execute(kwargs, action, lambda m: click.echo(f"Initialized skpm.json for {m['name']}."))


@main.command()
@click.option("--frozen", is_flag=True, help="Install exactly what skpm-lock.json records")
@click.option("--agents", "agents", multiple=True, help="Agent tools to link (overrides skpm.json)")
@_common_options
def install(frozen: bool, agents: tuple[str, ...], **kwargs) -> None:
    """Install the skills listed in skpm.json.

    Examples:

        \b
        $ skpm install
        $ skpm install --frozen
        $ skpm install --agents claude,cursor
    """

    def action(config: AppConfig) -> Any:
        result = _project(config, kwargs).install(frozen=frozen, agent_targets=list(agents))
        return _install_payload(result)

    _execute(kwargs, action)


@main.command()
@click.argument("spec")
@click.option("--range", "range_expr", default=None, help="Semver range (instead of name@range)")
@click.option("--agents", "agents", multiple=True, help="Agent tools to link (overrides skpm.json)")
@_common_options
def add(spec: str, range_expr: str | None, agents: tuple[str, ...], **kwargs) -> None:
    """Add a skill to skpm.json and install.

    SPEC: skill name, optionally with a range (frontend@^1.0.0)
    """

    def action(config: AppConfig) -> Any:
        result = _project(config, kwargs).add(spec, range_expr, agent_targets=list(agents))
        return _install_payload(result)

    _execute(kwargs, action)


@main.command()
@click.argument("name")
@_common_options
def remove(name: str, **kwargs) -> None:
    """Remove a skill from skpm.json, reinstall and prune the store."""

    def action(config: AppConfig) -> Any:
        result = _project(config, kwargs).remove(name)
        return {"name": result.name, "pruned": result.pruned, **_install_payload(result.install)}

    _execute(kwargs, action)


@main.command()
@_common_options
def update(**kwargs) -> None:
    """Re-resolve every skill to the newest allowed versions."""

    def action(config: AppConfig) -> Any:
        result = _project(config, kwargs).update()
        return {
            **_install_payload(result.install),
            "changes": [asdict(change) for change in result.changes],
        }

    def render(payload: dict[str, Any]) -> None:
        for change in payload["changes"]:
            old = change["old"] or "(new)"
            new = change["new"] or "(removed)"
            click.echo(f"  {change['name']}: {old} -> {new}")
        click.echo("Update complete.")

    _execute(kwargs, action, render)


@main.command("list")
@_common_options
def list_cmd(**kwargs) -> None:
    """List the project's skills and their locked versions."""

    def action(config: AppConfig) -> Any:
        project = _project(config, kwargs)
        skills = project.list_skills()
        return {
            "lockfile": project.lockfile_path.exists(),
            "skills": [asdict(skill) for skill in skills],
        }

    def render(payload: dict[str, Any]) -> None:
        if not payload["lockfile"]:
            click.echo("No lockfile found. Listing manifest entries:")
            for skill in payload["skills"]:
                click.echo(f"- {skill['name']}@{skill['range']}")
            return
        if not payload["skills"]:
            click.echo("No skills installed.")
        for skill in payload["skills"]:
            click.echo(f"- {skill['name']}@{skill['version'] or skill['range']}")

    _execute(kwargs, action, render)


# ── REGISTRY COMMANDS ────────────────────────────────────────────────────


@main.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="Exact version (default: latest)")
@_common_options
def info(name: str, version: str | None, **kwargs) -> None:
    """Show a skill's manifest from the registry."""

    def action(config: AppConfig) -> Any:
        manifest = _project(config, kwargs).info(name, version)
        return manifest.model_dump(exclude_none=True)

    def render(m: dict[str, Any]) -> None:
        click.echo(f"{m['name']}@{m['version']}")
        click.echo(m["description"])
        click.echo(f"License: {m['license']}")
        click.echo(f"Author: {m['author']}")
        if m.get("dependencies"):
            click.echo("Dependencies:")
            for dep_name, range_expr in m["dependencies"].items():
                click.echo(f"- {dep_name}@{range_expr}")

    _execute(kwargs, action, render)


@main.command()
@click.argument("query", required=False)
@_common_options
def search(query: str | None, **kwargs) -> None:
    """Search the registry by name or description."""

    def action(config: AppConfig) -> Any:
        entries = _project(config, kwargs).search(query)
        return [
            {
                "name": e.name,
                "version": e.version,
                "description": e.manifest.description,
                "dependencies": dict(e.manifest.dependencies),
            }
            for e in entries
        ]

    def render(entries: list[dict[str, Any]]) -> None:
        if not entries:
            click.echo("No skills found.")
        for e in entries:
            click.echo(f"{e['name']}@{e['version']} - {e['description']}")

    _execute(kwargs, action, render)


@main.command()
@click.option("--token", default=None, help="Bearer token for HTTP registries")
@_common_options
def publish(token: str | None, **kwargs) -> None:
    """Publish the skill in the project directory."""

    def action(config: AppConfig) -> Any:
        result = publish_package(
            kwargs["project_dir"],
            registry_url=kwargs.get("registry") or config.registry.url,
            token=token,
            token_env=config.publish.token_env,
            timeout=config.registry.timeout,
        )
        return asdict(result)

    _execute(kwargs, action)


if __name__ == "__main__":
    main()
