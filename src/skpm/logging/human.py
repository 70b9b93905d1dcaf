"""
Human Log — formatter and helper for user-facing progress lines.

Example output:
    Resolving skills from https://registry.skpm.dev
      resolved 3 packages
      fetch core@2.0.0
      + frontend@1.1.0 (claude, cursor)
    ✓ Installed 1 skill
"""

import logging
import sys

from .levels import HUMAN


class HumanFormatter:
    """Turns structured progress events into readable lines."""

    def format_event(self, event: str, **kw) -> str | None:
        """Format one event, or None when it has no human rendering."""
        match event:

            # ── Install ──────────────────────────────────────────────────
            case "install.resolving":
                return f"Resolving skills from {kw.get('registry', '?')}"

            case "install.frozen":
                return f"Installing from lockfile ({kw.get('packages', '?')} packages)"

            case "install.resolved":
                return f"  resolved {kw.get('packages', '?')} packages"

            case "install.fetch":
                return f"  fetch {kw.get('name', '?')}@{kw.get('version', '?')}"

            case "install.skill_installed":
                tools = kw.get("tools") or []
                suffix = f" ({', '.join(tools)})" if tools else ""
                return f"  + {kw.get('name', '?')}@{kw.get('version', '?')}{suffix}"

            case "install.complete":
                count = kw.get("count", 0)
                if count == 0:
                    return "No skills to install."
                noun = "skill" if count == 1 else "skills"
                return f"✓ Installed {count} {noun}"

            # ── Manifest edits ───────────────────────────────────────────
            case "project.skill_added":
                return f"Added {kw.get('name', '?')}@{kw.get('range', '?')} to skpm.json."

            case "project.skill_removed":
                return f"Removed {kw.get('name', '?')} from skpm.json."

            case "project.store_pruned":
                removed = kw.get("removed") or []
                return f"  pruned {len(removed)} unused store entries"

            # ── Publish ──────────────────────────────────────────────────
            case "publish.complete":
                return (
                    f"Published {kw.get('name', '?')}@{kw.get('version', '?')}\n"
                    f"Registry: {kw.get('registry', '?')}"
                )

            case _:
                return None


class HumanLogHandler(logging.Handler):
    """Handler that renders HUMAN-level structlog events.

    Expects records produced through ProcessorFormatter.wrap_for_formatter,
    where ``record.msg`` is the structlog event dict. Writes to stderr so
    stdout stays clean for --json output.
    """

    def __init__(self, stream=None) -> None:
        super().__init__(level=HUMAN)
        self.stream = stream or sys.stderr
        self.formatter_inst = HumanFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno != HUMAN:
                return

            if isinstance(record.msg, dict):
                kw = dict(record.msg)
                event = str(kw.pop("event", ""))
            else:
                kw = {}
                event = record.getMessage()

            formatted = self.formatter_inst.format_event(event, **kw)
            if formatted is not None:
                self.stream.write(formatted + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


class HumanLog:
    """Typed helper for emitting HUMAN-level events.

    Usage:
        hlog = HumanLog(structlog.get_logger())
        hlog.resolving("https://registry.skpm.dev")
        hlog.skill_installed("frontend", "1.1.0", ["claude"])
    """

    def __init__(self, logger) -> None:
        self._log = logger

    def resolving(self, registry: str) -> None:
        self._log.log(HUMAN, "install.resolving", registry=registry)

    def frozen(self, packages: int) -> None:
        self._log.log(HUMAN, "install.frozen", packages=packages)

    def resolved(self, packages: int) -> None:
        self._log.log(HUMAN, "install.resolved", packages=packages)

    def fetching(self, name: str, version: str) -> None:
        self._log.log(HUMAN, "install.fetch", name=name, version=version)

    def skill_installed(self, name: str, version: str, tools: list[str]) -> None:
        self._log.log(HUMAN, "install.skill_installed", name=name, version=version, tools=tools)

    def install_complete(self, count: int) -> None:
        self._log.log(HUMAN, "install.complete", count=count)

    def skill_added(self, name: str, range_expr: str) -> None:
        self._log.log(HUMAN, "project.skill_added", name=name, range=range_expr)

    def skill_removed(self, name: str) -> None:
        self._log.log(HUMAN, "project.skill_removed", name=name)

    def store_pruned(self, removed: list[str]) -> None:
        self._log.log(HUMAN, "project.store_pruned", removed=removed)

    def published(self, name: str, version: str, registry: str) -> None:
        self._log.log(HUMAN, "publish.complete", name=name, version=version, registry=registry)
