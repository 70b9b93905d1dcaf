"""
Structured logging setup.

Three independent pipelines:
1. File (JSON): when config.file is set. Captures everything (DEBUG+).
2. Human handler (stderr): HUMAN events only: what skpm is doing.
3. Technical console (stderr): DEBUG/INFO controlled by -v. Excludes HUMAN.

Default behavior (no -v): the user sees HUMAN progress lines and warnings.
With -v: adds INFO. With -vv: adds DEBUG. With --quiet or --json: silent.

structlog always hands the event dict to stdlib (wrap_for_formatter) so each
handler renders it its own way.
"""

import logging
import sys
from pathlib import Path

import structlog

from ..config.schema import LoggingConfig
from .human import HumanLogHandler
from .levels import HUMAN

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "human": HUMAN,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(
    config: LoggingConfig,
    json_output: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the three logging pipelines.

    Args:
        config: Logging configuration (level, file, verbose)
        json_output: Disables human and console handlers (--json)
        quiet: Disables human and console handlers (--quiet)
    """
    logging.root.handlers.clear()
    structlog.reset_defaults()
    logging.root.setLevel(logging.DEBUG)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    show_terminal = not quiet and not json_output
    threshold = _LEVEL_NAMES.get(config.level, HUMAN)

    # ── Pipeline 1: JSON file ────────────────────────────────────────────
    if config.file:
        file_path = Path(config.file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(file_path), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
        logging.root.addHandler(file_handler)

    # ── Pipeline 2: Human handler ────────────────────────────────────────
    if show_terminal and threshold <= HUMAN:
        human_handler = HumanLogHandler(stream=sys.stderr)
        human_handler.addFilter(lambda record: record.levelno == HUMAN)
        logging.root.addHandler(human_handler)

    # ── Pipeline 3: Technical console ────────────────────────────────────
    if show_terminal:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(_verbose_to_level(config.verbose, threshold))
        console_handler.addFilter(lambda record: record.levelno != HUMAN)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
                foreign_pre_chain=shared_processors,
            )
        )
        logging.root.addHandler(console_handler)

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # httpx logs every request at INFO; keep it for -vv
    logging.getLogger("httpx").setLevel(logging.DEBUG if config.verbose >= 2 else logging.WARNING)


def _verbose_to_level(verbose: int, threshold: int) -> int:
    """Console handler level from the -v count.

    No -v  → WARNING (or the configured level if stricter)
    -v     → INFO
    -vv+   → DEBUG
    """
    levels = {
        0: max(logging.WARNING, threshold),
        1: logging.INFO,
    }
    return levels.get(verbose, logging.DEBUG)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)
