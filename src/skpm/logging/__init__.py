"""
Logging module - structured logging with a HUMAN progress level.

HUMAN events go through stdlib loggers, so code that drives skpm outside the
CLI calls configure_logging() first, as the CLI does for every command.
"""

from .human import HumanFormatter, HumanLog, HumanLogHandler
from .levels import HUMAN
from .setup import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "HUMAN",
    "HumanFormatter",
    "HumanLog",
    "HumanLogHandler",
]
