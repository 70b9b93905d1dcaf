"""
HUMAN logging level: readable progress for people running skpm.

Custom level between INFO (20) and WARNING (30). It does not indicate
severity: it marks the handful of events a user wants to see (resolving,
fetching, installed) without the technical noise.

Hierarchy:
    debug  (10) -> HTTP requests, version picks, cache hits
    info   (20) -> System operations (cache fetch, upgrades, prune)
    human  (25) -> What skpm is doing for the user
    warn   (30) -> Non-fatal problems (offline fallback to mirrors)
    error  (40) -> Errors
"""

import logging

import structlog

HUMAN = 25
logging.addLevelName(HUMAN, "HUMAN")


def _human_method(self, message, *args, **kwargs):
    if self.isEnabledFor(HUMAN):
        self._log(HUMAN, message, args, **kwargs)


# structlog proxies .log(HUMAN, ...) to a logger method named after the level
logging.Logger.human = _human_method

if hasattr(structlog, "stdlib"):
    try:
        structlog.stdlib.LEVEL_TO_NAME[HUMAN] = "human"
    except (AttributeError, KeyError):
        pass
