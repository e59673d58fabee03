"""
Severity levels and their translation to the remote event model.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class Level(IntEnum):
    """Local severity scale (same numbers as stdlib ``logging``)."""

    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40

    @property
    def label(self) -> str:
        return self.name.lower()


_NAME_TO_LEVEL = {
    "debug": Level.DEBUG,
    "info": Level.INFO,
    "warn": Level.WARN,
    "warning": Level.WARN,
    "error": Level.ERROR,
}

_METHOD_TO_LEVEL = {
    "debug": Level.DEBUG,
    "info": Level.INFO,
    "warn": Level.WARN,
    "warning": Level.WARN,
    "error": Level.ERROR,
    "exception": Level.ERROR,
    "critical": Level.ERROR,
    "fatal": Level.ERROR,
}

_SENTRY_LEVELS = {
    Level.DEBUG: "debug",
    Level.INFO: "info",
    Level.WARN: "warning",
    Level.ERROR: "error",
}


def parse_level(name: str | None) -> Level:
    """Parse a configured level name. Unknown names fall back to INFO."""
    if not name:
        return Level.INFO
    return _NAME_TO_LEVEL.get(name.strip().lower(), Level.INFO)


def level_for_method(method_name: str) -> Level:
    """Level implied by a structlog method name."""
    return _METHOD_TO_LEVEL.get(method_name, Level.INFO)


def to_sentry_level(level: Any) -> str:
    """Map a local level to Sentry's level vocabulary (unmapped -> "info")."""
    try:
        return _SENTRY_LEVELS.get(level, "info")
    except TypeError:
        return "info"
