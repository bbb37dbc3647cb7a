# FILE: logconv/severity.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict

# Custom stdlib level below DEBUG for trace output
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Severity(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def level(self) -> int:
        """Numeric level written to the record (10..60)."""
        return _RECORD_LEVELS[self]

    @property
    def logging_level(self) -> int:
        """Level used when handing the record to the stdlib engine."""
        return _LOGGING_LEVELS[self]

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """
        Resolve a severity from an enum member, a label or a numeric level.

        Labels are case-insensitive and accept the stdlib spellings
        ("warning", "critical"). Numbers may be record levels (10..60) or
        stdlib levels (5, 10, ..., 50); where the two overlap the record
        level wins. Raises ValueError otherwise.
        """
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _ALIASES:
                return _ALIASES[key]
            raise ValueError(
                f"Unknown severity '{value}'. Must be one of: "
                f"{', '.join(s.value for s in cls)}"
            )
        if isinstance(value, int) and not isinstance(value, bool):
            for sev in cls:
                if sev.level == value:
                    return sev
            for sev in cls:
                if sev.logging_level == value:
                    return sev
        raise ValueError(f"Unknown severity {value!r}")


_RECORD_LEVELS: Dict[Severity, int] = {
    Severity.TRACE: 10,
    Severity.DEBUG: 20,
    Severity.INFO: 30,
    Severity.WARN: 40,
    Severity.ERROR: 50,
    Severity.FATAL: 60,
}

_LOGGING_LEVELS: Dict[Severity, int] = {
    Severity.TRACE: TRACE,
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}

_ALIASES: Dict[str, Severity] = {s.value: s for s in Severity}
_ALIASES.update({"warning": Severity.WARN, "critical": Severity.FATAL})

_BY_RECORD_LEVEL: Dict[int, Severity] = {v: k for k, v in _RECORD_LEVELS.items()}
_BY_LOGGING_LEVEL: Dict[int, Severity] = {v: k for k, v in _LOGGING_LEVELS.items()}


def level_for(severity: Any) -> int:
    return Severity.parse(severity).level


def label_for(level: int) -> str:
    """Label for a numeric record level; unknown levels render as 'level-N'."""
    sev = _BY_RECORD_LEVEL.get(level)
    return sev.label if sev is not None else f"level-{level}"


def from_logging_level(levelno: int) -> Severity:
    """
    Map a stdlib level number back onto a severity.

    Levels between the named ones round down to the closest severity.
    """
    if levelno in _BY_LOGGING_LEVEL:
        return _BY_LOGGING_LEVEL[levelno]
    best = Severity.TRACE
    for lvl, sev in sorted(_BY_LOGGING_LEVEL.items()):
        if lvl <= levelno:
            best = sev
    return best


__all__ = [
    "TRACE",
    "Severity",
    "level_for",
    "label_for",
    "from_logging_level",
]
