# FILE: logconv/errors.py
from __future__ import annotations

import os
import traceback
from typing import Optional

# Frames from inside this package are trimmed from captured stacks so that
# the first frame shown is the caller's.
_PKG_DIR = os.path.dirname(os.path.abspath(__file__))


class LogConventionError(Exception):
    """Base class for diagnostics produced by the logging path itself."""


class EmptyLogMessageError(LogConventionError):
    """
    Diagnostic for a logging call that carried neither a message nor any
    context.

    The instance is never thrown; it is attached to the replacement record
    under ``ctx.err``. Because it is never raised it has no ``__traceback__``,
    so the call-site stack is captured at construction instead.
    """

    def __init__(self, message: str = "Empty log message") -> None:
        super().__init__(message)
        self.captured_stack = capture_stack(type(self).__name__, message)


class OversizeLogRecordError(LogConventionError):
    """Describes a record discarded for exceeding the size ceiling."""


def capture_stack(type_name: str, message: str, *, skip_package: bool = True) -> str:
    """
    Render the current call stack in traceback order, headed by
    ``"<type_name>: <message>"``.

    Frames belonging to logconv are dropped when ``skip_package`` is set, so
    the outermost shown frame is the application's call site.
    """
    frames = traceback.extract_stack()[:-1]
    if skip_package:
        kept = [f for f in frames if not _in_package(f.filename)]
        frames = kept or frames
    lines = traceback.format_list(frames)
    return f"{type_name}: {message}\n" + "".join(lines)


def _in_package(filename: Optional[str]) -> bool:
    if not filename:
        return False
    path = os.path.abspath(filename)
    if not path.startswith(_PKG_DIR + os.sep):
        return False
    # Tests live inside the package tree but are application code.
    return os.sep + "tests" + os.sep not in path[len(_PKG_DIR):]


__all__ = [
    "LogConventionError",
    "EmptyLogMessageError",
    "OversizeLogRecordError",
    "capture_stack",
]
