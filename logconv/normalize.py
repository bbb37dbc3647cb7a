# FILE: logconv/normalize.py
"""
Call-site argument normalization.

Every logging call is reduced to a ``(message, context)`` pair. The accepted
call shapes are::

    log.info("message")                      # scalar message
    log.info("message", {"k": "v"})          # message + context
    log.info("message", exc)                 # context {"err": exc}
    log.info("message", when)                # context {"ts": when}
    log.info(exc) / log.info(when)           # context only
    log.info({"k": "v"})                     # context only
    log.info(2 ** 80)                        # message "1208925819614629174706176"

Each single value is first classified into one of the variants below; the
classification order is fixed (None, enum, bool, int, float, str,
string-like values such as bytes or UUID, exception, date, anything else)
so that ``bool`` never falls into the integer branch and ``datetime`` never
falls into the object branch.
"""
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from .errors import EmptyLogMessageError
from .serialize import MAX_SAFE_INTEGER, as_text, public_attributes

EMPTY_LOG_MESSAGE = "Empty log message"

Scalar_t = Union[str, int, float, bool]


@dataclass(frozen=True)
class Scalar:
    value: Scalar_t


@dataclass(frozen=True)
class ErrorValue:
    error: BaseException


@dataclass(frozen=True)
class DateValue:
    value: _dt.date


@dataclass(frozen=True)
class ContextObject:
    value: Any


@dataclass(frozen=True)
class Empty:
    pass


Classified = Union[Scalar, ErrorValue, DateValue, ContextObject, Empty]


@dataclass(frozen=True)
class NormalizedInput:
    message: Optional[Scalar_t]
    context: Optional[Any]

    @property
    def degenerate(self) -> bool:
        return isinstance(self.context, Mapping) and isinstance(
            self.context.get("err"), EmptyLogMessageError
        )


def is_wide_int(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and abs(value) > MAX_SAFE_INTEGER
    )


def classify(value: Any) -> Classified:
    if value is None:
        return Empty()
    if isinstance(value, Enum):
        return classify(value.value)
    if isinstance(value, bool):
        return Scalar(value)
    if isinstance(value, int):
        # Wide ints are carried as their exact decimal string.
        return Scalar(str(value) if is_wide_int(value) else value)
    if isinstance(value, (float, str)):
        return Scalar(value)
    text = as_text(value)
    if text is not None:
        return Scalar(text)
    if isinstance(value, BaseException):
        return ErrorValue(value)
    if isinstance(value, _dt.date):
        return DateValue(value)
    return ContextObject(value)


def coerce_message(value: Any) -> Optional[Scalar_t]:
    """Message of a two-argument call: scalars kept, anything else stringified."""
    kind = classify(value)
    if isinstance(kind, Scalar):
        return kind.value
    if isinstance(kind, Empty):
        return None
    try:
        return str(value)
    except Exception:
        try:
            return repr(value)
        except Exception:
            return f"<unprintable {type(value).__name__}>"


def _as_context(kind: Classified) -> Optional[Any]:
    if isinstance(kind, ErrorValue):
        return {"err": kind.error}
    if isinstance(kind, DateValue):
        return {"ts": kind.value}
    if isinstance(kind, ContextObject):
        return kind.value
    if isinstance(kind, Scalar):
        # A scalar in context position has no key to live under.
        return {"value": kind.value}
    return None


def _resolve(args: Sequence[Any]) -> NormalizedInput:
    if len(args) >= 2:
        kind = classify(args[1])
        if isinstance(kind, Scalar) and message_is_empty(kind.value):
            # Blank scalars count as no context.
            kind = Empty()
        return NormalizedInput(coerce_message(args[0]), _as_context(kind))
    if len(args) == 1:
        kind = classify(args[0])
        if isinstance(kind, Scalar):
            return NormalizedInput(kind.value, None)
        return NormalizedInput(None, _as_context(kind))
    return NormalizedInput(None, None)


def message_is_empty(message: Any) -> bool:
    if message is None:
        return True
    return isinstance(message, str) and not message.strip()


def context_is_empty(context: Any) -> bool:
    if context is None:
        return True
    if isinstance(context, Mapping):
        return len(context) == 0
    if isinstance(context, (list, tuple, set, frozenset)):
        return len(context) == 0
    try:
        return not public_attributes(context)
    except Exception:
        return False


def normalize(args: Sequence[Any]) -> NormalizedInput:
    """
    Resolve raw call arguments into a message and a context.

    If neither carries anything the pair is replaced with the "Empty log
    message" diagnostic, whose error captures the caller's stack.
    """
    resolved = _resolve(args)
    if message_is_empty(resolved.message) and context_is_empty(resolved.context):
        return NormalizedInput(
            EMPTY_LOG_MESSAGE, {"err": EmptyLogMessageError(EMPTY_LOG_MESSAGE)}
        )
    return resolved


__all__ = [
    "EMPTY_LOG_MESSAGE",
    "MAX_SAFE_INTEGER",
    "Scalar",
    "ErrorValue",
    "DateValue",
    "ContextObject",
    "Empty",
    "NormalizedInput",
    "classify",
    "coerce_message",
    "is_wide_int",
    "message_is_empty",
    "context_is_empty",
    "normalize",
]
