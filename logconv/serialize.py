# FILE: logconv/serialize.py
"""
Defensive conversion of arbitrary context values into a JSON-ready tree.

The traversal is an explicit depth-first walk that keeps the identities of
the containers on the active path. Re-entering one of them yields the
``"[Circular]"`` marker instead of recursing, so any object graph terminates.
Shared (non-cyclic) references are rendered at every place they appear.

Rules:
  - None / bool / str / finite float: unchanged (NaN, +/-inf -> None)
  - int: unchanged, or its decimal string beyond +/-(2**53 - 1)
  - datetime: ISO-8601 (aware -> UTC with milliseconds and "Z")
  - exceptions: {"type", "message", "stack", **public attributes, "cause"?}
  - mappings -> dict with str keys; list/tuple/set -> list
  - dataclasses and plain objects -> dict of public attributes
  - functions, classes, modules, generators, coroutines: unrepresentable,
    dropped from mappings and rendered as None inside lists

Nothing in here raises: a value whose inspection fails is treated as
unrepresentable.
"""
from __future__ import annotations

import dataclasses
import datetime as _dt
import decimal
import inspect
import json
import math
import pathlib
import traceback
import types
import uuid
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set

CIRCULAR = "[Circular]"

# Largest integer a JSON consumer can read back without precision loss.
MAX_SAFE_INTEGER = 2 ** 53 - 1

# Sentinel for values that must be left out of the output.
_OMIT = object()

_UNREPRESENTABLE = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.BuiltinMethodType,
    types.ModuleType,
    types.GeneratorType,
    types.CoroutineType,
    types.AsyncGeneratorType,
    type,
)

# Attributes set by logconv on its own diagnostics; rendered as "stack".
_INTERNAL_ERROR_ATTRS = {"captured_stack"}

# Keys produced for every error; custom attributes never override them.
_ERROR_CORE_KEYS = ("type", "message", "stack")


_STRING_LIKE = (uuid.UUID, decimal.Decimal, pathlib.PurePath)


def as_text(value: Any) -> Optional[str]:
    """Text form of string-like values (UUID, Decimal, paths, bytes); None otherwise."""
    if isinstance(value, _STRING_LIKE):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return None


def iso_datetime(value: _dt.date) -> str:
    if isinstance(value, _dt.datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            return value.isoformat()
        utc = value.astimezone(_dt.timezone.utc)
        ms = int(utc.microsecond / 1000)
        base = utc.replace(microsecond=0, tzinfo=None).isoformat()
        return f"{base}.{ms:03d}Z"
    return value.isoformat()


def public_attributes(obj: Any) -> Optional[Dict[str, Any]]:
    """
    Public state of a plain object: dataclass fields, ``__dict__`` entries or
    ``__slots__`` values, skipping names that start with ``_``.

    Returns None when the object exposes no attribute storage at all.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: getattr(obj, f.name)
            for f in dataclasses.fields(obj)
            if not f.name.startswith("_") and hasattr(obj, f.name)
        }
    out: Dict[str, Any] = {}
    found = False
    try:
        attrs = vars(obj)
    except TypeError:
        attrs = None
    if attrs is not None:
        found = True
        for k, v in attrs.items():
            if isinstance(k, str) and not k.startswith("_"):
                out[k] = v
    for klass in type(obj).__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name.startswith("_") or name in out:
                continue
            found = True
            if hasattr(obj, name):
                out[name] = getattr(obj, name)
    return out if found else None


def _error_stack(exc: BaseException) -> str:
    captured = getattr(exc, "captured_stack", None)
    if isinstance(captured, str) and captured:
        return captured
    text = "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__, chain=False)
    )
    return text.rstrip("\n")


def _error_message(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception:
        return ""


class _Walker:
    def __init__(self) -> None:
        # Identities of the containers on the current path.
        self.active: Set[int] = set()

    def walk(self, value: Any) -> Any:
        try:
            return self._walk(value)
        except Exception:
            return _OMIT

    def _walk(self, value: Any) -> Any:
        if isinstance(value, Enum):
            return self.walk(value.value)
        if value is None or isinstance(value, (bool, str)):
            return value
        if isinstance(value, int):
            if abs(value) > MAX_SAFE_INTEGER:
                return str(value)
            return int(value)
        if isinstance(value, float):
            return float(value) if math.isfinite(value) else None
        if isinstance(value, _dt.date):
            return iso_datetime(value)
        if isinstance(value, _dt.time):
            return value.isoformat()
        text = as_text(value)
        if text is not None:
            return text
        if isinstance(value, _UNREPRESENTABLE) or inspect.isroutine(value):
            return _OMIT

        ident = id(value)
        if ident in self.active:
            return CIRCULAR
        self.active.add(ident)
        try:
            if isinstance(value, BaseException):
                return self._error(value)
            if isinstance(value, Mapping):
                return self._mapping(value.items())
            if isinstance(value, (list, tuple, set, frozenset)):
                return self._sequence(value)
            attrs = public_attributes(value)
            if attrs is None:
                return _OMIT
            return self._mapping(attrs.items())
        finally:
            self.active.discard(ident)

    def _mapping(self, items: Any) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for k, v in items:
            rendered = self.walk(v)
            if rendered is _OMIT:
                continue
            out[k if isinstance(k, str) else str(k)] = rendered
        return out

    def _sequence(self, seq: Any) -> List[Any]:
        out: List[Any] = []
        for item in seq:
            rendered = self.walk(item)
            out.append(None if rendered is _OMIT else rendered)
        return out

    def _error(self, exc: BaseException) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": type(exc).__name__,
            "message": _error_message(exc),
            "stack": _error_stack(exc),
        }
        attrs = public_attributes(exc) or {}
        for k, v in attrs.items():
            if k in _ERROR_CORE_KEYS or k in _INTERNAL_ERROR_ATTRS:
                continue
            rendered = self.walk(v)
            if rendered is not _OMIT:
                out[k] = rendered
        cause = exc.__cause__
        if cause is not None and "cause" not in out:
            rendered = self.walk(cause)
            if rendered is not _OMIT:
                out["cause"] = rendered
        return out


def to_serializable(value: Any) -> Any:
    """
    Return an owned, JSON-ready copy of ``value``.

    Unrepresentable top-level values come back as None.
    """
    rendered = _Walker().walk(value)
    return None if rendered is _OMIT else rendered


def serialize_context(context: Mapping[str, Any]) -> Dict[str, Any]:
    """Serialize a context mapping; always returns a dict."""
    rendered = _Walker().walk(context)
    return rendered if isinstance(rendered, dict) else {}


def dumps(obj: Any) -> str:
    """Compact JSON for an already-serialized tree."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def byte_size(obj: Any) -> int:
    return len(dumps(obj).encode("utf-8"))


__all__ = [
    "CIRCULAR",
    "as_text",
    "iso_datetime",
    "public_attributes",
    "to_serializable",
    "serialize_context",
    "dumps",
    "byte_size",
]
