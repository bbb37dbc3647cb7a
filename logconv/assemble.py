# FILE: logconv/assemble.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import OversizeLogRecordError
from .normalize import NormalizedInput
from .redact import Redactor
from .serialize import byte_size, public_attributes, serialize_context
from .severity import Severity

DEFAULT_MAX_SIZE = 10_000

# Smallest ceiling that still fits a severity-only replacement record.
MIN_MAX_SIZE = 32

# Reasons a record was replaced or rewritten on its way out.
DEGRADED_EMPTY = "empty"
DEGRADED_OVERSIZE = "oversize"
DEGRADED_ASSEMBLY_ERROR = "assembly_error"


@dataclass(frozen=True)
class Record:
    """
    A fully assembled record, ready for the logging engine.

    ``ctx`` is an owned, JSON-ready tree (or None when there is no context);
    ``degraded`` names why the record is a diagnostic replacement, if it is.
    """

    severity: Severity
    message: Any
    ctx: Optional[Dict[str, Any]]
    degraded: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        """Record body without engine fields: severity, msg, ctx."""
        out: Dict[str, Any] = {"severity": self.severity.label}
        if self.message is not None:
            out["msg"] = self.message
        if self.ctx is not None:
            out["ctx"] = self.ctx
        return out


def oversize_message(size: int, max_size: int) -> str:
    return f"Log record size of {size:,} bytes exceeds maximum of {max_size:,} bytes"


def _context_mapping(context: Any) -> Dict[str, Any]:
    """Explicit context as a plain mapping, so it can be merged over ambient."""
    if context is None:
        return {}
    if isinstance(context, Mapping):
        return {k if isinstance(k, str) else str(k): v for k, v in context.items()}
    if isinstance(context, (list, tuple)):
        return {str(i): v for i, v in enumerate(context)}
    attrs = public_attributes(context)
    return dict(attrs) if attrs else {}


def merge_context(
    ambient: Optional[Mapping[str, Any]], explicit: Any
) -> Dict[str, Any]:
    """Ambient first, explicit last: explicit keys always win."""
    merged: Dict[str, Any] = dict(ambient or {})
    merged.update(_context_mapping(explicit))
    return merged


def _oversize_record(severity: Severity, size: int, max_size: int) -> Record:
    message = oversize_message(size, max_size)
    err: Dict[str, Any] = {
        "type": OversizeLogRecordError.__name__,
        "message": message,
        "stack": f"{OversizeLogRecordError.__name__}: {message}",
    }
    record = Record(severity, message, {"err": err}, DEGRADED_OVERSIZE)
    if byte_size(record.fields()) <= max_size:
        return record
    err.pop("stack")
    if byte_size(record.fields()) <= max_size:
        return record
    record = Record(severity, message, None, DEGRADED_OVERSIZE)
    if byte_size(record.fields()) <= max_size:
        return record
    # Only the severity is left; MIN_MAX_SIZE guarantees this much fits.
    return Record(severity, None, None, DEGRADED_OVERSIZE)


def assemble(
    normalized: NormalizedInput,
    ambient: Optional[Mapping[str, Any]],
    severity: Severity,
    max_size: Optional[int] = None,
    redactor: Optional[Redactor] = None,
) -> Record:
    """
    Build the final record for one logging call.

      1. merge ambient and explicit context (explicit wins);
      2. serialize the merged context defensively;
      3. redact configured paths;
      4. fill a missing message from ``ctx.err.message``;
      5. swap the record for a size diagnostic if it exceeds ``max_size``.
    """
    merged = merge_context(ambient, normalized.context)
    ctx = serialize_context(merged)
    if redactor is not None:
        redactor.redact(ctx)

    message = normalized.message
    if isinstance(message, float) and not math.isfinite(message):
        message = str(message)
    err = ctx.get("err")
    if message is None and isinstance(err, dict) and isinstance(err.get("message"), str):
        message = err["message"]

    record = Record(
        severity,
        message,
        ctx or None,
        DEGRADED_EMPTY if normalized.degenerate else None,
    )

    if max_size is not None:
        size = byte_size(record.fields())
        if size > max_size:
            return _oversize_record(severity, size, max_size)
    return record


__all__ = [
    "DEFAULT_MAX_SIZE",
    "MIN_MAX_SIZE",
    "DEGRADED_EMPTY",
    "DEGRADED_OVERSIZE",
    "DEGRADED_ASSEMBLY_ERROR",
    "Record",
    "assemble",
    "merge_context",
    "oversize_message",
]
