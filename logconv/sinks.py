# FILE: logconv/sinks.py
"""
Output sinks for assembled records.

Sinks are ordinary ``logging.Handler`` objects attached to the stdlib logger
that acts as the engine. Each stdlib ``LogRecord`` produced by logconv
carries the assembled record on its ``structured`` attribute; records logged
through the stdlib API directly are rendered from their plain fields.

  - machine: newline-delimited JSON (level, severity, time, msg, ctx)
  - human:   "INFO: message" with ANSI colours plus indented context
  - test:    in-process event handler that calls subscribers per record

Unless ``sync`` is set, the machine and human handlers run behind a
``QueueHandler`` / ``QueueListener`` pair so that writes happen on a
background thread.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import queue
import sys
import threading
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Dict, List, Optional, Union

from .serialize import dumps, to_serializable
from .severity import Severity, from_logging_level

_log = logging.getLogger(__name__)

Destination = Union[int, str, "os.PathLike[str]", IO[str]]
Subscriber = Callable[[Dict[str, Any]], Any]

# ---------- Record rendering ----------


def record_to_dict(record: logging.LogRecord) -> Dict[str, Any]:
    """Machine form of a stdlib record: level, severity, time, msg, ctx."""
    structured = getattr(record, "structured", None)
    if structured is not None:
        sev = structured.severity
        msg = structured.message
        ctx = structured.ctx
    else:
        sev = from_logging_level(record.levelno)
        try:
            msg = record.getMessage()
        except Exception:
            msg = str(record.msg)
        ctx = None
        if record.exc_info and record.exc_info[1] is not None:
            ctx = {"err": to_serializable(record.exc_info[1])}

    out: Dict[str, Any] = {
        "level": sev.level,
        "severity": sev.label,
        "time": int(record.created * 1000),
    }
    if msg is not None:
        out["msg"] = msg
    if ctx is not None:
        out["ctx"] = ctx
    return out


class MachineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return dumps(record_to_dict(record))


_RESET_FG = "\x1b[39m"
_RESET_BG = "\x1b[49m"
_MESSAGE_COLOR = "\x1b[36m"

_LEVEL_COLORS: Dict[Severity, tuple] = {
    Severity.TRACE: ("\x1b[90m", _RESET_FG),
    Severity.DEBUG: ("\x1b[34m", _RESET_FG),
    Severity.INFO: ("\x1b[32m", _RESET_FG),
    Severity.WARN: ("\x1b[33m", _RESET_FG),
    Severity.ERROR: ("\x1b[31m", _RESET_FG),
    Severity.FATAL: ("\x1b[41m", _RESET_BG),
}


class HumanFormatter(logging.Formatter):
    """
    ``LABEL: message`` followed by the context as indented JSON::

        INFO: Some message
            ctx: {
              "foo": "bar"
            }
    """

    def __init__(self, *, colorize: bool = True) -> None:
        super().__init__()
        self.colorize = colorize

    def _paint(self, text: str, codes: tuple) -> str:
        if not self.colorize:
            return text
        start, end = codes
        return f"{start}{text}{end}"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data = record_to_dict(record)
        sev = Severity.parse(data["severity"])
        head = self._paint(sev.label.upper(), _LEVEL_COLORS[sev]) + ":"
        msg = data.get("msg")
        if msg is not None:
            head += " " + self._paint(str(msg), (_MESSAGE_COLOR, _RESET_FG))
        lines = [head]
        ctx = data.get("ctx")
        if ctx:
            body = json.dumps(ctx, indent=2, ensure_ascii=False).splitlines()
            lines.append("    ctx: " + body[0])
            lines.extend("    " + ln for ln in body[1:])
        return "\n".join(lines)


# ---------- In-process event sink ----------


class EventHandler(logging.Handler):
    """
    Delivers each record, in machine form, to every subscriber exactly once.

    Subscriber failures go through ``handleError`` and never reach the
    logging call site.
    """

    def __init__(self, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._subscribers: List[Subscriber] = []
        self._sub_lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._sub_lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._sub_lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def emit(self, record: logging.LogRecord) -> None:
        with self._sub_lock:
            subscribers = list(self._subscribers)
        if not subscribers:
            return
        data = record_to_dict(record)
        for cb in subscribers:
            try:
                cb(data)
            except Exception:
                self.handleError(record)


# ---------- Destinations ----------


def open_destination(destination: Destination) -> logging.Handler:
    """
    Handler for a destination: 1/"stdout", 2/"stderr", a file path (appended,
    parent directories created) or any object with ``write``.
    """
    if destination in (1, "1", "stdout"):
        return logging.StreamHandler(sys.stdout)
    if destination in (2, "2", "stderr"):
        return logging.StreamHandler(sys.stderr)
    if hasattr(destination, "write"):
        return logging.StreamHandler(destination)  # type: ignore[arg-type]
    if isinstance(destination, (str, os.PathLike)):
        path = os.fspath(destination)
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    raise ValueError(f"Unsupported log destination {destination!r}")


# ---------- Sink assembly ----------


@dataclass
class Sinks:
    """Handlers attached to the engine plus the pieces that need teardown."""

    handlers: List[logging.Handler] = field(default_factory=list)
    outputs: List[logging.Handler] = field(default_factory=list)
    events: Optional[EventHandler] = None
    listener: Optional[logging.handlers.QueueListener] = None

    @property
    def min_level(self) -> int:
        levels = [h.level for h in self.outputs]
        if self.events is not None:
            levels.append(self.events.level)
        return min(levels) if levels else logging.CRITICAL + 1

    def flush(self) -> None:
        if self.listener is not None:
            # Stopping drains the queue; restart so logging can continue.
            self.listener.stop()
            self.listener.start()
        for h in self.outputs:
            h.flush()

    def close(self) -> None:
        if self.listener is not None:
            self.listener.stop()
            self.listener = None
        for h in self.handlers + self.outputs:
            try:
                h.close()
            except Exception:
                _log.debug("failed to close handler %r", h, exc_info=True)


def build_sinks(config: Any) -> Sinks:
    """
    Build handlers for a ``LoggerConfig``.

    Machine and human outputs are wrapped in a queue unless the config is
    synchronous; the test sink is always synchronous.
    """
    sinks = Sinks()

    machine = config.machine_options()
    if machine is not None:
        h = open_destination(machine.destination)
        h.setFormatter(MachineFormatter())
        h.setLevel(Severity.parse(machine.level).logging_level)
        sinks.outputs.append(h)

    human = config.human_options()
    if human is not None:
        h = open_destination(human.destination)
        h.setFormatter(HumanFormatter(colorize=human.colorize))
        h.setLevel(Severity.parse(human.level).logging_level)
        sinks.outputs.append(h)

    test = config.test_options()
    if test is not None:
        sinks.events = EventHandler(Severity.parse(test.level).logging_level)
        sinks.handlers.append(sinks.events)

    if sinks.outputs:
        if config.effective_sync:
            sinks.handlers.extend(sinks.outputs)
        else:
            q: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)
            qh = logging.handlers.QueueHandler(q)
            qh.setLevel(min(h.level for h in sinks.outputs))
            sinks.listener = logging.handlers.QueueListener(
                q, *sinks.outputs, respect_handler_level=True
            )
            sinks.listener.start()
            sinks.handlers.append(qh)

    return sinks


__all__ = [
    "record_to_dict",
    "MachineFormatter",
    "HumanFormatter",
    "EventHandler",
    "open_destination",
    "Sinks",
    "build_sinks",
]
