# FILE: logconv/logger.py
"""
Logger handle: the conventional ``log(message, context?)`` API.

    from logconv.logger import initialize

    log = initialize(test=True)
    log.on_message(print)
    log.info("Some message", {"foo": "bar"})
    # {'level': 30, 'severity': 'info', 'time': ..., 'msg': 'Some message',
    #  'ctx': {'foo': 'bar'}}

Each call is normalized, merged with the ambient context of the current
call chain, serialized, redacted, size-checked and then handed to a stdlib
``logging.Logger`` (the engine), whose handlers are the configured sinks.
Nothing on this path raises to the caller.
"""
from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

from .assemble import DEGRADED_ASSEMBLY_ERROR, Record, assemble
from .config import LoggerConfig, load_config
from .context import ContextStore, default_store
from .metrics import LogMetrics, get_metrics
from .normalize import normalize
from .redact import Redactor
from .serialize import to_serializable
from .sinks import Sinks, Subscriber, build_sinks
from .severity import Severity

_log = logging.getLogger(__name__)

ASSEMBLY_FAILED_MESSAGE = "Failed to assemble log record"

# Sinks installed per engine name, so re-initializing replaces them.
_installed: Dict[str, Sinks] = {}
_install_lock = threading.Lock()


class _Core:
    """State shared by a logger handle and its children."""

    def __init__(self, config: LoggerConfig) -> None:
        self.config = config
        self.store = config.ambient_context_store or ContextStore()
        self.redactor = Redactor(config.redact.paths)
        self.metrics: LogMetrics = get_metrics()
        self.sinks = build_sinks(config)
        self.engine = logging.getLogger(config.name)
        self._install()

    def _install(self) -> None:
        with _install_lock:
            previous = _installed.pop(self.config.name, None)
            if previous is not None:
                for h in previous.handlers:
                    self.engine.removeHandler(h)
                previous.close()
            for h in list(self.engine.handlers):
                self.engine.removeHandler(h)
            for h in self.sinks.handlers:
                self.engine.addHandler(h)
            self.engine.setLevel(self.sinks.min_level)
            self.engine.propagate = False
            _installed[self.config.name] = self.sinks


class Logger:
    def __init__(self, core: _Core, bindings: Optional[Mapping[str, Any]] = None) -> None:
        self._core = core
        self._bindings: Dict[str, Any] = dict(bindings or {})

    def __repr__(self) -> str:
        return f"Logger({self._core.config.name!r})"

    # ---- properties ---------------------------------------------------- #

    @property
    def store(self) -> ContextStore:
        return self._core.store

    @property
    def config(self) -> LoggerConfig:
        return self._core.config

    @property
    def engine(self) -> logging.Logger:
        return self._core.engine

    # ---- logging ------------------------------------------------------- #

    def is_enabled_for(self, severity: Any) -> bool:
        try:
            sev = Severity.parse(severity)
        except ValueError:
            return False
        return self._core.engine.isEnabledFor(sev.logging_level)

    def log(self, severity: Any, *args: Any) -> None:
        """Normalize ``args`` and emit them at ``severity``; never raises."""
        try:
            sev = Severity.parse(severity)
        except ValueError:
            sev = Severity.INFO
        try:
            if not self._core.engine.isEnabledFor(sev.logging_level):
                return
            record = self.assemble(sev, args)
            self._core.metrics.observe(sev.label, record.degraded)
            self._core.engine.log(
                sev.logging_level, record.message, extra={"structured": record}
            )
        except Exception:
            # Engine failures are the engine's to report; the caller must
            # never see them.
            _log.debug("log call dropped", exc_info=True)

    def assemble(self, severity: Severity, args: Any) -> Record:
        """Build the record for ``args`` without emitting it."""
        core = self._core
        try:
            normalized = normalize(args)
            ambient = core.store.get_store()
            if self._bindings:
                ambient = {**(ambient or {}), **self._bindings}
            return assemble(
                normalized,
                ambient,
                severity,
                max_size=core.config.max_size,
                redactor=core.redactor,
            )
        except Exception as exc:
            return Record(
                severity,
                ASSEMBLY_FAILED_MESSAGE,
                {"err": to_serializable(exc)},
                DEGRADED_ASSEMBLY_ERROR,
            )

    def trace(self, *args: Any) -> None:
        self.log(Severity.TRACE, *args)

    def debug(self, *args: Any) -> None:
        self.log(Severity.DEBUG, *args)

    def info(self, *args: Any) -> None:
        self.log(Severity.INFO, *args)

    def warn(self, *args: Any) -> None:
        self.log(Severity.WARN, *args)

    warning = warn

    def error(self, *args: Any) -> None:
        self.log(Severity.ERROR, *args)

    def fatal(self, *args: Any) -> None:
        self.log(Severity.FATAL, *args)

    def child(self, **bindings: Any) -> "Logger":
        """
        Handle sharing this logger's sinks whose records always carry
        ``bindings`` (ambient < bindings < explicit context).
        """
        return Logger(self._core, {**self._bindings, **bindings})

    # ---- test sink ----------------------------------------------------- #

    def on_message(self, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to every record reaching the test sink; returns an unsubscribe function."""
        events = self._core.sinks.events
        if events is None:
            raise RuntimeError("on_message requires the test sink (initialize with test=True)")
        return events.subscribe(callback)

    def once(self, callback: Subscriber) -> Callable[[], None]:
        events = self._core.sinks.events
        if events is None:
            raise RuntimeError("once requires the test sink (initialize with test=True)")
        fired = threading.Event()

        def _once(record: Dict[str, Any]) -> None:
            if fired.is_set():
                return
            fired.set()
            events.unsubscribe(_once)
            callback(record)

        return events.subscribe(_once)

    # ---- lifecycle ----------------------------------------------------- #

    def flush(self) -> None:
        self._core.sinks.flush()

    def close(self) -> None:
        with _install_lock:
            if _installed.get(self._core.config.name) is self._core.sinks:
                _installed.pop(self._core.config.name, None)
                for h in self._core.sinks.handlers:
                    self._core.engine.removeHandler(h)
        self._core.sinks.close()


def _close_installed() -> None:
    with _install_lock:
        sinks = list(_installed.values())
        _installed.clear()
    for s in sinks:
        s.close()


atexit.register(_close_installed)


# Most recently initialized handle and its store.
logger: Optional[Logger] = None
store: Optional[ContextStore] = None


def initialize(config: Optional[LoggerConfig] = None, **options: Any) -> Logger:
    """
    Create a logger handle.

    ``config`` may be a LoggerConfig; keyword options build one instead.
    With neither, only the machine-readable sink is enabled.
    """
    global logger, store
    if config is None:
        config = LoggerConfig(**options) if options else LoggerConfig(machine=True)
    elif options:
        config = LoggerConfig.model_validate({**dict(config), **options})
    handle = Logger(_Core(config))
    logger = handle
    store = handle.store
    return handle


init = initialize


def get_logger() -> Logger:
    """
    Return the module-level logger, initializing it from the environment
    (see ``load_config``) on first use.
    """
    if logger is None:
        return initialize(load_config(ambient_context_store=default_store()))
    return logger


__all__ = [
    "ASSEMBLY_FAILED_MESSAGE",
    "Logger",
    "initialize",
    "init",
    "get_logger",
]
