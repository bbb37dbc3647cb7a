# FILE: logconv/context.py
"""
Ambient (per logical call chain) logging context.

Values live in a ``contextvars.ContextVar``, so every asyncio task and every
thread started through ``contextvars.copy_context().run`` sees the context
that was active when it was created, and never another chain's. Scopes are
strictly nested: entering a scope shadows the enclosing value and leaving it
restores the enclosing value.

    store = ContextStore()
    with store.scope({"req_id": rid}):
        log.info("handling request")      # ctx includes req_id
"""
from __future__ import annotations

import contextlib
import contextvars
import itertools
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, TypeVar

T = TypeVar("T")

_store_ids = itertools.count()


class ContextStore:
    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or f"logconv_ctx_{next(_store_ids)}"
        self._var: contextvars.ContextVar[Optional[Mapping[str, Any]]] = (
            contextvars.ContextVar(self.name, default=None)
        )

    def __repr__(self) -> str:
        return f"ContextStore({self.name!r})"

    def get_store(self) -> Optional[Mapping[str, Any]]:
        """Active context mapping, or None outside any scope."""
        return self._var.get()

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._var.get() or {})

    @contextlib.contextmanager
    def scope(self, value: Optional[Mapping[str, Any]] = None) -> Iterator[Mapping[str, Any]]:
        """Establish a nested scope holding ``value`` for the ``with`` body."""
        current: Mapping[str, Any] = dict(value or {})
        token = self._var.set(current)
        try:
            yield current
        finally:
            self._var.reset(token)

    def run(self, value: Optional[Mapping[str, Any]], fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` inside a new scope and return its result."""
        with self.scope(value):
            return fn(*args, **kwargs)

    def bind(self, **fields: Any) -> None:
        """
        Merge fields into the current scope (copy-on-write).

        The mapping stored by an enclosing scope is never mutated; the new
        mapping replaces it for the remainder of the current scope only.
        """
        cur = dict(self._var.get() or {})
        for k, v in fields.items():
            if v is None:
                continue
            cur[str(k)] = v
        self._var.set(cur)

    def unbind(self, *keys: str) -> None:
        cur = dict(self._var.get() or {})
        for k in keys:
            cur.pop(k, None)
        self._var.set(cur)


_default_store: Optional[ContextStore] = None


def default_store() -> ContextStore:
    """Process-wide store shared by loggers that were not given one."""
    global _default_store
    if _default_store is None:
        _default_store = ContextStore("logconv_ctx")
    return _default_store


__all__ = ["ContextStore", "default_store"]
