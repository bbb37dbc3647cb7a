# FILE: logconv/middleware.py
from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .logger import Logger, get_logger

_REQUEST_ID_HEADERS = ("x-request-id", "x-amzn-trace-id")


def request_id_from(headers: Optional[Dict[str, str]], header: str = "x-request-id") -> str:
    """
    Get a request id from (lower-cased) headers, or create one.

    Header values are used as opaque ids only.
    """
    if headers:
        for k in (header.lower(),) + _REQUEST_ID_HEADERS:
            rid = headers.get(k)
            if rid:
                return rid
    return uuid.uuid4().hex[:16]


class RequestContextMiddleware:
    """
    ASGI middleware that opens one ambient logging scope per HTTP request.

    Every record logged while the request is handled carries ``req_id``,
    ``method`` and ``path`` in its context; a ``http.finish`` record with the
    status and latency is written when the response completes. Bodies and
    headers are never logged.

    Usage:
        app.add_middleware(RequestContextMiddleware, logger=log)
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        logger: Optional[Logger] = None,
        header: str = "x-request-id",
        log_finish: bool = True,
    ) -> None:
        self.app = app
        self.log = logger
        self.header = header
        self.log_finish = bool(log_finish)

    def _logger(self) -> Logger:
        if self.log is None:
            self.log = get_logger()
        return self.log

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        log = self._logger()
        method = scope.get("method", "")
        path = scope.get("path", "")
        headers = {
            k.decode("latin1").lower(): v.decode("latin1")
            for k, v in (scope.get("headers") or [])
        }
        rid = request_id_from(headers, self.header)

        t0 = time.perf_counter()
        status_holder: Dict[str, Any] = {"code": None}

        async def _send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                status_holder["code"] = message.get("status")
            await send(message)

        with log.store.scope({"req_id": rid, "method": method, "path": path}):
            try:
                await self.app(scope, receive, _send_wrapper)
            finally:
                if self.log_finish:
                    dt_ms = (time.perf_counter() - t0) * 1000.0
                    log.info(
                        "http.finish",
                        {"status": status_holder["code"], "latency_ms": round(dt_ms, 3)},
                    )


__all__ = ["RequestContextMiddleware", "request_id_from"]
