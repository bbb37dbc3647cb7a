# FILE: logconv/metrics.py
# Prometheus counters for the logging path.
#
# Only two low-cardinality series are kept:
#   - records emitted, by severity;
#   - records that had to be replaced or rewritten, by reason
#     ("empty", "oversize", "assembly_error").
#
# Counters live on the default registry and are created once per process, so
# re-initializing loggers (as tests do) never registers duplicates.

from __future__ import annotations

import threading
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter

_LOCK = threading.Lock()
_METRICS: Optional["LogMetrics"] = None


class LogMetrics:
    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.records = Counter(
            "logconv_records_total",
            "Records handed to the logging engine",
            ["severity"],
            registry=registry,
        )
        self.degraded = Counter(
            "logconv_degraded_records_total",
            "Records replaced by a diagnostic record",
            ["reason"],
            registry=registry,
        )

    def observe(self, severity: str, degraded: Optional[str]) -> None:
        self.records.labels(severity=severity).inc()
        if degraded:
            self.degraded.labels(reason=degraded).inc()


def get_metrics() -> LogMetrics:
    global _METRICS
    with _LOCK:
        if _METRICS is None:
            _METRICS = LogMetrics()
        return _METRICS


__all__ = ["LogMetrics", "get_metrics"]
