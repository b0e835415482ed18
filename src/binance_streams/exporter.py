"""
Prometheus metrics for stream subscriptions.

Only low-cardinality labels are used: stream kind and error type. Symbols,
stream names, URLs and listen keys never become labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from binance_streams.streams.types import StreamKind


# Labels that would cause cardinality explosion or leak secrets
FORBIDDEN_LABELS = frozenset(
    {
        "symbol",
        "stream",
        "endpoint",
        "url",
        "listen_key",
        "path",
    }
)


class StreamMetricsExporter:
    """
    Prometheus exporter shared by the sessions of a StreamService.

    Metric names:
    - binance_streams_sessions_started_total{kind}
    - binance_streams_sessions_active{kind}
    - binance_streams_frames_total{kind}
    - binance_streams_errors_total{kind,error}

    Counters and gauges are thread-safe, so sessions update them directly
    from their own threads.

    Usage:
        registry = CollectorRegistry()
        exporter = StreamMetricsExporter(registry=registry)
        service = StreamService(exporter=exporter)
        # generate_latest(registry) -> bytes for /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize metrics exporter.

        Args:
            registry: Prometheus CollectorRegistry. If None, a private one is created.
        """
        self._registry = registry or CollectorRegistry()

        self._sessions_started = Counter(
            "binance_streams_sessions_started",
            "Subscription sessions started",
            ["kind"],
            registry=self._registry,
        )
        self._sessions_active = Gauge(
            "binance_streams_sessions_active",
            "Subscription sessions not yet closed",
            ["kind"],
            registry=self._registry,
        )
        self._frames = Counter(
            "binance_streams_frames",
            "Frames received from the transport",
            ["kind"],
            registry=self._registry,
        )
        self._errors = Counter(
            "binance_streams_errors",
            "Errors delivered to error handlers",
            ["kind", "error"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def session_started(self, kind: StreamKind) -> None:
        self._sessions_started.labels(kind=kind.value).inc()
        self._sessions_active.labels(kind=kind.value).inc()

    def session_closed(self, kind: StreamKind) -> None:
        self._sessions_active.labels(kind=kind.value).dec()

    def frame_received(self, kind: StreamKind) -> None:
        self._frames.labels(kind=kind.value).inc()

    def error_reported(self, kind: StreamKind, error: Exception) -> None:
        self._errors.labels(kind=kind.value, error=type(error).__name__).inc()
