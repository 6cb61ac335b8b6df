"""
Prometheus Metrics for tts-proxy.

Metrics Exposed:
    tts_proxy_requests_total{endpoint,status}  - Counter of handled requests
    tts_proxy_upstream_seconds{operation}      - Histogram of provider latency
    tts_proxy_audio_bytes_total{mode}          - Counter of audio bytes relayed
    tts_proxy_active_streams                   - Gauge of open audio streams

Usage:
    from tts_proxy.core.metrics import metrics

    metrics.record_request("tts", "success")
    metrics.observe_upstream("synthesize", 0.82)
    metrics.add_audio_bytes("buffered", 48213)

    content, content_type = metrics.get_metrics_response()

All metrics live in a private CollectorRegistry so several app instances
in one process (tests) never collide on the default registry.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class ProxyMetrics:
    """
    Metric collection for the proxy.

    Example:
        >>> m = ProxyMetrics()
        >>> m.record_request("voices", "success")
        >>> content, _ = m.get_metrics_response()
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "tts_proxy_requests_total",
            "Requests handled, by endpoint and outcome",
            ["endpoint", "status"],
            registry=self._registry,
        )
        self._upstream_seconds = Histogram(
            "tts_proxy_upstream_seconds",
            "Provider call latency in seconds",
            ["operation"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_proxy_audio_bytes_total",
            "Audio bytes relayed to clients",
            ["mode"],
            registry=self._registry,
        )
        self._active_streams = Gauge(
            "tts_proxy_active_streams",
            "Audio streams currently open",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, endpoint: str, status: str) -> None:
        """
        Record a handled request.

        Args:
            endpoint: Short endpoint name ("tts", "tts_stream", "voices", ...).
            status: "success" or "error".
        """
        self._requests_total.labels(endpoint=endpoint, status=status).inc()

    def observe_upstream(self, operation: str, seconds: float) -> None:
        """Record the duration of one provider call."""
        self._upstream_seconds.labels(operation=operation).observe(seconds)

    def add_audio_bytes(self, mode: str, count: int) -> None:
        """Add relayed audio bytes ("buffered" or "stream")."""
        if count > 0:
            self._audio_bytes_total.labels(mode=mode).inc(count)

    def stream_opened(self) -> None:
        self._active_streams.inc()

    def stream_closed(self) -> None:
        self._active_streams.dec()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type).
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Process-wide instance
metrics = ProxyMetrics()
