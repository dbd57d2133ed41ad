#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

This module provides metrics collection with:
- HTTP request counters and latency histograms
- Cache hit/miss counters by category and operation latency
- WebSocket connection gauge and message counters
- Cloud PC status distribution gauge
- Error counters by type and component

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Histogram buckets for latency percentiles

Each MetricsCollector owns its own CollectorRegistry, so the application
(and every test) can build independent instances without colliding on
metric names in the global registry.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from cloudpc.core.config.constants import CloudPCStatus
from cloudpc.core.logging.logger import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collector.

    Usage:
        metrics = MetricsCollector(app_name="Cloud PC Manager", version="1.0.0")
        metrics.record_http_request("GET", "/api/cloudpc", 200, 0.012)
        metrics.record_cache_hit("cloudpc")
        payload = metrics.get_prometheus_metrics()
    """

    def __init__(self, app_name: str = "Cloud PC Manager", version: str = "1.0.0"):
        self.registry = CollectorRegistry()

        # HTTP metrics
        self.http_requests = Counter(
            'http_requests_total',
            'Total number of HTTP requests',
            ['method', 'route', 'status_code'],
            registry=self.registry,
        )
        self.http_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'route', 'status_code'],
            buckets=(0.1, 0.5, 1, 2, 5, 10),
            registry=self.registry,
        )

        # Cache metrics
        self.cache_hits = Counter(
            'cache_hits_total',
            'Total cache hits',
            ['type'],
            registry=self.registry,
        )
        self.cache_misses = Counter(
            'cache_misses_total',
            'Total cache misses',
            ['type'],
            registry=self.registry,
        )
        self.cache_duration = Histogram(
            'cache_operation_duration_seconds',
            'Cache operation duration in seconds',
            ['operation'],
            buckets=(0.001, 0.01, 0.1, 0.5, 1, 2, 5),
            registry=self.registry,
        )

        # WebSocket metrics
        self.ws_connections = Gauge(
            'websocket_connections_active',
            'Number of active WebSocket connections',
            registry=self.registry,
        )
        self.ws_messages = Counter(
            'websocket_messages_total',
            'Total WebSocket messages',
            ['type', 'direction'],
            registry=self.registry,
        )

        # Domain metrics
        self.cloudpc_status = Gauge(
            'cloudpc_status_total',
            'Cloud PCs by status',
            ['status'],
            registry=self.registry,
        )
        self.errors = Counter(
            'app_errors_total',
            'Total errors by type',
            ['error_type', 'component'],
            registry=self.registry,
        )

        app_info = Info('app', 'Application information', registry=self.registry)
        app_info.info({'name': app_name, 'version': version})

        logger.info("Metrics collector initialized", stage="M.0")

    # ========================================================================
    # HTTP
    # ========================================================================

    def record_http_request(
        self, method: str, route: str, status_code: int, duration_seconds: float
    ) -> None:
        labels = (method, route, str(status_code))
        self.http_requests.labels(*labels).inc()
        self.http_duration.labels(*labels).observe(duration_seconds)

    # ========================================================================
    # Cache
    # ========================================================================

    def record_cache_hit(self, category: str) -> None:
        self.cache_hits.labels(type=category).inc()

    def record_cache_miss(self, category: str) -> None:
        self.cache_misses.labels(type=category).inc()

    def record_cache_operation(self, operation: str, duration_seconds: float) -> None:
        self.cache_duration.labels(operation=operation).observe(duration_seconds)

    # ========================================================================
    # WebSocket
    # ========================================================================

    def set_ws_connections(self, count: int) -> None:
        self.ws_connections.set(count)

    def record_ws_message(self, message_type: str, direction: str) -> None:
        """direction is 'inbound' or 'outbound'."""
        self.ws_messages.labels(type=message_type, direction=direction).inc()

    # ========================================================================
    # Domain
    # ========================================================================

    def set_cloudpc_status_counts(self, counts: dict[str, int]) -> None:
        """Publish a full status distribution; missing statuses read as 0."""
        for status in CloudPCStatus:
            self.cloudpc_status.labels(status=status.value).set(counts.get(status.value, 0))

    def record_error(self, error_type: str, component: str) -> None:
        self.errors.labels(error_type=error_type, component=component).inc()

    # ========================================================================
    # Export
    # ========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Render this collector's registry in Prometheus text format.

        Returns:
            bytes: Metrics payload for the /metrics endpoint
        """
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
