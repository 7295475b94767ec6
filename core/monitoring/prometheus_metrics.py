"""
Prometheus metrics for the webhook relay
"""

from prometheus_client import Counter, Histogram, CollectorRegistry
from typing import Any, Optional


class PrometheusMetricsCollector:
    """Relay metrics exposed on /metrics"""

    def __init__(self, registry: Optional[CollectorRegistry] = None, settings: Optional[Any] = None):
        self.registry = registry or CollectorRegistry()
        # Optional bucket overrides from settings.monitoring.prometheus_buckets
        buckets = None
        if settings is not None and hasattr(settings, 'monitoring'):
            buckets = getattr(settings.monitoring, 'prometheus_buckets', None)

        self.webhook_requests = Counter(
            'webhook_requests_total',
            'Inbound webhook calls by route and outcome',
            ['route', 'outcome'],
            registry=self.registry
        )

        self.orders_dispatched = Counter(
            'orders_dispatched_total',
            'Per-item order outcomes',
            ['broker', 'status'],
            registry=self.registry
        )

        self.order_latency = Histogram(
            'order_placement_latency_seconds',
            'Latency of one outbound order call including rate-limit retries',
            ['broker'],
            buckets=(getattr(buckets, 'order_latency_seconds', None) if buckets else [
                0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0
            ]),
            registry=self.registry
        )

        self.batch_size = Histogram(
            'order_batch_size',
            'Number of items per dispatched batch',
            buckets=(getattr(buckets, 'batch_size', None) if buckets else [
                1, 2, 5, 10, 20, 50, 100
            ]),
            registry=self.registry
        )

        self.credential_files_swept = Counter(
            'credential_files_swept_total',
            'Expired credential files deleted by the sweep',
            registry=self.registry
        )

    def record_webhook(self, route: str, outcome: str):
        """Record a webhook call; outcome is 'accepted' or an error code"""
        self.webhook_requests.labels(route=route, outcome=outcome).inc()

    def record_order(self, status: str, broker: str = "zerodha"):
        self.orders_dispatched.labels(broker=broker, status=status).inc()

    def observe_order_latency(self, seconds: float, broker: str = "zerodha"):
        self.order_latency.labels(broker=broker).observe(seconds)

    def record_batch(self, size: int):
        self.batch_size.observe(size)

    def record_swept(self, count: int):
        if count:
            self.credential_files_swept.inc(count)
