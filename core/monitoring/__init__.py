"""
Monitoring and observability components for the DipSip relay
"""

from .prometheus_metrics import PrometheusMetricsCollector

__all__ = [
    "PrometheusMetricsCollector",
]
