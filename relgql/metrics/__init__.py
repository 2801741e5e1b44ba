"""Metrics for catalog introspection."""

from .collector import MetricsCollector, CatalogCallMetrics

__all__ = [
    'MetricsCollector',
    'CatalogCallMetrics'
]
