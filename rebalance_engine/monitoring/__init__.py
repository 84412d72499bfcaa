"""Monitoring services for the rebalancing engine.

- MetricsService: Prometheus metrics for runs, strategies and orders
- SentryService: Error tracking for tenant-level failures
"""

from rebalance_engine.monitoring.metrics import MetricsService, get_metrics, init_metrics
from rebalance_engine.monitoring.sentry_service import SentryService, get_sentry, init_sentry

__all__ = [
    # Metrics
    "MetricsService",
    "get_metrics",
    "init_metrics",
    # Sentry
    "SentryService",
    "get_sentry",
    "init_sentry",
]
