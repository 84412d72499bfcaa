"""Prometheus metrics for the rebalancing engine.

Example:
    >>> from rebalance_engine.monitoring.metrics import init_metrics
    >>>
    >>> metrics = init_metrics(MetricsSettings(enabled=True, port=9090))
    >>> metrics.start_server()
    >>> metrics.record_order("buy", "submitted")
"""

import logging
import threading

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

from rebalance_engine.config.models import MetricsSettings

logger = logging.getLogger(__name__)

# Module-level singleton
_metrics: "MetricsService | None" = None


class MetricsService:
    """Prometheus metrics service for run monitoring.

    Exposes:
    - Runs by mode and completeness
    - Strategy invocations by final state
    - Orders by side and status
    - Tenant-level failures
    - Skipped signal conditions
    - Run duration

    Metrics live in the service's own registry so several services (e.g.
    one per test) never collide on metric names.
    """

    def __init__(
        self,
        settings: MetricsSettings | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """Initialize metrics service.

        Args:
            settings: Metrics settings (uses defaults if not provided)
            registry: Registry to register into (a fresh one by default)
        """
        self.settings = settings or MetricsSettings()
        self.registry = registry or CollectorRegistry()
        self._server_started = False
        self._lock = threading.Lock()

        prefix = self.settings.prefix

        self._runs = Counter(
            f"{prefix}_runs_total",
            "Completed orchestrator runs",
            ["mode", "outcome"],
            registry=self.registry,
        )
        self._strategy_runs = Counter(
            f"{prefix}_strategy_runs_total",
            "Strategy invocations by final state",
            ["state"],
            registry=self.registry,
        )
        self._orders = Counter(
            f"{prefix}_orders_total",
            "Orders computed by side and outcome",
            ["side", "status"],
            registry=self.registry,
        )
        self._tenant_failures = Counter(
            f"{prefix}_tenant_failures_total",
            "Tenants aborted by a tenant-level error",
            registry=self.registry,
        )
        self._signal_skips = Counter(
            f"{prefix}_signal_skips_total",
            "Signal conditions skipped for lack of a usable reading",
            ["source_id"],
            registry=self.registry,
        )
        self._run_duration = Histogram(
            f"{prefix}_run_duration_seconds",
            "Wall-clock duration of a run",
            buckets=[1, 5, 15, 30, 60, 120, 180, 240, 300, 600],
            registry=self.registry,
        )

    @property
    def is_enabled(self) -> bool:
        return self.settings.enabled

    def start_server(self) -> bool:
        """Start the Prometheus HTTP server.

        Returns:
            True if the server is running, False otherwise
        """
        if not self.settings.enabled:
            logger.info("Metrics disabled, server not started")
            return False

        with self._lock:
            if self._server_started:
                return True
            try:
                start_http_server(self.settings.port, registry=self.registry)
            except OSError as e:
                logger.error(f"Failed to start metrics server: {e}")
                return False
            self._server_started = True
            logger.info(f"Prometheus metrics server started on port {self.settings.port}")
            return True

    def record_run(self, dry_run: bool, partial: bool, duration_seconds: float) -> None:
        self._runs.labels(
            mode="dry-run" if dry_run else "live",
            outcome="partial" if partial else "complete",
        ).inc()
        self._run_duration.observe(duration_seconds)

    def record_strategy(self, state: str) -> None:
        self._strategy_runs.labels(state=state).inc()

    def record_order(self, side: str, status: str) -> None:
        self._orders.labels(side=side, status=status).inc()

    def record_tenant_failure(self) -> None:
        self._tenant_failures.inc()

    def record_signal_skipped(self, source_id: str) -> None:
        self._signal_skips.labels(source_id=source_id).inc()


def init_metrics(settings: MetricsSettings | None = None) -> MetricsService:
    """Initialize the global metrics service."""
    global _metrics
    _metrics = MetricsService(settings)
    return _metrics


def get_metrics() -> MetricsService | None:
    """Get the global metrics service instance, if initialized."""
    return _metrics
