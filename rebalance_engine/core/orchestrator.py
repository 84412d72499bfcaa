"""Multi-tenant run orchestrator.

Tenants go on a work queue drained by a bounded worker pool; the
strategies of one tenant run one after another on the same worker.
Failures stay inside the smallest scope that saw them (order, strategy,
tenant), and ``run_all_users`` always returns a report.

A wall-clock budget is checked before a tenant or strategy starts. Once
it is spent nothing new starts, orders already being submitted finish,
and the report is marked partial.
"""

import logging
import queue
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from rebalance_engine.broker.client import BrokerClient
from rebalance_engine.config.loader import load_strategy_config
from rebalance_engine.config.models import RunSettings, StrategyConfig
from rebalance_engine.core.guard import InMemoryStrategyGuard, StrategyGuard
from rebalance_engine.core.pipeline import compute_orders, fetch_inputs
from rebalance_engine.core.state_machine import StrategyRunState, StrategyStateMachine
from rebalance_engine.errors import EngineError, RunTimeoutError
from rebalance_engine.models import Order, OrderResult, OrderStatus
from rebalance_engine.models.run import RunReport, StrategyRunResult, TenantRunResult
from rebalance_engine.monitoring.metrics import MetricsService
from rebalance_engine.monitoring.sentry_service import SentryService
from rebalance_engine.persistence.config_store import ConfigStore, InMemoryRunRecorder, RunRecorder
from rebalance_engine.ranking.universe import resolve_universe
from rebalance_engine.signals.provider import SignalClient

logger = logging.getLogger(__name__)

BrokerFactory = Callable[[Mapping[str, str]], BrokerClient]


class RunOrchestrator:
    """Runs every enabled strategy of every tenant once."""

    def __init__(
        self,
        config_store: ConfigStore,
        broker_factory: BrokerFactory,
        *,
        signal_client: SignalClient | None = None,
        settings: RunSettings | None = None,
        guard: StrategyGuard | None = None,
        recorder: RunRecorder | None = None,
        metrics: MetricsService | None = None,
        sentry: SentryService | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize orchestrator.

        Args:
            config_store: Source of tenants, strategies and credentials
            broker_factory: Builds a broker client from tenant credentials
            signal_client: Signal client (None = every signal unavailable)
            settings: Run settings (defaults if not provided)
            guard: Per-strategy reentrancy guard (in-process by default)
            recorder: Where strategy results are stored (in-memory by default)
            metrics: Optional Prometheus metrics
            sentry: Optional Sentry error capture
            clock: Monotonic clock in seconds, for the time budget
        """
        self.config_store = config_store
        self.broker_factory = broker_factory
        self.signal_client = signal_client
        self.settings = settings or RunSettings()
        self.guard = guard or InMemoryStrategyGuard()
        self.recorder = recorder or InMemoryRunRecorder()
        self.metrics = metrics
        self.sentry = sentry
        self._clock = clock

    def run_all_users(self, dry_run: bool) -> RunReport:
        """
        Process every tenant with enabled strategies.

        Args:
            dry_run: Compute and report orders without submitting them

        Returns:
            Aggregated report; never raises
        """
        started = self._clock()
        deadline = started + self.settings.time_budget_seconds
        report = RunReport(dry_run=dry_run)
        mode = "DRY-RUN" if dry_run else "LIVE"
        logger.info(f"🚀 Rebalance run starting ({mode})")

        try:
            tenants = self.config_store.list_tenants()
        except Exception as e:
            logger.error(f"❌ Failed to list tenants: {e}", exc_info=True)
            report.errors.append(f"Failed to list tenants: {e}")
            return self._finish(report, started)

        work: queue.Queue[str] = queue.Queue()
        for tenant_id in tenants:
            work.put(tenant_id)

        results: dict[str, TenantRunResult] = {}
        not_started: list[str] = []
        timed_out = threading.Event()
        lock = threading.Lock()

        def worker() -> None:
            while True:
                try:
                    tenant_id = work.get_nowait()
                except queue.Empty:
                    return
                try:
                    self._check_deadline(deadline, f"tenant {tenant_id}")
                    result = self._run_tenant(tenant_id, dry_run, deadline, timed_out)
                except RunTimeoutError:
                    timed_out.set()
                    with lock:
                        not_started.append(tenant_id)
                    continue
                with lock:
                    results[tenant_id] = result

        workers = max(1, min(self.settings.max_workers, len(tenants)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rebalance") as pool:
            futures = [pool.submit(worker) for _ in range(workers)]
            for future in futures:
                try:
                    future.result()
                except Exception as e:
                    logger.error(f"❌ Worker crashed: {e}", exc_info=True)
                    report.errors.append(f"Worker crashed: {e}")

        report.results = [results[t] for t in tenants if t in results]
        # Tenants a crashed worker dequeued but never finished
        unfinished = [t for t in tenants if t not in results and t not in not_started]
        if unfinished:
            report.errors.append(f"Tenants not completed: {', '.join(unfinished)}")

        if timed_out.is_set():
            report.partial = True
            report.errors.append(
                f"Time budget of {self.settings.time_budget_seconds:g}s exhausted; "
                f"{len(not_started)} tenants not started"
            )
            logger.warning(f"⏱️ Time budget exhausted, {len(not_started)} tenants not started")

        return self._finish(report, started)

    def _finish(self, report: RunReport, started: float) -> RunReport:
        report.finished_at = datetime.now(timezone.utc)
        duration = self._clock() - started
        if self.metrics:
            self.metrics.record_run(report.dry_run, report.partial, duration)
        logger.info(
            f"🏁 Run finished: {report.users_processed} tenants, "
            f"{report.total_orders} orders, partial={report.partial} ({duration:.1f}s)"
        )
        return report

    def _check_deadline(self, deadline: float, what: str) -> None:
        if self._clock() >= deadline:
            raise RunTimeoutError(f"Time budget exhausted before {what}")

    # --- Tenant scope ---

    def _run_tenant(
        self,
        tenant_id: str,
        dry_run: bool,
        deadline: float,
        timed_out: threading.Event,
    ) -> TenantRunResult:
        result = TenantRunResult(tenant_id=tenant_id)
        logger.info(f"👤 Tenant {tenant_id}")

        try:
            credentials = self.config_store.get_credentials(tenant_id)
            broker = self.broker_factory(credentials)
            records = self.config_store.list_enabled_strategies(tenant_id)
        except Exception as e:
            logger.error(f"❌ Tenant {tenant_id} aborted: {e}")
            result.errors.append(f"Tenant setup failed: {e}")
            if self.metrics:
                self.metrics.record_tenant_failure()
            if self.sentry:
                self.sentry.capture_error(e, tags={"tenant_id": tenant_id})
            return result

        for index, record in enumerate(records):
            try:
                self._check_deadline(deadline, f"strategy {record.get('id', '?')}")
            except RunTimeoutError as e:
                timed_out.set()
                remaining = len(records) - index
                result.errors.append(f"{e}; {remaining} strategies not started")
                break
            result.strategies.append(self._run_strategy(tenant_id, record, broker, dry_run))

        return result

    # --- Strategy scope ---

    def _run_strategy(
        self,
        tenant_id: str,
        record: dict[str, Any],
        broker: BrokerClient,
        dry_run: bool,
    ) -> StrategyRunResult:
        strategy_id = str(record.get("id", "?"))
        result = StrategyRunResult(strategy_id=strategy_id, tenant_id=tenant_id, dry_run=dry_run)
        machine = StrategyStateMachine(
            strategy_id, on_transition=self._state_breadcrumbs(tenant_id, strategy_id)
        )

        if not self.guard.acquire(strategy_id):
            logger.warning(f"⚠️ Strategy {strategy_id} is already running, skipped")
            result.errors.append("Strategy is already running; skipped")
            machine.fail()
            result.state = machine.current_state
            self._count_strategy(result)
            return result

        try:
            self._execute_strategy(result, machine, record, broker, dry_run)
        finally:
            self.guard.release(strategy_id)

        result.state = machine.current_state
        self._count_strategy(result)
        try:
            self.recorder.record_strategy_run(result)
        except Exception as e:
            logger.error(f"❌ Failed to record strategy {strategy_id}: {e}")
        return result

    def _state_breadcrumbs(
        self, tenant_id: str, strategy_id: str
    ) -> Callable[[StrategyRunState, StrategyRunState], None] | None:
        if not self.sentry:
            return None
        sentry = self.sentry

        def record(previous: StrategyRunState, current: StrategyRunState) -> None:
            sentry.add_breadcrumb(
                category="strategy",
                message=f"{strategy_id}: {previous.value} -> {current.value}",
                data={"tenant_id": tenant_id},
            )

        return record

    def _execute_strategy(
        self,
        result: StrategyRunResult,
        machine: StrategyStateMachine,
        record: dict[str, Any],
        broker: BrokerClient,
        dry_run: bool,
    ) -> None:
        strategy_id = result.strategy_id
        try:
            config = load_strategy_config(record).snapshot()
            symbols = self._resolve_symbols(config)

            machine.transition_to(StrategyRunState.FETCHING)
            owned = None
            if self.settings.position_scope == "owned":
                owned = self.recorder.owned_symbols(result.tenant_id, strategy_id)
            inputs = fetch_inputs(
                broker, self.signal_client, config, symbols, self.settings, owned
            )

            machine.transition_to(StrategyRunState.COMPUTING)
            computed = compute_orders(config, symbols, inputs, self.settings)
            result.details = computed.summary()
            if self.metrics:
                for source_id in computed.signals.skipped_sources:
                    self.metrics.record_signal_skipped(source_id)

            if dry_run:
                machine.transition_to(StrategyRunState.SKIPPED_DRY_RUN)
                result.order_results = [
                    OrderResult(order=o, status=OrderStatus.SIMULATED) for o in computed.orders
                ]
            else:
                machine.transition_to(StrategyRunState.SUBMITTING)
                for order in computed.orders:
                    outcome = self._submit(broker, order)
                    result.order_results.append(outcome)
                    if outcome.status == OrderStatus.FAILED:
                        result.errors.append(f"Order {order.symbol} failed: {outcome.error}")

            machine.transition_to(StrategyRunState.RECORDED)
            logger.info(
                f"✅ Strategy {strategy_id}: {len(computed.orders)} orders "
                f"({'simulated' if dry_run else 'submitted'})"
            )
        except EngineError as e:
            logger.error(f"❌ Strategy {strategy_id} failed: {e}")
            result.errors.append(str(e))
            machine.fail()
        except Exception as e:
            logger.error(f"❌ Strategy {strategy_id} failed: {e}", exc_info=True)
            result.errors.append(f"{type(e).__name__}: {e}")
            machine.fail()

    def _resolve_symbols(self, config: StrategyConfig) -> list[str]:
        components = None
        if config.universe.type == "synthetic" and config.universe.synthetic_index:
            components = self.config_store.get_synthetic_index(
                config.tenant_id, config.universe.synthetic_index
            )
        return resolve_universe(config.universe, components)

    def _submit(self, broker: BrokerClient, order: Order) -> OrderResult:
        """Submit one order; a failure is confined to this order."""
        try:
            ack = broker.submit_order(order.symbol, order.side, order.notional)
        except Exception as e:
            logger.error(f"❌ Order {order.side.value} {order.symbol} ${order.notional:,.2f}: {e}")
            outcome = OrderResult(order=order, status=OrderStatus.FAILED, error=str(e))
        else:
            if ack.success:
                outcome = OrderResult(
                    order=order, status=OrderStatus.SUBMITTED, broker_order_id=ack.order_id
                )
            else:
                outcome = OrderResult(
                    order=order,
                    status=OrderStatus.FAILED,
                    error=ack.error or "rejected by broker",
                )

        if self.metrics:
            self.metrics.record_order(order.side.value, outcome.status.value)
        return outcome

    def _count_strategy(self, result: StrategyRunResult) -> None:
        if not self.metrics:
            return
        self.metrics.record_strategy(result.state.value)
        if result.dry_run:
            for order_result in result.order_results:
                self.metrics.record_order(order_result.order.side.value, order_result.status.value)
