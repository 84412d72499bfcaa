"""Run report models returned by the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from rebalance_engine.core.state_machine import StrategyRunState

from .order import OrderResult, OrderStatus


@dataclass
class StrategyRunResult:
    """Outcome of one strategy invocation."""

    strategy_id: str
    tenant_id: str
    dry_run: bool
    state: StrategyRunState = StrategyRunState.PENDING
    order_results: list[OrderResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def orders_placed(self) -> int:
        """Live submissions that succeeded, or simulated orders in dry-run."""
        return sum(1 for r in self.order_results if r.placed)

    @property
    def orders_failed(self) -> int:
        return sum(1 for r in self.order_results if r.status == OrderStatus.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state == StrategyRunState.RECORDED and not self.errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "strategyId": self.strategy_id,
            "state": self.state.value,
            "ordersPlaced": self.orders_placed,
            "ordersFailed": self.orders_failed,
            "errors": list(self.errors),
            "orders": [
                {
                    "symbol": r.order.symbol,
                    "side": r.order.side.value,
                    "notional": round(r.order.notional, 2),
                    "reason": r.order.reason,
                    "status": r.status.value,
                    "error": r.error,
                }
                for r in self.order_results
            ],
        }


@dataclass
class TenantRunResult:
    """Outcome of all strategies for one tenant."""

    tenant_id: str
    strategies: list[StrategyRunResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def strategies_run(self) -> int:
        return len(self.strategies)

    @property
    def orders_placed(self) -> int:
        return sum(s.orders_placed for s in self.strategies)

    def all_errors(self) -> list[str]:
        """Tenant-level errors followed by per-strategy errors."""
        collected = list(self.errors)
        for strategy in self.strategies:
            collected.extend(f"Strategy {strategy.strategy_id}: {e}" for e in strategy.errors)
        return collected

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "strategiesRun": self.strategies_run,
            "ordersPlaced": self.orders_placed,
            "errors": self.all_errors(),
        }


@dataclass
class RunReport:
    """Aggregated result of one run across all tenants.

    ``partial`` is set when the wall-clock budget ran out before every
    tenant and strategy could be started.
    """

    dry_run: bool
    results: list[TenantRunResult] = field(default_factory=list)
    partial: bool = False
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def users_processed(self) -> int:
        return len(self.results)

    @property
    def total_orders(self) -> int:
        return sum(r.orders_placed for r in self.results)

    def result_for(self, tenant_id: str) -> TenantRunResult | None:
        for result in self.results:
            if result.tenant_id == tenant_id:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Structured report handed back to the caller."""
        return {
            "mode": "dry-run" if self.dry_run else "live",
            "usersProcessed": self.users_processed,
            "totalOrders": self.total_orders,
            "partial": self.partial,
            "errors": list(self.errors),
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "results": [r.to_dict() for r in self.results],
        }
