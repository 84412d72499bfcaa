"""Config store contract, run recorder contract and in-memory implementations."""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from rebalance_engine.errors import ConfigInvalidError, CredentialError
from rebalance_engine.models import OrderStatus
from rebalance_engine.models.run import StrategyRunResult


class ConfigStore(ABC):
    """Read-only source of tenants, strategies and credentials."""

    @abstractmethod
    def list_tenants(self) -> list[str]:
        """Tenants that have at least one enabled strategy."""
        ...

    @abstractmethod
    def list_enabled_strategies(self, tenant_id: str) -> list[dict[str, Any]]:
        """
        Raw strategy records for a tenant.

        Records are validated by the caller, so a malformed one only fails
        its own strategy.
        """
        ...

    @abstractmethod
    def get_credentials(self, tenant_id: str) -> dict[str, str]:
        """
        Decrypted broker credentials.

        Raises:
            CredentialError: Missing or undecryptable credentials
        """
        ...

    @abstractmethod
    def get_synthetic_index(self, tenant_id: str, index_id: str) -> list[str]:
        """
        Component symbols of a tenant-defined composite.

        Raises:
            ConfigInvalidError: Unknown index
        """
        ...


@runtime_checkable
class RunRecorder(Protocol):
    """Protocol for storing strategy results."""

    def record_strategy_run(self, result: StrategyRunResult) -> None:
        """Persist one strategy result."""
        ...

    def owned_symbols(self, tenant_id: str, strategy_id: str) -> set[str]:
        """Symbols whose latest submitted order from this strategy left a position open."""
        ...


class InMemoryConfigStore(ConfigStore):
    """Dictionary-backed config store for tests and local runs."""

    def __init__(self) -> None:
        self._strategies: dict[str, list[tuple[bool, dict[str, Any]]]] = {}
        self._credentials: dict[str, dict[str, str]] = {}
        self._synthetic: dict[tuple[str, str], list[str]] = {}
        self._lock = threading.Lock()

    def add_strategy(self, tenant_id: str, record: dict[str, Any], enabled: bool = True) -> None:
        with self._lock:
            stored = {**copy.deepcopy(record), "tenant_id": tenant_id}
            self._strategies.setdefault(tenant_id, []).append((enabled, stored))

    def set_credentials(self, tenant_id: str, credentials: dict[str, str]) -> None:
        with self._lock:
            self._credentials[tenant_id] = dict(credentials)

    def add_synthetic_index(self, tenant_id: str, index_id: str, components: list[str]) -> None:
        with self._lock:
            self._synthetic[(tenant_id, index_id)] = list(components)

    def list_tenants(self) -> list[str]:
        with self._lock:
            return sorted(
                tenant for tenant, rows in self._strategies.items() if any(e for e, _ in rows)
            )

    def list_enabled_strategies(self, tenant_id: str) -> list[dict[str, Any]]:
        with self._lock:
            # Copy on read so a run never sees later edits
            return [copy.deepcopy(r) for e, r in self._strategies.get(tenant_id, []) if e]

    def get_credentials(self, tenant_id: str) -> dict[str, str]:
        with self._lock:
            credentials = self._credentials.get(tenant_id)
        if credentials is None:
            raise CredentialError(f"No broker credentials for tenant {tenant_id}")
        return dict(credentials)

    def get_synthetic_index(self, tenant_id: str, index_id: str) -> list[str]:
        with self._lock:
            components = self._synthetic.get((tenant_id, index_id))
        if components is None:
            raise ConfigInvalidError(f"Unknown synthetic index: {index_id}")
        return list(components)


class InMemoryRunRecorder:
    """Keeps strategy results in memory."""

    def __init__(self) -> None:
        self.results: list[StrategyRunResult] = []
        self._lock = threading.Lock()

    def record_strategy_run(self, result: StrategyRunResult) -> None:
        with self._lock:
            self.results.append(result)

    def owned_symbols(self, tenant_id: str, strategy_id: str) -> set[str]:
        holding: dict[str, bool] = {}
        with self._lock:
            for run in self.results:
                if run.tenant_id != tenant_id or run.strategy_id != strategy_id:
                    continue
                for r in run.order_results:
                    if r.status == OrderStatus.SUBMITTED:
                        holding[r.order.symbol] = r.order.holds_after
        return {symbol for symbol, holds in holding.items() if holds}
