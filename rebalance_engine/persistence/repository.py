"""SQLAlchemy-backed config store and run recorder."""

import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rebalance_engine.errors import ConfigInvalidError, CredentialError
from rebalance_engine.models import OrderStatus
from rebalance_engine.models.run import StrategyRunResult
from rebalance_engine.security.encryption import BrokerCredentials, EncryptionService

from .config_store import ConfigStore
from .models import (
    Base,
    BrokerCredential,
    ExecutionOrder,
    StrategyRecord,
    StrategyRun,
    SyntheticIndex,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """
    Connect to the database and create missing tables.

    In-memory SQLite is shared across worker threads through a single
    connection.
    """
    kwargs: dict[str, Any] = {"echo": False}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = sa.create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


class SqlConfigStore(ConfigStore):
    """Config store reading strategies and encrypted credentials from SQL."""

    def __init__(
        self,
        session_factory: SessionFactory,
        encryption: EncryptionService | None = None,
    ):
        """
        Initialize store.

        Args:
            session_factory: Creates a new session per call (thread-safe use)
            encryption: Credential decryption; built from MASTER_KEY on first use
        """
        self._session_factory = session_factory
        self._encryption = encryption

    def _encryption_service(self) -> EncryptionService:
        if self._encryption is None:
            self._encryption = EncryptionService()
        return self._encryption

    def list_tenants(self) -> list[str]:
        with self._session_factory() as session:
            stmt = (
                sa.select(StrategyRecord.tenant_id)
                .where(StrategyRecord.is_enabled.is_(True))
                .distinct()
                .order_by(StrategyRecord.tenant_id)
            )
            return list(session.scalars(stmt))

    def list_enabled_strategies(self, tenant_id: str) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            stmt = (
                sa.select(StrategyRecord)
                .where(StrategyRecord.tenant_id == tenant_id)
                .where(StrategyRecord.is_enabled.is_(True))
                .order_by(StrategyRecord.created_at, StrategyRecord.id)
            )
            return [
                {
                    "id": row.id,
                    "tenant_id": row.tenant_id,
                    "name": row.name,
                    "params": dict(row.config),
                }
                for row in session.scalars(stmt)
            ]

    def get_credentials(self, tenant_id: str) -> dict[str, str]:
        with self._session_factory() as session:
            stmt = (
                sa.select(BrokerCredential)
                .where(BrokerCredential.tenant_id == tenant_id)
                .where(BrokerCredential.is_active.is_(True))
                .order_by(BrokerCredential.created_at.desc())
                .limit(1)
            )
            row = session.scalars(stmt).first()
            if row is None:
                raise CredentialError(f"No active broker credentials for tenant {tenant_id}")
            ciphertext, nonce = bytes(row.ciphertext), bytes(row.nonce)

        return self._encryption_service().decrypt(ciphertext, nonce).as_mapping()

    def get_synthetic_index(self, tenant_id: str, index_id: str) -> list[str]:
        with self._session_factory() as session:
            row = session.get(SyntheticIndex, index_id)
            if row is None or row.tenant_id != tenant_id:
                raise ConfigInvalidError(f"Unknown synthetic index: {index_id}")
            return list(row.components)

    def save_strategy(
        self,
        tenant_id: str,
        strategy_id: str,
        config: dict[str, Any],
        name: str = "",
        enabled: bool = True,
    ) -> None:
        """Insert or replace a strategy record."""
        with self._session_factory() as session:
            row = session.get(StrategyRecord, strategy_id)
            if row is None:
                row = StrategyRecord(id=strategy_id, tenant_id=tenant_id)
                session.add(row)
            row.name = name
            row.config = config
            row.is_enabled = enabled
            session.commit()

    def save_credentials(self, tenant_id: str, credentials: BrokerCredentials) -> None:
        """Encrypt and store a key pair, deactivating previous ones."""
        ciphertext, nonce = self._encryption_service().encrypt(credentials)
        with self._session_factory() as session:
            session.execute(
                sa.update(BrokerCredential)
                .where(BrokerCredential.tenant_id == tenant_id)
                .values(is_active=False)
            )
            session.add(BrokerCredential(tenant_id=tenant_id, ciphertext=ciphertext, nonce=nonce))
            session.commit()

    def save_synthetic_index(
        self,
        tenant_id: str,
        index_id: str,
        components: list[str],
        name: str = "",
    ) -> None:
        with self._session_factory() as session:
            session.merge(
                SyntheticIndex(id=index_id, tenant_id=tenant_id, name=name, components=components)
            )
            session.commit()


class SqlRunRecorder:
    """Run recorder writing strategy runs and their orders to SQL."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def record_strategy_run(self, result: StrategyRunResult) -> None:
        with self._session_factory() as session:
            run = StrategyRun(
                tenant_id=result.tenant_id,
                strategy_id=result.strategy_id,
                dry_run=result.dry_run,
                state=result.state.value,
                orders_placed=result.orders_placed,
                orders_failed=result.orders_failed,
                errors=list(result.errors),
                details=result.details or None,
                started_at=result.started_at,
            )
            session.add(run)
            session.flush()

            for order_result in result.order_results:
                order = order_result.order
                session.add(
                    ExecutionOrder(
                        run_id=run.id,
                        tenant_id=result.tenant_id,
                        strategy_id=result.strategy_id,
                        symbol=order.symbol,
                        side=order.side.value,
                        notional_usd=Decimal(str(round(order.notional, 10))),
                        status=order_result.status.value,
                        reason=order.reason,
                        holds_after=order.holds_after,
                        broker_order_id=order_result.broker_order_id,
                        error=order_result.error,
                    )
                )
            session.commit()
        logger.debug(
            f"Recorded strategy {result.strategy_id} ({result.state.value}, "
            f"{len(result.order_results)} orders)"
        )

    def owned_symbols(self, tenant_id: str, strategy_id: str) -> set[str]:
        with self._session_factory() as session:
            stmt = (
                sa.select(ExecutionOrder.symbol, ExecutionOrder.holds_after)
                .join(StrategyRun, StrategyRun.id == ExecutionOrder.run_id)
                .where(ExecutionOrder.tenant_id == tenant_id)
                .where(ExecutionOrder.strategy_id == strategy_id)
                .where(ExecutionOrder.status == OrderStatus.SUBMITTED.value)
                .order_by(StrategyRun.started_at, ExecutionOrder.created_at)
            )
            holding = {symbol: holds for symbol, holds in session.execute(stmt)}
        return {symbol for symbol, holds in holding.items() if holds}
