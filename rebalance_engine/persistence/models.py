"""Database models for tenant configuration and run history."""

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Generic JSON for SQLite compatibility (SQLAlchemy handles mapping)
JSON_TYPE = sa.JSON().with_variant(JSONB, "postgresql")
NUMERIC_24_10 = sa.Numeric(24, 10)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class StrategyRecord(Base):
    """A tenant strategy and its JSON configuration."""
    __tablename__ = "strategies"

    id: Mapped[str] = mapped_column(sa.Text(), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="")
    is_enabled: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON_TYPE, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class BrokerCredential(Base):
    """AES-GCM encrypted broker key pair for a tenant."""
    __tablename__ = "broker_credentials"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    ciphertext: Mapped[bytes] = mapped_column(sa.LargeBinary(), nullable=False)
    nonce: Mapped[bytes] = mapped_column(sa.LargeBinary(), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class SyntheticIndex(Base):
    """Tenant-defined composite used as a strategy universe."""
    __tablename__ = "synthetic_indices"

    id: Mapped[str] = mapped_column(sa.Text(), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="")
    components: Mapped[list[str]] = mapped_column(JSON_TYPE, nullable=False)


class StrategyRun(Base):
    """One strategy invocation within a run."""
    __tablename__ = "strategy_runs"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    strategy_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    dry_run: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False)
    state: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    orders_placed: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    orders_failed: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    errors: Mapped[list[str]] = mapped_column(JSON_TYPE, nullable=False, default=list)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON_TYPE, nullable=True)
    started_at: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    recorded_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class ExecutionOrder(Base):
    """An order computed by a strategy run, submitted or simulated."""
    __tablename__ = "execution_orders"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    run_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("strategy_runs.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    strategy_id: Mapped[str] = mapped_column(sa.Text(), nullable=False, index=True)
    symbol: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    side: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    notional_usd: Mapped[Decimal] = mapped_column(NUMERIC_24_10, nullable=False)
    status: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="")
    holds_after: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)
    broker_order_id: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    error: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )
