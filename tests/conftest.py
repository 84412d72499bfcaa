import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:  # pragma: no cover
    sys.path.append(str(PROJECT_ROOT))

from rebalance_engine.models import Bar  # noqa: E402
from rebalance_engine.persistence.repository import create_session_factory  # noqa: E402

MASTER_KEY_HEX = "11" * 32


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    """In-memory SQLite database with all tables created."""
    return create_session_factory("sqlite:///:memory:")


@pytest.fixture
def in_memory_db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Single session on the in-memory database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def master_key(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("MASTER_KEY", MASTER_KEY_HEX)
    return MASTER_KEY_HEX


@pytest.fixture
def make_bars() -> Callable[[list[float]], list[Bar]]:
    """Build daily flat bars from a list of closes, oldest first."""

    def _make(closes: list[float]) -> list[Bar]:
        end = datetime(2024, 6, 28, tzinfo=timezone.utc)
        return [
            Bar.flat(timestamp=end - timedelta(days=len(closes) - 1 - i), close=close)
            for i, close in enumerate(closes)
        ]

    return _make


@pytest.fixture(autouse=True)
def clean_config_env() -> Generator[None, None, None]:
    """Ensure REBALANCER_* env vars do not interfere with tests unless explicitly set."""
    original_env = {}
    keys_to_clear = [
        "REBALANCER_CONFIG_PATH",
        "REBALANCER_MAX_WORKERS",
        "REBALANCER_TIME_BUDGET_SECONDS",
        "REBALANCER_MIN_ORDER_NOTIONAL",
        "REBALANCER_POSITION_SCOPE",
        "DATABASE_URL",
        "REDIS_URL",
        "SENTRY_DSN",
        "MASTER_KEY",
    ]

    for key in keys_to_clear:
        if key in os.environ:
            original_env[key] = os.environ[key]
            os.environ.pop(key, None)

    yield

    # Restore
    for key in keys_to_clear:
        os.environ.pop(key, None)
    for key, value in original_env.items():
        os.environ[key] = value
