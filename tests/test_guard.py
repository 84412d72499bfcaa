"""Tests for the per-strategy reentrancy guard."""

from unittest.mock import MagicMock, patch

import redis

from rebalance_engine.core.guard import (
    InMemoryStrategyGuard,
    RedisStrategyGuard,
    StrategyGuard,
    get_strategy_guard,
)


# ---------------------------------------------------------------------------
# InMemoryStrategyGuard
# ---------------------------------------------------------------------------


class TestInMemoryStrategyGuard:
    def test_acquire_once(self) -> None:
        guard = InMemoryStrategyGuard()
        assert guard.acquire("s-1") is True
        assert guard.acquire("s-1") is False
        assert guard.is_held("s-1") is True

    def test_release_allows_reacquire(self) -> None:
        guard = InMemoryStrategyGuard()
        guard.acquire("s-1")
        guard.release("s-1")
        assert guard.is_held("s-1") is False
        assert guard.acquire("s-1") is True

    def test_strategies_are_independent(self) -> None:
        guard = InMemoryStrategyGuard()
        assert guard.acquire("s-1") is True
        assert guard.acquire("s-2") is True

    def test_release_unknown_is_noop(self) -> None:
        InMemoryStrategyGuard().release("never-held")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryStrategyGuard(), StrategyGuard)


# ---------------------------------------------------------------------------
# RedisStrategyGuard
# ---------------------------------------------------------------------------


class TestRedisStrategyGuard:
    def test_acquire_uses_set_nx_ex(self) -> None:
        client = MagicMock()
        client.set.return_value = True
        guard = RedisStrategyGuard(client, ttl_seconds=30)

        assert guard.acquire("s-1") is True
        args, kwargs = client.set.call_args
        assert args[0] == "rebalancer:strategy-lock:s-1"
        assert kwargs == {"nx": True, "ex": 30}

    def test_acquire_fails_when_key_exists(self) -> None:
        client = MagicMock()
        client.set.return_value = None
        guard = RedisStrategyGuard(client)
        assert guard.acquire("s-1") is False

    def test_acquire_refuses_on_redis_error(self) -> None:
        client = MagicMock()
        client.set.side_effect = redis.ConnectionError("down")
        guard = RedisStrategyGuard(client)
        assert guard.acquire("s-1") is False

    def test_release_deletes_own_token(self) -> None:
        client = MagicMock()
        client.set.return_value = True
        guard = RedisStrategyGuard(client)
        guard.acquire("s-1")
        token = client.set.call_args[0][1]
        client.get.return_value = token.encode()

        guard.release("s-1")

        client.delete.assert_called_once_with("rebalancer:strategy-lock:s-1")

    def test_release_leaves_foreign_token(self) -> None:
        client = MagicMock()
        client.set.return_value = True
        guard = RedisStrategyGuard(client)
        guard.acquire("s-1")
        client.get.return_value = b"someone-else"

        guard.release("s-1")

        client.delete.assert_not_called()

    def test_release_without_acquire_skips_redis(self) -> None:
        client = MagicMock()
        RedisStrategyGuard(client).release("s-1")
        client.get.assert_not_called()

    def test_release_swallows_redis_error(self) -> None:
        client = MagicMock()
        client.set.return_value = True
        client.get.side_effect = redis.ConnectionError("down")
        guard = RedisStrategyGuard(client)
        guard.acquire("s-1")

        guard.release("s-1")

        client.delete.assert_not_called()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestGetStrategyGuard:
    def test_no_url_gives_in_memory(self) -> None:
        assert isinstance(get_strategy_guard(None), InMemoryStrategyGuard)

    def test_url_gives_redis(self) -> None:
        client = MagicMock()
        with patch("rebalance_engine.core.guard.redis.Redis.from_url", return_value=client):
            guard = get_strategy_guard("redis://localhost:6379/0", ttl_seconds=60)
        assert isinstance(guard, RedisStrategyGuard)
        client.ping.assert_called_once()

    def test_unreachable_redis_falls_back(self) -> None:
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("rebalance_engine.core.guard.redis.Redis.from_url", return_value=client):
            guard = get_strategy_guard("redis://nowhere:6379/0")
        assert isinstance(guard, InMemoryStrategyGuard)
