"""Per-strategy reentrancy guard.

Stops a strategy from being entered twice at once, e.g. when two run
triggers overlap, so orders are never submitted twice. With a Redis URL
the lock is shared across processes (``SET NX EX``); otherwise it only
covers the current process.

If Redis is unreachable at acquire time the guard refuses the lock, so
a strategy is skipped rather than risk duplicate orders.
"""

import logging
import threading
import uuid
from typing import Protocol, runtime_checkable

import redis

logger = logging.getLogger(__name__)

# Redis key namespace
_KEY_PREFIX = "rebalancer:strategy-lock"


@runtime_checkable
class StrategyGuard(Protocol):
    """Protocol for reentrancy guard implementations."""

    def acquire(self, strategy_id: str) -> bool:
        """Take the lock for a strategy. Returns False if it is already held."""
        ...

    def release(self, strategy_id: str) -> None:
        """Release a lock taken by this guard."""
        ...


class InMemoryStrategyGuard:
    """Process-local guard for testing and single-process runs."""

    def __init__(self) -> None:
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def acquire(self, strategy_id: str) -> bool:
        with self._lock:
            if strategy_id in self._held:
                return False
            self._held.add(strategy_id)
            return True

    def release(self, strategy_id: str) -> None:
        with self._lock:
            self._held.discard(strategy_id)

    def is_held(self, strategy_id: str) -> bool:
        with self._lock:
            return strategy_id in self._held


class RedisStrategyGuard:
    """Guard backed by Redis keys with an expiry.

    The expiry bounds how long a crashed process can block a strategy.
    """

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = 600) -> None:
        """Initialize with a Redis client.

        Args:
            redis_client: A connected redis.Redis (or compatible) instance.
            ttl_seconds: Lock expiry
        """
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(strategy_id: str) -> str:
        return f"{_KEY_PREFIX}:{strategy_id}"

    def acquire(self, strategy_id: str) -> bool:
        token = uuid.uuid4().hex
        try:
            acquired = self._redis.set(self._key(strategy_id), token, nx=True, ex=self._ttl)
        except redis.RedisError as e:
            logger.error("Redis lock failed for strategy %s, skipping: %s", strategy_id, e)
            return False

        if not acquired:
            return False
        with self._lock:
            self._tokens[strategy_id] = token
        return True

    def release(self, strategy_id: str) -> None:
        with self._lock:
            token = self._tokens.pop(strategy_id, None)
        if token is None:
            return

        key = self._key(strategy_id)
        try:
            raw = self._redis.get(key)
            current = raw.decode() if isinstance(raw, bytes) else raw
            # Only delete our own lock; it may have expired and been retaken
            if current == token:
                self._redis.delete(key)
        except redis.RedisError as e:
            logger.warning("Redis unlock failed for strategy %s (expires in %ss): %s",
                           strategy_id, self._ttl, e)


def get_strategy_guard(redis_url: str | None = None, ttl_seconds: int = 600) -> StrategyGuard:
    """Factory: return Redis-backed guard if URL provided, else in-memory.

    Args:
        redis_url: Redis connection URL (e.g. ``redis://localhost:6379/0``).
        ttl_seconds: Lock expiry for the Redis guard

    Returns:
        A StrategyGuard implementation.
    """
    if redis_url:
        try:
            client = redis.Redis.from_url(redis_url, decode_responses=False)
            client.ping()
            logger.info("Strategy guard connected to Redis at %s", redis_url)
            return RedisStrategyGuard(client, ttl_seconds=ttl_seconds)
        except redis.RedisError as e:
            logger.error(
                "Failed to connect to Redis (%s): %s, falling back to in-process guard",
                redis_url, e,
            )

    logger.info("Strategy guard: InMemory (single-process only)")
    return InMemoryStrategyGuard()
