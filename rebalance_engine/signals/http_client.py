"""HTTP JSON signal sources.

Fetches indicator values (e.g. the crypto Fear & Greed Index) from JSON
endpoints and extracts a single number with a restricted JSONPath such as
``$.data[0].value``. Readings are cached per source for a short TTL so
that strategies of many tenants sharing a source trigger one request.
"""

import logging
import math
import re
import threading
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from rebalance_engine.config.models import SignalSourceConfig
from rebalance_engine.errors import SignalUnavailableError
from rebalance_engine.models.signal import SignalReading

from .provider import SignalClient

logger = logging.getLogger(__name__)

BUILTIN_SOURCES: dict[str, SignalSourceConfig] = {
    "fear_greed_crypto": SignalSourceConfig(
        url="https://api.alternative.me/fng/",
        jsonpath="$.data[0].value",
    ),
}

_PATH_TOKEN_RE = re.compile(r"\.([A-Za-z_][A-Za-z0-9_\-]*)|\[(\d+|\*)\]")


def extract_json_path(data: Any, path: str) -> Any:
    """
    Walk a parsed JSON document with a restricted JSONPath.

    Supported: ``$``, ``.key``, ``[index]`` and ``[*]`` (first element).

    Raises:
        ValueError: If the path is malformed or does not resolve
    """
    path = path.strip()
    if not path.startswith("$"):
        raise ValueError(f"JSONPath must start with '$': {path!r}")

    position = 1
    current = data
    while position < len(path):
        match = _PATH_TOKEN_RE.match(path, position)
        if match is None:
            raise ValueError(f"Unsupported JSONPath syntax at {path[position:]!r}")
        key, index = match.groups()
        position = match.end()

        if key is not None:
            if not isinstance(current, dict) or key not in current:
                raise ValueError(f"Key {key!r} not found")
            current = current[key]
        else:
            if not isinstance(current, list) or not current:
                raise ValueError(f"Expected non-empty array at [{index}]")
            offset = 0 if index == "*" else int(index)
            if offset >= len(current):
                raise ValueError(f"Index {offset} out of range")
            current = current[offset]

    return current


class HttpSignalClient(SignalClient):
    """Signal client backed by JSON HTTP endpoints."""

    def __init__(
        self,
        sources: Mapping[str, SignalSourceConfig] | None = None,
        *,
        cache_ttl_seconds: float = 300.0,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            sources: Configured sources by id (merged over the built-ins)
            cache_ttl_seconds: How long a successful reading is reused
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests pass one with a MockTransport)
            clock: Monotonic clock used for cache expiry
        """
        self._sources: dict[str, SignalSourceConfig] = {**BUILTIN_SOURCES, **(sources or {})}
        self._cache_ttl = cache_ttl_seconds
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._clock = clock
        self._cache: dict[str, tuple[float, SignalReading]] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "HttpSignalClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def get_latest_reading(self, source_id: str) -> SignalReading | None:
        with self._lock:
            cached = self._cache.get(source_id)
            if cached and self._clock() - cached[0] < self._cache_ttl:
                return cached[1]

        try:
            reading = self.fetch(source_id)
        except SignalUnavailableError as e:
            logger.warning(f"⚠️ {e}")
            return None

        with self._lock:
            self._cache[source_id] = (self._clock(), reading)
        return reading

    def fetch(self, source_id: str) -> SignalReading:
        """
        Fetch a fresh reading, bypassing the cache.

        Raises:
            SignalUnavailableError: Unknown source, HTTP failure or unusable payload
        """
        source = self._sources.get(source_id)
        if source is None:
            raise SignalUnavailableError(source_id, "no such source configured")

        try:
            response = self._client.get(source.url, headers=source.headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise SignalUnavailableError(source_id, f"request failed: {e}") from e
        except ValueError as e:
            raise SignalUnavailableError(source_id, "response is not JSON") from e

        try:
            value = float(extract_json_path(payload, source.jsonpath))
        except (TypeError, ValueError) as e:
            raise SignalUnavailableError(source_id, f"cannot extract value: {e}") from e

        if not math.isfinite(value):
            raise SignalUnavailableError(source_id, "value is not a finite number")

        logger.debug(f"Signal {source_id} = {value}")
        return SignalReading(
            source_id=source_id,
            value=value,
            fetched_at=datetime.now(timezone.utc),
        )
