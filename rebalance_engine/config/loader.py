"""Configuration loader with JSON file and environment variable support."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from rebalance_engine.errors import ConfigInvalidError

from .models import EngineConfig, StrategyConfig


def load_config(config_path: str | None = None) -> EngineConfig:
    """
    Load engine configuration from JSON file with environment variable overrides.

    Priority: env vars > config file > defaults

    Args:
        config_path: Path to JSON config file. If None, uses REBALANCER_CONFIG_PATH
                     env var or defaults to 'config.json' in the project root.

    Returns:
        Validated EngineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        json.JSONDecodeError: If config file has invalid JSON
        pydantic.ValidationError: If config values are invalid
    """
    if config_path is None:
        config_path = os.environ.get("REBALANCER_CONFIG_PATH", "config.json")

    config_file = Path(config_path)
    if not config_file.is_absolute():
        # Resolve relative to project root
        project_root = Path(__file__).parent.parent.parent
        config_file = project_root / config_file

    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_file) as f:
        config_data: dict[str, Any] = json.load(f)

    # Format: REBALANCER_MAX_WORKERS, REBALANCER_TIME_BUDGET_SECONDS, etc.
    run = config_data.setdefault("run", {})
    if workers := os.environ.get("REBALANCER_MAX_WORKERS"):
        run["max_workers"] = int(workers)

    if budget := os.environ.get("REBALANCER_TIME_BUDGET_SECONDS"):
        run["time_budget_seconds"] = float(budget)

    if dust := os.environ.get("REBALANCER_MIN_ORDER_NOTIONAL"):
        run["min_order_notional"] = float(dust)

    if scope := os.environ.get("REBALANCER_POSITION_SCOPE"):
        run["position_scope"] = scope

    if database_url := os.environ.get("DATABASE_URL"):
        config_data["database_url"] = database_url

    if redis_url := os.environ.get("REDIS_URL"):
        config_data["redis_url"] = redis_url

    if sentry_dsn := os.environ.get("SENTRY_DSN"):
        config_data.setdefault("sentry", {})["dsn"] = sentry_dsn

    return EngineConfig(**config_data)


def load_strategy_config(record: Mapping[str, Any]) -> StrategyConfig:
    """
    Validate a raw strategy record from the config store.

    Accepts either a flat mapping or the stored layout where tuning
    parameters live under ``params``.

    Raises:
        ConfigInvalidError: If the record does not describe a valid strategy
    """
    data = dict(record)
    params = data.pop("params", None) or {}
    if not isinstance(params, Mapping):
        raise ConfigInvalidError(f"Strategy {data.get('id', '?')}: params must be an object")
    merged = {**params, **data}
    merged.pop("is_enabled", None)

    try:
        return StrategyConfig(**merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigInvalidError(
            f"Strategy {merged.get('id', '?')} has invalid config: {problems}"
        ) from exc
