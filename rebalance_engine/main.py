"""Main entry point for a rebalancing run."""

import argparse
import importlib
import json
import logging

from rebalance_engine.config.loader import load_config
from rebalance_engine.core.guard import get_strategy_guard
from rebalance_engine.core.orchestrator import BrokerFactory, RunOrchestrator
from rebalance_engine.monitoring.metrics import init_metrics
from rebalance_engine.monitoring.sentry_service import get_sentry, init_sentry
from rebalance_engine.persistence.repository import (
    SqlConfigStore,
    SqlRunRecorder,
    create_session_factory,
)
from rebalance_engine.signals.http_client import HttpSignalClient

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_broker_factory(path: str) -> BrokerFactory:
    """
    Resolve a ``module:callable`` path to a broker factory.

    Raises:
        ValueError: If the path is malformed or does not name a callable
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Broker factory must look like 'module:callable', got {path!r}")
    factory = getattr(importlib.import_module(module_name), attr, None)
    if not callable(factory):
        raise ValueError(f"Broker factory {path!r} is not callable")
    return factory  # type: ignore[no-any-return]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run every enabled tenant strategy once.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=True,
        help="Compute orders without submitting them (default)",
    )
    mode.add_argument(
        "--live",
        dest="dry_run",
        action="store_false",
        help="Submit orders to each tenant's broker",
    )
    parser.add_argument("--config", default=None, help="Path to the JSON config file")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run once and print the JSON report. Returns the process exit code."""
    args = parse_args(argv)
    logger.info("🚀 Rebalance engine starting...")

    try:
        config = load_config(args.config)
        broker_factory = load_broker_factory(config.broker_factory)
        logger.info(f"✅ Configuration loaded: workers={config.run.max_workers}")
    except Exception as e:
        logger.error(f"❌ Failed to load configuration: {e}")
        return 1

    sentry = init_sentry(config.sentry)
    if sentry.is_initialized:
        logger.info(f"✅ Sentry initialized (env={config.sentry.environment})")
    else:
        logger.info("⚠️ Sentry not configured (set SENTRY_DSN to enable)")

    metrics = init_metrics(config.metrics)
    metrics.start_server()

    logger.info(f"📊 Connecting to database: {config.database_url.split('@')[0]}...")
    session_factory = create_session_factory(config.database_url)

    with HttpSignalClient(
        config.signal_sources,
        cache_ttl_seconds=config.signal_cache_ttl_seconds,
    ) as signal_client:
        orchestrator = RunOrchestrator(
            SqlConfigStore(session_factory),
            broker_factory,
            signal_client=signal_client,
            settings=config.run,
            guard=get_strategy_guard(config.redis_url, config.run.guard_ttl_seconds),
            recorder=SqlRunRecorder(session_factory),
            metrics=metrics,
            sentry=sentry,
        )
        report = orchestrator.run_all_users(dry_run=args.dry_run)

    print(json.dumps(report.to_dict(), indent=2))

    active = get_sentry()
    if active:
        active.flush()
    logger.info("🛑 Run complete")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
