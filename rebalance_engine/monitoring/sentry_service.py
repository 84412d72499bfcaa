"""Sentry integration for error tracking.

Tenant-level failures are captured with the tenant id as a tag. Broker
keys and other secrets are scrubbed from events before sending.
"""

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from rebalance_engine.config.models import SentrySettings

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = (
    "master_key", "private_key", "secret_key", "secret",
    "api_key", "apikey", "api-key", "authorization",
    "password", "token", "auth", "ciphertext", "nonce",
)


def scrub_sensitive_data(data: dict[str, Any]) -> dict[str, Any]:
    """Replace values of secret-looking keys with a marker, recursively."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if any(s in key.lower() for s in _SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = scrub_sensitive_data(value)
        elif isinstance(value, list):
            result[key] = [scrub_sensitive_data(v) if isinstance(v, dict) else v for v in value]
        else:
            result[key] = value
    return result


class SentryService:
    """Wraps the Sentry SDK with run-specific context.

    Example:
        >>> sentry = SentryService(SentrySettings(dsn="https://xxx@sentry.io/123"))
        >>> sentry.initialize()
        >>> sentry.capture_error(exc, tags={"tenant_id": "t-1"})
    """

    def __init__(self, settings: SentrySettings):
        self.settings = settings
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> bool:
        """Start the SDK when a DSN is configured; False means reporting stays off."""
        if not self.settings.dsn:
            return False

        try:
            sentry_sdk.init(
                dsn=self.settings.dsn,
                environment=self.settings.environment,
                traces_sample_rate=self.settings.traces_sample_rate,
                integrations=[
                    HttpxIntegration(),
                    LoggingIntegration(
                        level=None,
                        event_level=None,  # run summaries are logged, not reported
                    ),
                ],
                before_send=self._before_send,
            )
        except Exception as e:
            logger.warning(f"Sentry initialization failed: {e}")
            return False

        self._initialized = True
        return True

    def _before_send(self, event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
        return scrub_sensitive_data(event)

    def capture_error(
        self,
        error: BaseException,
        context: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
    ) -> str | None:
        """Report a tenant or run failure.

        The context dict is scrubbed and attached under "rebalance"; tags
        (tenant_id, strategy_id) become searchable event tags. Returns the
        Sentry event id, or None while the service is disabled.
        """
        if not self._initialized:
            return None

        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("rebalance", scrub_sensitive_data(context))
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            return sentry_sdk.capture_exception(error)

    def add_breadcrumb(self, category: str, message: str, data: dict[str, Any] | None = None) -> None:
        if not self._initialized:
            return
        sentry_sdk.add_breadcrumb(category=category, message=message, data=data or {})

    def flush(self, timeout: float = 2.0) -> None:
        if self._initialized:
            sentry_sdk.flush(timeout=timeout)


# Process-wide instance set up by main()
_service: SentryService | None = None


def init_sentry(settings: SentrySettings) -> SentryService:
    """Initialize the global Sentry service."""
    global _service
    _service = SentryService(settings)
    _service.initialize()
    return _service


def get_sentry() -> SentryService | None:
    """Get the global Sentry service, if initialized."""
    return _service
