"""
Sentry initialization for centralized error tracking.
Observes reality, never controls logic.
"""
import logging
from typing import Any, Dict, List

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from ordersync.config import config
from ordersync.logger import logger


def initialize_sentry():
    """Initialize Sentry SDK if DSN is configured."""
    if not config.has_sentry:
        logger.info("Sentry not configured, skipping initialization")
        return

    try:
        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
            before_send=_enrich_sentry_event,
        )

        logger.info("Sentry initialized for error tracking")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def _enrich_sentry_event(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    """Tag events with the system name and group them by exception type."""
    event.setdefault("tags", {})
    event["tags"]["system"] = "ordersync"
    event["tags"]["environment"] = config.ENVIRONMENT

    exceptions = (event.get("exception") or {}).get("values") or []
    if exceptions:
        exc = exceptions[0]
        event["fingerprint"] = [
            "{{ default }}",
            exc.get("type", "Unknown"),
            exc.get("module", "unknown")
        ]

    return event


def capture_retry_exhaustion(operation: str, attempts: int, error: str, context: Dict[str, Any]):
    """Capture retry exhaustion in Sentry."""
    if not config.has_sentry:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("operation", operation)
        scope.set_tag("retry_exhausted", "true")
        scope.set_extra("attempts", attempts)
        scope.set_extra("error", error)
        scope.set_extra("context", context)
        scope.set_level("error")

        sentry_sdk.capture_message(
            f"Retry exhausted for {operation} after {attempts} attempts",
            "error"
        )


def capture_ingestion_errors(source: str, errors: List[str]):
    """Report rejected catalog records as a single warning event."""
    if not config.has_sentry or not errors:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("error_type", "ingestion")
        scope.set_tag("source", source)
        scope.set_extra("rejected", len(errors))
        scope.set_extra("sample", errors[:10])
        scope.set_level("warning")

        sentry_sdk.capture_message(
            f"Catalog ingestion from {source} rejected {len(errors)} records",
            "warning"
        )
