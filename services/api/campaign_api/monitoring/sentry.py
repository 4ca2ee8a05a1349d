"""Sentry integration for error tracking.

Initialised once at startup when ``SENTRY_DSN`` is configured. Without a DSN
the API runs with logging only.
"""

import logging
import os
from dataclasses import dataclass, field

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from campaign_api.config.models import SentrySettings

logger = logging.getLogger(__name__)


@dataclass
class SentryConfig:
    """Sentry configuration."""

    dsn: str
    environment: str = "development"
    release: str = ""
    traces_sample_rate: float = 0.1
    enabled: bool = True
    ignore_errors: list[str] = field(
        default_factory=lambda: [
            "CircuitOpenError",
            "asyncio.CancelledError",
        ]
    )

    @staticmethod
    def from_settings(settings: SentrySettings) -> "SentryConfig":
        """Build the config from validated application settings."""
        return SentryConfig(
            dsn=settings.dsn,
            environment=settings.environment,
            release=os.environ.get("SENTRY_RELEASE", ""),
            traces_sample_rate=settings.traces_sample_rate,
            enabled=bool(settings.dsn),
        )


def init_sentry(config: SentryConfig) -> bool:
    """Initialize the Sentry SDK.

    Returns:
        True if Sentry was initialized, False if disabled or unconfigured
    """
    if not config.enabled or not config.dsn:
        logger.info("Sentry not configured (set SENTRY_DSN to enable)")
        return False

    sentry_sdk.init(
        dsn=config.dsn,
        environment=config.environment,
        release=config.release or None,
        traces_sample_rate=config.traces_sample_rate,
        integrations=[
            AsyncioIntegration(),
            LoggingIntegration(level=None, event_level=None),
        ],
        ignore_errors=list(config.ignore_errors),
    )
    logger.info("Sentry initialized (env=%s)", config.environment)
    return True

