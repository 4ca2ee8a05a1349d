from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campaign_api.api.admin import router as admin_router
from campaign_api.api.auth import router as auth_router
from campaign_api.api.campaigns import router as campaigns_router
from campaign_api.api.dashboard import router as dashboard_router
from campaign_api.api.forecasts import router as forecasts_router
from campaign_api.api.health import router as health_router
from campaign_api.api.middleware import CORRELATION_HEADER, RequestLoggingMiddleware
from campaign_api.config.loader import load_settings
from campaign_api.config.models import Settings
from campaign_api.forecasting.model import PredictiveModelClient
from campaign_api.monitoring.sentry import SentryConfig, init_sentry
from campaign_api.resilience.clock import Clock
from campaign_api.services import AppServices, build_services

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the root log format at ``level``."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    services: AppServices = app.state.services
    services.cache.start_sweeper()
    logger.info(
        "Campaign API started (breaker=%s, cache sweep every %.0fs)",
        services.breaker.get_state().value,
        services.settings.cache.sweep_interval_seconds,
    )
    try:
        yield
    finally:
        services.cache.destroy()
        logger.info("Campaign API stopped")


def create_app(
    settings: Settings | None = None,
    clock: Clock | None = None,
    model_client: PredictiveModelClient | None = None,
) -> FastAPI:
    """Build the API with one cache, one breaker and one invoker.

    Args:
        settings: Validated settings (loaded from the environment when omitted)
        clock: Time source shared by the cache and the breaker
        model_client: Predictive model client (tests inject a failing one)

    Returns:
        Configured FastAPI application
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    init_sentry(SentryConfig.from_settings(settings.sentry))

    app = FastAPI(title="Campaign Analytics API", lifespan=lifespan)
    app.state.services = build_services(settings, clock=clock, model_client=model_client)

    # CORS: allow localhost for dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(campaigns_router)
    app.include_router(forecasts_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)
    return app


app = create_app()
