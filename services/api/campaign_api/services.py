"""Process-wide collaborators built once by the composition root."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from campaign_api.auth.tokens import TokenService
from campaign_api.cache.ttl import TTLCache
from campaign_api.config.models import Settings
from campaign_api.forecasting.model import PredictiveModelClient
from campaign_api.monitoring.metrics import MetricsService
from campaign_api.resilience.circuit_breaker import CircuitBreaker, CircuitState
from campaign_api.resilience.clock import Clock, SystemClock
from campaign_api.resilience.invoker import ResilientInvoker

MODEL_BREAKER_NAME = "predictive_model"


@dataclass
class AppServices:
    settings: Settings
    clock: Clock
    cache: TTLCache
    breaker: CircuitBreaker
    invoker: ResilientInvoker
    model_client: PredictiveModelClient
    tokens: TokenService
    metrics: MetricsService


def build_services(
    settings: Settings,
    clock: Clock | None = None,
    model_client: PredictiveModelClient | None = None,
    metrics: MetricsService | None = None,
) -> AppServices:
    """Wire one cache, one breaker and one invoker for the predictive model."""
    clock = clock or SystemClock()
    metrics = metrics or MetricsService()

    def _on_state_change(_old: CircuitState, new: CircuitState) -> None:
        metrics.set_breaker_state(new.value, MODEL_BREAKER_NAME)
        metrics.record_breaker_transition(new.value, MODEL_BREAKER_NAME)

    breaker = CircuitBreaker(
        settings.breaker,
        name=MODEL_BREAKER_NAME,
        clock=clock,
        on_state_change=_on_state_change,
    )
    metrics.set_breaker_state(breaker.get_state().value, MODEL_BREAKER_NAME)

    invoker = ResilientInvoker(
        breaker,
        on_fallback=lambda exc: metrics.record_fallback(type(exc).__name__),
    )
    cache = TTLCache(
        default_ttl_seconds=settings.cache.default_ttl_seconds,
        sweep_interval_seconds=settings.cache.sweep_interval_seconds,
        clock=clock,
    )

    return AppServices(
        settings=settings,
        clock=clock,
        cache=cache,
        breaker=breaker,
        invoker=invoker,
        model_client=model_client or PredictiveModelClient(settings.model, clock=clock),
        tokens=TokenService(settings.auth),
        metrics=metrics,
    )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services  # type: ignore[no-any-return]


def get_cache(request: Request) -> TTLCache:
    return get_services(request).cache


def get_breaker(request: Request) -> CircuitBreaker:
    return get_services(request).breaker


def get_invoker(request: Request) -> ResilientInvoker:
    return get_services(request).invoker
