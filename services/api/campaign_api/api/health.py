from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Response

from campaign_api.cache.ttl import TTLCache
from campaign_api.resilience.circuit_breaker import CircuitBreaker
from campaign_api.services import AppServices, get_breaker, get_cache, get_services

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health(
    breaker: CircuitBreaker = Depends(get_breaker),
    cache: TTLCache = Depends(get_cache),
) -> dict[str, Any]:
    """Report liveness plus breaker and cache state. No auth required.

    Runs on the event loop with the breaker calls, so the state and the
    counters come from one consistent snapshot.
    """
    stats = breaker.get_stats()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "circuit_breaker": stats.state.value,
        "circuit_breaker_stats": stats.to_dict(),
        "cache_stats": cache.stats(),
    }


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics(services: AppServices = Depends(get_services)) -> Response:
    """Expose Prometheus metrics for scraping."""
    return Response(content=services.metrics.render(), media_type=services.metrics.content_type)
