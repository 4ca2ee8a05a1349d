from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from campaign_api.api.caching import invalidate
from campaign_api.api.errors import error_detail
from campaign_api.auth.dependencies import require_roles
from campaign_api.auth.types import AuthUser, Role
from campaign_api.cache.ttl import InvalidPatternError
from campaign_api.resilience.circuit_breaker import CircuitBreaker
from campaign_api.services import AppServices, get_breaker, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/circuit-breaker/open")
async def open_breaker(
    user: AuthUser = Depends(require_roles(Role.ADMIN)),
    breaker: CircuitBreaker = Depends(get_breaker),
) -> dict[str, Any]:
    """Force the model breaker OPEN so every call is served from the fallback."""
    breaker.force_open()
    logger.warning("Circuit breaker forced OPEN by %s", user.username)
    return breaker.get_stats().to_dict()


@router.post("/circuit-breaker/close")
async def close_breaker(
    user: AuthUser = Depends(require_roles(Role.ADMIN)),
    breaker: CircuitBreaker = Depends(get_breaker),
) -> dict[str, Any]:
    """Force the model breaker CLOSED and reset its counters."""
    breaker.force_close()
    logger.info("Circuit breaker forced CLOSED by %s", user.username)
    return breaker.get_stats().to_dict()


@router.delete("/cache")
def clear_cache(
    pattern: str | None = Query(None, max_length=500, description="Regex of keys to drop"),
    user: AuthUser = Depends(require_roles(Role.ADMIN)),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Drop cache entries matching ``pattern``, or everything when omitted."""
    if pattern is None:
        removed = services.cache.stats()["size"]
        services.cache.clear()
        logger.info("Cache cleared by %s (%d entries)", user.username, removed)
        return {"removed": removed, "pattern": None}

    try:
        removed = invalidate(services, pattern)
    except InvalidPatternError as exc:
        raise HTTPException(
            status_code=400,
            detail=error_detail("INVALID_PATTERN", str(exc)),
        ) from exc
    logger.info("Cache invalidated by %s: %s (%d entries)", user.username, pattern, removed)
    return {"removed": removed, "pattern": pattern}
