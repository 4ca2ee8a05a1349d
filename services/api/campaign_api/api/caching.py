from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi.encoders import jsonable_encoder

from campaign_api.cache.keys import CacheTTL, resource_of
from campaign_api.services import AppServices

logger = logging.getLogger(__name__)


def cached(
    services: AppServices,
    key: str,
    ttl: CacheTTL,
    loader: Callable[[], Any],
) -> Any:
    """Return the cached payload for ``key``, loading and storing it on a miss.

    Payloads are stored JSON-ready so a hit never touches the database.
    """
    payload = services.cache.get(key)
    hit = payload is not None
    services.metrics.record_cache_lookup(resource_of(key), hit)
    if hit:
        return payload

    payload = jsonable_encoder(loader())
    services.cache.set(key, payload, int(ttl))
    return payload


def invalidate(services: AppServices, *patterns: str) -> int:
    """Drop every entry matching any of ``patterns``; return how many were removed."""
    removed = 0
    for pattern in patterns:
        removed += services.cache.invalidate_pattern(pattern)
    services.metrics.record_invalidation(removed)
    if removed:
        logger.debug("Invalidated %d cache entries for %s", removed, patterns)
    return removed
