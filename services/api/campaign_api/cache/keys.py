"""Cache key builders and TTL tiers for API responses."""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Any, Mapping
from urllib.parse import urlencode


class CacheTTL(IntEnum):
    """TTL tiers in seconds, picked per endpoint."""

    SHORT = 60
    MEDIUM = 300
    LONG = 900
    VERY_LONG = 3600


def serialize_params(params: Mapping[str, Any]) -> str:
    """Render params as a deterministic ``k=v&k2=v2`` string (sorted, None dropped)."""
    items = sorted((key, str(value)) for key, value in params.items() if value is not None)
    return urlencode(items)


class CacheKeys:
    """Builders for ``<resource>:<params>`` keys."""

    @staticmethod
    def dashboard(params: str) -> str:
        return f"dashboard:{params}"

    @staticmethod
    def campaigns(params: str) -> str:
        return f"campaigns:{params}"

    @staticmethod
    def campaign(campaign_id: str) -> str:
        return f"campaign:{campaign_id}"

    @staticmethod
    def metrics(params: str) -> str:
        return f"metrics:{params}"

    @staticmethod
    def forecasts(params: str) -> str:
        return f"forecasts:{params}"

    @staticmethod
    def analytics(params: str) -> str:
        return f"analytics:{params}"


def resource_of(key: str) -> str:
    """Return the resource prefix of a cache key (``campaigns:page=1`` -> ``campaigns``)."""
    return key.split(":", maxsplit=1)[0]


# Patterns busted after writes.
CAMPAIGN_READS_PATTERN = r"^(campaigns|dashboard|analytics|metrics):"
FORECAST_READS_PATTERN = r"^(forecasts|dashboard|analytics):"


def campaign_pattern(campaign_id: str) -> str:
    """Pattern matching the single-campaign entry for ``campaign_id``."""
    return f"^campaign:{re.escape(campaign_id)}$"
