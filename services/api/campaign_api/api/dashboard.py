from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, cast

from fastapi import APIRouter, Depends, Query

from campaign_api.analytics.kpis import analytics_kpis, dashboard_kpis
from campaign_api.api.caching import cached
from campaign_api.api.campaigns import SortField
from campaign_api.auth.dependencies import get_current_user
from campaign_api.auth.types import AuthUser
from campaign_api.cache.keys import CacheKeys, CacheTTL, serialize_params
from campaign_api.db.engine import get_engine
from campaign_api.db.queries import CampaignQuery, list_campaigns, list_forecasts, list_metrics
from campaign_api.services import AppServices, get_services

router = APIRouter(prefix="/api", tags=["dashboard"])

ANALYTICS_CAMPAIGN_LIMIT = 100


@router.get("/dashboard")
def dashboard(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortField = Query("start_date"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    status: str | None = Query(None),
    channel: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Return dashboard KPIs with a page of campaigns, all metrics and forecasts."""
    params = CampaignQuery(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        status=status,
        channel=channel,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
    key = CacheKeys.dashboard(
        serialize_params(
            {
                "page": page,
                "limit": limit,
                "sort_by": sort_by,
                "sort_order": sort_order,
                "status": status,
                "channel": channel,
                "search": search,
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            }
        )
    )

    def _load() -> dict[str, Any]:
        engine = get_engine()
        metrics = list_metrics(engine)
        return {
            "kpis": dashboard_kpis(metrics),
            "campaigns": list_campaigns(engine, params),
            "metrics": metrics,
            "forecasts": list_forecasts(engine),
        }

    return cast(dict[str, Any], cached(services, key, CacheTTL.SHORT, _load))


@router.get("/analytics")
def analytics(
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Return the full KPI breakdown with revenue, cost and margin trends."""
    key = CacheKeys.analytics(serialize_params({"limit": ANALYTICS_CAMPAIGN_LIMIT}))

    def _load() -> dict[str, Any]:
        engine = get_engine()
        metrics = list_metrics(engine)
        campaigns = list_campaigns(engine, CampaignQuery(limit=ANALYTICS_CAMPAIGN_LIMIT))
        return {
            "kpis": analytics_kpis(metrics),
            "campaigns": campaigns["items"],
            "metrics": metrics,
            "forecasts": list_forecasts(engine),
        }

    return cast(dict[str, Any], cached(services, key, CacheTTL.MEDIUM, _load))
