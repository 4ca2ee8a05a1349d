from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, cast

from fastapi import APIRouter, Depends, Query, Response
from fastapi.encoders import jsonable_encoder

from campaign_api.api.caching import cached, invalidate
from campaign_api.api.errors import not_found
from campaign_api.auth.dependencies import get_current_user, require_roles
from campaign_api.auth.types import AuthUser, Role
from campaign_api.cache.keys import (
    CAMPAIGN_READS_PATTERN,
    FORECAST_READS_PATTERN,
    CacheKeys,
    CacheTTL,
    campaign_pattern,
    serialize_params,
)
from campaign_api.db.engine import get_engine
from campaign_api.db.queries import (
    CampaignQuery,
    create_campaign,
    delete_campaign,
    get_campaign,
    list_campaigns,
    list_metrics,
    update_campaign,
)
from campaign_api.schemas.campaigns import CampaignCreate, CampaignUpdate
from campaign_api.services import AppServices, get_services

router = APIRouter(prefix="/api", tags=["campaigns"])
WRITE_ROLES = (Role.ADMIN, Role.ANALYST)

SortField = Literal["name", "status", "channel", "budget", "spent", "start_date"]


def _parse_id(campaign_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(campaign_id)
    except ValueError as exc:
        raise not_found("Campaign") from exc


def _bust_campaign(services: AppServices, campaign_id: str) -> None:
    invalidate(services, CAMPAIGN_READS_PATTERN, campaign_pattern(campaign_id))


@router.get("/campaigns")
def campaigns(
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
    """Return a page of campaigns."""
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
    key = CacheKeys.campaigns(
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
    return cast(
        dict[str, Any],
        cached(services, key, CacheTTL.SHORT, lambda: list_campaigns(get_engine(), params)),
    )


@router.get("/campaigns/{campaign_id}")
def campaign(
    campaign_id: str,
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Return one campaign or 404."""
    parsed = _parse_id(campaign_id)

    def _load() -> dict[str, Any]:
        row = get_campaign(get_engine(), parsed)
        if not row:
            raise not_found("Campaign")
        return row

    key = CacheKeys.campaign(str(parsed))
    return cast(dict[str, Any], cached(services, key, CacheTTL.MEDIUM, _load))


@router.post("/campaigns", status_code=201)
def create(
    request: CampaignCreate,
    user: AuthUser = Depends(require_roles(*WRITE_ROLES)),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Create a campaign owned by the caller."""
    row = create_campaign(
        get_engine(),
        {**request.model_dump(), "created_by": uuid.UUID(user.user_id)},
    )
    _bust_campaign(services, str(row["id"]))
    return cast(dict[str, Any], jsonable_encoder(row))


@router.patch("/campaigns/{campaign_id}")
def update(
    campaign_id: str,
    request: CampaignUpdate,
    _user: AuthUser = Depends(require_roles(*WRITE_ROLES)),
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Apply a partial update to a campaign."""
    parsed = _parse_id(campaign_id)
    engine = get_engine()
    values = request.model_dump(exclude_unset=True)
    if not values:
        row = get_campaign(engine, parsed)
    else:
        row = update_campaign(engine, parsed, values)
    if not row:
        raise not_found("Campaign")
    # Nothing was written.
    if values:
        _bust_campaign(services, str(parsed))
    return cast(dict[str, Any], jsonable_encoder(row))


@router.delete("/campaigns/{campaign_id}", status_code=204)
def delete(
    campaign_id: str,
    _user: AuthUser = Depends(require_roles(*WRITE_ROLES)),
    services: AppServices = Depends(get_services),
) -> Response:
    """Delete a campaign and its metrics/forecasts."""
    parsed = _parse_id(campaign_id)
    if not delete_campaign(get_engine(), parsed):
        raise not_found("Campaign")
    _bust_campaign(services, str(parsed))
    # Forecasts cascade with the campaign.
    invalidate(services, FORECAST_READS_PATTERN)
    return Response(status_code=204)


@router.get("/campaigns/{campaign_id}/metrics")
def campaign_metrics(
    campaign_id: str,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> list[dict[str, Any]]:
    """Return daily metrics for one campaign."""
    parsed = _parse_id(campaign_id)
    if get_campaign(get_engine(), parsed) is None:
        raise not_found("Campaign")
    return _metrics_payload(services, parsed, start_date, end_date)


@router.get("/metrics")
def metrics(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> list[dict[str, Any]]:
    """Return daily metrics across all campaigns."""
    return _metrics_payload(services, None, start_date, end_date)


def _metrics_payload(
    services: AppServices,
    campaign_id: uuid.UUID | None,
    start_date: datetime | None,
    end_date: datetime | None,
) -> list[dict[str, Any]]:
    key = CacheKeys.metrics(
        serialize_params(
            {
                "campaign_id": campaign_id,
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            }
        )
    )
    return cast(
        list[dict[str, Any]],
        cached(
            services,
            key,
            CacheTTL.MEDIUM,
            lambda: list_metrics(get_engine(), campaign_id, start_date, end_date),
        ),
    )
