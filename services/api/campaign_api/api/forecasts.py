from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from typing import Any, Literal, cast

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from campaign_api.api.caching import cached, invalidate
from campaign_api.api.errors import not_found
from campaign_api.auth.dependencies import get_current_user, require_roles
from campaign_api.auth.types import AuthUser, Role
from campaign_api.cache.keys import FORECAST_READS_PATTERN, CacheKeys, CacheTTL, serialize_params
from campaign_api.db.engine import get_engine
from campaign_api.db.queries import create_forecasts, get_campaign, list_forecasts
from campaign_api.forecasting.model import (
    FALLBACK_PREDICTIONS,
    ForecastPrediction,
    forecast_date,
)
from campaign_api.resilience.invoker import ResilientInvoker
from campaign_api.schemas.campaigns import PredictRequest
from campaign_api.services import AppServices, get_invoker, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["forecasts"])

ForecastType = Literal["conversion_rate", "roi", "revenue"]


def _parse_campaign_id(value: str | None) -> uuid.UUID | None:
    if value is None:
        return None
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise not_found("Campaign") from exc


@router.get("/forecasts")
def forecasts(
    campaign_id: str | None = Query(None),
    forecast_type: ForecastType | None = Query(None),
    _user: AuthUser = Depends(get_current_user),
    services: AppServices = Depends(get_services),
) -> list[dict[str, Any]]:
    """Return stored forecasts, newest first."""
    parsed = _parse_campaign_id(campaign_id)
    key = CacheKeys.forecasts(
        serialize_params({"campaign_id": parsed, "forecast_type": forecast_type})
    )
    return cast(
        list[dict[str, Any]],
        cached(
            services,
            key,
            CacheTTL.LONG,
            lambda: list_forecasts(get_engine(), parsed, forecast_type),
        ),
    )


@router.post("/forecasts/predict")
async def predict(
    request: PredictRequest,
    _user: AuthUser = Depends(require_roles(Role.ADMIN, Role.ANALYST)),
    services: AppServices = Depends(get_services),
    invoker: ResilientInvoker = Depends(get_invoker),
) -> dict[str, Any]:
    """Ask the predictive model for fresh forecasts.

    The call goes through the breaker; if the model fails, times out or the
    breaker is open, the static baseline is returned instead with
    ``source="fallback"`` and nothing is stored.
    """
    campaign_id = _parse_campaign_id(request.campaign_id)
    if campaign_id is not None:
        row = await run_in_threadpool(get_campaign, get_engine(), campaign_id)
        if row is None:
            raise not_found("Campaign")

    async def _call_model() -> list[ForecastPrediction]:
        try:
            result = await services.model_client.predict(
                str(campaign_id) if campaign_id else None
            )
        except Exception:
            services.metrics.record_model_call("failure")
            raise
        services.metrics.record_model_call("success")
        return result

    predictions = await invoker.invoke(_call_model, FALLBACK_PREDICTIONS)
    state = invoker.breaker.get_state().value

    target = forecast_date()
    rows = [
        {**asdict(item), "campaign_id": campaign_id, "forecast_date": target}
        for item in predictions
    ]

    if predictions is FALLBACK_PREDICTIONS:
        return {
            "source": "fallback",
            "circuit_breaker": state,
            "forecasts": jsonable_encoder(rows),
        }

    stored = await run_in_threadpool(create_forecasts, get_engine(), rows)
    invalidate(services, FORECAST_READS_PATTERN)
    logger.info("Stored %d model forecasts for campaign %s", len(stored), campaign_id)
    return {
        "source": "model",
        "circuit_breaker": state,
        "forecasts": jsonable_encoder(stored),
    }
