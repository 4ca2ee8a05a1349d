from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import sqlalchemy as sa

from campaign_api.db.models import (
    Campaign,
    CampaignMetric,
    Forecast,
    RefreshToken,
    TokenBlacklist,
    User,
)

CAMPAIGN_SORT_COLUMNS = {
    "name": Campaign.name,
    "status": Campaign.status,
    "channel": Campaign.channel,
    "budget": Campaign.budget,
    "spent": Campaign.spent,
    "start_date": Campaign.start_date,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _first(engine: sa.Engine, query: sa.Select[Any]) -> dict[str, Any] | None:
    with engine.connect() as conn:
        row = conn.execute(query).mappings().first()
    return dict(row) if row else None


def _all(engine: sa.Engine, query: sa.Select[Any]) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(query).mappings().all()]


# --- Users ---


def get_user_by_id(engine: sa.Engine, user_id: uuid.UUID) -> dict[str, Any] | None:
    """Return the user row for the given id, if present."""
    return _first(engine, sa.select(User.__table__).where(User.id == user_id))


def get_user_by_email(engine: sa.Engine, email: str) -> dict[str, Any] | None:
    """Return the user row for the given email, if present."""
    return _first(engine, sa.select(User.__table__).where(User.email == email))


def get_user_by_username(engine: sa.Engine, username: str) -> dict[str, Any] | None:
    """Return the user row for the given username, if present."""
    return _first(engine, sa.select(User.__table__).where(User.username == username))


def create_user(
    engine: sa.Engine, username: str, email: str, password_hash: str, role: str
) -> dict[str, Any]:
    """Insert a user and return the stored row."""
    user_id = uuid.uuid4()
    with engine.begin() as conn:
        conn.execute(
            sa.insert(User).values(
                id=user_id,
                username=username,
                email=email,
                password_hash=password_hash,
                role=role,
            )
        )
        row = conn.execute(sa.select(User.__table__).where(User.id == user_id)).mappings().one()
    return dict(row)


# --- Tokens ---


def create_refresh_token(
    engine: sa.Engine, user_id: uuid.UUID, token: str, expires_at: datetime
) -> None:
    """Store an issued refresh token."""
    with engine.begin() as conn:
        conn.execute(
            sa.insert(RefreshToken).values(
                id=uuid.uuid4(), user_id=user_id, token=token, expires_at=expires_at
            )
        )


def get_active_refresh_token(engine: sa.Engine, token: str) -> dict[str, Any] | None:
    """Return the refresh token row if it exists and has not been revoked."""
    query = sa.select(RefreshToken.__table__).where(
        RefreshToken.token == token, RefreshToken.revoked.is_(False)
    )
    return _first(engine, query)


def revoke_refresh_token(engine: sa.Engine, token: str) -> None:
    with engine.begin() as conn:
        conn.execute(
            sa.update(RefreshToken).where(RefreshToken.token == token).values(revoked=True)
        )


def blacklist_token(engine: sa.Engine, token: str, expires_at: datetime) -> None:
    """Blacklist an access token until it expires (no-op if already listed)."""
    with engine.begin() as conn:
        exists = conn.execute(
            sa.select(TokenBlacklist.id).where(TokenBlacklist.token == token)
        ).first()
        if exists:
            return
        conn.execute(
            sa.insert(TokenBlacklist).values(id=uuid.uuid4(), token=token, expires_at=expires_at)
        )


def is_token_blacklisted(engine: sa.Engine, token: str) -> bool:
    query = sa.select(TokenBlacklist.id).where(TokenBlacklist.token == token)
    with engine.connect() as conn:
        return conn.execute(query).first() is not None


def cleanup_expired_tokens(engine: sa.Engine, now: datetime | None = None) -> int:
    """Delete expired blacklist and refresh-token rows; return the number removed."""
    cutoff = now or _utcnow()
    with engine.begin() as conn:
        removed = conn.execute(
            sa.delete(TokenBlacklist).where(TokenBlacklist.expires_at <= cutoff)
        ).rowcount
        removed += conn.execute(
            sa.delete(RefreshToken).where(RefreshToken.expires_at <= cutoff)
        ).rowcount
    return int(removed)


# --- Campaigns ---


@dataclass(frozen=True)
class CampaignQuery:
    page: int = 1
    limit: int = 10
    sort_by: str = "start_date"
    sort_order: str = "desc"
    status: str | None = None
    channel: str | None = None
    search: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


def list_campaigns(engine: sa.Engine, params: CampaignQuery) -> dict[str, Any]:
    """Return a page of campaigns with total count and page math."""
    conditions: list[sa.ColumnElement[bool]] = []
    if params.status and params.status != "all":
        conditions.append(Campaign.status == params.status)
    if params.channel and params.channel != "all":
        conditions.append(Campaign.channel == params.channel)
    if params.search:
        conditions.append(Campaign.name.ilike(f"%{params.search}%"))
    if params.start_date:
        conditions.append(Campaign.start_date >= params.start_date)
    if params.end_date:
        conditions.append(Campaign.start_date <= params.end_date)

    column = CAMPAIGN_SORT_COLUMNS.get(params.sort_by, Campaign.start_date)
    order = sa.asc(column) if params.sort_order == "asc" else sa.desc(column)
    offset = (params.page - 1) * params.limit

    items_query = (
        sa.select(Campaign.__table__)
        .where(*conditions)
        .order_by(order, Campaign.id)
        .limit(params.limit)
        .offset(offset)
    )
    count_query = sa.select(sa.func.count()).select_from(Campaign).where(*conditions)

    with engine.connect() as conn:
        items = [dict(row) for row in conn.execute(items_query).mappings().all()]
        total = int(conn.execute(count_query).scalar_one())

    return {
        "items": items,
        "total": total,
        "page": params.page,
        "total_pages": math.ceil(total / params.limit) if params.limit else 0,
    }


def get_campaign(engine: sa.Engine, campaign_id: uuid.UUID) -> dict[str, Any] | None:
    return _first(engine, sa.select(Campaign.__table__).where(Campaign.id == campaign_id))


def create_campaign(engine: sa.Engine, values: dict[str, Any]) -> dict[str, Any]:
    """Insert a campaign and return the stored row."""
    campaign_id = uuid.uuid4()
    with engine.begin() as conn:
        conn.execute(sa.insert(Campaign).values(id=campaign_id, **values))
        row = (
            conn.execute(sa.select(Campaign.__table__).where(Campaign.id == campaign_id))
            .mappings()
            .one()
        )
    return dict(row)


def update_campaign(
    engine: sa.Engine, campaign_id: uuid.UUID, values: dict[str, Any]
) -> dict[str, Any] | None:
    """Apply a partial update; return the updated row or None if missing."""
    with engine.begin() as conn:
        result = conn.execute(
            sa.update(Campaign)
            .where(Campaign.id == campaign_id)
            .values(**values, updated_at=_utcnow())
        )
        if result.rowcount == 0:
            return None
        row = (
            conn.execute(sa.select(Campaign.__table__).where(Campaign.id == campaign_id))
            .mappings()
            .one()
        )
    return dict(row)


def delete_campaign(engine: sa.Engine, campaign_id: uuid.UUID) -> bool:
    with engine.begin() as conn:
        result = conn.execute(sa.delete(Campaign).where(Campaign.id == campaign_id))
    return result.rowcount > 0


# --- Metrics ---


def list_metrics(
    engine: sa.Engine,
    campaign_id: uuid.UUID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[dict[str, Any]]:
    """Return daily metrics ordered by date descending."""
    query = sa.select(CampaignMetric.__table__)
    if campaign_id is not None:
        query = query.where(CampaignMetric.campaign_id == campaign_id)
    if start_date is not None:
        query = query.where(CampaignMetric.date >= start_date)
    if end_date is not None:
        query = query.where(CampaignMetric.date <= end_date)
    return _all(engine, query.order_by(sa.desc(CampaignMetric.date)))


def create_metrics(engine: sa.Engine, rows: Iterable[dict[str, Any]]) -> int:
    """Bulk insert metric rows; return how many were inserted."""
    payload = [{"id": uuid.uuid4(), **row} for row in rows]
    if not payload:
        return 0
    with engine.begin() as conn:
        conn.execute(sa.insert(CampaignMetric), payload)
    return len(payload)


# --- Forecasts ---


def list_forecasts(
    engine: sa.Engine,
    campaign_id: uuid.UUID | None = None,
    forecast_type: str | None = None,
) -> list[dict[str, Any]]:
    """Return forecasts ordered by creation time descending."""
    query = sa.select(Forecast.__table__)
    if campaign_id is not None:
        query = query.where(Forecast.campaign_id == campaign_id)
    if forecast_type:
        query = query.where(Forecast.forecast_type == forecast_type)
    return _all(engine, query.order_by(sa.desc(Forecast.created_at)))


def create_forecasts(engine: sa.Engine, rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Insert forecast rows and return them as stored."""
    payload = [{"id": uuid.uuid4(), **row} for row in rows]
    if not payload:
        return []
    ids = [row["id"] for row in payload]
    with engine.begin() as conn:
        conn.execute(sa.insert(Forecast), payload)
        stored = conn.execute(sa.select(Forecast.__table__).where(Forecast.id.in_(ids))).mappings()
        by_id = {row["id"]: dict(row) for row in stored}
    return [by_id[forecast_id] for forecast_id in ids]
