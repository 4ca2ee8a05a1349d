from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = sa.Numeric(12, 2)
FORECAST_VALUE = sa.Numeric(12, 4)

ROLES = ("admin", "analyst", "viewer")
CAMPAIGN_STATUSES = ("active", "paused", "completed", "draft")
CAMPAIGN_CHANNELS = ("email", "social", "ppc", "display", "affiliate")
FORECAST_TYPES = ("conversion_rate", "roi", "revenue")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    email: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    password_hash: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    role: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="viewer")
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (sa.UniqueConstraint("token", name="uq_refresh_tokens_token"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    expires_at: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class TokenBlacklist(Base):
    __tablename__ = "token_blacklist"
    __table_args__ = (sa.UniqueConstraint("token", name="uq_token_blacklist_token"),)

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    expires_at: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (
        sa.Index("ix_campaigns_status", "status"),
        sa.Index("ix_campaigns_channel", "channel"),
        sa.Index("ix_campaigns_start_date", "start_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="active")
    channel: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    budget: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    spent: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    start_date: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    end_date: Mapped[dt.datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    target_audience: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class CampaignMetric(Base):
    __tablename__ = "campaign_metrics"
    __table_args__ = (
        sa.Index("ix_campaign_metrics_campaign_id", "campaign_id"),
        sa.Index("ix_campaign_metrics_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    impressions: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    conversions: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )


class Forecast(Base):
    __tablename__ = "forecasts"
    __table_args__ = (
        sa.Index("ix_forecasts_campaign_id", "campaign_id"),
        sa.Index("ix_forecasts_type", "forecast_type"),
        sa.Index("ix_forecasts_date", "forecast_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid(), sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True
    )
    forecast_type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    forecast_date: Mapped[dt.datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    predicted_value: Mapped[Decimal] = mapped_column(FORECAST_VALUE, nullable=False)
    confidence_lower: Mapped[Decimal] = mapped_column(FORECAST_VALUE, nullable=False)
    confidence_upper: Mapped[Decimal] = mapped_column(FORECAST_VALUE, nullable=False)
    confidence_level: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0.95")
    )
    model_version: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, nullable=False
    )
