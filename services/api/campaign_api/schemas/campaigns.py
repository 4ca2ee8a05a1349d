"""Request models for campaign endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, model_validator

CampaignStatus = Literal["active", "paused", "completed", "draft"]
CampaignChannel = Literal["email", "social", "ppc", "display", "affiliate"]


class CampaignCreate(BaseModel):
    """Request to create a campaign."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    status: CampaignStatus = "active"
    channel: CampaignChannel
    budget: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    spent: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    start_date: datetime
    end_date: datetime | None = None
    target_audience: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "CampaignCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignUpdate(BaseModel):
    """Partial update; only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: CampaignStatus | None = None
    channel: CampaignChannel | None = None
    budget: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    spent: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: datetime | None = None
    end_date: datetime | None = None
    target_audience: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "CampaignUpdate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PredictRequest(BaseModel):
    """Request new forecasts, for one campaign or portfolio-wide."""

    campaign_id: str | None = Field(default=None, description="Campaign to forecast")
