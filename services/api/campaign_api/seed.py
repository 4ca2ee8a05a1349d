"""Populate the database with demo users, campaigns, daily metrics and forecasts.

Usage:
    DATABASE_URL=sqlite:///campaigns.db python -m campaign_api.seed --seed 7
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import sqlalchemy as sa

from campaign_api.auth.passwords import BCRYPT_ROUNDS, hash_password
from campaign_api.db.engine import create_schema, get_engine
from campaign_api.db.models import CAMPAIGN_CHANNELS, CAMPAIGN_STATUSES, Campaign
from campaign_api.db.queries import (
    create_campaign,
    create_forecasts,
    create_metrics,
    create_user,
    get_user_by_email,
)
from campaign_api.forecasting.model import forecast_date

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"
DEMO_USERS = (
    ("admin", "admin@campaigniq.com", "admin"),
    ("analyst", "analyst@campaigniq.com", "analyst"),
    ("viewer", "viewer@campaigniq.com", "viewer"),
)

COMPANIES = (
    "TechCorp",
    "Alpha Innovations",
    "NexGen Systems",
    "DataTech Solutions",
    "Innovate Industries",
)
TARGET_AUDIENCES = ("Men 18-24", "Men 25-34", "Women 25-34", "Women 35-44", "All Ages")
CUSTOMER_SEGMENTS = (
    "Tech Enthusiasts",
    "Fashionistas",
    "Health & Wellness",
    "Foodies",
    "Outdoor Adventurers",
)
LOCATIONS = ("New York", "Los Angeles", "Chicago", "Houston", "Miami")
CAMPAIGN_NAMES = (
    "Summer Sale",
    "Back to School Promotion",
    "Holiday Gift Guide",
    "New Product Launch",
    "Customer Loyalty Rewards",
    "Flash Sale Weekend",
    "Early Bird Discount",
    "Seasonal Clearance",
    "VIP Member Exclusive",
    "Brand Awareness Campaign",
    "Referral Program Boost",
    "Win-back Campaign",
    "Newsletter Signup Drive",
    "Product Demo Series",
    "Social Media Contest",
    "Influencer Partnership",
    "Email Retargeting",
    "PPC Optimization",
    "Display Remarketing",
    "Affiliate Growth",
)
FORECASTED_CAMPAIGNS = 8


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _ensure_users(engine: sa.Engine, bcrypt_rounds: int) -> list[dict[str, Any]]:
    password_hash = hash_password(DEMO_PASSWORD, bcrypt_rounds)
    users = []
    for username, email, role in DEMO_USERS:
        user = get_user_by_email(engine, email)
        if user is None:
            user = create_user(engine, username, email, password_hash, role)
        users.append(user)
    return users


def _campaign_values(
    rng: random.Random, index: int, now: datetime, days: int, owner_id: Any
) -> dict[str, Any]:
    name = CAMPAIGN_NAMES[index % len(CAMPAIGN_NAMES)]
    company = rng.choice(COMPANIES)
    audience = rng.choice(TARGET_AUDIENCES)
    segment = rng.choice(CUSTOMER_SEGMENTS)
    location = rng.choice(LOCATIONS)
    start_date = now - timedelta(days=days + rng.randint(0, 30))
    budget = round(rng.uniform(5000, 100000), 2)
    duration = timedelta(days=rng.choice((15, 30, 45, 60)))
    end_date = start_date + duration if rng.random() > 0.3 else None
    return {
        "name": f"{company} - {name}",
        "description": f"{name} targeting {audience} in {location}. Customer segment: {segment}.",
        "status": rng.choice(CAMPAIGN_STATUSES),
        "channel": CAMPAIGN_CHANNELS[index % len(CAMPAIGN_CHANNELS)],
        "budget": _money(budget),
        "spent": _money(rng.uniform(1000, budget * 0.8)),
        "start_date": start_date,
        "end_date": end_date,
        "target_audience": f"{audience} - {segment}",
        "created_by": owner_id,
    }


def _daily_metrics(
    rng: random.Random, campaign_id: Any, now: datetime, days: int
) -> list[dict[str, Any]]:
    base_conversion = rng.uniform(0.01, 0.15)
    base_ctr = rng.uniform(0.02, 0.10)
    acquisition_cost = rng.uniform(5000, 20000)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    rows = []
    for offset in range(days, 0, -1):
        ctr = base_ctr * (1 + (rng.random() - 0.5) * 0.3)
        conversion = base_conversion * (1 + (rng.random() - 0.5) * 0.3)
        impressions = rng.randint(3000, 60000)
        clicks = int(impressions * ctr)
        conversions = int(clicks * conversion)
        rows.append(
            {
                "campaign_id": campaign_id,
                "date": today - timedelta(days=offset - 1),
                "impressions": impressions,
                "clicks": clicks,
                "conversions": conversions,
                "revenue": _money(conversions * rng.uniform(50, 200)),
                "cost": _money(acquisition_cost / days),
            }
        )
    return rows


def _initial_forecasts(
    rng: random.Random, campaign_id: Any, now: datetime
) -> list[dict[str, Any]]:
    target = forecast_date(now)
    conversion = rng.uniform(2, 8)
    roi = rng.uniform(150, 400)
    revenue = rng.uniform(50000, 250000)
    specs = (
        ("conversion_rate", conversion, 0.8, 1.2, "0.0001"),
        ("roi", roi, 0.85, 1.15, "0.0001"),
        ("revenue", revenue, 0.9, 1.1, "0.01"),
    )
    rows = []
    for forecast_type, value, low, high, places in specs:
        quantum = Decimal(places)
        rows.append(
            {
                "campaign_id": campaign_id,
                "forecast_type": forecast_type,
                "forecast_date": target,
                "predicted_value": Decimal(str(value)).quantize(quantum),
                "confidence_lower": Decimal(str(value * low)).quantize(quantum),
                "confidence_upper": Decimal(str(value * high)).quantize(quantum),
                "confidence_level": _money(rng.uniform(0.85, 0.95)),
                "model_version": "v2.4.1",
            }
        )
    return rows


def seed_database(
    engine: sa.Engine,
    seed: int = 42,
    campaigns: int = len(CAMPAIGN_NAMES),
    days: int = 60,
    now: datetime | None = None,
    bcrypt_rounds: int = BCRYPT_ROUNDS,
) -> dict[str, int]:
    """Insert demo data unless campaigns already exist.

    Args:
        engine: Target engine (schema is created if missing)
        seed: Random seed; the same seed yields the same data
        campaigns: Number of campaigns to create
        days: Days of daily metrics per campaign, ending today
        now: Reference instant (defaults to the current UTC time)
        bcrypt_rounds: Cost factor for the demo users' password hash

    Returns:
        Counts of inserted users, campaigns, metrics and forecasts
    """
    create_schema(engine)
    now = now or datetime.now(timezone.utc)
    rng = random.Random(seed)

    with engine.connect() as conn:
        existing = conn.execute(sa.select(sa.func.count()).select_from(Campaign)).scalar_one()
    if existing:
        logger.info("Database already seeded (%d campaigns), skipping", existing)
        return {"users": 0, "campaigns": 0, "metrics": 0, "forecasts": 0}

    users = _ensure_users(engine, bcrypt_rounds)
    owner_id = users[0]["id"]

    created = [
        create_campaign(engine, _campaign_values(rng, index, now, days, owner_id))
        for index in range(campaigns)
    ]

    metrics_count = 0
    for campaign in created:
        metrics_count += create_metrics(engine, _daily_metrics(rng, campaign["id"], now, days))

    forecast_count = 0
    for campaign in created[:FORECASTED_CAMPAIGNS]:
        rows = _initial_forecasts(rng, campaign["id"], now)
        forecast_count += len(create_forecasts(engine, rows))

    summary = {
        "users": len(users),
        "campaigns": len(created),
        "metrics": metrics_count,
        "forecasts": forecast_count,
    }
    logger.info("Seeded database: %s", summary)
    return summary


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Seed the campaign analytics database")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--campaigns",
        type=int,
        default=len(CAMPAIGN_NAMES),
        help=f"Campaigns to create (default: {len(CAMPAIGN_NAMES)})",
    )
    parser.add_argument(
        "--days", type=int, default=60, help="Days of metrics per campaign (default: 60)"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Seed the database pointed to by DATABASE_URL."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args(argv)
    seed_database(get_engine(), seed=args.seed, campaigns=args.campaigns, days=args.days)
    return 0


if __name__ == "__main__":
    sys.exit(main())
