"""KPI summaries computed from daily campaign metrics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable

TREND_WINDOW_DAYS = 30


@dataclass
class Totals:
    """Summed daily metrics.

    Attributes:
        impressions: Total ad impressions
        clicks: Total clicks
        conversions: Total conversions
        revenue: Total attributed revenue
        cost: Total media cost
    """

    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    cost: float = 0.0

    @property
    def conversion_rate(self) -> float:
        return self.conversions / self.clicks * 100 if self.clicks > 0 else 0.0

    @property
    def ctr(self) -> float:
        return self.clicks / self.impressions * 100 if self.impressions > 0 else 0.0

    @property
    def roi(self) -> float:
        return (self.revenue - self.cost) / self.cost * 100 if self.cost > 0 else 0.0

    @property
    def profit_margin(self) -> float:
        if self.revenue <= 0:
            return 0.0
        return (self.revenue - self.cost) / self.revenue * 100


def _as_float(value: Any) -> float:
    if isinstance(value, Decimal):
        return float(value)
    return float(value or 0)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (SQLite hands back naive ones)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sum_metrics(rows: Iterable[dict[str, Any]]) -> Totals:
    """Sum impressions, clicks, conversions, revenue and cost over metric rows."""
    totals = Totals()
    for row in rows:
        totals.impressions += int(row["impressions"])
        totals.clicks += int(row["clicks"])
        totals.conversions += int(row["conversions"])
        totals.revenue += _as_float(row["revenue"])
        totals.cost += _as_float(row["cost"])
    return totals


def percent_change(current: float, previous: float) -> float:
    """Return the change from ``previous`` to ``current`` in percent (0 when no baseline)."""
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous) * 100


@dataclass
class TrendWindows:
    """Latest window and the equally long window before it."""

    current: Totals
    previous: Totals

    def trend(self, attribute: str) -> float:
        return round(
            percent_change(getattr(self.current, attribute), getattr(self.previous, attribute)),
            2,
        )


def split_windows(
    rows: list[dict[str, Any]],
    as_of: datetime | None = None,
    window_days: int = TREND_WINDOW_DAYS,
) -> TrendWindows:
    """Split metric rows into the latest ``window_days`` and the period before it.

    Args:
        rows: Metric rows with a ``date`` column
        as_of: End of the latest window; defaults to the newest metric date
        window_days: Window length in days

    Returns:
        Totals for ``(as_of - window, as_of]`` and ``(as_of - 2*window, as_of - window]``
    """
    if as_of is None:
        dates = [as_utc(row["date"]) for row in rows]
        as_of = max(dates) if dates else datetime.now(timezone.utc)
    as_of = as_utc(as_of)
    window = timedelta(days=window_days)
    current_start = as_of - window
    previous_start = current_start - window

    current = [row for row in rows if current_start < as_utc(row["date"]) <= as_of]
    previous = [row for row in rows if previous_start < as_utc(row["date"]) <= current_start]
    return TrendWindows(current=sum_metrics(current), previous=sum_metrics(previous))


def dashboard_kpis(rows: list[dict[str, Any]], as_of: datetime | None = None) -> dict[str, Any]:
    """Headline KPIs shown on the dashboard."""
    totals = sum_metrics(rows)
    windows = split_windows(rows, as_of)
    return {
        "conversion_rate": round(totals.conversion_rate, 4),
        "conversion_rate_trend": windows.trend("conversion_rate"),
        "ctr": round(totals.ctr, 4),
        "ctr_trend": windows.trend("ctr"),
        "roi": round(totals.roi, 4),
        "roi_trend": windows.trend("roi"),
        "total_impressions": totals.impressions,
        "impressions_trend": windows.trend("impressions"),
    }


def analytics_kpis(rows: list[dict[str, Any]], as_of: datetime | None = None) -> dict[str, Any]:
    """Full KPI breakdown for the analytics view."""
    totals = sum_metrics(rows)
    windows = split_windows(rows, as_of)
    return {
        "conversion_rate": round(totals.conversion_rate, 4),
        "conversion_rate_trend": windows.trend("conversion_rate"),
        "ctr": round(totals.ctr, 4),
        "ctr_trend": windows.trend("ctr"),
        "roi": round(totals.roi, 4),
        "roi_trend": windows.trend("roi"),
        "total_impressions": totals.impressions,
        "total_clicks": totals.clicks,
        "total_conversions": totals.conversions,
        "total_revenue": round(totals.revenue, 2),
        "revenue_trend": windows.trend("revenue"),
        "total_cost": round(totals.cost, 2),
        "cost_trend": windows.trend("cost"),
        "profit_margin": round(totals.profit_margin, 4),
        "profit_trend": windows.trend("profit_margin"),
    }
