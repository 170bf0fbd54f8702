"""
Reporting Service — Rate calculators, period presets and account-level
totals shared by the dashboard, budget and syntax views.

Every rate is derived from summed numerators and denominators; a zero
denominator yields 0, never NaN or an exception.
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DATE_PRESETS = (
    "today", "yesterday", "last_7_days", "last_30_days",
    "this_month", "last_month", "year_to_date",
)

PACING_TOLERANCE = 15.0  # percentage points either side of the expected pace


# ── Rate calculators ──────────────────────────────────────────────────

def calculate_acos(cost: float, sales: float) -> float:
    """ACOS = spend / sales × 100."""
    if sales == 0:
        return 0
    return cost / sales * 100


def calculate_roas(sales: float, cost: float) -> float:
    """ROAS = sales / spend."""
    if cost == 0:
        return 0
    return sales / cost


def calculate_ctr(clicks: int, impressions: int) -> float:
    if impressions == 0:
        return 0
    return clicks / impressions * 100


def calculate_cpc(cost: float, clicks: int) -> float:
    if clicks == 0:
        return 0
    return cost / clicks


def calculate_conversion_rate(orders: int, clicks: int) -> float:
    if clicks == 0:
        return 0
    return orders / clicks * 100


def calculate_aov(sales: float, orders: int) -> float:
    """Average order value."""
    if orders == 0:
        return 0
    return sales / orders


def calculate_budget_pacing(spent: float, budget: float) -> float:
    if budget == 0:
        return 0
    return spent / budget * 100


def calculate_projected_monthly_spend(daily_spend: float, days_in_month: int = 30) -> float:
    return daily_spend * days_in_month


def get_budget_pacing_status(pace_percentage: float, hour_of_day: int) -> str:
    """
    Compare actual pace with the share of the day already elapsed.
    Returns "over-pacing", "under-pacing" or "on-track".
    """
    expected_pace = hour_of_day / 24 * 100
    if pace_percentage > expected_pace + PACING_TOLERANCE:
        return "over-pacing"
    if pace_percentage < expected_pace - PACING_TOLERANCE:
        return "under-pacing"
    return "on-track"


def calculate_percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100 if current > 0 else 0
    return (current - previous) / previous * 100


def derive_rates(impressions: int, clicks: int, cost: float, sales: float, orders: int) -> dict:
    """All five rate metrics from summed totals."""
    return {
        "ctr": calculate_ctr(clicks, impressions),
        "cvr": calculate_conversion_rate(orders, clicks),
        "cpc": calculate_cpc(cost, clicks),
        "acos": calculate_acos(cost, sales),
        "roas": calculate_roas(sales, cost),
    }


# ── Date-range helpers ────────────────────────────────────────────────

def get_date_range(preset: str, today: Optional[date] = None) -> Tuple[date, date]:
    """Return (start, end) dates for a named preset."""
    today = today or date.today()

    if preset == "today":
        return today, today
    elif preset == "yesterday":
        d = today - timedelta(days=1)
        return d, d
    elif preset == "last_7_days":
        return today - timedelta(days=6), today
    elif preset == "last_30_days":
        return today - timedelta(days=29), today
    elif preset == "this_month":
        return today.replace(day=1), today
    elif preset == "last_month":
        first_this = today.replace(day=1)
        last_day_prev = first_this - timedelta(days=1)
        return last_day_prev.replace(day=1), last_day_prev
    elif preset == "year_to_date":
        return today.replace(month=1, day=1), today
    else:
        return today - timedelta(days=6), today


def _same_day_last_year(d: date) -> date:
    """Feb 29 maps to Feb 28 in a non-leap year."""
    year = d.year - 1
    return date(year, d.month, min(d.day, calendar.monthrange(year, d.month)[1]))


def get_comparison_range(preset: str, today: Optional[date] = None) -> Tuple[date, date]:
    """The period immediately before the preset's range, of equal length."""
    today = today or date.today()

    if preset == "last_month":
        first_this = today.replace(day=1)
        last_prev = first_this - timedelta(days=1)
        month_before_last = last_prev.replace(day=1) - timedelta(days=1)
        return month_before_last.replace(day=1), month_before_last
    elif preset == "year_to_date":
        start, end = get_date_range(preset, today)
        return start.replace(year=start.year - 1), _same_day_last_year(end)

    start, end = get_date_range(preset, today)
    duration = (end - start).days + 1
    return start - timedelta(days=duration), start - timedelta(days=1)


# ── Metric computation ────────────────────────────────────────────────

def compute_metrics(rows: list) -> dict:
    """Sum a list of metric dicts and derive rates from the totals."""
    total_cost = sum(float(r.get("cost") or 0) for r in rows)
    total_sales = sum(float(r.get("sales") or 0) for r in rows)
    total_impressions = sum(int(r.get("impressions") or 0) for r in rows)
    total_clicks = sum(int(r.get("clicks") or 0) for r in rows)
    total_orders = sum(int(r.get("orders") or 0) for r in rows)

    rates = derive_rates(total_impressions, total_clicks, total_cost, total_sales, total_orders)

    return {
        "cost": round(total_cost, 2),
        "sales": round(total_sales, 2),
        "impressions": total_impressions,
        "clicks": total_clicks,
        "orders": total_orders,
        **{k: round(v, 2) for k, v in rates.items()},
        "aov": round(calculate_aov(total_sales, total_orders), 2),
    }


def compute_deltas(current: dict, previous: dict) -> dict:
    """Percentage change per metric between two compute_metrics() dicts."""
    return {
        key: round(calculate_percentage_change(current.get(key, 0), previous.get(key, 0)), 1)
        for key in current
    }


def summarize_budget(daily_budget: float, spend_today: float, hour_of_day: int) -> dict:
    """Budget pacing summary for one campaign."""
    pace = calculate_budget_pacing(spend_today, daily_budget)
    return {
        "daily_budget": round(daily_budget, 2),
        "spend": round(spend_today, 2),
        "pace_percentage": round(pace, 1),
        "status": get_budget_pacing_status(pace, hour_of_day),
        "projected_monthly_spend": round(calculate_projected_monthly_spend(spend_today), 2),
    }
