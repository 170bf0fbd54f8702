"""
Dashboard Router — Account totals for a date preset and today's budget pacing.
"""

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.database import get_db
from ppc_dashboard.models import Campaign, CampaignMetric, EntityState
from ppc_dashboard.services.reporting_service import (
    DATE_PRESETS,
    compute_deltas,
    compute_metrics,
    get_comparison_range,
    get_date_range,
    summarize_budget,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _totals(db: AsyncSession, start: date, end: date) -> dict:
    result = await db.execute(
        select(
            func.coalesce(func.sum(CampaignMetric.impressions), 0),
            func.coalesce(func.sum(CampaignMetric.clicks), 0),
            func.coalesce(func.sum(CampaignMetric.cost), 0.0),
            func.coalesce(func.sum(CampaignMetric.sales), 0.0),
            func.coalesce(func.sum(CampaignMetric.orders), 0),
        ).where(CampaignMetric.date >= start, CampaignMetric.date <= end)
    )
    impressions, clicks, cost, sales, orders = result.one()
    return compute_metrics([{
        "impressions": impressions,
        "clicks": clicks,
        "cost": cost,
        "sales": sales,
        "orders": orders,
    }])


@router.get("/summary")
async def summary(
    preset: str = Query("last_7_days"),
    db: AsyncSession = Depends(get_db),
):
    """Totals for the preset, the period before it, and the change between them."""
    if preset not in DATE_PRESETS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown preset {preset!r}. Use one of: {', '.join(DATE_PRESETS)}",
        )

    start, end = get_date_range(preset)
    prev_start, prev_end = get_comparison_range(preset)
    current = await _totals(db, start, end)
    previous = await _totals(db, prev_start, prev_end)

    return {
        "preset": preset,
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        "comparison_range": {"start": prev_start.isoformat(), "end": prev_end.isoformat()},
        "metrics": current,
        "previous": previous,
        "deltas": compute_deltas(current, previous),
    }


@router.get("/budgets")
async def budgets(db: AsyncSession = Depends(get_db)):
    """Today's spend against daily budget for every enabled campaign."""
    today = date.today()
    spend_today = (
        select(CampaignMetric.campaign_id, CampaignMetric.cost)
        .where(CampaignMetric.date == today)
        .subquery()
    )
    result = await db.execute(
        select(Campaign, func.coalesce(spend_today.c.cost, 0.0))
        .outerjoin(spend_today, spend_today.c.campaign_id == Campaign.id)
        .where(Campaign.state == EntityState.ENABLED.value)
        .order_by(Campaign.campaign_name)
    )

    hour = datetime.now().hour
    rows = []
    for campaign, spend in result.all():
        pacing = summarize_budget(float(campaign.daily_budget or 0), float(spend), hour)
        rows.append({
            "campaign_id": str(campaign.id),
            "campaign_name": campaign.campaign_name,
            "portfolio": campaign.portfolio,
            **pacing,
        })

    return {
        "date": today.isoformat(),
        "hour": hour,
        "campaigns": rows,
        "over_pacing": sum(1 for r in rows if r["status"] == "over-pacing"),
        "under_pacing": sum(1 for r in rows if r["status"] == "under-pacing"),
    }
