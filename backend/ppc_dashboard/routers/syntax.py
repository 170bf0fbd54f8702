"""
Syntax Router — Keyword performance grouped by syntax label and label root.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.config import get_settings
from ppc_dashboard.database import get_db
from ppc_dashboard.models import AdGroup, Campaign, Keyword, KeywordMetric
from ppc_dashboard.services.aggregation_service import (
    AggregationFilters, AggregationInput, GroupingMode, MetricTuple, aggregate,
)
from ppc_dashboard.services.reporting_service import derive_rates
from ppc_dashboard.services.syntax_classifier import classify, split_root

logger = logging.getLogger(__name__)

router = APIRouter()


def _window(days: Optional[int]) -> tuple[date, date]:
    days = days or get_settings().default_lookback_days
    end = date.today()
    return end - timedelta(days=days - 1), end


async def load_keyword_rows(db: AsyncSession, start: date, end: date) -> list[AggregationInput]:
    """One AggregationInput per keyword per day inside [start, end]."""
    result = await db.execute(
        select(
            Keyword.id, Keyword.keyword_text, Keyword.syntax_group, Keyword.match_type,
            Campaign.id, Campaign.campaign_type, Campaign.portfolio,
            KeywordMetric.date, KeywordMetric.impressions, KeywordMetric.clicks,
            KeywordMetric.cost, KeywordMetric.sales, KeywordMetric.orders,
        )
        .join(KeywordMetric, KeywordMetric.keyword_id == Keyword.id)
        .join(AdGroup, Keyword.ad_group_id == AdGroup.id)
        .join(Campaign, AdGroup.campaign_id == Campaign.id)
        .where(KeywordMetric.date >= start, KeywordMetric.date <= end)
    )

    rows = []
    for (kw_id, text, label, match_type, camp_id, camp_type, portfolio,
         day, impressions, clicks, cost, sales, orders) in result.all():
        rows.append(AggregationInput(
            label=label or classify(text),
            metrics=MetricTuple(
                impressions=impressions or 0,
                clicks=clicks or 0,
                cost=float(cost or 0),
                sales=float(sales or 0),
                orders=orders or 0,
            ),
            member_id=str(kw_id),
            campaign_id=str(camp_id),
            campaign_type=camp_type,
            match_type=match_type,
            portfolio=portfolio,
            date=day,
        ))
    return rows


@router.get("")
async def syntax_groups(
    days: Optional[int] = Query(None, ge=1, le=365),
    campaign_type: Optional[str] = Query(None),
    match_type: Optional[str] = Query(None),
    root: Optional[str] = Query(None, description="Only labels starting with this prefix"),
    portfolio: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Performance per syntax label, highest spend first."""
    start, end = _window(days)
    rows = await load_keyword_rows(db, start, end)
    filters = AggregationFilters(
        root_prefix=root,
        campaign_type=campaign_type,
        match_type=match_type.upper() if match_type else None,
        portfolio=portfolio,
        start_date=start,
        end_date=end,
    )
    groups = aggregate(rows, GroupingMode.BY_LABEL, filters)
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "groups": [g.to_dict(GroupingMode.BY_LABEL) for g in groups],
    }


@router.get("/root-index")
async def root_index(
    days: Optional[int] = Query(None, ge=1, le=365),
    campaign_type: Optional[str] = Query(None),
    match_type: Optional[str] = Query(None),
    portfolio: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Performance per label root ("Bamboo" covers every "Bamboo|<size>")."""
    start, end = _window(days)
    rows = await load_keyword_rows(db, start, end)
    filters = AggregationFilters(
        campaign_type=campaign_type,
        match_type=match_type.upper() if match_type else None,
        portfolio=portfolio,
        start_date=start,
        end_date=end,
    )
    groups = aggregate(rows, GroupingMode.BY_ROOT, filters)
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "roots": [g.to_dict(GroupingMode.BY_ROOT) for g in groups],
    }


@router.get("/classify")
async def classify_text(text: str = Query("", max_length=500)):
    label = classify(text)
    return {"text": text, "syntax_group": label, "root": split_root(label)}


@router.get("/{syntax_group}/keywords")
async def syntax_group_keywords(
    syntax_group: str,
    days: Optional[int] = Query(None, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Per-keyword totals for one syntax label."""
    start, end = _window(days)
    result = await db.execute(
        select(
            Keyword.id, Keyword.keyword_text, Keyword.match_type, Keyword.bid, Keyword.state,
            Campaign.campaign_name,
            func.coalesce(func.sum(KeywordMetric.impressions), 0),
            func.coalesce(func.sum(KeywordMetric.clicks), 0),
            func.coalesce(func.sum(KeywordMetric.cost), 0.0),
            func.coalesce(func.sum(KeywordMetric.sales), 0.0),
            func.coalesce(func.sum(KeywordMetric.orders), 0),
        )
        .join(AdGroup, Keyword.ad_group_id == AdGroup.id)
        .join(Campaign, AdGroup.campaign_id == Campaign.id)
        .outerjoin(
            KeywordMetric,
            (KeywordMetric.keyword_id == Keyword.id)
            & (KeywordMetric.date >= start)
            & (KeywordMetric.date <= end),
        )
        .where(Keyword.syntax_group == syntax_group)
        .group_by(Keyword.id, Campaign.campaign_name)
    )

    keywords = []
    for kw_id, text, match_type, bid, state, campaign_name, impr, clicks, cost, sales, orders in result.all():
        keywords.append({
            "id": str(kw_id),
            "keyword_text": text,
            "match_type": match_type,
            "bid": bid,
            "state": state,
            "campaign_name": campaign_name,
            "impressions": int(impr),
            "clicks": int(clicks),
            "cost": round(float(cost), 2),
            "sales": round(float(sales), 2),
            "orders": int(orders),
            **{k: round(v, 2) for k, v in derive_rates(int(impr), int(clicks), float(cost),
                                                        float(sales), int(orders)).items()},
        })
    keywords.sort(key=lambda k: k["cost"], reverse=True)

    return {"syntax_group": syntax_group, "keywords": keywords}
