"""
Alert Service — Flags campaigns drifting away from their targets.

Checks each enabled campaign's most recent daily metric and budget snapshot:
  HIGH_ACOS        acos above target × tolerance (CRITICAL beyond × 1.5)
  LOW_ROAS         roas below target × tolerance (CRITICAL below × 0.5)
  BUDGET_PACING    pace above 150% (CRITICAL above 200%)
  BUDGET_EXCEEDED  spend above 90% of daily budget (CRITICAL above 100%)

An alert is skipped when an unresolved one of the same type already exists
for the same campaign inside the de-duplication window.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ppc_dashboard.config import get_settings
from ppc_dashboard.models import (
    Alert, AlertSeverity, AlertType, BudgetSnapshot, Campaign, CampaignMetric, EntityState,
)
from ppc_dashboard.services.reporting_service import (
    calculate_acos, calculate_budget_pacing, calculate_roas,
)
from ppc_dashboard.utils import utcnow

logger = logging.getLogger(__name__)

ACOS_CRITICAL_FACTOR = 1.5
ROAS_CRITICAL_FACTOR = 0.5
PACING_WARNING = 150.0
PACING_CRITICAL = 200.0
BUDGET_WARNING_SHARE = 0.9


@dataclass
class CampaignSnapshot:
    campaign_id: Optional[uuid.UUID]
    campaign_name: str
    daily_budget: float
    cost: float
    sales: float
    target_acos: Optional[float] = None
    target_roas: Optional[float] = None
    pace_percentage: Optional[float] = None


@dataclass
class AlertCandidate:
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    details: dict = field(default_factory=dict)


def detect_alerts(
    snap: CampaignSnapshot,
    acos_tolerance: float = 1.2,
    roas_tolerance: float = 0.8,
) -> list[AlertCandidate]:
    """Pure threshold checks for one campaign."""
    found: list[AlertCandidate] = []
    acos = calculate_acos(snap.cost, snap.sales)
    roas = calculate_roas(snap.sales, snap.cost)
    base = {"campaign_id": str(snap.campaign_id) if snap.campaign_id else None,
            "campaign_name": snap.campaign_name}

    if snap.target_acos and acos > snap.target_acos * acos_tolerance:
        found.append(AlertCandidate(
            alert_type=AlertType.HIGH_ACOS,
            severity=(AlertSeverity.CRITICAL if acos > snap.target_acos * ACOS_CRITICAL_FACTOR
                      else AlertSeverity.WARNING),
            title=f"High ACOS: {snap.campaign_name}",
            message=(f"Campaign ACOS ({acos:.1f}%) is above target ({snap.target_acos}%). "
                     f"Consider reducing bids or pausing underperforming keywords."),
            details={**base, "current_acos": round(acos, 2), "target_acos": snap.target_acos},
        ))

    if snap.target_roas and roas < snap.target_roas * roas_tolerance:
        found.append(AlertCandidate(
            alert_type=AlertType.LOW_ROAS,
            severity=(AlertSeverity.CRITICAL if roas < snap.target_roas * ROAS_CRITICAL_FACTOR
                      else AlertSeverity.WARNING),
            title=f"Low ROAS: {snap.campaign_name}",
            message=(f"Campaign ROAS ({roas:.2f}x) is below target ({snap.target_roas}x). "
                     f"Review your targeting and bid strategy."),
            details={**base, "current_roas": round(roas, 2), "target_roas": snap.target_roas},
        ))

    if snap.pace_percentage is not None and snap.pace_percentage > PACING_WARNING:
        found.append(AlertCandidate(
            alert_type=AlertType.BUDGET_PACING,
            severity=(AlertSeverity.CRITICAL if snap.pace_percentage > PACING_CRITICAL
                      else AlertSeverity.WARNING),
            title=f"Budget Overspending: {snap.campaign_name}",
            message=(f"Campaign is pacing at {snap.pace_percentage:.0f}% of daily budget "
                     f"(${snap.daily_budget:.2f}). Budget may be exhausted early."),
            details={**base, "pace_percentage": snap.pace_percentage, "daily_budget": snap.daily_budget},
        ))

    if snap.daily_budget > 0 and snap.cost > snap.daily_budget * BUDGET_WARNING_SHARE:
        share = snap.cost / snap.daily_budget * 100
        found.append(AlertCandidate(
            alert_type=AlertType.BUDGET_EXCEEDED,
            severity=(AlertSeverity.CRITICAL if snap.cost > snap.daily_budget
                      else AlertSeverity.WARNING),
            title=f"Budget Alert: {snap.campaign_name}",
            message=(f"Campaign has spent {share:.0f}% of its daily budget "
                     f"(${snap.cost:.2f} / ${snap.daily_budget:.2f})."),
            details={**base, "spent": snap.cost, "budget": snap.daily_budget},
        ))

    return found


def snapshot_for(campaign: Campaign) -> Optional[CampaignSnapshot]:
    """Latest metric + budget snapshot for a loaded campaign, or None without metrics."""
    if not campaign.metrics:
        return None
    latest = max(campaign.metrics, key=lambda m: m.date)
    budget = (
        max(campaign.budget_snapshots, key=lambda b: (b.date, b.created_at or datetime.min))
        if campaign.budget_snapshots else None
    )
    return CampaignSnapshot(
        campaign_id=campaign.id,
        campaign_name=campaign.campaign_name,
        daily_budget=float(campaign.daily_budget or 0),
        cost=float(latest.cost or 0),
        sales=float(latest.sales or 0),
        target_acos=campaign.target_acos,
        target_roas=campaign.target_roas,
        pace_percentage=budget.pace_percentage if budget else None,
    )


async def _has_recent_unresolved(
    db: AsyncSession, campaign_id: uuid.UUID, alert_type: AlertType, hours: int,
) -> bool:
    since = utcnow() - timedelta(hours=hours)
    result = await db.execute(
        select(Alert.id).where(
            Alert.campaign_id == campaign_id,
            Alert.alert_type == alert_type.value,
            Alert.is_resolved == False,  # noqa: E712
            Alert.triggered_at >= since,
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def record_budget_snapshots(db: AsyncSession, today: Optional[date] = None) -> int:
    """
    Store today's spend vs budget for each enabled campaign; feeds BUDGET_PACING.
    One row per campaign per day: a repeat run updates the existing row.
    """
    today = today or date.today()
    spend_today = (
        select(CampaignMetric.campaign_id, CampaignMetric.cost)
        .where(CampaignMetric.date == today)
        .subquery()
    )
    result = await db.execute(
        select(Campaign.id, Campaign.daily_budget, func.coalesce(spend_today.c.cost, 0.0))
        .outerjoin(spend_today, spend_today.c.campaign_id == Campaign.id)
        .where(Campaign.state == EntityState.ENABLED.value)
    )
    rows = result.all()

    existing = await db.execute(select(BudgetSnapshot).where(BudgetSnapshot.date == today))
    by_campaign = {s.campaign_id: s for s in existing.scalars().all()}

    count = 0
    for campaign_id, daily_budget, spend in rows:
        budget = float(daily_budget or 0)
        snapshot = by_campaign.get(campaign_id)
        if snapshot is None:
            snapshot = BudgetSnapshot(campaign_id=campaign_id, date=today)
            db.add(snapshot)
        snapshot.daily_budget = budget
        snapshot.spend = float(spend)
        snapshot.pace_percentage = round(calculate_budget_pacing(float(spend), budget), 1)
        count += 1
    await db.flush()
    return count


async def check_and_create_alerts(db: AsyncSession) -> int:
    """Run every check over enabled campaigns. Returns the number of alerts created."""
    settings = get_settings()
    result = await db.execute(
        select(Campaign)
        .where(Campaign.state == EntityState.ENABLED.value)
        .options(selectinload(Campaign.metrics), selectinload(Campaign.budget_snapshots))
    )
    campaigns = result.scalars().all()

    created = 0
    for campaign in campaigns:
        snap = snapshot_for(campaign)
        if snap is None:
            continue
        candidates = detect_alerts(
            snap,
            acos_tolerance=settings.alert_acos_tolerance,
            roas_tolerance=settings.alert_roas_tolerance,
        )
        for candidate in candidates:
            if await _has_recent_unresolved(db, campaign.id, candidate.alert_type,
                                            settings.alert_dedupe_hours):
                continue
            db.add(Alert(
                campaign_id=campaign.id,
                alert_type=candidate.alert_type.value,
                severity=candidate.severity.value,
                title=candidate.title,
                message=candidate.message,
                details=candidate.details,
                is_resolved=False,
                triggered_at=utcnow(),
            ))
            created += 1

    if created:
        await db.flush()
    logger.info(f"Alert check: {len(campaigns)} campaigns scanned, {created} alerts created")
    return created
