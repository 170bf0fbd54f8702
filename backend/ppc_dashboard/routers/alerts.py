"""
Alerts Router — List, resolve and manually trigger campaign alerts.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.database import get_db
from ppc_dashboard.models import ActivityLog, Alert
from ppc_dashboard.services.alert_service import check_and_create_alerts, record_budget_snapshots
from ppc_dashboard.utils import parse_uuid, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize_alert(a: Alert) -> dict:
    return {
        "id": str(a.id),
        "campaign_id": str(a.campaign_id) if a.campaign_id else None,
        "alert_type": a.alert_type,
        "severity": a.severity,
        "title": a.title,
        "message": a.message,
        "details": a.details,
        "is_resolved": a.is_resolved,
        "triggered_at": a.triggered_at.isoformat() if a.triggered_at else None,
        "resolved_at": a.resolved_at.isoformat() if a.resolved_at else None,
    }


@router.get("")
async def list_alerts(
    resolved: Optional[bool] = Query(None),
    severity: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    query = select(Alert).order_by(Alert.triggered_at.desc()).limit(limit)
    if resolved is not None:
        query = query.where(Alert.is_resolved == resolved)
    if severity:
        query = query.where(Alert.severity == severity.upper())
    result = await db.execute(query)
    return [_serialize_alert(a) for a in result.scalars().all()]


@router.post("/{alert_id}/resolve")
async def resolve_alert(alert_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Alert).where(Alert.id == parse_uuid(alert_id, "alert_id")))
    alert = result.scalar_one_or_none()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found.")

    if not alert.is_resolved:
        alert.is_resolved = True
        alert.resolved_at = utcnow()
    return _serialize_alert(alert)


@router.post("/check")
async def run_alert_check(db: AsyncSession = Depends(get_db)):
    """Snapshot today's budgets and run every alert check now."""
    snapshots = await record_budget_snapshots(db)
    created = await check_and_create_alerts(db)
    db.add(ActivityLog(
        action="alerts_checked",
        category="alerts",
        description=f"Manual alert check created {created} alerts",
        details={"alerts_created": created, "budget_snapshots": snapshots},
    ))
    return {"alerts_created": created, "budget_snapshots": snapshots}
