"""
Cron / Scheduled Jobs — Endpoints for an external scheduler (QStash, Railway cron).

These endpoints skip API-key auth and verify CRON_SECRET instead. Send either:
  X-Cron-Secret: <CRON_SECRET>
  Authorization: Bearer <CRON_SECRET>
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.config import get_settings
from ppc_dashboard.database import get_db
from ppc_dashboard.models import ActivityLog
from ppc_dashboard.services.alert_service import check_and_create_alerts, record_budget_snapshots
from ppc_dashboard.utils import safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


async def _require_cron_secret(
    x_cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
    authorization: str | None = Header(None),
) -> None:
    """Verify request came from the scheduler with a valid secret."""
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(500, "CRON_SECRET not configured")
    token = x_cron_secret
    if not token and authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
    if not token or not secrets.compare_digest(token, secret):
        raise HTTPException(401, "Invalid cron secret")


@router.post("/alerts")
async def cron_alerts(
    _: None = Depends(_require_cron_secret),
    db: AsyncSession = Depends(get_db),
):
    """
    Scheduled budget snapshot + alert check:
    POST https://your-app.railway.app/api/cron/alerts
    Header: X-Cron-Secret: <CRON_SECRET>
    """
    try:
        snapshots = await record_budget_snapshots(db)
        created = await check_and_create_alerts(db)
    except Exception as e:
        raise HTTPException(500, safe_error_detail(e, "Alert check failed."))

    db.add(ActivityLog(
        action="alerts_checked",
        category="alerts",
        description=f"Scheduled alert check created {created} alerts",
        details={"alerts_created": created, "budget_snapshots": snapshots},
    ))
    logger.info(f"Cron alert check completed: {created} alerts, {snapshots} snapshots")
    return {"status": "ok", "alerts_created": created, "budget_snapshots": snapshots}
