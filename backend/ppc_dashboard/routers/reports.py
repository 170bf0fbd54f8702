"""
Reports Router — Ingest parsed bulk reports and list past uploads.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.database import get_db
from ppc_dashboard.models import ActivityLog, ReportUpload, UploadStatus
from ppc_dashboard.services.ingestion_service import (
    ParsedReport, ReportTooLargeError, ingest_report,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class IngestRequest(BaseModel):
    file_name: str
    report: ParsedReport


def _serialize_upload(u: ReportUpload) -> dict:
    return {
        "id": str(u.id),
        "file_name": u.file_name,
        "report_date": u.report_date.isoformat() if u.report_date else None,
        "status": u.status,
        "campaign_count": u.campaign_count,
        "keyword_count": u.keyword_count,
        "search_term_count": u.search_term_count,
        "error_message": u.error_message,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


@router.post("/ingest")
async def ingest(payload: IngestRequest, db: AsyncSession = Depends(get_db)):
    """Replace stored campaign data with a parsed bulk report."""
    try:
        upload, counts = await ingest_report(db, payload.report, payload.file_name)
    except ReportTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))

    failed = upload.status == UploadStatus.FAILED.value
    db.add(ActivityLog(
        action="report_ingested",
        category="reports",
        description=f"Ingested {payload.file_name}: {upload.status}",
        entity_type="report_upload",
        entity_id=str(upload.id),
        details=counts or {"error": upload.error_message},
        status="error" if failed else "success",
    ))

    body = {"upload": _serialize_upload(upload), "counts": counts}
    if failed:
        # Returned rather than raised so the FAILED upload row is committed
        return JSONResponse(status_code=500, content=body)
    return body


@router.get("")
async def list_uploads(
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ReportUpload).order_by(ReportUpload.created_at.desc()).limit(limit)
    )
    return [_serialize_upload(u) for u in result.scalars().all()]
