"""
Change Sets Router — Create, review, export and apply batches of proposed
campaign/keyword edits.

Lifecycle: DRAFT → EXPORTED → APPLIED, or → FAILED when writes fail during
apply. Export downloads an Amazon bulksheet; apply writes the edits to the
stored campaigns and keywords.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ppc_dashboard.database import get_db
from ppc_dashboard.models import ActivityLog, ChangeSet, ChangeSetItem, ChangeSetStatus
from ppc_dashboard.services.change_set_service import (
    ChangeSetPolicyError,
    ChangeSetValidationError,
    MalformedChangeSetError,
    SqlAlchemyEntityStore,
    apply_change_set,
    create_change_set,
    ensure_deletable,
    export_change_set,
)
from ppc_dashboard.services.change_set_validation import serialize_errors
from ppc_dashboard.utils import parse_uuid, safe_filename

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ── Request Models ────────────────────────────────────────────────────

class ChangeSetItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entity_type: Optional[str] = Field(None, alias="entityType")  # CAMPAIGN / KEYWORD
    entity_id: Optional[str] = Field(None, alias="entityId")
    entity_name: Optional[str] = Field(None, alias="entityName")
    changes: Optional[dict] = None
    previous_values: Optional[dict] = Field(None, alias="previousValues")
    campaign_name: Optional[str] = Field(None, alias="campaignName")
    ad_group_name: Optional[str] = Field(None, alias="adGroupName")
    amazon_campaign_id: Optional[str] = Field(None, alias="amazonCampaignId")
    amazon_ad_group_id: Optional[str] = Field(None, alias="amazonAdGroupId")
    amazon_keyword_id: Optional[str] = Field(None, alias="amazonKeywordId")
    match_type: Optional[str] = Field(None, alias="matchType")


class CreateChangeSetRequest(BaseModel):
    name: Optional[str] = None
    items: list[ChangeSetItemIn] = []


# ── Helpers ───────────────────────────────────────────────────────────

def _validation_failed(exc: ChangeSetValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "Validation failed", "validation_errors": serialize_errors(exc.errors)},
    )


def _policy_violation(exc: ChangeSetPolicyError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


async def _get_change_set(db: AsyncSession, change_set_id: str) -> ChangeSet:
    result = await db.execute(
        select(ChangeSet)
        .where(ChangeSet.id == parse_uuid(change_set_id, "change_set_id"))
        .options(selectinload(ChangeSet.items))
    )
    change_set = result.scalar_one_or_none()
    if not change_set:
        raise HTTPException(status_code=404, detail="Change set not found.")
    return change_set


def _serialize_item(item: ChangeSetItem) -> dict:
    return {
        "id": str(item.id),
        "position": item.position,
        "entity_type": item.entity_type,
        "entity_id": item.entity_id,
        "entity_name": item.entity_name,
        "campaign_name": item.campaign_name,
        "ad_group_name": item.ad_group_name,
        "amazon_campaign_id": item.amazon_campaign_id,
        "amazon_ad_group_id": item.amazon_ad_group_id,
        "amazon_keyword_id": item.amazon_keyword_id,
        "match_type": item.match_type,
        "changes": item.changes,
        "previous_values": item.previous_values,
    }


def _serialize_change_set(cs: ChangeSet, include_items: bool = True) -> dict:
    data = {
        "id": str(cs.id),
        "name": cs.name,
        "status": cs.status,
        "error_message": cs.error_message,
        "exported_at": cs.exported_at.isoformat() if cs.exported_at else None,
        "applied_at": cs.applied_at.isoformat() if cs.applied_at else None,
        "created_at": cs.created_at.isoformat() if cs.created_at else None,
        "updated_at": cs.updated_at.isoformat() if cs.updated_at else None,
    }
    if include_items:
        data["items"] = [_serialize_item(i) for i in cs.items]
    return data


# ── CRUD Endpoints ────────────────────────────────────────────────────

@router.post("", status_code=201)
async def create(payload: CreateChangeSetRequest, db: AsyncSession = Depends(get_db)):
    """Create a DRAFT change set. Rejected whole if any item is malformed or invalid."""
    try:
        change_set = create_change_set([i.model_dump() for i in payload.items], name=payload.name)
    except MalformedChangeSetError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChangeSetValidationError as e:
        raise _validation_failed(e)

    db.add(change_set)
    await db.flush()

    db.add(ActivityLog(
        action="change_set_created",
        category="change_sets",
        description=f"Created change set {change_set.name or change_set.id} with {len(change_set.items)} items",
        entity_type="change_set",
        entity_id=str(change_set.id),
    ))

    return _serialize_change_set(change_set)


@router.get("")
async def list_change_sets(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List change sets, newest first, with item counts."""
    item_count = (
        select(ChangeSetItem.change_set_id, func.count(ChangeSetItem.id).label("item_count"))
        .group_by(ChangeSetItem.change_set_id)
        .subquery()
    )
    query = (
        select(ChangeSet, func.coalesce(item_count.c.item_count, 0))
        .outerjoin(item_count, item_count.c.change_set_id == ChangeSet.id)
        .order_by(ChangeSet.created_at.desc())
        .limit(limit)
    )
    if status:
        query = query.where(ChangeSet.status == status.upper())

    result = await db.execute(query)
    return [
        {**_serialize_change_set(cs, include_items=False), "item_count": count}
        for cs, count in result.all()
    ]


@router.get("/{change_set_id}")
async def get_change_set(change_set_id: str, db: AsyncSession = Depends(get_db)):
    change_set = await _get_change_set(db, change_set_id)
    return _serialize_change_set(change_set)


@router.delete("/{change_set_id}")
async def delete_change_set(change_set_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a DRAFT change set. Exported or finished sets are kept for the record."""
    change_set = await _get_change_set(db, change_set_id)
    try:
        ensure_deletable(change_set)
    except ChangeSetPolicyError as e:
        raise _policy_violation(e)

    await db.delete(change_set)
    db.add(ActivityLog(
        action="change_set_deleted",
        category="change_sets",
        description=f"Deleted change set {change_set.name or change_set.id}",
        entity_type="change_set",
        entity_id=change_set_id,
    ))
    return {"deleted": True, "id": change_set_id}


# ── Transitions ───────────────────────────────────────────────────────

@router.post("/{change_set_id}/export")
async def export(change_set_id: str, db: AsyncSession = Depends(get_db)):
    """Download the change set as a Sponsored Products bulksheet and mark it EXPORTED."""
    change_set = await _get_change_set(db, change_set_id)
    try:
        content = export_change_set(change_set)
    except ChangeSetPolicyError as e:
        raise _policy_violation(e)
    except ChangeSetValidationError as e:
        raise _validation_failed(e)

    db.add(ActivityLog(
        action="change_set_exported",
        category="change_sets",
        description=f"Exported change set {change_set.name or change_set.id} as bulksheet",
        entity_type="change_set",
        entity_id=str(change_set.id),
        details={"item_count": len(change_set.items)},
    ))

    filename = f"change-set-{safe_filename(change_set.name or str(change_set.id))}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{change_set_id}/apply")
async def apply(change_set_id: str, db: AsyncSession = Depends(get_db)):
    """
    Write every item to the stored campaigns/keywords.
    200 when all items applied; 207 with per-item errors when some or all failed.
    """
    change_set = await _get_change_set(db, change_set_id)
    try:
        result = await apply_change_set(change_set, SqlAlchemyEntityStore(db))
    except ChangeSetPolicyError as e:
        raise _policy_violation(e)
    except ChangeSetValidationError as e:
        raise _validation_failed(e)

    failed = result.status == ChangeSetStatus.FAILED
    db.add(ActivityLog(
        action="change_set_failed" if failed else "change_set_applied",
        category="change_sets",
        description=(
            f"Applied change set {change_set.name or change_set.id}: "
            f"{len(result.succeeded)} succeeded, {len(result.failed)} failed"
        ),
        entity_type="change_set",
        entity_id=str(change_set.id),
        details=result.to_dict(),
        status="error" if failed else "success",
    ))

    body = {"id": str(change_set.id), **result.to_dict()}
    if failed:
        # Returned rather than raised so the FAILED status is committed
        return JSONResponse(status_code=207, content=body)
    return body
